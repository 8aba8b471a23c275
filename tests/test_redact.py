from __future__ import annotations

from pymixpanel._redact import redact_for_log


def test_redact_for_log_masks_tokens() -> None:
    payload = {
        "$token": "tok",
        "$distinct_id": "U1",
        "$set": {"$email": "ada@example.com", "plan": "pro"},
        "properties": [{"token": "tok"}],
    }

    redacted = redact_for_log(payload)
    assert redacted["$token"] == "<redacted>"
    assert redacted["$distinct_id"] == "U1"
    assert redacted["$set"] == {"$email": "<email:15ch>", "plan": "pro"}
    assert redacted["properties"] == [{"token": "<redacted>"}]


def test_contact_masking_can_be_disabled() -> None:
    redacted = redact_for_log({"$phone": "+15550100"}, mask_contact=False)
    assert redacted == {"$phone": "+15550100"}


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]
