"""Helpers for safe request logging.

Every payload pymixpanel sends carries the project token, and profile
updates may carry contact details.  Payloads pass through
:func:`redact_for_log` before they reach a log record.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# Compared after stripping a leading "$" and lowercasing.
_SECRET_KEYS: frozenset[str] = frozenset({"token", "api_key", "api_secret", "password", "authorization"})
_CONTACT_KEYS: frozenset[str] = frozenset({"email", "phone"})

_MAX_DEPTH = 10


def _normalize_key(key: Any) -> str:
    return str(key).lstrip("$").lower()


def redact_for_log(value: Any, *, max_string: int = 256, mask_contact: bool = True, _depth: int = 0) -> Any:
    """Return a copy of *value* with secrets masked and long strings cut."""
    if _depth > _MAX_DEPTH:
        return "<max-depth>"

    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, Mapping):
        out: dict[str, Any] = {}
        for key, item in value.items():
            name = _normalize_key(key)
            if name in _SECRET_KEYS:
                out[str(key)] = "<redacted>"
            elif mask_contact and name in _CONTACT_KEYS and isinstance(item, str):
                out[str(key)] = f"<{name}:{len(item)}ch>"
            else:
                out[str(key)] = redact_for_log(
                    item, max_string=max_string, mask_contact=mask_contact, _depth=_depth + 1
                )
        return out

    if isinstance(value, (list, tuple)):
        return [redact_for_log(v, max_string=max_string, mask_contact=mask_contact, _depth=_depth + 1) for v in value]

    return repr(value)
