"""Form encoding of request bodies."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

# Characters JavaScript's encodeURIComponent leaves alone, beyond the
# alphanumerics and "_.-~" that quote() never escapes.
_SAFE = "!*'()"


def _encode_component(value: str) -> str:
    return quote(value, safe=_SAFE)


def _serialize_value(value: Any) -> str | None:
    """Return the text form of *value*, or ``None`` to drop the entry."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def encode_body(body: Mapping[str, Any]) -> str:
    """Encode *body* as ``application/x-www-form-urlencoded``.

    Entries keep the insertion order of *body*.  ``None`` values are
    skipped, mappings and sequences are sent as compact JSON, strings and
    numbers as text, and everything else is dropped.
    """
    parts: list[str] = []
    for key, value in body.items():
        text = _serialize_value(value)
        if text is None:
            continue
        parts.append(f"{_encode_component(str(key))}={_encode_component(text)}")
    return "&".join(parts)
