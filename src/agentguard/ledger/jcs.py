"""Strict canonical JSON used as the hash input of audit events.

Profile (a superset of RFC 8785's ordering rules with a fixed number form):
- NFC normalization for object keys and string values
- Duplicate key rejection after NFC normalization
- Object keys sorted by code point at every nesting level
- Fixed-point decimal encoding (no exponent, no trailing zeros, no -0)
- Finite floats pass through their shortest repr into Decimal
- NaN/Infinity rejected
"""

from __future__ import annotations

import hashlib
import json
import math
import unicodedata
from decimal import Decimal
from typing import Any, Mapping


class CanonicalizationError(ValueError):
    """Raised when a value cannot be represented in agentguard's canonical JSON."""


def canonical_text(value: Any) -> str:
    """Canonical JSON text; this is also the stored column form."""
    parts: list[str] = []
    _emit(value, parts)
    return "".join(parts)


def canonical_bytes(value: Any) -> bytes:
    return canonical_text(value).encode("utf-8")


def sha256_hex(value: Any) -> str:
    """SHA-256 hex digest of the canonical bytes."""
    return hashlib.sha256(canonical_bytes(value)).hexdigest()


def loads(text: str) -> Any:
    """Parse stored canonical JSON so that it re-canonicalizes byte-identically."""
    return json.loads(text, parse_float=Decimal)


def _quote(text: str) -> str:
    return json.dumps(unicodedata.normalize("NFC", text), ensure_ascii=False)


def _number(value: Decimal) -> str:
    if not value.is_finite():
        raise CanonicalizationError("NaN/Infinity are rejected")
    if value.is_zero():
        return "0"
    # "f" never produces an exponent; strip the insignificant fraction digits.
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _sorted_members(obj: Mapping[Any, Any]) -> list[tuple[str, Any]]:
    members: dict[str, Any] = {}
    for key, item in obj.items():
        if not isinstance(key, str):
            raise CanonicalizationError(f"object keys must be strings, got {type(key).__name__}")
        nfc_key = unicodedata.normalize("NFC", key)
        if nfc_key in members:
            raise CanonicalizationError(f"duplicate key after NFC normalization: {nfc_key!r}")
        members[nfc_key] = item
    return sorted(members.items())


def _emit(value: Any, out: list[str]) -> None:
    if value is None:
        out.append("null")
    elif isinstance(value, bool):
        out.append("true" if value else "false")
    elif isinstance(value, int):
        out.append(str(int(value)))
    elif isinstance(value, float):
        if not math.isfinite(value):
            raise CanonicalizationError("NaN/Infinity are rejected")
        out.append(_number(Decimal(repr(value))))
    elif isinstance(value, Decimal):
        out.append(_number(value))
    elif isinstance(value, str):
        out.append(_quote(value))
    elif isinstance(value, (list, tuple)):
        out.append("[")
        for index, item in enumerate(value):
            if index:
                out.append(",")
            _emit(item, out)
        out.append("]")
    elif isinstance(value, Mapping):
        out.append("{")
        for index, (key, item) in enumerate(_sorted_members(value)):
            if index:
                out.append(",")
            out.append(_quote(key))
            out.append(":")
            _emit(item, out)
        out.append("}")
    else:
        raise CanonicalizationError(f"type {type(value).__name__} is not JSON-serializable")
