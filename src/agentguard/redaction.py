"""Scrub secrets from payloads before they are hashed into the audit chain."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

REDACTED = "[redacted]"

_SENSITIVE_KEY_TERMS = (
    "api_key",
    "apikey",
    "token",
    "secret",
    "password",
    "passwd",
    "authorization",
    "bearer",
    "private_key",
    "privatekey",
    "access_key",
    "accesskey",
    "credential",
    "session",
    "jwt",
    "cookie",
)

_SENSITIVE_VALUE_PREFIXES = (
    "sk-",
    "rk-",
    "ghp_",
    "github_pat_",
    "xoxb-",
    "xoxa-",
)


def is_sensitive_key(key: str) -> bool:
    key_lower = key.lower()
    return any(term in key_lower for term in _SENSITIVE_KEY_TERMS)


def is_sensitive_value(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    s = value.strip()
    # JWT shape: three dot-separated segments.
    if s.count(".") == 2 and " " not in s and len(s) >= 24:
        return True
    if s.lower().startswith("bearer "):
        return True
    if s.startswith(_SENSITIVE_VALUE_PREFIXES):
        return True
    if "-----BEGIN" in s:
        return True
    return False


def _placeholder(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<bytes:{len(value)}>"
    return f"<{type(value).__name__}>"


def redact_value(key: str | None, value: Any) -> Any:
    """Redact a value while keeping safe JSON primitives as they are.

    Deterministic and idempotent: redacting twice gives the same result.
    """
    if value == REDACTED:
        return REDACTED

    if key is not None and is_sensitive_key(key):
        return REDACTED

    if isinstance(value, str):
        return REDACTED if is_sensitive_value(value) else value

    if value is None or value is True or value is False:
        return value
    if isinstance(value, (int, float, Decimal)):
        return value

    if isinstance(value, (list, tuple)):
        return [redact_value(None, v) for v in value]

    if isinstance(value, Mapping):
        if all(isinstance(k, str) for k in value.keys()):
            return {k: redact_value(k, v) for k, v in value.items()}
        return _placeholder(value)

    return _placeholder(value)


def redact_payload(payload: Mapping[str, Any] | None) -> dict[str, Any]:
    if not payload:
        return {}
    return {k: redact_value(k, v) for k, v in payload.items()}
