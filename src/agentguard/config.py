"""Runtime configuration read from the environment."""

from __future__ import annotations

import math
import os
import re
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, field_validator, model_validator

DEFAULT_DATABASE_PATH = "agentguard.db"
DEFAULT_LIMIT: int = 50
MAX_LIMIT: int = 200
DEFAULT_APPEND_MAX_ATTEMPTS: int = 5
DEFAULT_BUSY_TIMEOUT_SECONDS: float = 5.0


def parse_domain_list(raw: str | None) -> frozenset[str]:
    """Split a comma-separated list, trimming and lower-casing each item."""
    if not raw:
        return frozenset()
    return frozenset(part.strip().lower() for part in raw.split(",") if part.strip())


class Settings(BaseModel):
    """Settings for the audit core.

    Domain lists are the policy configuration collaborator; everything else
    tunes storage and listing.
    """

    model_config = {"frozen": True}

    database_path: Path = Path(DEFAULT_DATABASE_PATH)
    internal_email_domains: frozenset[str] = frozenset({"example.com"})
    deny_email_domains: frozenset[str] = frozenset()
    governed_tools: frozenset[str] = frozenset({"gmail", "mail"})
    default_limit: int = DEFAULT_LIMIT
    max_limit: int = MAX_LIMIT
    append_max_attempts: int = DEFAULT_APPEND_MAX_ATTEMPTS
    busy_timeout_seconds: float = DEFAULT_BUSY_TIMEOUT_SECONDS

    @field_validator("internal_email_domains", "deny_email_domains", "governed_tools", mode="before")
    @classmethod
    def _normalize_sets(cls, value: object) -> object:
        if isinstance(value, str):
            return parse_domain_list(value)
        if isinstance(value, (set, frozenset, list, tuple)):
            return frozenset(str(v).strip().lower() for v in value if str(v).strip())
        return value

    @field_validator("append_max_attempts")
    @classmethod
    def _attempts_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("append_max_attempts must be >= 1")
        return value

    @model_validator(mode="after")
    def _limits_consistent(self) -> "Settings":
        if self.max_limit < 1:
            raise ValueError("max_limit must be >= 1")
        if not 1 <= self.default_limit <= self.max_limit:
            raise ValueError("default_limit must be between 1 and max_limit")
        return self

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            database_path=Path(env.get("AGENTGUARD_DATABASE_PATH", DEFAULT_DATABASE_PATH)),
            internal_email_domains=env.get("INTERNAL_EMAIL_DOMAINS", "example.com"),
            deny_email_domains=env.get("DENY_EMAIL_DOMAINS", ""),
            governed_tools=env.get("AGENTGUARD_GOVERNED_TOOLS", "gmail,mail"),
            default_limit=int(env.get("AGENTGUARD_DEFAULT_LIMIT", DEFAULT_LIMIT)),
            max_limit=int(env.get("AGENTGUARD_MAX_LIMIT", MAX_LIMIT)),
            append_max_attempts=int(
                env.get("AGENTGUARD_APPEND_MAX_ATTEMPTS", DEFAULT_APPEND_MAX_ATTEMPTS)
            ),
            busy_timeout_seconds=float(
                env.get("AGENTGUARD_BUSY_TIMEOUT_SECONDS", DEFAULT_BUSY_TIMEOUT_SECONDS)
            ),
        )


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def clamp_limit(raw: object, *, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    """Parse a caller-supplied limit and clamp it to [1, maximum].

    Strings are read up to their first non-digit, so ``"5.0"`` and ``"12abc"``
    give 5 and 12. Floats are truncated. Missing or unparseable values fall
    back to ``default``.
    """
    if raw is None or raw == "" or isinstance(raw, bool):
        n = default
    elif isinstance(raw, int):
        n = raw
    elif isinstance(raw, float):
        n = int(raw) if math.isfinite(raw) else default
    else:
        match = _LEADING_INT.match(str(raw))
        n = int(match.group(1)) if match else default
    return max(1, min(maximum, n))
