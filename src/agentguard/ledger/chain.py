"""Hash-chain helpers shared by the log writer and the verifier.

This is the single source of truth for how an event commits to its predecessor.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Any

from ..types import AuditEvent, EventCandidate
from .jcs import canonical_bytes

GENESIS_HASH: str = "0" * 64

HASHED_FIELDS: tuple[str, ...] = (
    "timestamp",
    "correlation_id",
    "actor_type",
    "actor_id",
    "action_type",
    "tool",
    "resource",
    "payload_redacted",
    "decision",
    "prev_hash",
)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def candidate_body(candidate: EventCandidate, *, timestamp: str, prev_hash: str) -> dict[str, Any]:
    """Return the hashed content of a candidate about to be committed."""
    return {
        "timestamp": timestamp,
        "correlation_id": candidate.correlation_id,
        "actor_type": candidate.actor_type,
        "actor_id": candidate.actor_id,
        "action_type": _plain(candidate.action_type),
        "tool": candidate.tool,
        "resource": candidate.resource,
        "payload_redacted": candidate.payload_redacted,
        "decision": candidate.decision,
        "prev_hash": prev_hash,
    }


def event_body(event: AuditEvent) -> dict[str, Any]:
    """Return the hashed content of a committed event (everything but id, seq and hash)."""
    return {name: _plain(getattr(event, name)) for name in HASHED_FIELDS}


def compute_hash(prev_hash: str, body: dict[str, Any]) -> str:
    """H(prev_hash || canonical(body)) as lowercase hex."""
    digest = hashlib.sha256()
    digest.update(prev_hash.encode("utf-8"))
    digest.update(canonical_bytes(body))
    return digest.hexdigest()


def recompute_hash(event: AuditEvent) -> str:
    return compute_hash(event.prev_hash, event_body(event))
