"""Shared approval constants and validators."""

from __future__ import annotations

from ..errors import ValidationError
from ..types import ApprovalStatus

# requested is the only non-terminal status; each approval leaves it exactly once.
ALLOWED_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.REQUESTED: frozenset(
        {ApprovalStatus.APPROVED, ApprovalStatus.DENIED, ApprovalStatus.EXPIRED}
    ),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.DENIED: frozenset(),
    ApprovalStatus.EXPIRED: frozenset(),
}

DECISIONS: frozenset[ApprovalStatus] = frozenset({ApprovalStatus.APPROVED, ApprovalStatus.DENIED})


def can_transition(current: ApprovalStatus, target: ApprovalStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def validate_nonempty_str(name: str, value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("missing_field", field=name)
    return value


def parse_status(value: object) -> ApprovalStatus | None:
    """Return the status for a known value, None otherwise."""
    try:
        return ApprovalStatus(value)
    except ValueError:
        return None


def parse_decision(value: object) -> ApprovalStatus:
    status = parse_status(value)
    if status not in DECISIONS:
        raise ValidationError("invalid_decision", field="decision", detail="expected approved or denied")
    return status  # type: ignore[return-value]
