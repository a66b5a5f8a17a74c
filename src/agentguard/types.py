"""Typed models for agentguard."""

from __future__ import annotations

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, ValidationInfo, field_validator

T = TypeVar("T")


class ActionType(str, Enum):
    """Fixed vocabulary of audit event tags."""

    ACTION_REQUESTED = "action.requested"
    POLICY_EVALUATED = "policy.evaluated"
    ACTION_EXECUTED = "action.executed"
    ACTION_BLOCKED = "action.blocked"
    APPROVAL_REQUESTED = "approval.requested"
    APPROVAL_DECIDED = "approval.decided"


class ActorType(str, Enum):
    AGENT = "agent"
    HUMAN = "human"


class ApprovalStatus(str, Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    DENIED = "denied"
    EXPIRED = "expired"


class LifecycleState(str, Enum):
    """States of one correlation-scoped action lifecycle."""

    REQUESTED = "requested"
    EVALUATED = "evaluated"
    AWAITING_APPROVAL = "awaiting_approval"
    DECIDED = "decided"
    EXECUTED = "executed"
    BLOCKED = "blocked"


def _non_empty(name: str, value: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")
    return value


class EventCandidate(BaseModel):
    """Everything an audit event carries before the log commits it."""

    model_config = {"frozen": True}

    correlation_id: str
    actor_type: str
    actor_id: str
    action_type: ActionType
    tool: str
    resource: Any = Field(default_factory=dict)
    payload_redacted: Any = Field(default_factory=dict)
    decision: str

    @field_validator("correlation_id", "actor_type", "actor_id", "tool", "decision")
    @classmethod
    def _strings_non_empty(cls, value: str, info: ValidationInfo) -> str:
        return _non_empty(info.field_name, value)

    @field_validator("resource", "payload_redacted", mode="before")
    @classmethod
    def _none_is_empty_object(cls, value: Any) -> Any:
        return {} if value is None else value


class AuditEvent(BaseModel):
    """A committed, immutable link of the hash chain."""

    model_config = {"frozen": True}

    seq: int
    id: str
    timestamp: str
    correlation_id: str
    actor_type: str
    actor_id: str
    action_type: str
    tool: str
    resource: Any = Field(default_factory=dict)
    payload_redacted: Any = Field(default_factory=dict)
    decision: str
    prev_hash: str
    hash: str


class Approval(BaseModel):
    model_config = {"frozen": True}

    id: str
    correlation_id: str
    status: ApprovalStatus
    requested_at: str
    requested_by: str
    decided_at: str | None = None
    decided_by: str | None = None
    decision_reason: str | None = None


class EventFilter(BaseModel):
    """Filters for listing audit events. Time bounds are canonical UTC strings."""

    model_config = {"frozen": True}

    actor_id: str | None = None
    action_type: str | None = None
    tool: str | None = None
    decision: str | None = None
    since: str | None = None
    until: str | None = None


class SubmitResult(BaseModel):
    correlation_id: str
    status: str
    approval_id: str | None = None
    reason: str | None = None


class DecideResult(BaseModel):
    status: str
    approval_id: str
    correlation_id: str


class Page(BaseModel, Generic[T]):
    items: list[T]
    limit: int
    returned: int


class Timeline(BaseModel):
    correlation_id: str
    events: list[AuditEvent]
    returned: int
    state: LifecycleState | None = None
