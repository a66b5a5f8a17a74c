"""Exception types for agentguard."""

from __future__ import annotations

from typing import Any


class AgentGuardError(Exception):
    """Base exception for all agentguard errors."""


class ValidationError(AgentGuardError):
    """Raised when a required field is missing or malformed. Nothing is committed."""

    def __init__(self, code: str, *, field: str | None = None, detail: str | None = None) -> None:
        self.code = code
        self.field = field
        self.detail = detail
        message = code if field is None else f"{code}: {field}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class NotFound(AgentGuardError):
    """Raised when an event or approval id is unknown."""

    def __init__(self, kind: str, ident: str) -> None:
        self.kind = kind
        self.ident = ident
        super().__init__(f"{kind}_not_found: {ident}")


class Conflict(AgentGuardError):
    """Raised when an approval has already been decided."""

    def __init__(self, status: str, *, approval_id: str | None = None) -> None:
        self.status = status
        self.approval_id = approval_id
        super().__init__(f"approval_not_pending: {status}")


class Forbidden(AgentGuardError):
    """Raised when an action is blocked by policy or by the approver.

    This is a completed lifecycle, not a failure: the blocking events are
    already committed when it is raised.
    """

    def __init__(
        self,
        reason: str,
        *,
        correlation_id: str,
        approval_id: str | None = None,
        status: str = "denied",
    ) -> None:
        self.reason = reason
        self.correlation_id = correlation_id
        self.approval_id = approval_id
        self.status = status
        super().__init__(f"{status}: {reason}")

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "status": self.status,
            "correlation_id": self.correlation_id,
            "reason": self.reason,
        }
        if self.approval_id is not None:
            body["approval_id"] = self.approval_id
        return body


class PolicyError(AgentGuardError):
    """Raised when policy evaluation fails."""


class InvalidTransition(AgentGuardError):
    """Raised when an event would break the lifecycle transition table."""


class IntegrityFault(AgentGuardError):
    """Raised when the hash chain is broken or an append cannot be serialized."""
