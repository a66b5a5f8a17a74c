"""Tool execution boundary.

The orchestrator calls an executor between "allowed" (or "approved") and the
``action.executed`` append. Real executors (mail senders and so on) live
outside this package; the stub records that nothing was actually run.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from pydantic import BaseModel, Field

from . import reason_codes


class ExecutionOutcome(BaseModel):
    """Synchronous success/failure of one tool invocation."""

    model_config = {"frozen": True}

    success: bool
    note: str
    detail: dict[str, Any] = Field(default_factory=dict)

    @property
    def decision(self) -> str:
        return "success" if self.success else "failure"


class ToolExecutor(Protocol):
    """Runs a governed action and reports its outcome.

    After an approval the executor is called inside the decide write
    transaction, so the chain's write lock is held for the whole call and
    other appends wait (up to the busy timeout). Keep executors fast, or hand
    slow work to a queue and report the enqueue as the outcome. An exception
    rolls the decision back and leaves the approval pending.
    """

    def execute(
        self,
        *,
        tool: str,
        action: str,
        resource: Mapping[str, Any],
        approved: bool,
    ) -> ExecutionOutcome:
        """Run the governed action. ``approved`` is True after a human approval."""
        ...


class StubExecutor:
    """Reports success without invoking anything."""

    def execute(
        self,
        *,
        tool: str,
        action: str,
        resource: Mapping[str, Any],
        approved: bool,
    ) -> ExecutionOutcome:
        note = reason_codes.STUB_EXECUTION_AFTER_APPROVAL if approved else reason_codes.STUB_EXECUTION
        return ExecutionOutcome(success=True, note=note)
