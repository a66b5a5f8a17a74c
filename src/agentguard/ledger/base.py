from __future__ import annotations

import sqlite3
from typing import Protocol

from agentguard.types import ActionType, AuditEvent, EventCandidate


class AuditLog(Protocol):
    """Minimal audit log interface used by the orchestrator and the approval workflow.

    Implementations should provide:
    - linearizable appends (one global chain, no forks)
    - appends inside a caller-owned transaction, for multi-step atomic units
    - the correlation context lookup used to re-thread a decided approval
    """

    def append(self, candidate: EventCandidate) -> AuditEvent:
        """Append a single event in its own transaction and return it."""

    def append_in(self, conn: sqlite3.Connection, candidate: EventCandidate) -> AuditEvent:
        """Append inside an open write transaction."""

    def first_of(
        self,
        correlation_id: str,
        action_type: ActionType,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> AuditEvent | None:
        """Earliest event of a type within one lifecycle."""

    def list_by_correlation(
        self, correlation_id: str, *, conn: sqlite3.Connection | None = None
    ) -> list[AuditEvent]:
        """All events of one lifecycle, oldest first."""
