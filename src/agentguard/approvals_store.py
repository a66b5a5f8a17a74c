"""Approval store protocol and SQLite implementation.

Design notes:
- One approval per correlation id (enforced by a UNIQUE column)
- Status changes are compare-and-swap: UPDATE ... WHERE status = 'requested'
- Writes run inside the caller's transaction so an approval and the audit
  events describing it commit together
- expire_stale() is the time-based external policy; it is never called by decide
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Protocol
from uuid import uuid4

from .approvals.common import can_transition, validate_nonempty_str
from .errors import Conflict, NotFound
from .storage import SQLiteDatabase
from .timeutil import format_timestamp, utcnow
from .types import Approval, ApprovalStatus

_logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, correlation_id, status, requested_at, requested_by, decided_at, decided_by, decision_reason"
)


class ApprovalStore(Protocol):
    """Protocol for durable approval state."""

    def create_in(
        self, conn: sqlite3.Connection, *, correlation_id: str, requested_by: str
    ) -> Approval:
        ...

    def fetch(self, approval_id: str, *, conn: sqlite3.Connection | None = None) -> Approval | None:
        ...

    def transition_in(
        self,
        conn: sqlite3.Connection,
        approval_id: str,
        *,
        target: ApprovalStatus,
        decided_by: str | None,
        reason: str | None,
    ) -> Approval:
        ...


def _row_to_approval(row: sqlite3.Row) -> Approval:
    return Approval(
        id=row["id"],
        correlation_id=row["correlation_id"],
        status=ApprovalStatus(row["status"]),
        requested_at=row["requested_at"],
        requested_by=row["requested_by"],
        decided_at=row["decided_at"],
        decided_by=row["decided_by"],
        decision_reason=row["decision_reason"],
    )


@dataclass
class SQLiteApprovalStore:
    """SQLite-backed approvals sharing the audit log's database file."""

    database: SQLiteDatabase
    clock: Callable[[], datetime] = field(default=utcnow)

    def create_in(
        self, conn: sqlite3.Connection, *, correlation_id: str, requested_by: str
    ) -> Approval:
        """Insert a ``requested`` approval inside an open write transaction."""
        validate_nonempty_str("correlation_id", correlation_id)
        validate_nonempty_str("requested_by", requested_by)
        approval_id = str(uuid4())
        conn.execute(
            """
            INSERT INTO approvals (id, correlation_id, status, requested_at, requested_by)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                approval_id,
                correlation_id,
                ApprovalStatus.REQUESTED.value,
                format_timestamp(self.clock()),
                requested_by,
            ),
        )
        approval = self.fetch(approval_id, conn=conn)
        if approval is None:
            raise sqlite3.DatabaseError("approval insert returned no row")
        return approval

    def fetch(self, approval_id: str, *, conn: sqlite3.Connection | None = None) -> Approval | None:
        """Fetch approval by id. Returns None if not found."""
        query = f"SELECT {_COLUMNS} FROM approvals WHERE id = ?"
        if conn is not None:
            row = conn.execute(query, (approval_id,)).fetchone()
        else:
            with self.database.connect() as own:
                row = own.execute(query, (approval_id,)).fetchone()
        return None if row is None else _row_to_approval(row)

    def get(self, approval_id: str) -> Approval:
        approval = self.fetch(approval_id)
        if approval is None:
            raise NotFound("approval", approval_id)
        return approval

    def list(self, status: ApprovalStatus | None = None, limit: int = 50) -> list[Approval]:
        """Newest first by request time."""
        params: list[object] = []
        where_sql = ""
        if status is not None:
            where_sql = "WHERE status = ?"
            params.append(ApprovalStatus(status).value)
        params.append(limit)
        with self.database.connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM approvals
                {where_sql}
                ORDER BY requested_at DESC, id DESC
                LIMIT ?
                """,
                params,
            ).fetchall()
        return [_row_to_approval(row) for row in rows]

    def transition_in(
        self,
        conn: sqlite3.Connection,
        approval_id: str,
        *,
        target: ApprovalStatus,
        decided_by: str | None,
        reason: str | None,
    ) -> Approval:
        """Move a ``requested`` approval to ``target``; Conflict if it already left ``requested``."""
        if not can_transition(ApprovalStatus.REQUESTED, target):
            raise ValueError(f"invalid approval state transition: requested -> {target.value}")
        cursor = conn.execute(
            """
            UPDATE approvals
            SET status = ?, decided_at = ?, decided_by = ?, decision_reason = ?
            WHERE id = ? AND status = ?
            """,
            (
                target.value,
                format_timestamp(self.clock()),
                decided_by,
                reason,
                approval_id,
                ApprovalStatus.REQUESTED.value,
            ),
        )
        current = self.fetch(approval_id, conn=conn)
        if current is None:
            raise NotFound("approval", approval_id)
        if cursor.rowcount == 0:
            raise Conflict(current.status.value, approval_id=approval_id)
        return current

    def expire_stale(self, max_age: timedelta) -> int:
        """Mark ``requested`` approvals older than ``max_age`` as expired. Returns count."""
        cutoff = format_timestamp(self.clock() - max_age)

        def _expire(conn: sqlite3.Connection) -> int:
            cursor = conn.execute(
                """
                UPDATE approvals
                SET status = ?, decided_at = ?
                WHERE status = ? AND requested_at < ?
                """,
                (
                    ApprovalStatus.EXPIRED.value,
                    format_timestamp(self.clock()),
                    ApprovalStatus.REQUESTED.value,
                    cutoff,
                ),
            )
            return cursor.rowcount

        count = self.database.atomic(_expire, label="expire")
        if count:
            _logger.info("expired %d stale approvals", count)
        return count
