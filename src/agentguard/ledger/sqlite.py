"""Append-only SQLite audit log with canonical hashing and serialized appends."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterator
from uuid import uuid4

from ..errors import NotFound, ValidationError
from ..storage import SQLiteDatabase
from ..timeutil import format_timestamp, utcnow
from ..types import ActionType, AuditEvent, EventCandidate, EventFilter
from .chain import GENESIS_HASH, candidate_body, compute_hash
from .jcs import CanonicalizationError, canonical_text, loads

_logger = logging.getLogger(__name__)

_COLUMNS = (
    "seq, id, ts, correlation_id, actor_type, actor_id, action_type, tool, "
    "resource_json, payload_json, decision, prev_hash, hash"
)


def row_to_event(row: sqlite3.Row) -> AuditEvent:
    return AuditEvent(
        seq=row["seq"],
        id=row["id"],
        timestamp=row["ts"],
        correlation_id=row["correlation_id"],
        actor_type=row["actor_type"],
        actor_id=row["actor_id"],
        action_type=row["action_type"],
        tool=row["tool"],
        resource=loads(row["resource_json"]),
        payload_redacted=loads(row["payload_json"]),
        decision=row["decision"],
        prev_hash=row["prev_hash"],
        hash=row["hash"],
    )


def _read_last_hash(conn: sqlite3.Connection) -> str:
    row = conn.execute("SELECT hash FROM audit_events ORDER BY seq DESC LIMIT 1").fetchone()
    if row is None:
        return GENESIS_HASH
    return row["hash"]


@dataclass
class SQLiteAuditLog:
    """The single hash chain of audit events.

    Only this class assigns ``id``, ``timestamp``, ``prev_hash`` and ``hash``.
    """

    database: SQLiteDatabase
    clock: Callable[[], datetime] = field(default=utcnow)

    def append(self, candidate: EventCandidate) -> AuditEvent:
        """Append in its own serialized transaction, retrying transient conflicts."""
        event = self.database.atomic(lambda conn: self.append_in(conn, candidate), label="append")
        _logger.debug(
            "appended %s seq=%d correlation_id=%s", event.action_type, event.seq, event.correlation_id
        )
        return event

    def append_in(self, conn: sqlite3.Connection, candidate: EventCandidate) -> AuditEvent:
        """Append inside a write transaction the caller already holds."""
        try:
            resource_json = canonical_text(candidate.resource)
            payload_json = canonical_text(candidate.payload_redacted)
        except CanonicalizationError as exc:
            raise ValidationError("invalid_json_value", detail=str(exc)) from exc

        prev_hash = _read_last_hash(conn)
        timestamp = format_timestamp(self.clock())
        event_hash = compute_hash(
            prev_hash, candidate_body(candidate, timestamp=timestamp, prev_hash=prev_hash)
        )
        event_id = str(uuid4())
        action_type = ActionType(candidate.action_type).value
        cursor = conn.execute(
            """
            INSERT INTO audit_events
                (id, ts, correlation_id, actor_type, actor_id, action_type, tool,
                 resource_json, payload_json, decision, prev_hash, hash)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event_id,
                timestamp,
                candidate.correlation_id,
                candidate.actor_type,
                candidate.actor_id,
                action_type,
                candidate.tool,
                resource_json,
                payload_json,
                candidate.decision,
                prev_hash,
                event_hash,
            ),
        )
        return AuditEvent(
            seq=int(cursor.lastrowid or 0),
            id=event_id,
            timestamp=timestamp,
            correlation_id=candidate.correlation_id,
            actor_type=candidate.actor_type,
            actor_id=candidate.actor_id,
            action_type=action_type,
            tool=candidate.tool,
            resource=loads(resource_json),
            payload_redacted=loads(payload_json),
            decision=candidate.decision,
            prev_hash=prev_hash,
            hash=event_hash,
        )

    def get(self, event_id: str) -> AuditEvent:
        with self.database.connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM audit_events WHERE id = ?", (event_id,)
            ).fetchone()
        if row is None:
            raise NotFound("event", event_id)
        return row_to_event(row)

    def list(self, filters: EventFilter | None = None, limit: int = 50) -> list[AuditEvent]:
        """Newest first."""
        filters = filters or EventFilter()
        where: list[str] = []
        params: list[Any] = []
        for column, value in (
            ("actor_id", filters.actor_id),
            ("action_type", filters.action_type),
            ("tool", filters.tool),
            ("decision", filters.decision),
        ):
            if value is not None:
                where.append(f"{column} = ?")
                params.append(value)
        if filters.since is not None:
            where.append("ts >= ?")
            params.append(filters.since)
        if filters.until is not None:
            where.append("ts <= ?")
            params.append(filters.until)
        where_sql = f"WHERE {' AND '.join(where)}" if where else ""
        params.append(limit)
        with self.database.connect() as conn:
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM audit_events {where_sql} ORDER BY seq DESC LIMIT ?",
                params,
            ).fetchall()
        return [row_to_event(row) for row in rows]

    def list_by_correlation(
        self, correlation_id: str, *, conn: sqlite3.Connection | None = None
    ) -> list[AuditEvent]:
        """Oldest first: the execution order of one lifecycle."""
        with self._using(conn) as c:
            rows = c.execute(
                f"SELECT {_COLUMNS} FROM audit_events WHERE correlation_id = ? ORDER BY seq ASC",
                (correlation_id,),
            ).fetchall()
        return [row_to_event(row) for row in rows]

    def first_of(
        self,
        correlation_id: str,
        action_type: ActionType,
        *,
        conn: sqlite3.Connection | None = None,
    ) -> AuditEvent | None:
        """Earliest event of ``action_type`` in a lifecycle, or None."""
        with self._using(conn) as c:
            row = c.execute(
                f"""
                SELECT {_COLUMNS} FROM audit_events
                WHERE correlation_id = ? AND action_type = ?
                ORDER BY seq ASC LIMIT 1
                """,
                (correlation_id, ActionType(action_type).value),
            ).fetchone()
        return None if row is None else row_to_event(row)

    def iter_all(self, conn: sqlite3.Connection) -> Iterator[AuditEvent]:
        """Every event in commit order, read through ``conn``."""
        cursor = conn.execute(f"SELECT {_COLUMNS} FROM audit_events ORDER BY seq ASC")
        for row in cursor:
            yield row_to_event(row)

    def latest_hash(self) -> str:
        with self.database.connect() as conn:
            return _read_last_hash(conn)

    def count(self) -> int:
        with self.database.connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM audit_events").fetchone()
        return int(row["n"])

    @contextmanager
    def _using(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with self.database.connect() as own:
            yield own
