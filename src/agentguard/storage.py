"""SQLite connection management shared by the audit log and the approval store.

Design notes:
- One connection per operation; connections are never shared across threads
- WAL mode lets snapshot readers run next to the single writer
- Write units use BEGIN IMMEDIATE, which takes the database write lock up front,
  so "read latest hash, then insert" and "check status, then update" are atomic
- Transient lock timeouts and chain-fork collisions are retried as a whole unit
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, TypeVar

from .config import DEFAULT_APPEND_MAX_ATTEMPTS, DEFAULT_BUSY_TIMEOUT_SECONDS
from .errors import IntegrityFault

_logger = logging.getLogger(__name__)

R = TypeVar("R")

RETRY_BACKOFF_SECONDS: float = 0.01

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS audit_events (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        ts TEXT NOT NULL,
        correlation_id TEXT NOT NULL,
        actor_type TEXT NOT NULL,
        actor_id TEXT NOT NULL,
        action_type TEXT NOT NULL,
        tool TEXT NOT NULL,
        resource_json TEXT NOT NULL,
        payload_json TEXT NOT NULL,
        decision TEXT NOT NULL,
        prev_hash TEXT NOT NULL,
        hash TEXT NOT NULL
    )
    """,
    # A second event claiming the same predecessor is a fork; refuse it.
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_audit_events_prev_hash ON audit_events (prev_hash)",
    "CREATE INDEX IF NOT EXISTS idx_audit_events_correlation ON audit_events (correlation_id, seq)",
    "CREATE INDEX IF NOT EXISTS idx_audit_events_ts ON audit_events (ts)",
    """
    CREATE TABLE IF NOT EXISTS approvals (
        id TEXT PRIMARY KEY,
        correlation_id TEXT NOT NULL UNIQUE,
        status TEXT NOT NULL,
        requested_at TEXT NOT NULL,
        requested_by TEXT NOT NULL,
        decided_at TEXT,
        decided_by TEXT,
        decision_reason TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_approvals_status ON approvals (status, requested_at)",
)

_INIT_LOCK = threading.Lock()


def _ensure_schema(path: Path, timeout: float) -> None:
    """Create tables and enable WAL. Idempotent and thread-safe."""
    with _INIT_LOCK:
        conn = sqlite3.connect(path, timeout=timeout, isolation_level=None)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            for statement in _SCHEMA:
                conn.execute(statement)
        finally:
            conn.close()


def is_retryable(exc: BaseException) -> bool:
    """True for lock timeouts and prev_hash collisions, which a retry can resolve."""
    if isinstance(exc, sqlite3.OperationalError):
        message = str(exc).lower()
        return "locked" in message or "busy" in message
    if isinstance(exc, sqlite3.IntegrityError):
        return "prev_hash" in str(exc)
    return False


@dataclass
class SQLiteDatabase:
    """A SQLite file holding the audit chain and the approvals table."""

    path: Path
    busy_timeout_seconds: float = field(default=DEFAULT_BUSY_TIMEOUT_SECONDS)
    max_attempts: int = field(default=DEFAULT_APPEND_MAX_ATTEMPTS)

    def __post_init__(self) -> None:
        self.path = Path(self.path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        _ensure_schema(self.path.resolve(), self.busy_timeout_seconds)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Autocommit connection; callers open transactions explicitly. Always closes."""
        conn = sqlite3.connect(self.path, timeout=self.busy_timeout_seconds, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA synchronous=FULL")
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialized write unit: commits on success, rolls back on any exception."""
        with self.connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    @contextmanager
    def snapshot(self) -> Iterator[sqlite3.Connection]:
        """Read transaction; every query inside sees the same committed state."""
        with self.connect() as conn:
            conn.execute("BEGIN")
            try:
                yield conn
            finally:
                if conn.in_transaction:
                    conn.execute("COMMIT")

    def atomic(self, unit: Callable[[sqlite3.Connection], R], *, label: str = "write") -> R:
        """Run ``unit`` in a write transaction, retrying transient conflicts.

        Raises IntegrityFault once the retry budget is spent.
        """
        last_exc: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                with self.transaction() as conn:
                    return unit(conn)
            except sqlite3.Error as exc:
                if not is_retryable(exc):
                    raise
                last_exc = exc
                _logger.warning(
                    "%s conflict (attempt %d/%d): %s", label, attempt, self.max_attempts, exc
                )
                time.sleep(RETRY_BACKOFF_SECONDS * attempt)
        raise IntegrityFault(
            f"{label} could not be serialized after {self.max_attempts} attempts"
        ) from last_exc
