"""Chain verification for the audit log."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Iterable

from pydantic import BaseModel, ValidationError as ModelValidationError

from ..errors import IntegrityFault
from ..storage import SQLiteDatabase
from ..types import AuditEvent
from .chain import GENESIS_HASH, recompute_hash
from .jcs import CanonicalizationError
from .sqlite import row_to_event

_logger = logging.getLogger(__name__)


class VerificationReport(BaseModel):
    valid: bool
    broken_at_id: str | None = None
    checked: int = 0
    reason: str | None = None

    def raise_for_status(self) -> None:
        if not self.valid:
            raise IntegrityFault(f"chain broken at {self.broken_at_id}: {self.reason}")


def verify_events(events: Iterable[AuditEvent]) -> VerificationReport:
    """Verify an ordered sequence of committed events, stopping at the first break."""
    expected_prev = GENESIS_HASH
    checked = 0
    for event in events:
        if event.prev_hash != expected_prev:
            return VerificationReport(
                valid=False, broken_at_id=event.id, checked=checked, reason="prev_hash mismatch"
            )
        try:
            calculated = recompute_hash(event)
        except CanonicalizationError as exc:
            return VerificationReport(
                valid=False, broken_at_id=event.id, checked=checked, reason=f"not canonical: {exc}"
            )
        if calculated != event.hash:
            return VerificationReport(
                valid=False, broken_at_id=event.id, checked=checked, reason="hash mismatch"
            )
        checked += 1
        expected_prev = event.hash
    return VerificationReport(valid=True, checked=checked)


@dataclass(frozen=True)
class ChainVerifier:
    """Read-only consumer of the log; runs against a consistent snapshot."""

    database: SQLiteDatabase

    def verify(self) -> VerificationReport:
        with self.database.snapshot() as conn:
            rows = conn.execute(
                "SELECT seq, id, ts, correlation_id, actor_type, actor_id, action_type, tool, "
                "resource_json, payload_json, decision, prev_hash, hash "
                "FROM audit_events ORDER BY seq ASC"
            ).fetchall()

        events: list[AuditEvent] = []
        for row in rows:
            try:
                events.append(row_to_event(row))
            except (json.JSONDecodeError, ModelValidationError) as exc:
                # An unreadable row cannot be hashed; everything before it still counts.
                report = verify_events(events)
                if not report.valid:
                    return _logged(report)
                return _logged(
                    VerificationReport(
                        valid=False,
                        broken_at_id=row["id"],
                        checked=report.checked,
                        reason=f"unreadable row: {exc.__class__.__name__}",
                    )
                )
        return _logged(verify_events(events))


def _logged(report: VerificationReport) -> VerificationReport:
    if report.valid:
        _logger.info("chain verified: %d events", report.checked)
    else:
        _logger.warning("chain broken at %s: %s", report.broken_at_id, report.reason)
    return report
