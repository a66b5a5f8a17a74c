"""Human decision on a pending approval, and the resumed lifecycle.

Design notes:
- decide() is one write transaction: CAS on the approval row, approval.decided,
  then action.executed or action.blocked. A failure anywhere rolls all of it back
- The original tool and resource come from the lifecycle's action.requested
  event; nothing about the suspended action is kept in memory
- Forbidden is raised only after the denial has committed
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING, Any

from .. import reason_codes
from ..errors import Conflict, Forbidden, NotFound
from ..executors import StubExecutor, ToolExecutor
from ..ledger.base import AuditLog
from ..lifecycle import Lifecycle, replay
from ..storage import SQLiteDatabase
from ..types import ActionType, ActorType, ApprovalStatus, DecideResult, EventCandidate
from .common import parse_decision, validate_nonempty_str

if TYPE_CHECKING:
    from ..approvals_store import ApprovalStore

_logger = logging.getLogger(__name__)

APPROVALS_TOOL = "approvals"


class ApprovalWorkflow:
    def __init__(
        self,
        *,
        database: SQLiteDatabase,
        audit_log: AuditLog,
        approval_store: ApprovalStore,
        executor: ToolExecutor | None = None,
    ) -> None:
        self.database = database
        self.audit_log = audit_log
        self.approval_store = approval_store
        self.executor = executor if executor is not None else StubExecutor()

    def decide(
        self,
        approval_id: str,
        decision: str,
        approver_id: str,
        reason: str | None = None,
    ) -> DecideResult:
        """Record a human decision and finish the suspended lifecycle.

        Raises NotFound, Conflict (already decided), ValidationError, or
        Forbidden once a denial has been committed.
        """
        validate_nonempty_str("approval_id", approval_id)
        validate_nonempty_str("approver_id", approver_id)
        target = parse_decision(decision)

        result = self.database.atomic(
            lambda conn: self._decide_in(conn, approval_id, target, approver_id, reason),
            label="decide",
        )
        _logger.info(
            "approval %s %s by %s correlation_id=%s",
            approval_id,
            target.value,
            approver_id,
            result.correlation_id,
        )
        if target is ApprovalStatus.DENIED:
            raise Forbidden(
                reason or reason_codes.BLOCKED_BY_APPROVER,
                correlation_id=result.correlation_id,
                approval_id=approval_id,
            )
        return result

    def _decide_in(
        self,
        conn: sqlite3.Connection,
        approval_id: str,
        target: ApprovalStatus,
        approver_id: str,
        reason: str | None,
    ) -> DecideResult:
        approval = self.approval_store.fetch(approval_id, conn=conn)
        if approval is None:
            raise NotFound("approval", approval_id)
        if approval.status is not ApprovalStatus.REQUESTED:
            raise Conflict(approval.status.value, approval_id=approval_id)
        correlation_id = approval.correlation_id

        history = self.audit_log.list_by_correlation(correlation_id, conn=conn)
        # Approvals without a recorded action.requested (written through the raw
        # append path) are decided without a lifecycle check.
        lifecycle: Lifecycle | None = None
        if any(event.action_type == ActionType.ACTION_REQUESTED.value for event in history):
            lifecycle = Lifecycle(replay(event.action_type for event in history))

        self.approval_store.transition_in(
            conn, approval_id, target=target, decided_by=approver_id, reason=reason
        )

        if lifecycle is not None:
            lifecycle.step(ActionType.APPROVAL_DECIDED)
        self.audit_log.append_in(
            conn,
            EventCandidate(
                correlation_id=correlation_id,
                actor_type=ActorType.HUMAN.value,
                actor_id=approver_id,
                action_type=ActionType.APPROVAL_DECIDED,
                tool=APPROVALS_TOOL,
                resource={"approval_id": approval_id},
                payload_redacted={"reason": reason},
                decision=target.value,
            ),
        )

        requested = self.audit_log.first_of(correlation_id, ActionType.ACTION_REQUESTED, conn=conn)
        if requested is not None:
            tool = requested.tool
            resource: Any = requested.resource
            action = resource.get("action", "") if isinstance(resource, dict) else ""
        else:
            tool, resource, action = APPROVALS_TOOL, {"approval_id": approval_id}, ""

        def follow_up(action_type: ActionType, payload: dict[str, Any], decision: str) -> None:
            if lifecycle is not None:
                lifecycle.step(action_type)
            self.audit_log.append_in(
                conn,
                EventCandidate(
                    correlation_id=correlation_id,
                    actor_type=ActorType.HUMAN.value,
                    actor_id=approver_id,
                    action_type=action_type,
                    tool=tool,
                    resource=resource,
                    payload_redacted=payload,
                    decision=decision,
                ),
            )

        if target is ApprovalStatus.APPROVED:
            outcome = self.executor.execute(tool=tool, action=action, resource=resource, approved=True)
            follow_up(
                ActionType.ACTION_EXECUTED,
                {"note": outcome.note, **outcome.detail},
                outcome.decision,
            )
            status = "executed" if outcome.success else "failed"
        else:
            follow_up(
                ActionType.ACTION_BLOCKED,
                {"note": reason_codes.BLOCKED_BY_APPROVER, "reason": reason},
                "denied",
            )
            status = "denied"

        return DecideResult(status=status, approval_id=approval_id, correlation_id=correlation_id)


__all__ = ("ApprovalWorkflow", "APPROVALS_TOOL")
