"""Action lifecycle orchestration: request -> evaluate -> execute | block | await approval.

Design notes:
- Every step is committed before the next one starts; later steps depend on it
- The orchestrator keeps no state between suspension and resumption: the audit
  log and the approval row are the only durable record of a lifecycle
- Fail-closed: a policy that raises is recorded as a block before re-raising
"""

from __future__ import annotations

import logging
from typing import Any, Mapping
from uuid import uuid4

from . import reason_codes
from .approvals_store import ApprovalStore
from .errors import Forbidden, PolicyError, ValidationError
from .executors import StubExecutor, ToolExecutor
from .ledger.base import AuditLog
from .lifecycle import Lifecycle
from .policies import Policy, PolicyVerdict, Verdict
from .redaction import redact_payload
from .storage import SQLiteDatabase
from .types import ActionType, EventCandidate, SubmitResult

_logger = logging.getLogger(__name__)


def _validate_submission(
    actor_type: object,
    actor_id: object,
    tool: object,
    action: object,
    resource: object,
    payload: object,
) -> None:
    missing = [
        name
        for name, value in (
            ("actor_type", actor_type),
            ("actor_id", actor_id),
            ("tool", tool),
            ("action", action),
        )
        if not isinstance(value, str) or not value.strip()
    ]
    if missing:
        raise ValidationError("missing_required_fields", field=",".join(missing))
    if resource is not None and not isinstance(resource, Mapping):
        raise ValidationError("invalid_field", field="resource", detail="expected an object")
    if payload is not None and not isinstance(payload, Mapping):
        raise ValidationError("invalid_field", field="payload_redacted", detail="expected an object")


def action_resource(action: str, resource: Mapping[str, Any] | None) -> dict[str, Any]:
    """Resource as recorded on lifecycle events: the action name plus the target."""
    return {"action": action, **(resource or {})}


class ActionOrchestrator:
    """Drives one governed action through its audit lifecycle."""

    def __init__(
        self,
        *,
        database: SQLiteDatabase,
        audit_log: AuditLog,
        approval_store: ApprovalStore,
        policy: Policy,
        executor: ToolExecutor | None = None,
    ) -> None:
        if policy is None:
            raise ValueError("policy is required (pass AllowAllPolicy() explicitly for permissive mode)")
        self.database = database
        self.audit_log = audit_log
        self.approval_store = approval_store
        self.policy = policy
        self.executor = executor if executor is not None else StubExecutor()

    def submit(
        self,
        *,
        actor_type: str,
        actor_id: str,
        tool: str,
        action: str,
        resource: Mapping[str, Any] | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> SubmitResult:
        """Run the lifecycle up to a terminal state or to an approval request.

        Raises Forbidden (after committing ``action.blocked``) when policy denies.
        An executor exception is recorded as a failed ``action.executed`` and
        re-raised.
        """
        _validate_submission(actor_type, actor_id, tool, action, resource, payload)
        correlation_id = str(uuid4())
        lifecycle = Lifecycle()
        target = action_resource(action, resource)

        def candidate(action_type: ActionType, **fields: Any) -> EventCandidate:
            return EventCandidate(
                correlation_id=correlation_id,
                actor_type=actor_type,
                actor_id=actor_id,
                action_type=action_type,
                **fields,
            )

        lifecycle.step(ActionType.ACTION_REQUESTED)
        self.audit_log.append(
            candidate(
                ActionType.ACTION_REQUESTED,
                tool=tool,
                resource=target,
                payload_redacted=redact_payload(payload),
                decision="requested",
            )
        )

        verdict = self._evaluate(lifecycle, candidate, tool=tool, action=action, resource=resource or {})
        lifecycle.step(ActionType.POLICY_EVALUATED)
        self.audit_log.append(
            candidate(
                ActionType.POLICY_EVALUATED,
                tool=tool,
                resource=target,
                payload_redacted={"reason": verdict.reason},
                decision=verdict.decision.value,
            )
        )
        _logger.info(
            "action %s.%s correlation_id=%s verdict=%s",
            tool,
            action,
            correlation_id,
            verdict.decision.value,
        )

        if verdict.decision is Verdict.ALLOWED:
            try:
                outcome = self.executor.execute(tool=tool, action=action, resource=target, approved=False)
            except Exception as e:
                lifecycle.step(ActionType.ACTION_EXECUTED)
                self.audit_log.append(
                    candidate(
                        ActionType.ACTION_EXECUTED,
                        tool=tool,
                        resource=target,
                        payload_redacted={
                            "note": reason_codes.EXECUTION_ERROR,
                            "error_type": type(e).__name__,
                        },
                        decision="failure",
                    )
                )
                _logger.warning(
                    "executor raised %s for correlation_id=%s", type(e).__name__, correlation_id
                )
                raise
            lifecycle.step(ActionType.ACTION_EXECUTED)
            self.audit_log.append(
                candidate(
                    ActionType.ACTION_EXECUTED,
                    tool=tool,
                    resource=target,
                    payload_redacted={"note": outcome.note, **outcome.detail},
                    decision=outcome.decision,
                )
            )
            return SubmitResult(
                correlation_id=correlation_id,
                status="executed" if outcome.success else "failed",
                reason=verdict.reason,
            )

        if verdict.decision is Verdict.DENIED:
            lifecycle.step(ActionType.ACTION_BLOCKED)
            self.audit_log.append(
                candidate(
                    ActionType.ACTION_BLOCKED,
                    tool=tool,
                    resource=target,
                    payload_redacted={"reason": verdict.reason},
                    decision="denied",
                )
            )
            raise Forbidden(verdict.reason, correlation_id=correlation_id)

        lifecycle.step(ActionType.APPROVAL_REQUESTED)

        def _request_approval(conn: Any) -> str:
            approval = self.approval_store.create_in(
                conn, correlation_id=correlation_id, requested_by=actor_id
            )
            self.audit_log.append_in(
                conn,
                candidate(
                    ActionType.APPROVAL_REQUESTED,
                    tool="approvals",
                    resource={"approval_id": approval.id},
                    payload_redacted={"reason": verdict.reason},
                    decision="requested",
                ),
            )
            return approval.id

        approval_id = self.database.atomic(_request_approval, label="approval request")
        _logger.info("approval %s requested for correlation_id=%s", approval_id, correlation_id)
        return SubmitResult(
            correlation_id=correlation_id,
            status="approval_required",
            approval_id=approval_id,
            reason=verdict.reason,
        )

    def _evaluate(
        self,
        lifecycle: Lifecycle,
        candidate: Any,
        *,
        tool: str,
        action: str,
        resource: Mapping[str, Any],
    ) -> PolicyVerdict:
        try:
            verdict = self.policy.evaluate(tool, action, resource)
            if not isinstance(verdict, PolicyVerdict):
                raise TypeError(f"policy returned {type(verdict).__name__}, expected PolicyVerdict")
        except Exception as e:
            lifecycle.step(ActionType.ACTION_BLOCKED)
            self.audit_log.append(
                candidate(
                    ActionType.ACTION_BLOCKED,
                    tool=tool,
                    resource=action_resource(action, resource),
                    payload_redacted={
                        "reason": reason_codes.POLICY_EVALUATION_FAILED,
                        "error_type": type(e).__name__,
                    },
                    decision="denied",
                )
            )
            raise PolicyError(f"Policy evaluation failed: {e}") from e
        return verdict


__all__ = ("ActionOrchestrator", "action_resource")
