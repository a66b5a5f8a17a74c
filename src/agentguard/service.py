"""Request-shaped facade over the audit log, orchestrator and approval workflow.

Every operation validates its inputs, then delegates. Nothing here holds state
beyond the wired components, so one instance can be shared across threads.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Mapping
from uuid import uuid4

import pydantic

from .approvals import ApprovalWorkflow
from .approvals.common import parse_status, validate_nonempty_str
from .approvals_store import SQLiteApprovalStore
from .config import Settings, clamp_limit
from .engine import ActionOrchestrator
from .errors import InvalidTransition, ValidationError
from .executors import StubExecutor, ToolExecutor
from .ledger import ChainVerifier, SQLiteAuditLog, VerificationReport
from .lifecycle import replay
from .policies import DomainPolicy, Policy
from .storage import SQLiteDatabase
from .timeutil import format_timestamp, parse_timestamp
from .types import (
    ActionType,
    Approval,
    AuditEvent,
    DecideResult,
    EventCandidate,
    EventFilter,
    Page,
    SubmitResult,
    Timeline,
)

_logger = logging.getLogger(__name__)

RAW_REQUIRED_FIELDS = ("actor_type", "actor_id", "action_type", "tool", "decision")


def policy_from_settings(settings: Settings) -> DomainPolicy:
    return DomainPolicy(
        internal_domains=settings.internal_email_domains,
        deny_domains=settings.deny_email_domains,
        governed_tools=settings.governed_tools,
    )


def _time_bound(value: object, code: str) -> str | None:
    if value is None or value == "":
        return None
    parsed = parse_timestamp(value) if isinstance(value, str) else None
    if parsed is None:
        raise ValidationError(code, detail="expected an ISO-8601 timestamp")
    return format_timestamp(parsed)


def _optional_str(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


class AuditService:
    """Wires storage, log, approvals, policy and executor from one Settings."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        policy: Policy | None = None,
        executor: ToolExecutor | None = None,
    ) -> None:
        self.settings = settings if settings is not None else Settings.from_env()
        self.database = SQLiteDatabase(
            self.settings.database_path,
            busy_timeout_seconds=self.settings.busy_timeout_seconds,
            max_attempts=self.settings.append_max_attempts,
        )
        self.audit_log = SQLiteAuditLog(self.database)
        self.approval_store = SQLiteApprovalStore(self.database)
        self.policy = policy if policy is not None else policy_from_settings(self.settings)
        self.executor = executor if executor is not None else StubExecutor()
        self.orchestrator = ActionOrchestrator(
            database=self.database,
            audit_log=self.audit_log,
            approval_store=self.approval_store,
            policy=self.policy,
            executor=self.executor,
        )
        self.workflow = ApprovalWorkflow(
            database=self.database,
            audit_log=self.audit_log,
            approval_store=self.approval_store,
            executor=self.executor,
        )
        self.verifier = ChainVerifier(self.database)

    def _limit(self, raw: object) -> int:
        return clamp_limit(raw, default=self.settings.default_limit, maximum=self.settings.max_limit)

    # -- audit log ---------------------------------------------------------

    def append_raw(self, event: Mapping[str, Any]) -> AuditEvent:
        """Append one event outside any lifecycle. The caller supplies the redacted payload."""
        for name in RAW_REQUIRED_FIELDS:
            value = event.get(name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError("missing_field", field=name)
        try:
            action_type = ActionType(event["action_type"])
        except ValueError as exc:
            raise ValidationError(
                "invalid_action_type", field="action_type", detail=str(event["action_type"])
            ) from exc
        payload = event.get("payload_redacted", event.get("payload"))
        try:
            candidate = EventCandidate(
                correlation_id=event.get("correlation_id") or str(uuid4()),
                actor_type=event["actor_type"],
                actor_id=event["actor_id"],
                action_type=action_type,
                tool=event["tool"],
                resource=event.get("resource"),
                payload_redacted=payload,
                decision=event["decision"],
            )
        except pydantic.ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or None
            raise ValidationError("invalid_field", field=field, detail=first["msg"]) from exc
        return self.audit_log.append(candidate)

    def get_event(self, event_id: str) -> AuditEvent:
        return self.audit_log.get(event_id)

    def list_events(
        self, filters: Mapping[str, Any] | None = None, limit: object = None
    ) -> Page[AuditEvent]:
        """Newest first. ``from``/``to`` are inclusive ISO-8601 bounds."""
        filters = filters or {}
        event_filter = EventFilter(
            actor_id=_optional_str(filters.get("actor_id")),
            action_type=_optional_str(filters.get("action_type")),
            tool=_optional_str(filters.get("tool")),
            decision=_optional_str(filters.get("decision")),
            since=_time_bound(filters.get("from"), "invalid_from"),
            until=_time_bound(filters.get("to"), "invalid_to"),
        )
        n = self._limit(limit)
        items = self.audit_log.list(event_filter, n)
        return Page[AuditEvent](items=items, limit=n, returned=len(items))

    def verify_chain(self) -> VerificationReport:
        return self.verifier.verify()

    # -- lifecycles --------------------------------------------------------

    def submit_action(
        self,
        *,
        actor_type: str,
        actor_id: str,
        tool: str,
        action: str,
        resource: Mapping[str, Any] | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> SubmitResult:
        return self.orchestrator.submit(
            actor_type=actor_type,
            actor_id=actor_id,
            tool=tool,
            action=action,
            resource=resource,
            payload=payload,
        )

    def get_timeline(self, correlation_id: str) -> Timeline:
        """All events of one lifecycle, oldest first. Unknown ids give an empty timeline."""
        validate_nonempty_str("correlation_id", correlation_id)
        events = self.audit_log.list_by_correlation(correlation_id)
        try:
            state = replay(event.action_type for event in events)
        except InvalidTransition:
            _logger.debug("timeline %s does not follow the lifecycle table", correlation_id)
            state = None
        return Timeline(
            correlation_id=correlation_id, events=events, returned=len(events), state=state
        )

    # -- approvals ---------------------------------------------------------

    def list_approvals(self, status: object = None, limit: object = None) -> Page[Approval]:
        """Newest first. An unrecognised status filter lists every approval."""
        n = self._limit(limit)
        items = self.approval_store.list(status=parse_status(status), limit=n)
        return Page[Approval](items=items, limit=n, returned=len(items))

    def get_approval(self, approval_id: str) -> Approval:
        return self.approval_store.get(approval_id)

    def decide_approval(
        self,
        approval_id: str,
        decision: str,
        approver_id: str,
        reason: str | None = None,
    ) -> DecideResult:
        return self.workflow.decide(approval_id, decision, approver_id, reason)

    def expire_stale_approvals(self, max_age: timedelta) -> int:
        return self.approval_store.expire_stale(max_age)


__all__ = ("AuditService", "policy_from_settings", "RAW_REQUIRED_FIELDS")
