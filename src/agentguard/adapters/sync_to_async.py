"""Async facade over the synchronous audit service.

Design notes:
- Every call runs in a worker thread via asyncio.to_thread(); SQLite I/O blocks
- Each call opens its own connection, so concurrent coroutines become concurrent
  writers that the database serializes
- The adapter is explicit: callers construct it around a service they own
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from ..ledger import VerificationReport
    from ..service import AuditService
    from ..types import Approval, AuditEvent, DecideResult, Page, SubmitResult, Timeline


@dataclass(frozen=True, slots=True)
class AsyncAuditService:
    """Wraps an AuditService to provide awaitable operations.

    Usage:
        service = AuditService(Settings.from_env())
        async_service = AsyncAuditService(service)
        result = await async_service.submit_action(actor_type="agent", ...)
    """

    _service: AuditService

    async def append_raw(self, event: Mapping[str, Any]) -> AuditEvent:
        return await asyncio.to_thread(self._service.append_raw, event)

    async def get_event(self, event_id: str) -> AuditEvent:
        return await asyncio.to_thread(self._service.get_event, event_id)

    async def list_events(
        self, filters: Mapping[str, Any] | None = None, limit: object = None
    ) -> Page[AuditEvent]:
        return await asyncio.to_thread(self._service.list_events, filters, limit)

    async def submit_action(self, **kwargs: Any) -> SubmitResult:
        """Same keyword arguments as AuditService.submit_action."""
        return await asyncio.to_thread(lambda: self._service.submit_action(**kwargs))

    async def get_timeline(self, correlation_id: str) -> Timeline:
        return await asyncio.to_thread(self._service.get_timeline, correlation_id)

    async def list_approvals(self, status: object = None, limit: object = None) -> Page[Approval]:
        return await asyncio.to_thread(self._service.list_approvals, status, limit)

    async def get_approval(self, approval_id: str) -> Approval:
        return await asyncio.to_thread(self._service.get_approval, approval_id)

    async def decide_approval(
        self,
        approval_id: str,
        decision: str,
        approver_id: str,
        reason: str | None = None,
    ) -> DecideResult:
        return await asyncio.to_thread(
            self._service.decide_approval, approval_id, decision, approver_id, reason
        )

    async def verify_chain(self) -> VerificationReport:
        return await asyncio.to_thread(self._service.verify_chain)

    async def expire_stale_approvals(self, max_age: timedelta) -> int:
        return await asyncio.to_thread(self._service.expire_stale_approvals, max_age)
