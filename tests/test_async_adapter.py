from __future__ import annotations

import asyncio

import pytest

from agentguard.adapters import AsyncAuditService
from agentguard.errors import Forbidden, NotFound
from agentguard.service import AuditService


def test_async_service_round_trip(service: AuditService) -> None:
    async_service = AsyncAuditService(service)

    async def main() -> None:
        submitted = await async_service.submit_action(
            actor_type="agent",
            actor_id="agent:async",
            tool="mail",
            action="send_email",
            resource={"to": "x@other.org"},
        )
        assert submitted.status == "approval_required"

        approvals = await async_service.list_approvals("requested")
        assert approvals.returned == 1
        approval = await async_service.get_approval(submitted.approval_id)
        assert approval.correlation_id == submitted.correlation_id

        decided = await async_service.decide_approval(submitted.approval_id, "approved", "alice")
        assert decided.status == "executed"

        timeline = await async_service.get_timeline(submitted.correlation_id)
        assert timeline.returned == 5

        page = await async_service.list_events({"actor_id": "alice"}, 10)
        assert page.returned == 2
        event = await async_service.get_event(page.items[0].id)
        assert event == page.items[0]

        report = await async_service.verify_chain()
        assert report.valid
        assert report.checked == 5

    asyncio.run(main())


def test_async_service_propagates_errors(service: AuditService) -> None:
    async_service = AsyncAuditService(service)

    async def main() -> None:
        with pytest.raises(NotFound):
            await async_service.get_event("missing")
        with pytest.raises(Forbidden):
            await async_service.submit_action(
                actor_type="agent",
                actor_id="agent:async",
                tool="mail",
                action="send_email",
                resource={"to": "x@evil.com"},
            )

    asyncio.run(main())
