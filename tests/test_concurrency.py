from __future__ import annotations

import asyncio
import threading
from pathlib import Path

from agentguard.adapters import AsyncAuditService
from agentguard.ledger import GENESIS_HASH, ChainVerifier
from agentguard.ledger.sqlite import SQLiteAuditLog
from agentguard.service import AuditService
from agentguard.storage import SQLiteDatabase
from agentguard.types import ActionType, EventCandidate


def _candidate(worker: int, n: int) -> EventCandidate:
    return EventCandidate(
        correlation_id=f"worker-{worker}",
        actor_type="agent",
        actor_id=f"agent:{worker}",
        action_type=ActionType.ACTION_REQUESTED,
        tool="mail",
        resource={"n": n},
        decision="requested",
    )


def _assert_single_chain(database: SQLiteDatabase, expected: int) -> None:
    with database.connect() as conn:
        events = list(SQLiteAuditLog(database).iter_all(conn))
    assert len(events) == expected
    prev_hashes = [e.prev_hash for e in events]
    assert len(set(prev_hashes)) == expected
    assert prev_hashes[0] == GENESIS_HASH
    for previous, current in zip(events, events[1:]):
        assert current.prev_hash == previous.hash
    report = ChainVerifier(database).verify()
    assert report.valid
    assert report.checked == expected


def test_concurrent_thread_appends_form_one_chain(db_path: Path) -> None:
    workers, per_worker = 8, 10
    SQLiteDatabase(db_path)
    errors: list[BaseException] = []
    barrier = threading.Barrier(workers)

    def run(worker: int) -> None:
        # Separate database handle per thread, as independent writers would have.
        log = SQLiteAuditLog(SQLiteDatabase(db_path, max_attempts=20))
        barrier.wait()
        try:
            for n in range(per_worker):
                log.append(_candidate(worker, n))
        except BaseException as exc:
            errors.append(exc)

    threads = [threading.Thread(target=run, args=(i,)) for i in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    _assert_single_chain(SQLiteDatabase(db_path), workers * per_worker)


def test_concurrent_async_appends_form_one_chain(service: AuditService) -> None:
    async_service = AsyncAuditService(service)

    async def main() -> None:
        await asyncio.gather(
            *(
                async_service.append_raw(
                    {
                        "actor_type": "agent",
                        "actor_id": f"agent:{i}",
                        "action_type": "action.requested",
                        "tool": "mail",
                        "decision": "requested",
                        "resource": {"i": i},
                    }
                )
                for i in range(30)
            )
        )

    asyncio.run(main())

    _assert_single_chain(service.database, 30)


def test_concurrent_submissions_keep_lifecycles_contiguous(service: AuditService) -> None:
    async_service = AsyncAuditService(service)

    async def main() -> list[str]:
        results = await asyncio.gather(
            *(
                async_service.submit_action(
                    actor_type="agent",
                    actor_id=f"agent:{i}",
                    tool="calendar",
                    action="create_event",
                    resource={"i": i},
                )
                for i in range(10)
            )
        )
        return [r.correlation_id for r in results]

    correlation_ids = asyncio.run(main())

    assert len(set(correlation_ids)) == 10
    for cid in correlation_ids:
        timeline = service.get_timeline(cid)
        assert [e.action_type for e in timeline.events] == [
            "action.requested",
            "policy.evaluated",
            "action.executed",
        ]
    _assert_single_chain(service.database, 30)
