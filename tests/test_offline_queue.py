"""
Tests for the offline mutation queue (QueueManager and its local store).
"""
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from conftest import ONE_HOUR, sqlite_url
from pos_outbox.core.exceptions import DurableStoreError
from pos_outbox.db.base import make_session_factory
from pos_outbox.db.models.offline_operations import OfflineOperation, OperationAction
from pos_outbox.db.repositories.offline_operations import insert_operation
from pos_outbox.domain.offline_sync.queue import QueueManager, utcnow


class TestEnqueue:

    async def test_list_pending_returns_operations_in_enqueue_order(self, queue):
        ids = []
        for n in range(5):
            ids.append(await queue.enqueue(OperationAction.CREATE, "orders", {"id": f"order-{n}"}))

        pending = await queue.list_pending()

        assert [op.id for op in pending] == ids
        assert [op.payload["id"] for op in pending] == [f"order-{n}" for n in range(5)]

    async def test_enqueue_assigns_unique_ids_and_zero_attempts(self, queue):
        first = await queue.enqueue("create", "orders", {"id": "a"})
        second = await queue.enqueue("create", "orders", {"id": "a"})

        assert first != second
        pending = await queue.list_pending()
        assert all(op.attempts == 0 and op.last_error is None for op in pending)
        assert pending[0].action == OperationAction.CREATE

    async def test_list_pending_has_no_side_effects(self, queue):
        await queue.enqueue(OperationAction.UPDATE, "tables", {"id": "t1", "status": "occupied"})

        assert len(await queue.list_pending()) == 1
        assert len(await queue.list_pending()) == 1
        assert await queue.pending_count() == 1

    async def test_operations_survive_a_restart(self, queue, local_db_path):
        operation_id = await queue.enqueue(OperationAction.DELETE, "order_items", {"id": "item-1"})

        reopened = create_async_engine(sqlite_url(local_db_path))
        try:
            pending = await QueueManager(make_session_factory(reopened)).list_pending()
        finally:
            await reopened.dispose()

        assert [op.id for op in pending] == [operation_id]
        assert pending[0].resource == "order_items"

    async def test_enqueue_raises_when_store_is_unavailable(self, tmp_path):
        broken = create_async_engine(sqlite_url(tmp_path / "missing" / "dir" / "queue.db"))
        try:
            with pytest.raises(DurableStoreError):
                await QueueManager(make_session_factory(broken)).enqueue(
                    OperationAction.CREATE, "orders", {"id": "lost?"}
                )
        finally:
            await broken.dispose()


class TestRemoveAndClear:

    async def test_remove_deletes_only_that_operation(self, queue):
        keep_a = await queue.enqueue(OperationAction.CREATE, "orders", {"id": "a"})
        drop = await queue.enqueue(OperationAction.CREATE, "orders", {"id": "b"})
        keep_c = await queue.enqueue(OperationAction.CREATE, "orders", {"id": "c"})

        assert await queue.remove(drop) is True
        assert await queue.remove(drop) is False
        assert [op.id for op in await queue.list_pending()] == [keep_a, keep_c]

    async def test_clear_discards_everything_including_failed(self, queue):
        failed = await queue.enqueue(OperationAction.CREATE, "orders", {"id": "a"})
        await queue.enqueue(OperationAction.CREATE, "orders", {"id": "b"})
        await queue.record_failure(failed, "timeout")

        assert await queue.clear() == 2
        assert await queue.list_pending() == []
        assert await queue.clear() == 0

    async def test_record_failure_tracks_attempts_and_last_error(self, queue):
        operation_id = await queue.enqueue(OperationAction.UPDATE, "orders", {"id": "a", "status": "paid"})

        await queue.record_failure(operation_id, "connection reset")
        await queue.record_failure(operation_id, "validation failed")

        operation = await queue.get(operation_id)
        assert operation.attempts == 2
        assert operation.last_error == "validation failed"
        assert operation.last_attempt_at is not None


class TestStaleness:

    async def _insert_aged(self, local_sessions, operation_id, age):
        async with local_sessions() as db:
            await insert_operation(
                db,
                OfflineOperation(
                    id=operation_id,
                    action=OperationAction.CREATE,
                    resource="orders",
                    payload={"id": operation_id},
                    timestamp=utcnow() - age,
                    attempts=0,
                ),
            )

    async def test_only_operations_older_than_threshold_are_stale(self, queue, local_sessions):
        await self._insert_aged(local_sessions, "two-hours-old", timedelta(hours=2))
        await self._insert_aged(local_sessions, "ten-minutes-old", timedelta(minutes=10))

        assert await queue.count_stale(ONE_HOUR) == 1
        assert [op.id for op in await queue.list_stale(ONE_HOUR)] == ["two-hours-old"]

    async def test_nothing_is_stale_in_an_empty_queue(self, queue):
        assert await queue.count_stale(ONE_HOUR) == 0
