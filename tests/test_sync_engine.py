"""
Tests for SyncEngine drains and the SQL replay executor.
"""
import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine

from conftest import business_metadata, orders_table, restaurant_tables_table, sqlite_url
from pos_outbox.db.base import make_session_factory
from pos_outbox.db.models.offline_operations import OperationAction
from pos_outbox.domain.offline_sync.connectivity import ConnectivityState
from pos_outbox.domain.offline_sync.engine import SyncEngine, SyncState
from pos_outbox.domain.offline_sync.executor import SqlTableExecutor
from pos_outbox.domain.offline_sync.schemas import DrainResult


async def enqueue_three(queue):
    return [
        await queue.enqueue(OperationAction.CREATE, "orders", {"id": "o1", "status": "open", "total": 0}),
        await queue.enqueue(OperationAction.UPDATE, "tables", {"id": "t1", "status": "occupied"}),
        await queue.enqueue(OperationAction.DELETE, "order_items", {"id": "i1"}),
    ]


class TestDrain:

    async def test_offline_enqueue_then_drain_after_reconnect(self, engine, queue, executor, monitor):
        await enqueue_three(queue)

        offline = await engine.drain()
        assert offline.skipped is True
        executor.execute.assert_not_awaited()

        monitor.state = ConnectivityState.ONLINE
        result = await engine.drain()

        assert (result.succeeded, result.failed) == (3, 0)
        assert await queue.list_pending() == []
        assert engine.state == SyncState.IDLE

    async def test_operations_are_replayed_in_fifo_order(self, engine, queue, executor, monitor):
        ids = await enqueue_three(queue)
        monitor.set_online(True)
        await monitor.wait_for_reconnect()

        replayed = [call.args[0].id for call in executor.execute.await_args_list]
        assert replayed == ids

    async def test_second_drain_makes_no_duplicate_remote_calls(self, engine, queue, executor, monitor):
        monitor.state = ConnectivityState.ONLINE
        await enqueue_three(queue)

        await engine.drain()
        second = await engine.drain()

        assert executor.execute.await_count == 3
        assert second == DrainResult()

    async def test_failed_operation_stays_queued_and_others_are_removed(self, engine, queue, executor, monitor):
        monitor.state = ConnectivityState.ONLINE
        ids = await enqueue_three(queue)
        failing = ids[1]
        executor.execute.side_effect = lambda op: op.id != failing

        result = await engine.drain()

        assert (result.succeeded, result.failed) == (2, 1)
        assert result.failed_ids == [failing]
        pending = await queue.list_pending()
        assert [op.id for op in pending] == [failing]
        assert pending[0].attempts == 1
        assert pending[0].last_error == "Remote executor reported failure"
        assert engine.state == SyncState.IDLE_WITH_FAILURES

    async def test_executor_exception_counts_as_failure(self, engine, queue, executor, monitor):
        monitor.state = ConnectivityState.ONLINE
        operation_id = await queue.enqueue(OperationAction.CREATE, "orders", {"id": "o1"})
        executor.execute.side_effect = ConnectionError("network unreachable")

        result = await engine.drain()

        assert (result.succeeded, result.failed) == (0, 1)
        operation = await queue.get(operation_id)
        assert "network unreachable" in operation.last_error

    async def test_drain_after_clear_is_a_noop(self, engine, queue, executor, monitor):
        monitor.state = ConnectivityState.ONLINE
        await enqueue_three(queue)
        executor.execute.return_value = False
        await engine.drain()

        await queue.clear()
        executor.execute.reset_mock()
        result = await engine.drain()

        assert result == DrainResult()
        executor.execute.assert_not_awaited()

    async def test_concurrent_drains_share_one_pass(self, engine, queue, executor, monitor):
        monitor.state = ConnectivityState.ONLINE
        await queue.enqueue(OperationAction.CREATE, "orders", {"id": "o1"})
        await queue.enqueue(OperationAction.CREATE, "orders", {"id": "o2"})
        release = asyncio.Event()

        async def slow_execute(op):
            await release.wait()
            return True

        executor.execute.side_effect = slow_execute
        first = asyncio.ensure_future(engine.drain())
        second = asyncio.ensure_future(engine.drain())
        await asyncio.sleep(0.05)
        assert engine.is_syncing
        release.set()

        first_result, second_result = await asyncio.gather(first, second)

        assert first_result == second_result
        assert first_result.succeeded == 2
        assert executor.execute.await_count == 2

    async def test_dependent_operation_is_deferred_when_prerequisite_fails(self, engine, queue, executor, monitor):
        monitor.state = ConnectivityState.ONLINE
        create_id = await queue.enqueue(OperationAction.CREATE, "orders", {"id": "o1"})
        update_id = await queue.enqueue(
            OperationAction.UPDATE, "orders", {"id": "o1", "status": "paid"}, depends_on=create_id
        )
        independent_id = await queue.enqueue(OperationAction.UPDATE, "tables", {"id": "t9", "status": "free"})
        executor.execute.side_effect = lambda op: op.id != create_id

        result = await engine.drain()

        assert (result.succeeded, result.failed, result.deferred) == (1, 1, 1)
        replayed = [call.args[0].id for call in executor.execute.await_args_list]
        assert replayed == [create_id, independent_id]
        pending = await queue.list_pending()
        assert [op.id for op in pending] == [create_id, update_id]
        assert pending[1].attempts == 0

    async def test_dependent_operation_runs_once_prerequisite_succeeds(self, engine, queue, executor, monitor):
        monitor.state = ConnectivityState.ONLINE
        create_id = await queue.enqueue(OperationAction.CREATE, "orders", {"id": "o1"})
        await queue.enqueue(OperationAction.UPDATE, "orders", {"id": "o1", "status": "paid"}, depends_on=create_id)

        result = await engine.drain()

        assert (result.succeeded, result.deferred) == (2, 0)


class TestSqlTableExecutor:

    async def _rows(self, remote_sessions, table):
        async with remote_sessions() as db:
            result = await db.execute(select(table).order_by(table.c.id))
            return [dict(row._mapping) for row in result]

    async def test_replays_create_update_delete_against_remote_tables(self, queue, remote_sessions, monitor):
        monitor.state = ConnectivityState.ONLINE
        engine = SyncEngine(queue, SqlTableExecutor(remote_sessions, business_metadata), connectivity=monitor)
        await queue.enqueue(OperationAction.CREATE, "orders", {"id": "o1", "status": "open", "total": 0})
        await queue.enqueue(OperationAction.CREATE, "orders", {"id": "o2", "status": "open", "total": 0})
        await queue.enqueue(OperationAction.UPDATE, "orders", {"id": "o1", "status": "paid", "total": 4500})
        await queue.enqueue(OperationAction.DELETE, "orders", {"id": "o2"})
        await queue.enqueue(OperationAction.CREATE, "tables", {"id": "t1", "number": 4, "status": "free"})

        result = await engine.drain()

        assert (result.succeeded, result.failed) == (5, 0)
        assert await self._rows(remote_sessions, orders_table) == [{"id": "o1", "status": "paid", "total": 4500}]
        assert await self._rows(remote_sessions, restaurant_tables_table) == [{"id": "t1", "number": 4, "status": "free"}]

    async def test_remote_constraint_violation_is_a_failure(self, queue, remote_sessions, monitor):
        monitor.state = ConnectivityState.ONLINE
        engine = SyncEngine(queue, SqlTableExecutor(remote_sessions, business_metadata), connectivity=monitor)
        await queue.enqueue(OperationAction.CREATE, "orders", {"id": "o1", "status": "open"})
        duplicate = await queue.enqueue(OperationAction.CREATE, "orders", {"id": "o1", "status": "open"})

        result = await engine.drain()

        assert (result.succeeded, result.failed) == (1, 1)
        assert [op.id for op in await queue.list_pending()] == [duplicate]

    async def test_unknown_resource_and_incomplete_payloads_fail(self, queue, remote_sessions, monitor):
        monitor.state = ConnectivityState.ONLINE
        engine = SyncEngine(queue, SqlTableExecutor(remote_sessions, business_metadata), connectivity=monitor)
        await queue.enqueue(OperationAction.CREATE, "no_such_table", {"id": "x"})
        await queue.enqueue(OperationAction.UPDATE, "orders", {"status": "paid"})
        await queue.enqueue(OperationAction.DELETE, "orders", {})

        result = await engine.drain()

        assert (result.succeeded, result.failed) == (0, 3)

    async def test_unreachable_store_raises_and_drain_keeps_the_operation(self, queue, monitor, tmp_path):
        monitor.state = ConnectivityState.ONLINE
        unreachable = create_async_engine(sqlite_url(tmp_path / "missing" / "remote.db"))
        executor = SqlTableExecutor(make_session_factory(unreachable), business_metadata)
        engine = SyncEngine(queue, executor, connectivity=monitor)
        operation_id = await queue.enqueue(OperationAction.CREATE, "orders", {"id": "o1", "status": "open"})
        try:
            with pytest.raises(OperationalError):
                await executor.execute(await queue.get(operation_id))

            result = await engine.drain()
        finally:
            await unreachable.dispose()

        assert (result.succeeded, result.failed) == (0, 1)
        assert (await queue.get(operation_id)).last_error.startswith("OperationalError")
