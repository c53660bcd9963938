"""
Shared fixtures: a device-local store and a hosted store, each a SQLite file
under ``tmp_path`` so tests can also reopen them to check durability.
"""
from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table
from sqlalchemy.ext.asyncio import create_async_engine

from pos_outbox.db.base import Base, RemoteBase, make_session_factory
from pos_outbox.domain.offline_sync.connectivity import ConnectivityMonitor
from pos_outbox.domain.offline_sync.engine import SyncEngine
from pos_outbox.domain.offline_sync.queue import QueueManager
from pos_outbox.runtime import create_schema

# Business tables of the hosted store that offline operations replay into
business_metadata = MetaData()
orders_table = Table(
    "orders",
    business_metadata,
    Column("id", String, primary_key=True),
    Column("status", String),
    Column("total", Integer),
)
order_items_table = Table(
    "order_items",
    business_metadata,
    Column("id", String, primary_key=True),
    Column("order_id", String),
    Column("quantity", Integer),
)
restaurant_tables_table = Table(
    "tables",
    business_metadata,
    Column("id", String, primary_key=True),
    Column("number", Integer),
    Column("status", String),
)


def sqlite_url(path):
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def local_db_path(tmp_path):
    return tmp_path / "local.db"


@pytest.fixture
async def local_engine(local_db_path):
    engine = create_async_engine(sqlite_url(local_db_path))
    await create_schema(engine, Base.metadata)
    yield engine
    await engine.dispose()


@pytest.fixture
def local_sessions(local_engine):
    return make_session_factory(local_engine)


@pytest.fixture
async def remote_engine(tmp_path):
    engine = create_async_engine(sqlite_url(tmp_path / "remote.db"))
    await create_schema(engine, RemoteBase.metadata)
    await create_schema(engine, business_metadata)
    yield engine
    await engine.dispose()


@pytest.fixture
def remote_sessions(remote_engine):
    return make_session_factory(remote_engine)


@pytest.fixture
def queue(local_sessions):
    return QueueManager(local_sessions)


@pytest.fixture
def executor():
    """Remote executor stub that succeeds unless told otherwise."""
    stub = Mock()
    stub.execute = AsyncMock(return_value=True)
    return stub


@pytest.fixture
def monitor():
    return ConnectivityMonitor(initially_online=False, debounce_seconds=0.01)


@pytest.fixture
def engine(queue, executor, monitor):
    sync_engine = SyncEngine(queue, executor, connectivity=monitor)
    monitor.on_reconnect(sync_engine.drain)
    return sync_engine


ONE_HOUR = timedelta(hours=1)
