# pos_outbox/runtime.py
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import MetaData

from pos_outbox.core.config import Settings
from pos_outbox.core.logging_config import get_logger
from pos_outbox.domain.offline_sync.connectivity import ConnectivityMonitor
from pos_outbox.domain.offline_sync.engine import SyncEngine
from pos_outbox.domain.offline_sync.executor import SqlTableExecutor
from pos_outbox.domain.offline_sync.notifications import NotificationBridge, NotificationCenter
from pos_outbox.domain.offline_sync.queue import QueueManager
from pos_outbox.domain.offline_sync.scheduler import AsyncioTaskScheduler
from pos_outbox.domain.offline_sync.service import OfflineSyncService
from pos_outbox.domain.printing.queue import PrintJobQueue
from pos_outbox.domain.printing.routing import CentralizedPrinter, LocalPrinter, get_or_create_device_id, load_routing_config
from pos_outbox.domain.printing.schemas import PrintRoutingConfig
from pos_outbox.domain.printing.server import PrintServer

logger = get_logger(__name__)


@dataclass
class EdgeRuntime:
    """Long-lived collaborators of one device process."""
    queue: QueueManager
    engine: SyncEngine
    connectivity: ConnectivityMonitor
    scheduler: AsyncioTaskScheduler
    bridge: NotificationBridge
    sync: OfflineSyncService
    notifier: NotificationCenter
    local_session_factory: Any = None
    remote_session_factory: Any = None
    remote_metadata: MetaData = field(default_factory=MetaData)
    print_server: Optional[PrintServer] = None
    print_queues: Dict[str, PrintJobQueue] = field(default_factory=dict)

    async def start(self, check_interval: float) -> None:
        self.bridge.start(self.scheduler, check_interval)
        self.scheduler.on_connectivity_change(self.connectivity.set_online)
        await self.bridge.attach_foreground(self.sync.handle_worker_message)

    async def routing_config(self) -> PrintRoutingConfig:
        async with self.local_session_factory() as db:
            return await load_routing_config(db)

    def print_queue(self, tenant_id: Optional[str]) -> PrintJobQueue:
        """Shared queue handle for ``tenant_id``.

        Every in-process producer and the print server go through the same
        object, so the server's subscription sees local inserts immediately.
        """
        queue = self.print_queues.get(tenant_id) if tenant_id else None
        if queue is None:
            queue = PrintJobQueue(self.remote_session_factory, tenant_id)
            self.print_queues[tenant_id] = queue
        return queue

    def centralized_printer(self, printer: LocalPrinter, tenant_id: str, user_id: Optional[str] = None) -> CentralizedPrinter:
        return CentralizedPrinter(printer, self.print_queue(tenant_id), self.routing_config, user_id=user_id)

    async def start_print_server(
        self,
        printer: LocalPrinter,
        tenant_id: str,
        poll_interval: float = 5.0,
    ) -> Optional[PrintServer]:
        """Start consuming the shared queue if this device is flagged as print server."""
        async with self.local_session_factory() as db:
            config = await load_routing_config(db)
            device_id = await get_or_create_device_id(db)
        if not config.is_print_server:
            return None
        self.print_server = PrintServer(self.print_queue(tenant_id), printer, device_id, poll_interval=poll_interval)
        self.print_server.start()
        return self.print_server

    async def stop(self) -> None:
        if self.print_server is not None:
            await self.print_server.stop()
            self.print_server = None
        self.bridge.detach_foreground()
        await self.scheduler.shutdown()


async def create_schema(db_engine, metadata: MetaData) -> None:
    async with db_engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def reflect_remote_tables(db_engine, metadata: Optional[MetaData] = None) -> MetaData:
    """Describe the hosted business tables offline operations are replayed into."""
    if metadata is None:
        metadata = MetaData()
    async with db_engine.connect() as conn:
        await conn.run_sync(metadata.reflect)
    logger.info("Remote tables reflected", tables=sorted(metadata.tables))
    return metadata


def build_runtime(
    settings: Settings,
    local_session_factory,
    remote_session_factory,
    remote_metadata: MetaData,
    initially_online: bool = True,
) -> EdgeRuntime:
    queue = QueueManager(local_session_factory)
    connectivity = ConnectivityMonitor(
        initially_online=initially_online,
        debounce_seconds=settings.RECONNECT_DEBOUNCE_SECONDS,
    )
    engine = SyncEngine(queue, SqlTableExecutor(remote_session_factory, remote_metadata), connectivity=connectivity)
    connectivity.on_reconnect(engine.drain)

    scheduler = AsyncioTaskScheduler()
    notifier = NotificationCenter()
    bridge = NotificationBridge(
        queue,
        notifier,
        stale_threshold=timedelta(seconds=settings.STALE_OPERATION_THRESHOLD_SECONDS),
    )
    sync = OfflineSyncService(engine, connectivity, worker=scheduler)
    return EdgeRuntime(
        queue=queue,
        engine=engine,
        connectivity=connectivity,
        scheduler=scheduler,
        bridge=bridge,
        sync=sync,
        notifier=notifier,
        local_session_factory=local_session_factory,
        remote_session_factory=remote_session_factory,
        remote_metadata=remote_metadata,
    )
