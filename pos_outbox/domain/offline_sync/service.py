# pos_outbox/domain/offline_sync/service.py
from typing import Any, Dict, Optional

from pos_outbox.core.exceptions import ClearNotConfirmedError
from pos_outbox.core.logging_config import get_logger
from pos_outbox.db.models.offline_operations import OperationAction
from .connectivity import ConnectivityMonitor
from .engine import SyncEngine
from .notifications import PENDING_REMINDER_TAG, SYNC_PROGRESS_TAG
from .queue import utcnow
from .schemas import DrainResult, MessageType, OperationOut, SubmitResult, WorkerMessage

logger = get_logger(__name__)

SYNC_ACTIONS = {"sync", "retry"}


class OfflineSyncService:
    """Foreground entry point for writes and manual sync.

    ``worker`` is anything with an async ``post_message`` (the background
    scheduler); it is optional so the service works without a worker.
    """

    def __init__(self, engine: SyncEngine, connectivity: ConnectivityMonitor, worker=None):
        self.engine = engine
        self.queue = engine.queue
        self.connectivity = connectivity
        self.worker = worker

    async def pending_count(self) -> int:
        return await self.queue.pending_count()

    async def submit(
        self,
        action: OperationAction,
        resource: str,
        payload: Dict[str, Any],
        depends_on: Optional[str] = None,
    ) -> SubmitResult:
        """Write through to the hosted store when possible, otherwise queue.

        Only an unreachable store (the executor raises) sends the write to the
        offline queue. A write the store rejects is returned as ``rejected``
        and not queued, since replaying it would fail the same way. A write
        that depends on a still-queued operation is always queued so it cannot
        overtake it.
        """
        if self.connectivity.is_online and depends_on is None:
            operation = OperationOut(
                id="direct",
                action=OperationAction(action),
                resource=resource,
                payload=payload,
                timestamp=utcnow(),
            )
            try:
                applied = await self.engine.executor.execute(operation)
            except Exception as e:
                logger.warning("Direct write failed, queueing", resource=resource, error=str(e))
            else:
                if not applied:
                    logger.warning("Direct write rejected by hosted store", resource=resource, action=operation.action.value)
                return SubmitResult(applied=applied, queued=False, rejected=not applied)

        operation_id = await self.queue.enqueue(action, resource, payload, depends_on=depends_on)
        return SubmitResult(applied=False, queued=True, operation_id=operation_id)

    async def trigger_sync(self) -> DrainResult:
        """User-initiated "sync now"."""
        await self._post(
            MessageType.SHOW_SYNC_NOTIFICATION,
            {"title": "Syncing", "body": "Your operations are being synced...", "tag": SYNC_PROGRESS_TAG},
        )
        try:
            result = await self.engine.drain()
        finally:
            await self._post(MessageType.CLOSE_NOTIFICATION, {"tag": SYNC_PROGRESS_TAG})

        if not result.skipped and await self.queue.pending_count() == 0:
            await self._post(MessageType.CLOSE_NOTIFICATION, {"tag": PENDING_REMINDER_TAG})
        return result

    async def clear_queue(self, confirmed: bool = False) -> int:
        if not confirmed:
            raise ClearNotConfirmedError("Clearing the offline queue must be confirmed")
        cleared = await self.queue.clear()
        await self._post(MessageType.CLOSE_NOTIFICATION, {"tag": PENDING_REMINDER_TAG})
        return cleared

    async def handle_worker_message(self, message: WorkerMessage) -> None:
        if message.type != MessageType.NOTIFICATION_ACTION:
            return
        action = message.payload.get("action")
        tag = message.payload.get("notification_tag")
        if action in SYNC_ACTIONS or (action == "click" and tag == PENDING_REMINDER_TAG):
            logger.info("Sync requested from notification", action=action, tag=tag)
            await self.trigger_sync()

    async def _post(self, message_type: MessageType, payload: Dict[str, Any]) -> None:
        if self.worker is None:
            return
        await self.worker.post_message(WorkerMessage(type=message_type, payload=payload))
