# pos_outbox/domain/offline_sync/engine.py
import asyncio
import enum
from datetime import datetime, timezone
from typing import Optional, Set

from pos_outbox.core.logging_config import get_logger
from .executor import RemoteExecutor
from .queue import QueueManager
from .schemas import DrainResult

logger = get_logger(__name__)


class SyncState(str, enum.Enum):
    IDLE = "idle"
    DRAINING = "draining"
    IDLE_WITH_FAILURES = "idle_with_failures"


class SyncEngine:
    """Drains the offline queue against a remote executor.

    Only one drain runs at a time; callers arriving while a drain is in flight
    wait for it and receive its result instead of starting a second pass.
    Failures are recorded on the operation and counted, never raised: the
    operation stays queued for the next trigger (reconnect, "sync now" or the
    periodic reminder). There is no backoff here.
    """

    def __init__(self, queue: QueueManager, executor: RemoteExecutor, connectivity=None):
        self.queue = queue
        self.executor = executor
        self.connectivity = connectivity
        self.state = SyncState.IDLE
        self.last_result: Optional[DrainResult] = None
        self.last_drained_at: Optional[datetime] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def is_syncing(self) -> bool:
        return self.state == SyncState.DRAINING

    async def drain(self) -> DrainResult:
        if self._inflight is not None and not self._inflight.done():
            logger.debug("Drain already in progress, joining it")
            return await asyncio.shield(self._inflight)

        self._inflight = asyncio.ensure_future(self._drain())
        return await asyncio.shield(self._inflight)

    async def _drain(self) -> DrainResult:
        if self.connectivity is not None and not self.connectivity.is_online:
            logger.info("Skipping drain while offline")
            return DrainResult(skipped=True)

        self.state = SyncState.DRAINING
        result = DrainResult()
        try:
            operations = await self.queue.list_pending()
            if not operations:
                return result

            logger.info("Drain started", pending=len(operations))
            blocked: Set[str] = set()

            for operation in operations:
                if operation.depends_on is not None and operation.depends_on in blocked:
                    logger.info(
                        "Deferring operation behind failed dependency",
                        operation_id=operation.id,
                        depends_on=operation.depends_on,
                    )
                    blocked.add(operation.id)
                    result.deferred += 1
                    continue

                error = None
                try:
                    succeeded = await self.executor.execute(operation)
                    if not succeeded:
                        error = "Remote executor reported failure"
                except Exception as e:
                    succeeded = False
                    error = f"{type(e).__name__}: {e}"

                if succeeded:
                    await self.queue.remove(operation.id)
                    result.succeeded += 1
                    continue

                blocked.add(operation.id)
                result.failed += 1
                result.failed_ids.append(operation.id)
                logger.warning(
                    "Offline operation failed to sync",
                    operation_id=operation.id,
                    action=operation.action.value,
                    resource=operation.resource,
                    attempts=operation.attempts + 1,
                    error=error,
                )
                await self.queue.record_failure(operation.id, error)

            logger.info(
                "Drain finished",
                succeeded=result.succeeded,
                failed=result.failed,
                deferred=result.deferred,
            )
            return result
        finally:
            self.last_result = result
            self.last_drained_at = datetime.now(timezone.utc)
            self.state = SyncState.IDLE_WITH_FAILURES if result.failed or result.deferred else SyncState.IDLE
