# pos_outbox/domain/offline_sync/queue.py
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from pos_outbox.core.exceptions import DurableStoreError
from pos_outbox.core.logging_config import get_logger
from pos_outbox.db.models.offline_operations import OfflineOperation, OperationAction
from pos_outbox.db.repositories import offline_operations as repo
from .schemas import OperationOut

logger = get_logger(__name__)


def utcnow() -> datetime:
    # The local store keeps naive UTC; SQLite drops tzinfo on the way back.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class QueueManager:
    """Owns the ordered list of mutations waiting for the hosted store.

    Every call opens its own session from ``session_factory`` and commits before
    returning, so an ``enqueue`` that returned is on disk.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def enqueue(
        self,
        action: OperationAction,
        resource: str,
        payload: Dict[str, Any],
        depends_on: Optional[str] = None,
    ) -> str:
        """
        Persist a mutation for later replay.

        Returns:
            str: The operation id, stable across retries.

        Raises:
            DurableStoreError: The local store refused the write. The caller
                must surface it; nothing was queued.
        """
        operation = OfflineOperation(
            id=str(uuid.uuid4()),
            action=OperationAction(action),
            resource=resource,
            payload=payload,
            timestamp=utcnow(),
            attempts=0,
            depends_on=depends_on,
        )
        try:
            async with self._session_factory() as db:
                await repo.insert_operation(db, operation)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to persist offline operation",
                action=operation.action.value,
                resource=resource,
                error=str(e),
            )
            raise DurableStoreError(f"Could not persist {action} on {resource}: {e}") from e

        logger.info(
            "Operation queued offline",
            operation_id=operation.id,
            action=operation.action.value,
            resource=resource,
        )
        return operation.id

    async def list_pending(self) -> List[OperationOut]:
        """Return every unresolved operation in replay (FIFO) order."""
        try:
            async with self._session_factory() as db:
                rows = await repo.list_operations(db)
        except SQLAlchemyError as e:
            raise DurableStoreError(f"Could not read offline queue: {e}") from e
        return [OperationOut.model_validate(row) for row in rows]

    async def get(self, operation_id: str) -> Optional[OperationOut]:
        async with self._session_factory() as db:
            row = await repo.get_operation(db, operation_id)
        return OperationOut.model_validate(row) if row is not None else None

    async def pending_count(self) -> int:
        try:
            async with self._session_factory() as db:
                return await repo.count_operations(db)
        except SQLAlchemyError as e:
            raise DurableStoreError(f"Could not read offline queue: {e}") from e

    async def list_stale(self, threshold: timedelta, now: Optional[datetime] = None) -> List[OperationOut]:
        cutoff = (now or utcnow()) - threshold
        async with self._session_factory() as db:
            rows = await repo.list_operations_older_than(db, cutoff)
        return [OperationOut.model_validate(row) for row in rows]

    async def count_stale(self, threshold: timedelta, now: Optional[datetime] = None) -> int:
        cutoff = (now or utcnow()) - threshold
        async with self._session_factory() as db:
            return await repo.count_operations_older_than(db, cutoff)

    async def remove(self, operation_id: str) -> bool:
        async with self._session_factory() as db:
            removed = await repo.delete_operation(db, operation_id)
        if removed:
            logger.debug("Operation removed from offline queue", operation_id=operation_id)
        return removed

    async def record_failure(self, operation_id: str, error: str) -> None:
        async with self._session_factory() as db:
            await repo.record_attempt_failure(db, operation_id, error, utcnow())

    async def clear(self) -> int:
        """Discard every pending operation. Irreversible."""
        try:
            async with self._session_factory() as db:
                cleared = await repo.delete_all_operations(db)
        except SQLAlchemyError as e:
            raise DurableStoreError(f"Could not clear offline queue: {e}") from e
        logger.warning("Offline queue cleared", cleared=cleared)
        return cleared
