# pos_outbox/domain/offline_sync/executor.py
from typing import Protocol

from sqlalchemy import MetaData, delete, insert, update
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from pos_outbox.core.logging_config import get_logger
from pos_outbox.db.models.offline_operations import OperationAction
from .schemas import OperationOut

logger = get_logger(__name__)


class RemoteExecutor(Protocol):
    async def execute(self, operation: OperationOut) -> bool:
        """Apply ``operation`` remotely; True on success.

        Return False when the hosted store rejects the write (unknown resource,
        constraint violation) and raise when it cannot be reached. The sync
        engine counts both as a failed replay; a direct write only falls back
        to the offline queue on a raise.
        """
        ...


class SqlTableExecutor:
    """Replays offline mutations against tables of the hosted store.

    ``metadata`` describes the remote tables (declared or reflected); an
    operation's ``resource`` is the table name. ``update`` and ``delete`` locate
    the row by ``payload["id"]``.
    """

    def __init__(self, session_factory, metadata: MetaData):
        self._session_factory = session_factory
        self._metadata = metadata

    async def execute(self, operation: OperationOut) -> bool:
        table = self._metadata.tables.get(operation.resource)
        if table is None:
            logger.error(
                "Unknown resource for offline operation",
                operation_id=operation.id,
                resource=operation.resource,
            )
            return False

        data = dict(operation.payload)
        if operation.action == OperationAction.CREATE:
            statement = insert(table).values(**data)
        elif operation.action == OperationAction.UPDATE:
            row_id = data.pop("id", None)
            if row_id is None or not data:
                logger.error("Update payload needs an id and at least one column", operation_id=operation.id)
                return False
            statement = update(table).where(table.c.id == row_id).values(**data)
        elif operation.action == OperationAction.DELETE:
            row_id = data.get("id")
            if row_id is None:
                logger.error("Delete payload needs an id", operation_id=operation.id)
                return False
            statement = delete(table).where(table.c.id == row_id)
        else:
            return False

        try:
            async with self._session_factory() as db:
                await db.execute(statement)
                await db.commit()
        except SQLAlchemyError as e:
            # connection-class errors mean the store was not reached
            if isinstance(e, (OperationalError, InterfaceError)) or getattr(e, "connection_invalidated", False):
                raise
            logger.warning(
                "Remote write rejected",
                operation_id=operation.id,
                action=operation.action.value,
                resource=operation.resource,
                error=str(e),
            )
            return False
        return True
