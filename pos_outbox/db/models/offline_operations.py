# pos_outbox/db/models/offline_operations.py
import enum
from sqlalchemy import JSON, BigInteger, Column, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.sql import func

from pos_outbox.db.base import Base


class OperationAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class OfflineOperation(Base):
    __tablename__ = "offline_operations"

    """Mutation buffered on the device while the hosted store was unreachable.

    Rows are replayed in ``seq`` order against the remote store and deleted once
    the remote write succeeds. Failed replays stay in place with their attempt
    count and last error so the queue can be retried or cleared by the user.
    """

    seq = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, nullable=False, index=True)

    action = Column(
        Enum(
            OperationAction,
            name="offline_operation_action_enum",
            values_callable=lambda actions: [a.value for a in actions],
        ),
        nullable=False,
    )
    resource = Column(String, nullable=False)  # remote table, e.g. "orders"
    payload = Column(JSON, nullable=False)

    timestamp = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)

    depends_on = Column(String(36), nullable=True)

    __table_args__ = (
        Index("ix_offline_operations_timestamp", "timestamp"),
    )
