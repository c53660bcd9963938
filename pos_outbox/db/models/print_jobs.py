
import enum
from sqlalchemy import JSON, Column, DateTime, Enum, Index, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
import uuid

from pos_outbox.db.base import RemoteBase


class PrintJobType(str, enum.Enum):
    KITCHEN_TICKET = "kitchen_ticket"
    KITCHEN_TICKET_SECTOR = "kitchen_ticket_sector"
    CUSTOMER_RECEIPT = "customer_receipt"
    CANCELLATION_TICKET = "cancellation_ticket"


class PrintJobStatus(str, enum.Enum):
    PENDING = "pending"
    PRINTED = "printed"
    FAILED = "failed"


def _enum_values(members):
    return [m.value for m in members]


class PrintJob(RemoteBase):
    __tablename__ = "print_queue"

    """A print request shared through the hosted store.

    Any device of the tenant may insert a job; the device acting as print
    server consumes pending jobs in ``created_at`` order and is the only writer
    of ``printed_at`` and ``printed_by_device``. Status only moves forward
    (pending -> printed, pending -> failed).
    """

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String, nullable=False)

    print_type = Column(
        Enum(PrintJobType, name="print_job_type_enum", values_callable=_enum_values),
        nullable=False,
    )
    payload = Column("data", JSONB().with_variant(JSON(), "sqlite"), nullable=False)
    status = Column(
        Enum(PrintJobStatus, name="print_job_status_enum", values_callable=_enum_values),
        nullable=False,
        default=PrintJobStatus.PENDING,
    )

    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    printed_at = Column(DateTime(timezone=True), nullable=True)
    printed_by_device = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_print_queue_tenant_status_created", "tenant_id", "status", "created_at"),
    )
