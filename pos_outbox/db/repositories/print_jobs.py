
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from pos_outbox.db.models.print_jobs import PrintJob, PrintJobStatus


async def insert_print_job(
    db: AsyncSession,
    job: PrintJob
) -> PrintJob:
    db.add(job)
    await db.commit()
    await db.refresh(job)
    return job

async def get_print_job(
    db: AsyncSession,
    tenant_id: str,
    job_id: UUID
) -> Optional[PrintJob]:
    result = await db.execute(
        select(PrintJob).where(PrintJob.id == job_id, PrintJob.tenant_id == tenant_id)
    )
    return result.scalar_one_or_none()

async def list_pending_print_jobs(
    db: AsyncSession,
    tenant_id: str
) -> List[PrintJob]:
    result = await db.execute(
        select(PrintJob)
        .where(PrintJob.tenant_id == tenant_id, PrintJob.status == PrintJobStatus.PENDING)
        .order_by(PrintJob.created_at.asc())
    )
    return list(result.scalars().all())

async def transition_pending_job(
    db: AsyncSession,
    tenant_id: str,
    job_id: UUID,
    status: PrintJobStatus,
    printed_at: Optional[datetime] = None,
    printed_by_device: Optional[str] = None,
) -> bool:
    """Move a job out of ``pending`` if and only if it is still pending.

    The ``status = 'pending'`` predicate makes the update a compare-and-swap:
    of two devices racing for the same row only one sees a matched row.
    """
    values = {"status": status}
    if status == PrintJobStatus.PRINTED:
        values["printed_at"] = printed_at
        values["printed_by_device"] = printed_by_device

    result = await db.execute(
        update(PrintJob)
        .where(
            PrintJob.id == job_id,
            PrintJob.tenant_id == tenant_id,
            PrintJob.status == PrintJobStatus.PENDING,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1
