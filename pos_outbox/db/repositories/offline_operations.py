
from datetime import datetime
from typing import List, Optional
from sqlalchemy import delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from pos_outbox.db.models.offline_operations import OfflineOperation


async def insert_operation(
    db: AsyncSession,
    operation: OfflineOperation
) -> OfflineOperation:
    db.add(operation)
    await db.commit()
    await db.refresh(operation)
    return operation

async def list_operations(
    db: AsyncSession
) -> List[OfflineOperation]:
    result = await db.execute(
        select(OfflineOperation).order_by(OfflineOperation.seq)
    )
    return list(result.scalars().all())

async def get_operation(
    db: AsyncSession,
    operation_id: str
) -> Optional[OfflineOperation]:
    result = await db.execute(
        select(OfflineOperation).where(OfflineOperation.id == operation_id)
    )
    return result.scalar_one_or_none()

async def count_operations(
    db: AsyncSession
) -> int:
    result = await db.execute(select(func.count()).select_from(OfflineOperation))
    return result.scalar_one()

async def list_operations_older_than(
    db: AsyncSession,
    cutoff: datetime
) -> List[OfflineOperation]:
    result = await db.execute(
        select(OfflineOperation)
        .where(OfflineOperation.timestamp < cutoff)
        .order_by(OfflineOperation.seq)
    )
    return list(result.scalars().all())

async def count_operations_older_than(
    db: AsyncSession,
    cutoff: datetime
) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(OfflineOperation)
        .where(OfflineOperation.timestamp < cutoff)
    )
    return result.scalar_one()

async def delete_operation(
    db: AsyncSession,
    operation_id: str
) -> bool:
    result = await db.execute(
        delete(OfflineOperation).where(OfflineOperation.id == operation_id)
    )
    await db.commit()
    return result.rowcount > 0

async def record_attempt_failure(
    db: AsyncSession,
    operation_id: str,
    error: str,
    attempted_at: datetime
) -> None:
    await db.execute(
        update(OfflineOperation)
        .where(OfflineOperation.id == operation_id)
        .values(
            attempts=OfflineOperation.attempts + 1,
            last_error=error,
            last_attempt_at=attempted_at,
        )
    )
    await db.commit()

async def delete_all_operations(
    db: AsyncSession
) -> int:
    result = await db.execute(delete(OfflineOperation))
    await db.commit()
    return result.rowcount
