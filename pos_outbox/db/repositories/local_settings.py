
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import select

from pos_outbox.db.models.local_settings import LocalSetting


async def get_setting(
    db: AsyncSession,
    key: str
) -> Optional[str]:
    result = await db.execute(
        select(LocalSetting.value).where(LocalSetting.key == key)
    )
    return result.scalar_one_or_none()

async def set_setting(
    db: AsyncSession,
    key: str,
    value: Optional[str]
) -> None:
    setting = await db.get(LocalSetting, key)
    if setting is None:
        db.add(LocalSetting(key=key, value=value))
    else:
        setting.value = value
    await db.commit()
