"""Credit system settings CRUD operations."""
from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bazar.app.db.models import CreditSystemSetting

DAILY_FREE_LISTINGS_KEY = "daily_free_listings"
COMMUNITY_POT_BALANCE_KEY = "community_pot_balance"


async def get_setting_values(
    session: AsyncSession, keys: Iterable[str]
) -> dict[str, int]:
    """Read several settings at once.

    Returns:
        Mapping of setting_key to value for the keys that exist
    """
    result = await session.execute(
        select(CreditSystemSetting.setting_key, CreditSystemSetting.setting_value).where(
            CreditSystemSetting.setting_key.in_(list(keys))
        )
    )
    return {key: value for key, value in result.all()}


async def get_setting_value(session: AsyncSession, key: str) -> Optional[int]:
    """Read a single setting value, or None if the row is missing."""
    result = await session.execute(
        select(CreditSystemSetting.setting_value).where(
            CreditSystemSetting.setting_key == key
        )
    )
    return result.scalar_one_or_none()


async def upsert_setting(
    session: AsyncSession,
    key: str,
    value: int,
    description: Optional[str] = None,
    auto_commit: bool = True,
) -> CreditSystemSetting:
    """Create or overwrite a setting (administrative path)."""
    setting = await session.get(CreditSystemSetting, key)
    if setting is None:
        setting = CreditSystemSetting(setting_key=key, setting_value=value, description=description)
        session.add(setting)
    else:
        setting.setting_value = value
        if description is not None:
            setting.description = description
    if auto_commit:
        await session.commit()
        await session.refresh(setting)
    return setting


async def adjust_setting_value(
    session: AsyncSession,
    key: str,
    delta: int,
    auto_commit: bool = True,
) -> tuple[bool, Optional[int]]:
    """Atomically add ``delta`` to an integer setting if it stays non-negative.

    Executes ``UPDATE ... SET setting_value = setting_value + :delta`` as one
    statement so concurrent writers never race on a read-modify-write.

    Returns:
        Tuple of (success, value). On success value is the new balance; on
        failure it is the current balance, or None if the row is missing.
    """
    result = await session.execute(
        update(CreditSystemSetting)
        .where(
            CreditSystemSetting.setting_key == key,
            CreditSystemSetting.setting_value + delta >= 0,
        )
        .values(setting_value=CreditSystemSetting.setting_value + delta)
        .returning(CreditSystemSetting.setting_value)
    )
    row = result.fetchone()

    if row is None:
        return False, await get_setting_value(session, key)

    if auto_commit:
        await session.commit()
    return True, row[0]
