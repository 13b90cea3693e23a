"""Profile CRUD operations: balances, daily usage counters, donor totals."""
from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bazar.app.db.models import Profile


async def create_profile(
    session: AsyncSession,
    user_id: str,
    email: Optional[str] = None,
    full_name: Optional[str] = None,
    personal_credits: int = 0,
    daily_listings_used: int = 0,
    last_listing_date: Optional[date] = None,
    auto_commit: bool = True,
) -> Profile:
    """Create a profile row.

    Args:
        session: Database session
        user_id: The user ID (primary key)
        email: Optional email address
        full_name: Optional display name
        personal_credits: Starting personal balance
        daily_listings_used: Starting daily usage counter
        last_listing_date: Date the usage counter belongs to
        auto_commit: Whether to commit the transaction

    Returns:
        The created Profile
    """
    profile = Profile(
        id=user_id,
        email=email,
        full_name=full_name,
        personal_credits=personal_credits,
        daily_listings_used=daily_listings_used,
        last_listing_date=last_listing_date,
        total_donated=0.0,
        community_listings_donated=0,
    )
    session.add(profile)
    if auto_commit:
        await session.commit()
        await session.refresh(profile)
    return profile


async def get_profile(session: AsyncSession, user_id: str) -> Optional[Profile]:
    """Get a profile by ID."""
    result = await session.execute(select(Profile).where(Profile.id == user_id))
    return result.scalar_one_or_none()


async def get_credit_columns(
    session: AsyncSession, user_id: str
) -> Optional[tuple[int, int, Optional[date]]]:
    """Read the credit columns of a profile.

    Returns:
        Tuple of (personal_credits, daily_listings_used, last_listing_date),
        or None if the profile does not exist.
    """
    result = await session.execute(
        select(
            Profile.personal_credits,
            Profile.daily_listings_used,
            Profile.last_listing_date,
        ).where(Profile.id == user_id)
    )
    row = result.fetchone()
    if row is None:
        return None
    return row[0], row[1], row[2]


async def update_daily_usage(
    session: AsyncSession,
    user_id: str,
    daily_listings_used: int,
    last_listing_date: Optional[date],
    auto_commit: bool = True,
) -> bool:
    """Overwrite the daily usage counter and the date it belongs to.

    Returns:
        True if a profile row was updated, False if it does not exist
    """
    result = await session.execute(
        update(Profile)
        .where(Profile.id == user_id)
        .values(
            daily_listings_used=daily_listings_used,
            last_listing_date=last_listing_date,
        )
    )
    if auto_commit:
        await session.commit()
    return result.rowcount > 0


async def set_personal_credits(
    session: AsyncSession,
    user_id: str,
    personal_credits: int,
    auto_commit: bool = True,
) -> bool:
    """Overwrite the personal credit balance.

    Returns:
        True if a profile row was updated, False if it does not exist
    """
    result = await session.execute(
        update(Profile)
        .where(Profile.id == user_id)
        .values(personal_credits=personal_credits)
    )
    if auto_commit:
        await session.commit()
    return result.rowcount > 0


async def adjust_personal_credits(
    session: AsyncSession,
    user_id: str,
    delta: int,
    auto_commit: bool = True,
) -> tuple[bool, int]:
    """Atomically add ``delta`` to the personal balance if it stays non-negative.

    Uses a single conditional UPDATE with RETURNING so concurrent writers
    cannot drive the balance below zero.

    Returns:
        Tuple of (success, balance). On failure balance is the current value,
        or -1 if the profile does not exist.
    """
    result = await session.execute(
        update(Profile)
        .where(
            Profile.id == user_id,
            Profile.personal_credits + delta >= 0,
        )
        .values(personal_credits=Profile.personal_credits + delta)
        .returning(Profile.personal_credits)
    )
    row = result.fetchone()

    if row is None:
        result = await session.execute(
            select(Profile.personal_credits).where(Profile.id == user_id)
        )
        current = result.scalar_one_or_none()
        return False, -1 if current is None else current

    if auto_commit:
        await session.commit()
    return True, row[0]


async def get_donation_totals(
    session: AsyncSession, user_id: str
) -> Optional[tuple[float, int]]:
    """Read the lifetime donor totals kept on the profile.

    Returns:
        Tuple of (total_donated, community_listings_donated), or None
    """
    result = await session.execute(
        select(Profile.total_donated, Profile.community_listings_donated).where(
            Profile.id == user_id
        )
    )
    row = result.fetchone()
    if row is None:
        return None
    return float(row[0] or 0), int(row[1] or 0)


async def add_donation_totals(
    session: AsyncSession,
    user_id: str,
    amount: float,
    listings: int,
    auto_commit: bool = True,
) -> bool:
    """Increment the donor totals of a profile."""
    result = await session.execute(
        update(Profile)
        .where(Profile.id == user_id)
        .values(
            total_donated=Profile.total_donated + amount,
            community_listings_donated=Profile.community_listings_donated + listings,
        )
    )
    if auto_commit:
        await session.commit()
    return result.rowcount > 0
