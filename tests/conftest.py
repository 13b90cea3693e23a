"""Shared fixtures for the credit engine tests."""

from datetime import date, timedelta
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from bazar.app.core.cache import ReadThroughCache
from bazar.app.db import crud
from bazar.app.db.async_session import create_session_maker, init_async_db
from bazar.app.services.store import SqlCreditStore

TODAY = date(2026, 3, 2)
YESTERDAY = TODAY - timedelta(days=1)


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class Seeder:
    """Writes fixture rows straight through the CRUD layer."""

    def __init__(self, session_maker) -> None:
        self.session_maker = session_maker

    async def settings(self, daily_free_listings: int = 5, community_pot_balance: int = 0) -> None:
        async with self.session_maker() as session:
            await crud.upsert_setting(session, crud.DAILY_FREE_LISTINGS_KEY, daily_free_listings)
            await crud.upsert_setting(
                session, crud.COMMUNITY_POT_BALANCE_KEY, community_pot_balance
            )

    async def profile(
        self,
        user_id: str,
        personal_credits: int = 0,
        daily_listings_used: int = 0,
        last_listing_date: Optional[date] = TODAY,
    ) -> None:
        async with self.session_maker() as session:
            await crud.create_profile(
                session,
                user_id,
                email=f"{user_id}@example.com",
                personal_credits=personal_credits,
                daily_listings_used=daily_listings_used,
                last_listing_date=last_listing_date,
            )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ReadThroughCache(default_ttl_ms=60_000, clock=clock)


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'credits.db'}")
    await init_async_db(engine=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return create_session_maker(db_engine)


@pytest.fixture
def store(session_maker):
    return SqlCreditStore(session_maker=session_maker, default_daily_free_listings=5)


@pytest.fixture
def seed(session_maker):
    return Seeder(session_maker)
