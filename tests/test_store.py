"""Tests for the SQL-backed credit store."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from bazar.app.db.async_session import create_session_maker
from bazar.app.exceptions import (
    CreditStoreError,
    InsufficientCreditsError,
    InsufficientPotBalanceError,
    ProfileNotFoundError,
)
from bazar.app.services.models import (
    CreditTransactionKind,
    PotTransactionKind,
    PurchaseMetadata,
    SystemSettings,
    UsageMetadata,
)
from bazar.app.services.store import SqlCreditStore

from conftest import TODAY, YESTERDAY


class TestSettings:
    @pytest.mark.asyncio
    async def test_missing_rows_use_defaults(self, store):
        assert await store.get_system_settings() == SystemSettings(
            daily_free_listings=5, community_pot_balance=0
        )
        assert await store.get_community_pot_balance() == 0

    @pytest.mark.asyncio
    async def test_reads_stored_values(self, store, seed):
        await seed.settings(daily_free_listings=3, community_pot_balance=42)
        settings = await store.get_system_settings()
        assert settings.daily_free_listings == 3
        assert settings.community_pot_balance == 42


class TestCommunityPotDelta:
    @pytest.mark.asyncio
    async def test_delta_returns_new_balance(self, store, seed):
        await seed.settings(community_pot_balance=10)
        assert await store.adjust_community_pot_balance(-1) == 9
        assert await store.adjust_community_pot_balance(5) == 14
        assert await store.get_community_pot_balance() == 14

    @pytest.mark.asyncio
    async def test_rejects_going_negative(self, store, seed):
        await seed.settings(community_pot_balance=1)
        assert await store.adjust_community_pot_balance(-1) == 0

        with pytest.raises(InsufficientPotBalanceError) as exc_info:
            await store.adjust_community_pot_balance(-1)

        assert exc_info.value.balance == 0
        assert exc_info.value.code == "community_pot_empty"
        assert await store.get_community_pot_balance() == 0

    @pytest.mark.asyncio
    async def test_first_deposit_creates_row(self, store):
        assert await store.adjust_community_pot_balance(3) == 3
        assert (await store.get_system_settings()).community_pot_balance == 3

    @pytest.mark.asyncio
    async def test_debit_of_missing_row_is_rejected(self, store):
        with pytest.raises(InsufficientPotBalanceError):
            await store.adjust_community_pot_balance(-1)

    @pytest.mark.asyncio
    async def test_concurrent_debits_never_overdraw(self, store, seed):
        await seed.settings(community_pot_balance=3)

        results = await asyncio.gather(
            *(store.adjust_community_pot_balance(-1) for _ in range(6)),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, int)]
        failures = [r for r in results if isinstance(r, InsufficientPotBalanceError)]
        assert sorted(successes) == [0, 1, 2]
        assert len(failures) == 3
        assert await store.get_community_pot_balance() == 0


class TestProfiles:
    @pytest.mark.asyncio
    async def test_credit_state(self, store, seed):
        await seed.profile("u1", personal_credits=4, daily_listings_used=2, last_listing_date=YESTERDAY)
        state = await store.get_user_credit_state("u1")
        assert state.personal_credits == 4
        assert state.daily_listings_used == 2
        assert state.last_listing_date == YESTERDAY

    @pytest.mark.asyncio
    async def test_missing_profile_raises(self, store):
        with pytest.raises(ProfileNotFoundError):
            await store.get_user_credit_state("ghost")
        with pytest.raises(ProfileNotFoundError):
            await store.update_daily_usage("ghost", 1, TODAY)
        with pytest.raises(ProfileNotFoundError):
            await store.set_personal_credits("ghost", 1)
        with pytest.raises(ProfileNotFoundError):
            await store.adjust_personal_credits("ghost", 1)

    @pytest.mark.asyncio
    async def test_update_daily_usage(self, store, seed):
        await seed.profile("u1", daily_listings_used=5, last_listing_date=YESTERDAY)
        await store.update_daily_usage("u1", 1, TODAY)
        state = await store.get_user_credit_state("u1")
        assert (state.daily_listings_used, state.last_listing_date) == (1, TODAY)

    @pytest.mark.asyncio
    async def test_set_personal_credits_rejects_negative(self, store, seed):
        await seed.profile("u1", personal_credits=0)
        with pytest.raises(InsufficientCreditsError):
            await store.set_personal_credits("u1", -1)
        assert (await store.get_user_credit_state("u1")).personal_credits == 0

    @pytest.mark.asyncio
    async def test_adjust_personal_credits(self, store, seed):
        await seed.profile("u1", personal_credits=1)
        assert await store.adjust_personal_credits("u1", 4) == 5
        assert await store.adjust_personal_credits("u1", -5) == 0

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await store.adjust_personal_credits("u1", -1)
        assert exc_info.value.available == 0

    @pytest.mark.asyncio
    async def test_donation_totals(self, store, seed):
        await seed.profile("u1")
        await store.add_donation_totals("u1", 12.5, 5)
        await store.add_donation_totals("u1", 2.5, 1)
        totals = await store.get_donation_totals("u1")
        assert totals.total_donated == pytest.approx(15.0)
        assert totals.community_listings_donated == 6


class TestTransactions:
    @pytest.mark.asyncio
    async def test_credit_transaction_metadata_round_trip(self, store, seed):
        await seed.profile("u1")

        record = await store.append_credit_transaction(
            user_id="u1",
            amount=10,
            kind=CreditTransactionKind.PURCHASE,
            metadata=PurchaseMetadata(package_type="pack_10", stripe_session_id="cs_1"),
            balance_after=10,
        )

        assert record.kind is CreditTransactionKind.PURCHASE
        assert record.metadata == PurchaseMetadata(package_type="pack_10", stripe_session_id="cs_1")
        listed = await store.list_credit_transactions(user_id="u1")
        assert [r.id for r in listed] == [record.id]
        assert listed[0].metadata.package_type == "pack_10"

    @pytest.mark.asyncio
    async def test_credit_transaction_filters(self, store, seed):
        await seed.profile("u1")
        await seed.profile("u2")
        await store.append_credit_transaction("u1", 5, CreditTransactionKind.PURCHASE, PurchaseMetadata("p"), 5)
        await store.append_credit_transaction("u1", -1, CreditTransactionKind.USAGE, UsageMetadata("i1"), 4)
        await store.append_credit_transaction("u2", 3, CreditTransactionKind.PURCHASE, PurchaseMetadata("p"), 3)

        assert len(await store.list_credit_transactions()) == 3
        assert len(await store.list_credit_transactions(user_id="u1")) == 2
        purchases = await store.list_credit_transactions(kind=CreditTransactionKind.PURCHASE)
        assert {r.user_id for r in purchases} == {"u1", "u2"}
        assert len(await store.list_credit_transactions(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_pot_transaction_filters(self, store, seed):
        await seed.profile("donor")
        await store.append_pot_transaction(PotTransactionKind.DONATION, 10, 10, user_id="donor")
        await store.append_pot_transaction(PotTransactionKind.USAGE, -1, 9, user_id="donor", item_id="i1")
        await store.append_pot_transaction(PotTransactionKind.ADJUSTMENT, 5, 14)

        donations = await store.list_pot_transactions(kind=PotTransactionKind.DONATION)
        assert [r.amount for r in donations] == [10]
        assert len(await store.list_pot_transactions(user_id="donor")) == 2

        now = datetime.now(timezone.utc)
        assert len(await store.list_pot_transactions(since=now - timedelta(hours=1))) == 3
        assert await store.list_pot_transactions(since=now + timedelta(hours=1)) == []


class TestStoreErrors:
    @pytest.mark.asyncio
    async def test_driver_errors_are_wrapped(self, tmp_path):
        """Missing tables surface as CreditStoreError, not SQLAlchemy errors."""
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        store = SqlCreditStore(session_maker=create_session_maker(engine))
        try:
            with pytest.raises(CreditStoreError) as exc_info:
                await store.get_system_settings()
            assert exc_info.value.operation == "get_system_settings"
            assert exc_info.value.code == "store_error"
        finally:
            await engine.dispose()


class TestProfileCrud:
    @pytest.mark.asyncio
    async def test_get_profile(self, session_maker, seed):
        from bazar.app.db import crud

        await seed.profile("u1", personal_credits=3)
        async with session_maker() as session:
            profile = await crud.get_profile(session, "u1")
            missing = await crud.get_profile(session, "ghost")

        assert profile.email == "u1@example.com"
        assert profile.personal_credits == 3
        assert profile.total_donated == 0.0
        assert missing is None
