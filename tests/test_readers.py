"""Tests for the cached credit readers."""

from unittest.mock import AsyncMock

import pytest

from bazar.app.services.models import SystemSettings, UserCreditState
from bazar.app.services.readers import (
    POT_BALANCE_KEY,
    SETTINGS_KEY,
    CreditReaders,
    invalidate_after_consumption,
    user_credits_key,
    user_donations_key,
)
from bazar.app.services.store import CreditStore

from conftest import TODAY


@pytest.fixture
def mock_store():
    store = AsyncMock(spec=CreditStore)
    store.get_system_settings.return_value = SystemSettings(5, 10)
    store.get_community_pot_balance.return_value = 10
    store.get_user_credit_state.return_value = UserCreditState("u1", 1, 0, TODAY)
    return store


class TestKeys:
    def test_key_formats(self):
        assert SETTINGS_KEY == "settings:credit_check"
        assert POT_BALANCE_KEY == "settings:community_pot_balance"
        assert user_credits_key("u1") == "profile:u1:credits"
        assert user_donations_key("u1") == "profile:u1:donations"


class TestCreditReaders:
    @pytest.mark.asyncio
    async def test_credit_state_ttl_is_shorter_than_settings(self, cache, clock, mock_store):
        readers = CreditReaders(cache, mock_store, settings_ttl_ms=30_000, credits_ttl_ms=10_000)
        await readers.read_settings()
        await readers.read_user_credit_state("u1")

        clock.advance(10_001)
        await readers.read_settings()
        await readers.read_user_credit_state("u1")

        assert mock_store.get_system_settings.await_count == 1
        assert mock_store.get_user_credit_state.await_count == 2

    @pytest.mark.asyncio
    async def test_pot_balance_key_is_global(self, cache, mock_store):
        readers = CreditReaders(cache, mock_store)
        assert await readers.read_community_pot_balance_only("u1") == 10
        assert await readers.read_community_pot_balance_only("u2") == 10
        assert mock_store.get_community_pot_balance.await_count == 1

    @pytest.mark.asyncio
    async def test_prime_settings_skips_fetch(self, cache, mock_store):
        readers = CreditReaders(cache, mock_store)
        readers.prime_settings(SystemSettings(daily_free_listings=3, community_pot_balance=7))

        assert (await readers.read_settings()).daily_free_listings == 3
        assert await readers.read_community_pot_balance_only() == 7
        mock_store.get_system_settings.assert_not_awaited()
        mock_store.get_community_pot_balance.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_prime_user_credit_state(self, cache, mock_store):
        readers = CreditReaders(cache, mock_store)
        readers.prime_user_credit_state(UserCreditState("u9", 4, 2, TODAY))

        state = await readers.read_user_credit_state("u9")

        assert state.personal_credits == 4
        mock_store.get_user_credit_state.assert_not_awaited()


class TestInvalidateAfterConsumption:
    def test_busts_user_global_and_stats_keys(self, cache):
        for key in (
            SETTINGS_KEY,
            POT_BALANCE_KEY,
            user_credits_key("u1"),
            user_donations_key("u1"),
            user_credits_key("u2"),
            "community_pot_transactions:donations",
            "community_pot_transactions:usage",
        ):
            cache.set(key, 1)

        invalidate_after_consumption(cache, "u1")

        assert list(cache._entries) == [user_credits_key("u2")]

    def test_without_user_keeps_profile_keys(self, cache):
        cache.set(user_credits_key("u1"), 1)
        cache.set(SETTINGS_KEY, 1)

        invalidate_after_consumption(cache, None)

        assert user_credits_key("u1") in cache
        assert SETTINGS_KEY not in cache


class TestExplicitTtl:
    @pytest.mark.asyncio
    async def test_zero_ttl_is_not_replaced_by_default(self, cache, mock_store):
        readers = CreditReaders(cache, mock_store, credits_ttl_ms=0)
        assert readers.credits_ttl_ms == 0

        await readers.read_user_credit_state("u1")
        await readers.read_user_credit_state("u1")

        assert mock_store.get_user_credit_state.await_count == 2

    def test_stats_zero_ttl_kept(self, cache, mock_store):
        from bazar.app.services.stats import CommunityStatsReader

        stats = CommunityStatsReader(cache, mock_store, CreditReaders(cache, mock_store), ttl_ms=0)
        assert stats.ttl_ms == 0
