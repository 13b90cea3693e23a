"""Cached readers for settings and balances.

Each reader is a fixed key and TTL over the read-through cache. Key formats:

- settings:credit_check            SystemSettings
- settings:community_pot_balance   int
- profile:{user_id}:credits        UserCreditState
- profile:{user_id}:donations      UserDonationTotals
"""

from typing import Optional

from bazar.app.core.cache import ReadThroughCache
from bazar.app.core.config import settings
from bazar.app.services.models import SystemSettings, UserCreditState, UserDonationTotals
from bazar.app.services.store import CreditStore

SETTINGS_KEY = "settings:credit_check"
POT_BALANCE_KEY = "settings:community_pot_balance"
SETTINGS_KEY_PATTERN = r"^settings:"
POT_TRANSACTIONS_KEY_PATTERN = r"^community_pot_transactions:"


def user_credits_key(user_id: str) -> str:
    return f"profile:{user_id}:credits"


def user_donations_key(user_id: str) -> str:
    return f"profile:{user_id}:donations"


class CreditReaders:
    """Cached accessors used by the eligibility engine and the stats readers."""

    def __init__(
        self,
        cache: ReadThroughCache,
        store: CreditStore,
        settings_ttl_ms: Optional[int] = None,
        credits_ttl_ms: Optional[int] = None,
        pot_balance_ttl_ms: Optional[int] = None,
        donations_ttl_ms: Optional[int] = None,
    ) -> None:
        self.cache = cache
        self.store = store
        self.settings_ttl_ms = (
            settings_ttl_ms if settings_ttl_ms is not None else settings.settings_cache_ttl_ms
        )
        self.credits_ttl_ms = (
            credits_ttl_ms if credits_ttl_ms is not None else settings.credits_cache_ttl_ms
        )
        self.pot_balance_ttl_ms = (
            pot_balance_ttl_ms
            if pot_balance_ttl_ms is not None
            else settings.pot_balance_cache_ttl_ms
        )
        self.donations_ttl_ms = (
            donations_ttl_ms if donations_ttl_ms is not None else settings.donor_totals_cache_ttl_ms
        )

    async def read_settings(self) -> SystemSettings:
        return await self.cache.get(
            SETTINGS_KEY, self.store.get_system_settings, self.settings_ttl_ms
        )

    async def read_user_credit_state(self, user_id: str) -> UserCreditState:
        return await self.cache.get(
            user_credits_key(user_id),
            lambda: self.store.get_user_credit_state(user_id),
            self.credits_ttl_ms,
        )

    async def read_community_pot_balance_only(self, user_id: Optional[str] = None) -> int:
        """Read the pot balance on its own refresh cadence.

        ``user_id`` is accepted for call-site symmetry; the key is global.
        """
        return await self.cache.get(
            POT_BALANCE_KEY, self.store.get_community_pot_balance, self.pot_balance_ttl_ms
        )

    async def read_user_donation_totals(self, user_id: str) -> UserDonationTotals:
        return await self.cache.get(
            user_donations_key(user_id),
            lambda: self.store.get_donation_totals(user_id),
            self.donations_ttl_ms,
        )

    def prime_settings(self, system_settings: SystemSettings) -> None:
        """Push known-fresh settings, e.g. after an administrative write."""
        self.cache.set(SETTINGS_KEY, system_settings)
        self.cache.set(POT_BALANCE_KEY, system_settings.community_pot_balance)

    def prime_user_credit_state(self, state: UserCreditState) -> None:
        """Push a known-fresh credit state, e.g. from a realtime balance update."""
        self.cache.set(user_credits_key(state.user_id), state)


def invalidate_after_consumption(cache: ReadThroughCache, user_id: Optional[str]) -> None:
    """Bust every cached value a consumption or top-up may have changed."""
    cache.invalidate(SETTINGS_KEY)
    cache.invalidate(POT_BALANCE_KEY)
    if user_id is not None:
        cache.invalidate(user_credits_key(user_id))
        cache.invalidate(user_donations_key(user_id))
    cache.invalidate_pattern(POT_TRANSACTIONS_KEY_PATTERN)
