"""Community statistics derived from the pot ledger.

All figures are read through the cache and never mutate state. Callers
invalidate after writes (see ``invalidate_after_consumption``).
"""

from typing import Optional

from bazar.app.core.cache import ReadThroughCache
from bazar.app.core.config import settings
from bazar.app.services.models import (
    CommunityStats,
    DonationSummary,
    PotTransactionKind,
    UserDonationTotals,
)
from bazar.app.services.readers import CreditReaders
from bazar.app.services.store import CreditStore

DONATIONS_KEY = "community_pot_transactions:donations"
USAGE_KEY = "community_pot_transactions:usage"


class CommunityStatsReader:
    """Cached aggregate views over the community pot."""

    def __init__(
        self,
        cache: ReadThroughCache,
        store: CreditStore,
        readers: CreditReaders,
        ttl_ms: Optional[int] = None,
    ) -> None:
        self.cache = cache
        self.store = store
        self.readers = readers
        self.ttl_ms = ttl_ms if ttl_ms is not None else settings.stats_cache_ttl_ms

    async def total_balance(self) -> int:
        return await self.readers.read_community_pot_balance_only()

    async def donation_summary(self) -> DonationSummary:
        """Sum and count of donation rows and the number of distinct donors."""
        return await self.cache.get(DONATIONS_KEY, self._load_donation_summary, self.ttl_ms)

    async def _load_donation_summary(self) -> DonationSummary:
        rows = await self.store.list_pot_transactions(kind=PotTransactionKind.DONATION)
        donors = {row.user_id for row in rows if row.user_id is not None}
        return DonationSummary(
            total_amount=sum(row.amount for row in rows),
            count=len(rows),
            unique_donors=len(donors),
        )

    async def total_listings_financed(self) -> int:
        """Number of listings funded from the pot (usage rows are -1 each)."""
        return await self.cache.get(USAGE_KEY, self._load_listings_financed, self.ttl_ms)

    async def _load_listings_financed(self) -> int:
        rows = await self.store.list_pot_transactions(kind=PotTransactionKind.USAGE)
        return abs(sum(row.amount for row in rows))

    async def user_totals(self, user_id: str) -> UserDonationTotals:
        """Lifetime donor figures taken from the profile, not the ledger."""
        return await self.readers.read_user_donation_totals(user_id)

    async def get_community_stats(self, user_id: Optional[str] = None) -> CommunityStats:
        total_balance = await self.total_balance()
        donations = await self.donation_summary()
        financed = await self.total_listings_financed()
        user_totals = (
            await self.user_totals(user_id) if user_id else UserDonationTotals(user_id="")
        )
        return CommunityStats(
            total_balance=total_balance,
            total_donations=donations.count,
            total_donation_amount=donations.total_amount,
            active_donors=donations.unique_donors,
            total_listings_financed=financed,
            user_donation_amount=user_totals.total_donated,
            user_listings_donated=user_totals.community_listings_donated,
        )
