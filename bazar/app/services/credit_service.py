"""Credit service facade.

Wires the decision engine, the ledger and the cache together in the order
the listing flow uses them: check, confirm, consume, invalidate.
"""

from typing import Optional

from bazar.app.core.cache import ReadThroughCache
from bazar.app.core.logging import get_log_context, get_logger
from bazar.app.services.eligibility import EligibilityEngine
from bazar.app.services.ledger import CreditLedger
from bazar.app.services.models import (
    CommunityStats,
    ConsumptionResult,
    CreditSource,
    EligibilityResult,
)
from bazar.app.services.readers import invalidate_after_consumption
from bazar.app.services.stats import CommunityStatsReader

logger = get_logger(__name__)


class CreditService:
    """Entry point for callers creating listings."""

    def __init__(
        self,
        cache: ReadThroughCache,
        engine: EligibilityEngine,
        ledger: CreditLedger,
        stats: CommunityStatsReader,
    ) -> None:
        self.cache = cache
        self.engine = engine
        self.ledger = ledger
        self.stats = stats

    async def check_eligibility(self, user_id: Optional[str]) -> EligibilityResult:
        return await self.engine.check_eligibility(user_id)

    async def consume(
        self,
        user_id: Optional[str],
        source: CreditSource,
        item_id: Optional[str] = None,
    ) -> ConsumptionResult:
        """Consume from ``source`` and invalidate the affected cache keys.

        Keys are invalidated after partial failures too, since some writes
        may have landed.
        """
        result = await self.ledger.consume(user_id, source, item_id)
        if result.success or result.partial:
            invalidate_after_consumption(self.cache, user_id)
        return result

    async def create_listing_credit(
        self, user_id: Optional[str], item_id: Optional[str] = None
    ) -> tuple[EligibilityResult, Optional[ConsumptionResult]]:
        """Decide the source for a new listing and consume from it.

        Returns:
            Tuple of (eligibility, consumption). Consumption is None when the
            eligibility check denied the listing.
        """
        eligibility = await self.check_eligibility(user_id)
        if not eligibility.can_create or eligibility.source is None:
            return eligibility, None

        consumption = await self.consume(user_id, eligibility.source, item_id)
        if not consumption:
            logger.warning(
                f"Eligible listing could not be funded: {consumption.reason}",
                extra=get_log_context(
                    user_id=user_id, item_id=item_id, source=eligibility.source.value
                ),
            )
        return eligibility, consumption

    async def get_community_stats(self, user_id: Optional[str] = None) -> CommunityStats:
        return await self.stats.get_community_stats(user_id)
