"""Ledger consumption: debit the chosen source for one listing.

Consumption never reads through the cache. It re-reads the state it needs
from the store right before writing, which narrows but does not close the
window between an eligibility check and the debit.

Community pot path (in order):
    1. re-read daily usage and apply the lazy reset
    2. write daily_listings_used + 1 and last_listing_date = today
    3. atomic pot delta of -1
    4. read back the pot balance
    5. append a ``usage`` pot transaction with that balance

Personal credits path:
    1. re-read personal_credits
    2. fail with ``insufficient_credits`` if it is not positive
    3. write personal_credits - 1

The personal path appends no credit transaction; usage rows for personal
credits do not exist and the stats readers rely on that.
"""

from datetime import date
from typing import Callable, Optional

from bazar.app.core.config import settings
from bazar.app.core.logging import get_log_context, get_logger
from bazar.app.core.utils import effective_daily_used, get_current_date
from bazar.app.exceptions import BazarError
from bazar.app.services.models import (
    ConsumptionResult,
    CreditSource,
    PotTransactionKind,
    UserCreditState,
)
from bazar.app.services.store import CreditStore

logger = get_logger(__name__)

USAGE_DESCRIPTION = "Listing created (free)"


class CreditLedger:
    """Executes the real debit after the user confirms a listing."""

    def __init__(
        self,
        store: CreditStore,
        today: Callable[[], date] = get_current_date,
        compensate_partial_failures: Optional[bool] = None,
    ) -> None:
        """Initialize the ledger.

        Args:
            store: Source of truth for balances. Never a cached view.
            today: Provider of the current calendar day.
            compensate_partial_failures: Undo already applied writes when a
                later pot step fails. Defaults to
                settings.ledger_compensate_partial_failures.
        """
        self.store = store
        self._today = today
        self.compensate_partial_failures = (
            compensate_partial_failures
            if compensate_partial_failures is not None
            else settings.ledger_compensate_partial_failures
        )

    async def consume(
        self,
        user_id: Optional[str],
        source: CreditSource,
        item_id: Optional[str] = None,
    ) -> ConsumptionResult:
        """Debit one credit from ``source`` for ``user_id``.

        Store errors are reported in the result, not raised. Writes applied
        before a failure stay applied unless compensation is enabled; such
        results have ``partial=True``.

        Args:
            user_id: The signed-in user
            source: community_pot or personal_credits
            item_id: The listing being funded, recorded on the pot transaction

        Returns:
            ConsumptionResult, truthy on success
        """
        source = CreditSource(source)
        if not user_id:
            return ConsumptionResult(success=False, source=source, reason="not_authenticated")

        if source is CreditSource.COMMUNITY_POT:
            return await self._consume_community_pot(user_id, item_id)
        return await self._consume_personal_credit(user_id, item_id)

    async def _consume_community_pot(
        self, user_id: str, item_id: Optional[str]
    ) -> ConsumptionResult:
        source = CreditSource.COMMUNITY_POT
        log_context = get_log_context(user_id=user_id, item_id=item_id, source=source.value)

        try:
            state = await self.store.get_user_credit_state(user_id)
            today = self._today()
            current_used = effective_daily_used(
                state.daily_listings_used, state.last_listing_date, today
            )
            await self.store.update_daily_usage(user_id, current_used + 1, today)
        except BazarError as e:
            logger.warning(f"Community pot consumption failed: {e}", extra=log_context)
            return ConsumptionResult(success=False, source=source, reason=e.code)

        pot_decremented = False
        try:
            await self.store.adjust_community_pot_balance(-1)
            pot_decremented = True
            balance_after = await self.store.get_community_pot_balance()
            transaction = await self.store.append_pot_transaction(
                kind=PotTransactionKind.USAGE,
                amount=-1,
                balance_after=balance_after,
                user_id=user_id,
                item_id=item_id,
                description=USAGE_DESCRIPTION,
            )
        except BazarError as e:
            logger.error(
                f"Community pot consumption partially applied: {e}",
                extra={**log_context, "partial": True, "pot_decremented": pot_decremented},
            )
            compensated = False
            if self.compensate_partial_failures:
                compensated = await self._compensate(state, pot_decremented, log_context)
            return ConsumptionResult(
                success=False,
                source=source,
                reason=e.code,
                partial=True,
                compensated=compensated,
            )

        logger.info(
            f"Listing funded from community pot (balance_after={balance_after})",
            extra=log_context,
        )
        return ConsumptionResult(
            success=True,
            source=source,
            balance_after=balance_after,
            transaction_id=transaction.id,
        )

    async def _compensate(
        self, state: UserCreditState, pot_decremented: bool, log_context: dict
    ) -> bool:
        """Restore the usage counter (and pot) to their pre-consumption values."""
        logger.warning("Compensating partial community pot consumption", extra=log_context)
        try:
            if pot_decremented:
                await self.store.adjust_community_pot_balance(1)
            await self.store.update_daily_usage(
                state.user_id, state.daily_listings_used, state.last_listing_date
            )
        except BazarError as e:
            logger.error(f"Compensation failed: {e}", extra=log_context)
            return False
        return True

    async def _consume_personal_credit(
        self, user_id: str, item_id: Optional[str]
    ) -> ConsumptionResult:
        source = CreditSource.PERSONAL_CREDITS
        log_context = get_log_context(user_id=user_id, item_id=item_id, source=source.value)

        try:
            state = await self.store.get_user_credit_state(user_id)
            if state.personal_credits <= 0:
                logger.info("No personal credits available", extra=log_context)
                return ConsumptionResult(
                    success=False,
                    source=source,
                    reason="insufficient_credits",
                    balance_after=max(state.personal_credits, 0),
                )
            balance_after = state.personal_credits - 1
            await self.store.set_personal_credits(user_id, balance_after)
        except BazarError as e:
            logger.warning(f"Personal credit consumption failed: {e}", extra=log_context)
            return ConsumptionResult(success=False, source=source, reason=e.code)

        logger.info(
            f"Listing funded from personal credits (balance_after={balance_after})",
            extra=log_context,
        )
        return ConsumptionResult(success=True, source=source, balance_after=balance_after)
