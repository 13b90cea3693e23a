"""Allocation decision engine.

Decides whether a user may create a listing and which source pays for it.
The community pot is preferred whenever the daily free quota allows it;
personal credits are the last resort. The result is a recommendation read
from cached values; ``CreditLedger.consume`` re-validates against the store.
"""

from datetime import date
from typing import Callable, Optional

from bazar.app.core.logging import get_log_context, get_logger
from bazar.app.core.utils import effective_daily_used, get_current_date
from bazar.app.services.models import (
    CreditSource,
    DenyReason,
    EligibilityResult,
    SystemSettings,
    UserCreditState,
)
from bazar.app.services.readers import CreditReaders

logger = get_logger(__name__)

MESSAGE_NOT_AUTHENTICATED = "Please sign in to create listings."
MESSAGE_ERROR = "Could not check your credits. Please try again."


def decide_allocation(
    system_settings: SystemSettings,
    state: UserCreditState,
    today: date,
) -> EligibilityResult:
    """Pick the funding source for one listing.

    Branches are evaluated in order and the first match wins:

    1. quota left and pot non-empty   -> community_pot
    2. quota left and pot empty       -> personal_credits, else community_pot_empty
    3. quota exhausted                -> personal_credits, else no_credits
    4. anything else (negative pot)   -> unknown

    Args:
        system_settings: Daily quota and pot balance
        state: The user's balance and usage counter
        today: Calendar day used for the lazy counter reset

    Returns:
        EligibilityResult describing the decision
    """
    daily_limit = system_settings.daily_free_listings
    pot_balance = system_settings.community_pot_balance
    personal_credits = state.personal_credits
    used = effective_daily_used(state.daily_listings_used, state.last_listing_date, today)

    if used < daily_limit and pot_balance > 0:
        remaining = daily_limit - used
        return EligibilityResult(
            can_create=True,
            source=CreditSource.COMMUNITY_POT,
            message=f"You can create {remaining} more free listings today.",
            remaining_daily_listings=remaining,
            personal_credits=personal_credits,
            community_pot_balance=pot_balance,
        )

    if used < daily_limit and pot_balance == 0:
        remaining = daily_limit - used
        if personal_credits > 0:
            return EligibilityResult(
                can_create=True,
                source=CreditSource.PERSONAL_CREDITS,
                message=(
                    "The community pot is empty. Using your personal credits "
                    f"({personal_credits} available)."
                ),
                remaining_daily_listings=remaining,
                personal_credits=personal_credits,
                community_pot_balance=0,
            )
        return EligibilityResult(
            can_create=False,
            source=None,
            reason=DenyReason.COMMUNITY_POT_EMPTY,
            message=(
                "The community pot is empty. Donate to the pot or buy personal credits."
            ),
            remaining_daily_listings=remaining,
            personal_credits=0,
            community_pot_balance=0,
        )

    if used >= daily_limit:
        if personal_credits > 0:
            return EligibilityResult(
                can_create=True,
                source=CreditSource.PERSONAL_CREDITS,
                message=(
                    "Daily limit reached. Using your personal credits "
                    f"({personal_credits} available)."
                ),
                remaining_daily_listings=0,
                personal_credits=personal_credits,
                community_pot_balance=pot_balance,
            )
        return EligibilityResult(
            can_create=False,
            source=None,
            reason=DenyReason.NO_CREDITS,
            message=(
                "Daily limit reached and no personal credits left. "
                "Buy credits to keep listing today."
            ),
            remaining_daily_listings=0,
            personal_credits=0,
            community_pot_balance=pot_balance,
        )

    return EligibilityResult(
        can_create=False,
        source=None,
        reason=DenyReason.UNKNOWN,
        message=MESSAGE_ERROR,
    )


class EligibilityEngine:
    """Answers "may this user create a listing, and who pays?" from cached reads."""

    def __init__(
        self,
        readers: CreditReaders,
        today: Callable[[], date] = get_current_date,
    ) -> None:
        self.readers = readers
        self._today = today

    async def check_eligibility(self, user_id: Optional[str]) -> EligibilityResult:
        """Check whether ``user_id`` may create a listing.

        Never raises: read failures become a deny result with reason ``error``.

        Args:
            user_id: The signed-in user, or None for an anonymous visitor

        Returns:
            EligibilityResult
        """
        if not user_id:
            return EligibilityResult(
                can_create=False,
                source=None,
                reason=DenyReason.NOT_AUTHENTICATED,
                message=MESSAGE_NOT_AUTHENTICATED,
            )

        try:
            system_settings = await self.readers.read_settings()
            state = await self.readers.read_user_credit_state(user_id)
        except Exception:
            logger.exception(
                "Eligibility check failed while reading credits",
                extra=get_log_context(user_id=user_id),
            )
            return EligibilityResult(
                can_create=False,
                source=None,
                reason=DenyReason.ERROR,
                message=MESSAGE_ERROR,
            )

        result = decide_allocation(system_settings, state, self._today())
        logger.debug(
            f"Eligibility for {user_id}: can_create={result.can_create} "
            f"reason={result.reason.value if result.reason else None}",
            extra=get_log_context(
                user_id=user_id, source=result.source.value if result.source else None
            ),
        )
        return result
