"""Top-up primitives shared by the admin tools and the payment webhook.

Every balance change here goes through an atomic store delta and appends
exactly one ledger row whose ``balance_after`` is the post-change balance.
Settings updates overwrite a row directly and append nothing.
"""

from typing import Optional

from bazar.app.core.cache import ReadThroughCache
from bazar.app.core.logging import get_log_context, get_logger
from bazar.app.exceptions import InvalidAmountError
from bazar.app.services.models import (
    AdjustmentMetadata,
    BonusMetadata,
    CreditTransactionKind,
    CreditTransactionRecord,
    PotTransactionKind,
    PotTransactionRecord,
    PurchaseMetadata,
    SystemSettings,
)
from bazar.app.services.readers import SETTINGS_KEY_PATTERN, invalidate_after_consumption
from bazar.app.services.store import CreditStore

logger = get_logger(__name__)


class AdminCreditService:
    """Grants, purchases, community pot deposits and settings updates."""

    def __init__(self, store: CreditStore, cache: Optional[ReadThroughCache] = None) -> None:
        self.store = store
        self.cache = cache

    def _invalidate(self, user_id: Optional[str]) -> None:
        if self.cache is not None:
            invalidate_after_consumption(self.cache, user_id)

    async def grant_personal_credits(
        self,
        user_id: str,
        amount: int,
        reason: str = "",
        granted_by: Optional[str] = None,
        euro_amount: Optional[float] = None,
        price_per_unit: Optional[float] = None,
        bonus: bool = False,
    ) -> CreditTransactionRecord:
        """Add personal credits to a user and record the grant.

        Args:
            user_id: Recipient
            amount: Number of credits (positive)
            reason: Free-text reason stored in the metadata
            granted_by: Admin user ID
            euro_amount: Money received for the grant, if any
            price_per_unit: Price per credit at grant time
            bonus: Record as a ``bonus`` instead of an ``adjustment``

        Returns:
            The appended credit transaction

        Raises:
            InvalidAmountError: If amount is not positive
            ProfileNotFoundError: If the user does not exist
        """
        if amount <= 0:
            raise InvalidAmountError(amount)

        balance_after = await self.store.adjust_personal_credits(user_id, amount)
        if bonus:
            kind = CreditTransactionKind.BONUS
            metadata = BonusMetadata(reason=reason, granted_by=granted_by)
        else:
            kind = CreditTransactionKind.ADJUSTMENT
            metadata = AdjustmentMetadata(
                reason=reason,
                granted_by=granted_by,
                euro_amount=euro_amount,
                price_per_unit=price_per_unit,
            )
        transaction = await self.store.append_credit_transaction(
            user_id=user_id,
            amount=amount,
            kind=kind,
            metadata=metadata,
            balance_after=balance_after,
        )
        self._invalidate(user_id)
        logger.info(
            f"Granted {amount} personal credits (balance_after={balance_after})",
            extra=get_log_context(user_id=user_id, granted_by=granted_by),
        )
        return transaction

    async def record_credit_purchase(
        self,
        user_id: str,
        credits: int,
        package_type: str,
        euro_amount: Optional[float] = None,
        stripe_session_id: Optional[str] = None,
    ) -> CreditTransactionRecord:
        """Credit a completed checkout to the buyer's personal balance."""
        if credits <= 0:
            raise InvalidAmountError(credits)

        balance_after = await self.store.adjust_personal_credits(user_id, credits)
        transaction = await self.store.append_credit_transaction(
            user_id=user_id,
            amount=credits,
            kind=CreditTransactionKind.PURCHASE,
            metadata=PurchaseMetadata(
                package_type=package_type,
                stripe_session_id=stripe_session_id,
                euro_amount=euro_amount,
            ),
            balance_after=balance_after,
        )
        self._invalidate(user_id)
        logger.info(
            f"Recorded purchase of {credits} credits ({package_type})",
            extra=get_log_context(user_id=user_id),
        )
        return transaction

    async def add_to_community_pot(
        self,
        amount: int,
        reason: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> PotTransactionRecord:
        """Administrative deposit into the community pot.

        Args:
            amount: Listings to add (positive)
            reason: Description stored on the transaction
            user_id: Optional user the deposit is attributed to

        Returns:
            The appended ``adjustment`` pot transaction
        """
        if amount <= 0:
            raise InvalidAmountError(amount)

        balance_after = await self.store.adjust_community_pot_balance(amount)
        transaction = await self.store.append_pot_transaction(
            kind=PotTransactionKind.ADJUSTMENT,
            amount=amount,
            balance_after=balance_after,
            user_id=user_id,
            description=reason or f"Admin adjustment: +{amount} credits",
        )
        self._invalidate(user_id)
        logger.info(
            f"Community pot topped up by {amount} (balance_after={balance_after})",
            extra=get_log_context(user_id=user_id),
        )
        return transaction

    async def record_community_donation(
        self,
        user_id: str,
        listings: int,
        euro_amount: float,
        description: Optional[str] = None,
    ) -> PotTransactionRecord:
        """Credit a completed donation to the pot and to the donor's totals.

        Args:
            user_id: Donor
            listings: Listings the donation funds (pot delta, positive)
            euro_amount: Money donated, added to the donor's total_donated
            description: Optional description for the transaction
        """
        if listings <= 0:
            raise InvalidAmountError(listings)
        if euro_amount < 0:
            raise InvalidAmountError(euro_amount)

        balance_after = await self.store.adjust_community_pot_balance(listings)
        transaction = await self.store.append_pot_transaction(
            kind=PotTransactionKind.DONATION,
            amount=listings,
            balance_after=balance_after,
            user_id=user_id,
            description=description or f"Donation: {listings} listings",
        )
        await self.store.add_donation_totals(user_id, euro_amount, listings)
        self._invalidate(user_id)
        logger.info(
            f"Recorded community donation of {listings} listings",
            extra=get_log_context(user_id=user_id),
        )
        return transaction

    async def update_setting(
        self,
        key: str,
        value: int,
        description: Optional[str] = None,
    ) -> SystemSettings:
        """Overwrite a credit system setting and bust every cached settings key.

        Args:
            key: Setting key, e.g. ``daily_free_listings``
            value: New value (non-negative)
            description: Optional description stored with the row

        Returns:
            The settings as read back from the store

        Raises:
            InvalidAmountError: If value is negative
        """
        if value < 0:
            raise InvalidAmountError(value)

        await self.store.set_setting(key, value, description=description)
        if self.cache is not None:
            self.cache.invalidate_pattern(SETTINGS_KEY_PATTERN)
        logger.info(f"Credit setting {key} set to {value}")
        return await self.store.get_system_settings()
