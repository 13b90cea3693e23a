"""Credit store abstraction.

The credit engine reads and writes balances through a ``CreditStore``.
``SqlCreditStore`` implements it on top of the async SQLAlchemy CRUD layer;
other backends only need to honour the same contract, in particular an
atomic ``adjust_community_pot_balance``.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncGenerator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazar.app.core.config import settings
from bazar.app.core.logging import get_logger
from bazar.app.db import crud
from bazar.app.db.models import CommunityPotTransaction, CreditTransaction
from bazar.app.exceptions import (
    BazarError,
    CreditStoreError,
    InsufficientCreditsError,
    InsufficientPotBalanceError,
    ProfileNotFoundError,
)
from bazar.app.services.models import (
    CreditTransactionKind,
    CreditTransactionRecord,
    PotTransactionKind,
    PotTransactionRecord,
    SystemSettings,
    TransactionMetadata,
    UserCreditState,
    UserDonationTotals,
    metadata_to_dict,
    parse_transaction_metadata,
)

logger = get_logger(__name__)


class CreditStore(ABC):
    """Source of truth for balances, settings and the transaction ledger.

    All implementations must inherit from this class and implement
    the abstract methods.
    """

    @abstractmethod
    async def get_system_settings(self) -> SystemSettings:
        """Read the daily free-listing quota and the community pot balance."""

    @abstractmethod
    async def get_community_pot_balance(self) -> int:
        """Read the current community pot balance."""

    @abstractmethod
    async def adjust_community_pot_balance(self, delta: int) -> int:
        """Atomically add ``delta`` to the community pot.

        Returns:
            The balance after the adjustment.

        Raises:
            InsufficientPotBalanceError: If the balance would go negative.
        """

    @abstractmethod
    async def set_setting(
        self, key: str, value: int, description: Optional[str] = None
    ) -> None:
        """Create or overwrite one credit system setting."""

    @abstractmethod
    async def get_user_credit_state(self, user_id: str) -> UserCreditState:
        """Read a user's balance and daily usage counter.

        Raises:
            ProfileNotFoundError: If the profile does not exist.
        """

    @abstractmethod
    async def update_daily_usage(
        self, user_id: str, daily_listings_used: int, last_listing_date: Optional[date]
    ) -> None:
        """Overwrite a user's daily usage counter and its date."""

    @abstractmethod
    async def set_personal_credits(self, user_id: str, personal_credits: int) -> None:
        """Overwrite a user's personal balance (must be non-negative)."""

    @abstractmethod
    async def adjust_personal_credits(self, user_id: str, delta: int) -> int:
        """Atomically add ``delta`` to a user's personal balance.

        Returns:
            The balance after the adjustment.

        Raises:
            InsufficientCreditsError: If the balance would go negative.
        """

    @abstractmethod
    async def get_donation_totals(self, user_id: str) -> UserDonationTotals:
        """Read the donor totals stored on the profile."""

    @abstractmethod
    async def add_donation_totals(self, user_id: str, amount: float, listings: int) -> None:
        """Increment the donor totals stored on the profile."""

    @abstractmethod
    async def append_credit_transaction(
        self,
        user_id: str,
        amount: int,
        kind: CreditTransactionKind,
        metadata: TransactionMetadata,
        balance_after: int,
    ) -> CreditTransactionRecord:
        """Append a personal-credit ledger row."""

    @abstractmethod
    async def append_pot_transaction(
        self,
        kind: PotTransactionKind,
        amount: int,
        balance_after: int,
        user_id: Optional[str] = None,
        item_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PotTransactionRecord:
        """Append a community pot ledger row."""

    @abstractmethod
    async def list_credit_transactions(
        self,
        user_id: Optional[str] = None,
        kind: Optional[CreditTransactionKind] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[CreditTransactionRecord]:
        """List personal-credit ledger rows, newest first."""

    @abstractmethod
    async def list_pot_transactions(
        self,
        kind: Optional[PotTransactionKind] = None,
        user_id: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[PotTransactionRecord]:
        """List community pot ledger rows, newest first."""


def _credit_record(row: CreditTransaction) -> CreditTransactionRecord:
    kind = CreditTransactionKind(row.transaction_type)
    return CreditTransactionRecord(
        id=row.id,
        user_id=row.user_id,
        amount=row.amount,
        kind=kind,
        metadata=parse_transaction_metadata(kind, row.details),
        balance_after=row.balance_after,
        created_at=row.created_at,
    )


def _pot_record(row: CommunityPotTransaction) -> PotTransactionRecord:
    return PotTransactionRecord(
        id=row.id,
        kind=PotTransactionKind(row.transaction_type),
        amount=row.amount,
        balance_after=row.balance_after,
        created_at=row.created_at,
        user_id=row.user_id,
        item_id=row.item_id,
        description=row.description,
    )


class SqlCreditStore(CreditStore):
    """CreditStore backed by the SQL database.

    Every operation runs in its own session and commits immediately, so
    multi-step sequences (such as a ledger consumption) are not wrapped in
    one transaction.

    Example:
        >>> store = SqlCreditStore()
        >>> balance = await store.adjust_community_pot_balance(-1)
    """

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        default_daily_free_listings: Optional[int] = None,
    ) -> None:
        """Initialize the store.

        Args:
            session_maker: Session factory. Defaults to the global one.
            default_daily_free_listings: Quota used when the settings row is
                missing. Defaults to settings.default_daily_free_listings.
        """
        self._session_maker = session_maker
        self._default_daily_free_listings = (
            default_daily_free_listings
            if default_daily_free_listings is not None
            else settings.default_daily_free_listings
        )

    def _get_session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            from bazar.app.db.async_session import get_async_session_maker

            self._session_maker = get_async_session_maker()
        return self._session_maker

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        """Open a session and translate ORM errors into CreditStoreError."""
        async with self._get_session_maker()() as session:
            try:
                yield session
            except BazarError:
                await session.rollback()
                raise
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Credit store operation {operation} failed: {e}")
                raise CreditStoreError(operation, str(e)) from e

    async def get_system_settings(self) -> SystemSettings:
        async with self._session("get_system_settings") as session:
            values = await crud.get_setting_values(
                session, [crud.DAILY_FREE_LISTINGS_KEY, crud.COMMUNITY_POT_BALANCE_KEY]
            )
        return SystemSettings(
            daily_free_listings=values.get(
                crud.DAILY_FREE_LISTINGS_KEY, self._default_daily_free_listings
            ),
            community_pot_balance=values.get(crud.COMMUNITY_POT_BALANCE_KEY, 0),
        )

    async def get_community_pot_balance(self) -> int:
        async with self._session("get_community_pot_balance") as session:
            value = await crud.get_setting_value(session, crud.COMMUNITY_POT_BALANCE_KEY)
        return value or 0

    async def adjust_community_pot_balance(self, delta: int) -> int:
        async with self._session("adjust_community_pot_balance") as session:
            success, value = await crud.adjust_setting_value(
                session, crud.COMMUNITY_POT_BALANCE_KEY, delta
            )
            if success:
                return value
            if value is None and delta >= 0:
                # First deposit creates the row
                await crud.upsert_setting(session, crud.COMMUNITY_POT_BALANCE_KEY, delta)
                return delta
            raise InsufficientPotBalanceError(balance=value or 0, delta=delta)

    async def set_setting(
        self, key: str, value: int, description: Optional[str] = None
    ) -> None:
        async with self._session("set_setting") as session:
            await crud.upsert_setting(session, key, value, description=description)

    async def get_user_credit_state(self, user_id: str) -> UserCreditState:
        async with self._session("get_user_credit_state") as session:
            row = await crud.get_credit_columns(session, user_id)
        if row is None:
            raise ProfileNotFoundError(user_id)
        personal_credits, daily_listings_used, last_listing_date = row
        return UserCreditState(
            user_id=user_id,
            personal_credits=personal_credits or 0,
            daily_listings_used=daily_listings_used or 0,
            last_listing_date=last_listing_date,
        )

    async def update_daily_usage(
        self, user_id: str, daily_listings_used: int, last_listing_date: Optional[date]
    ) -> None:
        async with self._session("update_daily_usage") as session:
            updated = await crud.update_daily_usage(
                session, user_id, daily_listings_used, last_listing_date
            )
        if not updated:
            raise ProfileNotFoundError(user_id)

    async def set_personal_credits(self, user_id: str, personal_credits: int) -> None:
        if personal_credits < 0:
            raise InsufficientCreditsError(user_id, available=0)
        async with self._session("set_personal_credits") as session:
            updated = await crud.set_personal_credits(session, user_id, personal_credits)
        if not updated:
            raise ProfileNotFoundError(user_id)

    async def adjust_personal_credits(self, user_id: str, delta: int) -> int:
        async with self._session("adjust_personal_credits") as session:
            success, balance = await crud.adjust_personal_credits(session, user_id, delta)
        if success:
            return balance
        if balance < 0:
            raise ProfileNotFoundError(user_id)
        raise InsufficientCreditsError(user_id, available=balance)

    async def get_donation_totals(self, user_id: str) -> UserDonationTotals:
        async with self._session("get_donation_totals") as session:
            row = await crud.get_donation_totals(session, user_id)
        if row is None:
            raise ProfileNotFoundError(user_id)
        return UserDonationTotals(
            user_id=user_id, total_donated=row[0], community_listings_donated=row[1]
        )

    async def add_donation_totals(self, user_id: str, amount: float, listings: int) -> None:
        async with self._session("add_donation_totals") as session:
            updated = await crud.add_donation_totals(session, user_id, amount, listings)
        if not updated:
            raise ProfileNotFoundError(user_id)

    async def append_credit_transaction(
        self,
        user_id: str,
        amount: int,
        kind: CreditTransactionKind,
        metadata: TransactionMetadata,
        balance_after: int,
    ) -> CreditTransactionRecord:
        async with self._session("append_credit_transaction") as session:
            row = await crud.create_credit_transaction(
                session,
                user_id=user_id,
                amount=amount,
                transaction_type=CreditTransactionKind(kind).value,
                balance_after=balance_after,
                details=metadata_to_dict(metadata),
            )
        return _credit_record(row)

    async def append_pot_transaction(
        self,
        kind: PotTransactionKind,
        amount: int,
        balance_after: int,
        user_id: Optional[str] = None,
        item_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PotTransactionRecord:
        async with self._session("append_pot_transaction") as session:
            row = await crud.create_pot_transaction(
                session,
                transaction_type=PotTransactionKind(kind).value,
                amount=amount,
                balance_after=balance_after,
                user_id=user_id,
                item_id=item_id,
                description=description,
            )
        return _pot_record(row)

    async def list_credit_transactions(
        self,
        user_id: Optional[str] = None,
        kind: Optional[CreditTransactionKind] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[CreditTransactionRecord]:
        async with self._session("list_credit_transactions") as session:
            rows = await crud.list_credit_transactions(
                session,
                user_id=user_id,
                transaction_type=CreditTransactionKind(kind).value if kind else None,
                since=since,
                until=until,
                limit=limit,
            )
        return [_credit_record(row) for row in rows]

    async def list_pot_transactions(
        self,
        kind: Optional[PotTransactionKind] = None,
        user_id: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[PotTransactionRecord]:
        async with self._session("list_pot_transactions") as session:
            rows = await crud.list_pot_transactions(
                session,
                transaction_type=PotTransactionKind(kind).value if kind else None,
                user_id=user_id,
                since=since,
                until=until,
                limit=limit,
            )
        return [_pot_record(row) for row in rows]


