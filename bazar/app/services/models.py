"""Data models for the credit allocation engine."""

from dataclasses import asdict, dataclass, fields
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union


class CreditSource(str, Enum):
    """Where a listing's credit is drawn from."""

    COMMUNITY_POT = "community_pot"
    PERSONAL_CREDITS = "personal_credits"


class DenyReason(str, Enum):
    """Why an eligibility check denied listing creation."""

    NOT_AUTHENTICATED = "not_authenticated"
    COMMUNITY_POT_EMPTY = "community_pot_empty"
    NO_CREDITS = "no_credits"
    UNKNOWN = "unknown"
    ERROR = "error"


class CreditTransactionKind(str, Enum):
    PURCHASE = "purchase"
    USAGE = "usage"
    BONUS = "bonus"
    REFUND = "refund"
    DONATION = "donation"
    ADJUSTMENT = "adjustment"


class PotTransactionKind(str, Enum):
    DONATION = "donation"
    USAGE = "usage"
    ADJUSTMENT = "adjustment"


@dataclass(frozen=True)
class SystemSettings:
    """Credit system settings as read through the cache.

    Attributes:
        daily_free_listings: Listings per user per day fundable from the pot
        community_pot_balance: Current shared pool balance
    """

    daily_free_listings: int
    community_pot_balance: int


@dataclass(frozen=True)
class UserCreditState:
    """Credit-relevant columns of one profile.

    ``daily_listings_used`` is only meaningful while ``last_listing_date``
    is today; see ``effective_daily_used``.
    """

    user_id: str
    personal_credits: int
    daily_listings_used: int
    last_listing_date: Optional[date]


@dataclass(frozen=True)
class UserDonationTotals:
    """Lifetime donor figures kept on the profile."""

    user_id: str
    total_donated: float = 0.0
    community_listings_donated: int = 0


@dataclass
class EligibilityResult:
    """Outcome of an eligibility check.

    Balances are advisory, for display only; consumption re-reads them.
    """

    can_create: bool
    source: Optional[CreditSource]
    message: str
    reason: Optional[DenyReason] = None
    remaining_daily_listings: Optional[int] = None
    personal_credits: Optional[int] = None
    community_pot_balance: Optional[int] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "can_create": self.can_create,
            "source": self.source.value if self.source else None,
            "reason": self.reason.value if self.reason else None,
            "message": self.message,
            "remaining_daily_listings": self.remaining_daily_listings,
            "personal_credits": self.personal_credits,
            "community_pot_balance": self.community_pot_balance,
        }


@dataclass
class ConsumptionResult:
    """Outcome of a ledger consumption.

    Truthy when the credit was consumed.

    Attributes:
        success: Whether every step completed
        source: The source that was debited (or attempted)
        reason: Error code when unsuccessful
        balance_after: Post-debit balance of the debited source
        partial: True if some writes were applied before a failure
        compensated: True if those writes were rolled back by compensation
        transaction_id: ID of the appended pot transaction, if any
    """

    success: bool
    source: CreditSource
    reason: Optional[str] = None
    balance_after: Optional[int] = None
    partial: bool = False
    compensated: bool = False
    transaction_id: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success


@dataclass(frozen=True)
class DonationSummary:
    """Aggregate of all donation pot transactions."""

    total_amount: int = 0
    count: int = 0
    unique_donors: int = 0


@dataclass(frozen=True)
class CommunityStats:
    """Community pot figures for dashboards."""

    total_balance: int
    total_donations: int
    total_donation_amount: int
    active_donors: int
    total_listings_financed: int
    user_donation_amount: float = 0.0
    user_listings_donated: int = 0


# Transaction metadata, one shape per kind


@dataclass(frozen=True)
class PurchaseMetadata:
    package_type: str
    stripe_session_id: Optional[str] = None
    euro_amount: Optional[float] = None


@dataclass(frozen=True)
class UsageMetadata:
    item_id: Optional[str] = None
    gemini_total_tokens: Optional[int] = None


@dataclass(frozen=True)
class BonusMetadata:
    reason: str = ""
    granted_by: Optional[str] = None


@dataclass(frozen=True)
class RefundMetadata:
    original_transaction_id: Optional[str] = None
    reason: str = ""


@dataclass(frozen=True)
class DonationMetadata:
    euro_amount: float = 0.0
    donation_id: Optional[str] = None


@dataclass(frozen=True)
class AdjustmentMetadata:
    reason: str = ""
    granted_by: Optional[str] = None
    euro_amount: Optional[float] = None
    price_per_unit: Optional[float] = None


TransactionMetadata = Union[
    PurchaseMetadata,
    UsageMetadata,
    BonusMetadata,
    RefundMetadata,
    DonationMetadata,
    AdjustmentMetadata,
]

METADATA_TYPES: dict[CreditTransactionKind, type] = {
    CreditTransactionKind.PURCHASE: PurchaseMetadata,
    CreditTransactionKind.USAGE: UsageMetadata,
    CreditTransactionKind.BONUS: BonusMetadata,
    CreditTransactionKind.REFUND: RefundMetadata,
    CreditTransactionKind.DONATION: DonationMetadata,
    CreditTransactionKind.ADJUSTMENT: AdjustmentMetadata,
}


def parse_transaction_metadata(
    kind: CreditTransactionKind | str, raw: Optional[dict[str, Any]]
) -> TransactionMetadata:
    """Build the metadata variant for ``kind`` from a stored JSON payload.

    Unknown keys are ignored so older rows with extra fields still load.

    Raises:
        ValueError: If ``kind`` is not a known transaction kind
        TypeError: If a required field is missing
    """
    metadata_type = METADATA_TYPES[CreditTransactionKind(kind)]
    known = {f.name for f in fields(metadata_type)}
    return metadata_type(**{k: v for k, v in (raw or {}).items() if k in known})


def metadata_to_dict(metadata: TransactionMetadata) -> dict[str, Any]:
    """Serialize a metadata variant, dropping unset optional fields."""
    return {k: v for k, v in asdict(metadata).items() if v is not None}


@dataclass(frozen=True)
class CreditTransactionRecord:
    """Immutable view of a personal-credit ledger row."""

    id: str
    user_id: str
    amount: int
    kind: CreditTransactionKind
    metadata: TransactionMetadata
    balance_after: int
    created_at: datetime


@dataclass(frozen=True)
class PotTransactionRecord:
    """Immutable view of a community pot ledger row."""

    id: str
    kind: PotTransactionKind
    amount: int
    balance_after: int
    created_at: datetime
    user_id: Optional[str] = None
    item_id: Optional[str] = None
    description: Optional[str] = None
