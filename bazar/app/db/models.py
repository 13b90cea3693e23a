import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from bazar.app.db.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Profile(Base):
    """A marketplace user with their credit balances and usage counters."""

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("personal_credits >= 0", name="ck_profiles_personal_credits"),
        CheckConstraint("daily_listings_used >= 0", name="ck_profiles_daily_listings_used"),
        Index("idx_profiles_email", "email"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    email: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    full_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    personal_credits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    daily_listings_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Counter above is only valid while this equals today
    last_listing_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    total_donated: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    community_listings_donated: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, personal_credits={self.personal_credits})>"


class CreditSystemSetting(Base):
    """Key/value row of the credit system configuration.

    Known keys: ``daily_free_listings`` and ``community_pot_balance``.
    """

    __tablename__ = "credit_system_settings"

    setting_key: Mapped[str] = mapped_column(String, primary_key=True)
    setting_value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class CreditTransaction(Base):
    """Append-only ledger row for personal-credit balance changes."""

    __tablename__ = "credit_transactions"
    __table_args__ = (
        Index("idx_credit_transactions_user_created", "user_id", "created_at"),
        Index("idx_credit_transactions_type", "transaction_type"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(32), nullable=False)
    # "metadata" is reserved on declarative classes
    details: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class CommunityPotTransaction(Base):
    """Append-only ledger row for community pot balance changes."""

    __tablename__ = "community_pot_transactions"
    __table_args__ = (
        Index("idx_pot_transactions_type_created", "transaction_type", "created_at"),
        Index("idx_pot_transactions_user", "user_id"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=_new_id)
    transaction_type: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    item_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
