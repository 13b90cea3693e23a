"""Append-only transaction CRUD operations."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bazar.app.db.models import CommunityPotTransaction, CreditTransaction


async def create_credit_transaction(
    session: AsyncSession,
    user_id: str,
    amount: int,
    transaction_type: str,
    balance_after: int,
    details: Optional[dict[str, Any]] = None,
    auto_commit: bool = True,
) -> CreditTransaction:
    """Append a personal-credit ledger row."""
    row = CreditTransaction(
        user_id=user_id,
        amount=amount,
        transaction_type=transaction_type,
        details=details or {},
        balance_after=balance_after,
    )
    session.add(row)
    if auto_commit:
        await session.commit()
        await session.refresh(row)
    return row


async def create_pot_transaction(
    session: AsyncSession,
    transaction_type: str,
    amount: int,
    balance_after: int,
    user_id: Optional[str] = None,
    item_id: Optional[str] = None,
    description: Optional[str] = None,
    auto_commit: bool = True,
) -> CommunityPotTransaction:
    """Append a community pot ledger row."""
    row = CommunityPotTransaction(
        transaction_type=transaction_type,
        user_id=user_id,
        amount=amount,
        balance_after=balance_after,
        item_id=item_id,
        description=description,
    )
    session.add(row)
    if auto_commit:
        await session.commit()
        await session.refresh(row)
    return row


async def list_credit_transactions(
    session: AsyncSession,
    user_id: Optional[str] = None,
    transaction_type: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> list[CreditTransaction]:
    """List personal-credit ledger rows, newest first."""
    query = select(CreditTransaction)
    if user_id is not None:
        query = query.where(CreditTransaction.user_id == user_id)
    if transaction_type is not None:
        query = query.where(CreditTransaction.transaction_type == transaction_type)
    if since is not None:
        query = query.where(CreditTransaction.created_at >= since)
    if until is not None:
        query = query.where(CreditTransaction.created_at < until)
    query = query.order_by(CreditTransaction.created_at.desc())
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())


async def list_pot_transactions(
    session: AsyncSession,
    transaction_type: Optional[str] = None,
    user_id: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> list[CommunityPotTransaction]:
    """List community pot ledger rows, newest first."""
    query = select(CommunityPotTransaction)
    if transaction_type is not None:
        query = query.where(CommunityPotTransaction.transaction_type == transaction_type)
    if user_id is not None:
        query = query.where(CommunityPotTransaction.user_id == user_id)
    if since is not None:
        query = query.where(CommunityPotTransaction.created_at >= since)
    if until is not None:
        query = query.where(CommunityPotTransaction.created_at < until)
    query = query.order_by(CommunityPotTransaction.created_at.desc())
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    return list(result.scalars().all())
