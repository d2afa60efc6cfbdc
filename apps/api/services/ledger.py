"""Ledger store: per-account credit balances.

Every balance mutation is a single conditional UPDATE so concurrent requests
are serialized by the database rather than by application code. Callers own
the transaction; nothing here commits except ``ensure_account``.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.account import Account

logger = logging.getLogger(__name__)


async def get_account(db: AsyncSession, account_id: str) -> Optional[Account]:
    result = await db.execute(select(Account).where(Account.id == account_id))
    return result.scalar_one_or_none()


async def get_balance(db: AsyncSession, account_id: str) -> Optional[int]:
    """Return the stored balance, or None when the account does not exist."""
    result = await db.execute(select(Account.credits).where(Account.id == account_id))
    value = result.scalar_one_or_none()
    return int(value) if value is not None else None


async def ensure_account(db: AsyncSession, account_id: str, email: Optional[str] = None) -> Account:
    """Return the account, creating it on first authentication."""
    account = await get_account(db, account_id)
    if account:
        return account

    db.add(Account(id=account_id, email=email))
    try:
        await db.commit()
    except IntegrityError:
        # Created concurrently by another request.
        await db.rollback()
    else:
        logger.info("account_created account=%s", account_id)

    account = await get_account(db, account_id)
    if account is None:
        raise RuntimeError(f"Account {account_id} could not be created")
    return account


async def debit_one(db: AsyncSession, account_id: str) -> Optional[int]:
    """Atomically take one credit. Returns the new balance, or None if nothing was debited."""
    result = await db.execute(
        update(Account)
        .where(Account.id == account_id, Account.credits > 0)
        .values(credits=Account.credits - 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    return await get_balance(db, account_id)


async def credit(db: AsyncSession, account_id: str, credits: int) -> Optional[int]:
    """Atomically add credits. Returns the new balance, or None if the account is missing."""
    grant = int(credits)
    if grant < 0:
        raise ValueError("credits must be non-negative")
    result = await db.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(credits=Account.credits + grant)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    return await get_balance(db, account_id)
