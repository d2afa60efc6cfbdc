"""Payment record store: append-only audit of verification attempts."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.payment_record import (
    PAYMENT_STATUS_SUCCESS,
    PaymentRecord,
)


async def find_success_by_payment_id(db: AsyncSession, payment_id: str) -> Optional[PaymentRecord]:
    result = await db.execute(
        select(PaymentRecord)
        .where(PaymentRecord.payment_id == payment_id, PaymentRecord.status == PAYMENT_STATUS_SUCCESS)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_success_by_order_id(db: AsyncSession, order_id: str) -> Optional[PaymentRecord]:
    result = await db.execute(
        select(PaymentRecord)
        .where(PaymentRecord.order_id == order_id, PaymentRecord.status == PAYMENT_STATUS_SUCCESS)
        .limit(1)
    )
    return result.scalar_one_or_none()


def build_record(
    *,
    order_id: str,
    payment_id: str,
    status: str,
    account_id: Optional[str] = None,
    amount: int = 0,
    currency: Optional[str] = None,
    product: Optional[str] = None,
    credits_granted: int = 0,
) -> PaymentRecord:
    return PaymentRecord(
        order_id=order_id,
        payment_id=payment_id,
        account_id=account_id,
        amount=int(amount),
        currency=currency,
        product=product,
        credits_granted=int(credits_granted),
        status=status,
    )


async def insert_record(db: AsyncSession, record: PaymentRecord) -> PaymentRecord:
    """Insert and commit a non-success audit row."""
    db.add(record)
    await db.commit()
    return record


async def claim_success(db: AsyncSession, record: PaymentRecord) -> PaymentRecord:
    """Stage a success row and flush it inside the caller's transaction.

    The partial unique indexes on ``payment_id`` and ``order_id`` make the
    flush the claim: a concurrent winner surfaces here as ``IntegrityError``.
    """
    if record.status != PAYMENT_STATUS_SUCCESS:
        raise ValueError("only success records can claim a payment")
    db.add(record)
    await db.flush()
    return record


async def list_for_account(db: AsyncSession, account_id: str, limit: int = 30) -> List[PaymentRecord]:
    result = await db.execute(
        select(PaymentRecord)
        .where(PaymentRecord.account_id == account_id)
        .order_by(PaymentRecord.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


def serialize_record(record: PaymentRecord) -> dict:
    return {
        "id": record.id,
        "order_id": record.order_id,
        "payment_id": record.payment_id,
        "amount": record.amount,
        "currency": record.currency,
        "product": record.product,
        "credits_granted": record.credits_granted,
        "status": record.status,
        "created_at": record.created_at.isoformat() if record.created_at else None,
    }
