"""Credit debit service and balance summaries."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from services import ledger
from services.entitlement import EntitlementDecision, EntitlementInput, evaluate_entitlement
from services.errors import AccountNotFound, CreditUpdateError, Forbidden, InsufficientCredits, Unauthorized
from services.payment_records import list_for_account, serialize_record

logger = logging.getLogger(__name__)


async def debit_credit(
    db: AsyncSession,
    *,
    auth_user_id: Optional[str],
    account_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Consume exactly one credit from the caller's own account.

    The decrement is a single ``UPDATE ... WHERE credits > 0`` so two
    concurrent debits against a balance of one cannot both succeed.
    """
    if not auth_user_id:
        raise Unauthorized()
    if account_id and account_id != auth_user_id:
        logger.warning("debit_identity_mismatch auth=%s requested=%s", auth_user_id, account_id)
        raise Forbidden()
    target_id = auth_user_id

    try:
        remaining = await ledger.debit_one(db, target_id)
        if remaining is None:
            await db.rollback()
            if await ledger.get_balance(db, target_id) is None:
                raise AccountNotFound()
            raise InsufficientCredits()
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("debit_failed account=%s", target_id)
        raise CreditUpdateError("Failed to deduct credit.") from exc

    logger.info("credit_debited account=%s remaining=%s", target_id, remaining)
    return {"success": True, "credits_remaining": remaining, "deducted": 1}


async def evaluate_for_account(
    db: AsyncSession,
    *,
    account_id: Optional[str],
    has_used_introductory_free_export: bool,
    anonymous_download_count: int,
) -> EntitlementDecision:
    """Run the advisory evaluator with the ledger balance for authenticated callers."""
    paid_credits = 0
    if account_id:
        paid_credits = await ledger.get_balance(db, account_id) or 0
    return evaluate_entitlement(
        EntitlementInput(
            is_authenticated=bool(account_id),
            has_used_introductory_free_export=has_used_introductory_free_export,
            paid_credits=paid_credits,
            anonymous_download_count=anonymous_download_count,
        )
    )


async def get_credit_summary(account_id: str, db: AsyncSession) -> Dict[str, Any]:
    account = await ledger.get_account(db, account_id)
    if account is None:
        raise AccountNotFound()
    records = await list_for_account(db, account_id)
    return {
        "account_id": account.id,
        "credits": int(account.credits),
        "recent_payments": [serialize_record(record) for record in records],
    }
