"""Payment verification: exactly-once credit grants from signed confirmations.

Order of checks per request:

1. identity binding (bearer subject must equal the claimed account)
2. duplicate by payment id (the owning session gets its current total back)
3. replay by order id (a second payment claimed against a paid order)
4. HMAC signature over ``order_id|payment_id``
5. claim the payment and credit the ledger in one transaction

Steps 2 and 3 are fast paths. The guarantee itself comes from step 5: the
success row is flushed first, and the partial unique indexes on
``payment_id``/``order_id`` let exactly one concurrent request win.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.payment_record import (
    PAYMENT_STATUS_REPLAY_REJECTED,
    PAYMENT_STATUS_SIGNATURE_FAILED,
    PAYMENT_STATUS_SUCCESS,
    PaymentRecord,
)
from services import ledger
from services.errors import (
    BillingError,
    CreditUpdateError,
    InvalidSignature,
    Misconfigured,
    MissingDetails,
    OrderMismatch,
    ProfileError,
    ProviderUnavailable,
    ReplayAttack,
    UserMismatch,
)
from services.orders import ANONYMOUS_ACCOUNT_NOTE
from services.payment_provider import (
    ProviderAuthError,
    ProviderConnectionError,
    ProviderRequestError,
    ProviderTimeout,
    RazorpayClient,
    signature_matches,
)
from services.payment_records import (
    build_record,
    claim_success,
    find_success_by_order_id,
    find_success_by_payment_id,
    insert_record,
)
from services.pricing import PriceEntry, get_price, price_table

logger = logging.getLogger(__name__)


async def verify_payment(
    db: AsyncSession,
    provider: RazorpayClient,
    *,
    order_id: Optional[str],
    payment_id: Optional[str],
    signature: Optional[str],
    account_id: Optional[str] = None,
    auth_user_id: Optional[str] = None,
    token_presented: bool = False,
) -> Dict[str, Any]:
    order_id = (order_id or "").strip()
    payment_id = (payment_id or "").strip()
    signature = (signature or "").strip()
    account_id = (account_id or "").strip() or None

    if not order_id or not payment_id or not signature:
        raise MissingDetails()

    if account_id and token_presented and auth_user_id != account_id:
        logger.error(
            "User ID mismatch in payment verification: claimed=%s actual=%s payment=%s",
            account_id,
            auth_user_id,
            payment_id,
        )
        raise UserMismatch()

    if not provider.configured:
        logger.error("Razorpay secret not configured")
        raise Misconfigured("Payment verification not configured.")

    existing = await find_success_by_payment_id(db, payment_id)
    if existing is not None:
        return await _duplicate_response(db, existing, auth_user_id=auth_user_id, order_id=order_id)

    paid = await find_success_by_order_id(db, order_id)
    if paid is not None:
        await _reject_replay(db, paid, order_id=order_id, payment_id=payment_id, account_id=account_id)

    if not signature_matches(order_id, payment_id, signature, provider.key_secret):
        logger.warning("Invalid payment signature for payment=%s order=%s", payment_id, order_id)
        await insert_record(
            db,
            build_record(
                order_id=order_id,
                payment_id=payment_id,
                account_id=await _existing_account_id(db, account_id),
                status=PAYMENT_STATUS_SIGNATURE_FAILED,
            ),
        )
        raise InvalidSignature()

    price, order_account_id = await _resolve_order(provider, order_id)
    if account_id and order_account_id and account_id != order_account_id:
        logger.error(
            "Order account mismatch: order=%s bound=%s claimed=%s", order_id, order_account_id, account_id
        )
        raise UserMismatch()
    # An anonymous order verified by a signed-in caller lands on the caller's ledger.
    target_account_id = account_id or order_account_id or auth_user_id

    if target_account_id:
        if auth_user_id and auth_user_id == target_account_id:
            await ledger.ensure_account(db, target_account_id)
        elif await ledger.get_balance(db, target_account_id) is None:
            logger.error("Verified payment %s references unknown account %s", payment_id, target_account_id)
            raise ProfileError()

    return await _claim_and_credit(
        db,
        order_id=order_id,
        payment_id=payment_id,
        account_id=target_account_id,
        price=price,
        auth_user_id=auth_user_id,
    )


async def _claim_and_credit(
    db: AsyncSession,
    *,
    order_id: str,
    payment_id: str,
    account_id: Optional[str],
    price: PriceEntry,
    auth_user_id: Optional[str] = None,
) -> Dict[str, Any]:
    record = build_record(
        order_id=order_id,
        payment_id=payment_id,
        account_id=account_id,
        amount=price.amount,
        currency=price.currency,
        product=price.product,
        credits_granted=price.credits,
        status=PAYMENT_STATUS_SUCCESS,
    )
    try:
        await claim_success(db, record)
    except IntegrityError:
        await db.rollback()
        return await _resolve_claim_conflict(
            db, order_id=order_id, payment_id=payment_id, account_id=account_id, auth_user_id=auth_user_id
        )

    total_credits = price.credits
    try:
        if account_id:
            new_total = await ledger.credit(db, account_id, price.credits)
            if new_total is None:
                await db.rollback()
                raise ProfileError()
            total_credits = new_total
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return await _resolve_claim_conflict(
            db, order_id=order_id, payment_id=payment_id, account_id=account_id, auth_user_id=auth_user_id
        )
    except SQLAlchemyError as exc:
        await db.rollback()
        # Claim and credit share the transaction, so neither persisted.
        logger.exception(
            "Credit commit failed for payment=%s order=%s account=%s; nothing persisted",
            payment_id,
            order_id,
            account_id,
        )
        raise CreditUpdateError() from exc

    logger.info(
        "payment_verified payment=%s order=%s account=%s credits=%s total=%s",
        payment_id,
        order_id,
        account_id,
        price.credits,
        total_credits,
    )
    return {
        "success": True,
        "verified": True,
        "duplicate": False,
        "credits_granted": price.credits,
        "total_credits": total_credits,
        "payment_id": payment_id,
        "order_id": order_id,
        "message": f"Payment successful! {price.credits} credits added. Total: {total_credits}",
        "code": "SUCCESS",
    }


async def _resolve_claim_conflict(
    db: AsyncSession,
    *,
    order_id: str,
    payment_id: str,
    account_id: Optional[str],
    auth_user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """A concurrent request claimed first; report what it recorded."""
    existing = await find_success_by_payment_id(db, payment_id)
    if existing is not None:
        return await _duplicate_response(db, existing, auth_user_id=auth_user_id, order_id=order_id)
    paid = await find_success_by_order_id(db, order_id)
    if paid is not None:
        await _reject_replay(db, paid, order_id=order_id, payment_id=payment_id, account_id=account_id)
    logger.error("Payment claim conflict without a winning record: payment=%s order=%s", payment_id, order_id)
    raise CreditUpdateError()


async def _duplicate_response(
    db: AsyncSession,
    existing: PaymentRecord,
    *,
    auth_user_id: Optional[str],
    order_id: str,
) -> Dict[str, Any]:
    logger.info("Duplicate verification (payment_id): %s", existing.payment_id)
    # The live balance is only reported back to the session that owns it.
    if existing.account_id is None:
        total_credits = int(existing.credits_granted or 0)
    elif auth_user_id and auth_user_id == existing.account_id:
        total_credits = await ledger.get_balance(db, existing.account_id) or 0
    else:
        total_credits = 0
    return {
        "success": True,
        "verified": True,
        "duplicate": True,
        "credits_granted": 0,
        "total_credits": total_credits,
        "payment_id": existing.payment_id,
        "order_id": order_id,
        "message": "Payment already verified. No additional credits added.",
        "code": "ALREADY_VERIFIED",
    }


async def _reject_replay(
    db: AsyncSession,
    paid: PaymentRecord,
    *,
    order_id: str,
    payment_id: str,
    account_id: Optional[str],
) -> None:
    logger.error(
        "Replay attack detected - order already paid: order=%s existing_payment=%s new_payment=%s",
        order_id,
        paid.payment_id,
        payment_id,
    )
    await insert_record(
        db,
        build_record(
            order_id=order_id,
            payment_id=payment_id,
            account_id=await _existing_account_id(db, account_id),
            status=PAYMENT_STATUS_REPLAY_REJECTED,
        ),
    )
    raise ReplayAttack()


async def _existing_account_id(db: AsyncSession, account_id: Optional[str]) -> Optional[str]:
    # Audit rows keep the foreign key valid for unknown claimed accounts.
    if account_id and await ledger.get_balance(db, account_id) is not None:
        return account_id
    return None


async def _resolve_order(provider: RazorpayClient, order_id: str) -> Tuple[PriceEntry, Optional[str]]:
    """Fetch the provider order and map it onto the server price table."""
    try:
        order = await provider.fetch_order(order_id)
    except ProviderTimeout as exc:
        raise ProviderUnavailable(
            "Payment service is slow. Please try again in a moment.", status_code=504
        ) from exc
    except ProviderConnectionError as exc:
        raise ProviderUnavailable() from exc
    except ProviderAuthError as exc:
        logger.error("Razorpay authentication failed during order lookup: %s", exc)
        raise Misconfigured("Payment authentication failed. Please contact support.") from exc
    except ProviderRequestError as exc:
        logger.error("Razorpay order %s lookup rejected (%s): %s", order_id, exc.status_code, exc)
        raise OrderMismatch() from exc

    notes = order.get("notes")
    if not isinstance(notes, dict):
        notes = {}
    amount = int(order.get("amount") or 0)

    try:
        if notes.get("product"):
            price = get_price(order.get("currency"), notes.get("product"))
        else:
            price = _price_for_amount(order.get("currency"), amount)
    except BillingError as exc:
        logger.error("Order %s does not map to a price entry: %s", order_id, exc)
        raise OrderMismatch() from exc

    if amount != price.amount:
        logger.error(
            "Order %s amount %s does not match %s %s price %s",
            order_id,
            amount,
            price.currency,
            price.product,
            price.amount,
        )
        raise OrderMismatch()

    order_account_id = str(notes.get("account_id") or "").strip()
    if order_account_id in ("", ANONYMOUS_ACCOUNT_NOTE):
        order_account_id = None
    return price, order_account_id


def _price_for_amount(currency: Optional[str], amount: int) -> PriceEntry:
    for entry in price_table(currency):
        if entry.amount == amount:
            return entry
    raise OrderMismatch()
