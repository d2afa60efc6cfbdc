"""Payments router: pricing, order creation and payment verification."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import (
    AuthContext,
    OptionalAuthContext,
    ensure_user_scope,
    get_auth_context,
    get_optional_auth_context,
)
from routers.rate_limit import rate_limit
from services.orders import create_order
from services.payment_provider import RazorpayClient, get_payment_provider
from services.payment_records import list_for_account, serialize_record
from services.payment_verification import verify_payment
from services.pricing import PRODUCT_PRO_PACK, price_table

router = APIRouter()


class CreateOrderRequest(BaseModel):
    account_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("account_id", "user_id"))
    currency: str = "INR"
    product: str = PRODUCT_PRO_PACK


class VerifyPaymentRequest(BaseModel):
    order_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("order_id", "razorpay_order_id"))
    payment_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("payment_id", "razorpay_payment_id")
    )
    signature: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("signature", "razorpay_signature")
    )
    account_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("account_id", "user_id"))


@router.get("/pricing")
async def pricing(currency: str = Query(default="INR")):
    entries = price_table(currency)
    return {
        "currency": entries[0].currency,
        "products": [
            {
                "product": entry.product,
                "label": entry.label,
                "amount": entry.amount,
                "credits": entry.credits,
            }
            for entry in entries
        ],
    }


@router.get("/create-order")
async def order_service_status(provider: RazorpayClient = Depends(get_payment_provider)):
    """Read-only check that provider credentials are present."""
    configured = provider.configured
    return {
        "status": "configured" if configured else "not_configured",
        "message": "Razorpay is ready" if configured else "Razorpay credentials not set in environment variables",
    }


@router.post("/create-order")
async def create_payment_order(
    request: CreateOrderRequest,
    _rate_limit: None = Depends(rate_limit("payments_create_order", limit=30, window_seconds=3600)),
    auth: OptionalAuthContext = Depends(get_optional_auth_context),
    provider: RazorpayClient = Depends(get_payment_provider),
):
    account_id = request.account_id
    if auth.user_id:
        account_id = ensure_user_scope(auth.user_id, request.account_id)
    return await create_order(
        provider,
        currency=request.currency,
        product=request.product,
        account_id=account_id,
    )


@router.post("/verify")
async def verify_payment_confirmation(
    request: VerifyPaymentRequest,
    _rate_limit: None = Depends(rate_limit("payments_verify", limit=60, window_seconds=3600)),
    auth: OptionalAuthContext = Depends(get_optional_auth_context),
    provider: RazorpayClient = Depends(get_payment_provider),
    db: AsyncSession = Depends(get_db),
):
    return await verify_payment(
        db,
        provider,
        order_id=request.order_id,
        payment_id=request.payment_id,
        signature=request.signature,
        account_id=request.account_id,
        auth_user_id=auth.user_id,
        token_presented=auth.token_presented,
    )


@router.get("")
async def payment_history(
    account_id: Optional[str] = None,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    scoped_account_id = ensure_user_scope(auth.user_id, account_id)
    records = await list_for_account(db, scoped_account_id)
    return {"account_id": scoped_account_id, "payments": [serialize_record(record) for record in records]}
