"""Credits router: balance, advisory entitlement and the authoritative debit."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
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
from services.credits import debit_credit, evaluate_for_account, get_credit_summary

router = APIRouter()


class DeductCreditRequest(BaseModel):
    account_id: Optional[str] = None


class EntitlementRequest(BaseModel):
    has_used_introductory_free_export: bool = False
    anonymous_download_count: int = Field(default=0, ge=0)


@router.get("")
async def credits_summary(
    account_id: Optional[str] = None,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    scoped_account_id = ensure_user_scope(auth.user_id, account_id)
    return await get_credit_summary(scoped_account_id, db)


@router.post("/entitlement")
async def check_entitlement(
    request: EntitlementRequest,
    auth: OptionalAuthContext = Depends(get_optional_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Advisory check; the debit endpoint re-checks authoritatively."""
    decision = await evaluate_for_account(
        db,
        account_id=auth.user_id,
        has_used_introductory_free_export=request.has_used_introductory_free_export,
        anonymous_download_count=request.anonymous_download_count,
    )
    return {
        "allowed": decision.allowed,
        "remaining": decision.remaining,
        "bucket": decision.bucket,
        "authenticated": bool(auth.user_id),
    }


@router.post("/deduct")
async def deduct_credit(
    request: DeductCreditRequest,
    _rate_limit: None = Depends(rate_limit("credits_deduct", limit=120, window_seconds=3600)),
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await debit_credit(db, auth_user_id=auth.user_id, account_id=request.account_id)
