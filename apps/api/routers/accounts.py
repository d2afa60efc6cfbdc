"""
Account router: first-authentication provisioning and profile lookup.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.ledger import ensure_account

router = APIRouter()


class AccountResponse(BaseModel):
    account_id: str
    email: Optional[str] = None
    credits: int


@router.get("/me", response_model=AccountResponse)
async def get_current_account(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Return the caller's account, creating it on first authentication."""
    account = await ensure_account(db, auth.user_id, email=auth.email)
    return AccountResponse(account_id=account.id, email=account.email, credits=int(account.credits))
