"""Authentication dependencies for API account scoping."""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.errors import Forbidden, Unauthorized
from services.session_token import decode_session_token


auth_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    user_id: str
    email: Optional[str] = None


@dataclass
class OptionalAuthContext:
    """Bearer state for endpoints where authentication is optional."""

    token_presented: bool = False
    user_id: Optional[str] = None
    email: Optional[str] = None


def ensure_user_scope(auth_user_id: str, supplied_account_id: Optional[str]) -> str:
    """Return authenticated account id and reject cross-account attempts."""
    if supplied_account_id and supplied_account_id != auth_user_id:
        logger.warning("Cross-account request rejected: auth=%s requested=%s", auth_user_id, supplied_account_id)
        raise Forbidden()
    return auth_user_id


def _context_from_token(token: str) -> AuthContext:
    try:
        payload = decode_session_token(token)
    except ValueError as exc:
        raise Unauthorized(str(exc)) from exc
    return AuthContext(
        user_id=str(payload.get("sub", "")),
        email=str(payload.get("email", "")) or None,
    )


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Resolve authenticated account from Bearer session token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise Unauthorized("Unauthorized - No session token")
    return _context_from_token(credentials.credentials)


async def get_optional_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> OptionalAuthContext:
    """Resolve Bearer state without requiring one; invalid tokens keep token_presented=True."""
    if not credentials or credentials.scheme.lower() != "bearer":
        return OptionalAuthContext()
    try:
        context = _context_from_token(credentials.credentials)
    except Unauthorized:
        logger.warning("Invalid session token presented on optional-auth endpoint")
        return OptionalAuthContext(token_presented=True)
    return OptionalAuthContext(token_presented=True, user_id=context.user_id, email=context.email)
