from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from config import settings
from services.session_token import SESSION_TOKEN_TYPE, create_session_token, decode_session_token


def _encode(**overrides):
    now = datetime.now(timezone.utc)
    claims = {
        "sub": "acct-token",
        "type": SESSION_TOKEN_TYPE,
        "iss": settings.JWT_ISSUER,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=1)).timestamp()),
    }
    claims.update(overrides)
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def test_session_token_round_trip_carries_subject_and_email():
    issued = create_session_token("acct-token", "token@example.com")
    payload = decode_session_token(issued["token"])
    assert payload["sub"] == "acct-token"
    assert payload["email"] == "token@example.com"
    assert issued["expires_at"] > int(datetime.now(timezone.utc).timestamp())


def test_expired_token_is_rejected():
    past = int((datetime.now(timezone.utc) - timedelta(minutes=5)).timestamp())
    with pytest.raises(ValueError, match="expired"):
        decode_session_token(_encode(exp=past))


def test_wrong_type_and_issuer_are_rejected():
    with pytest.raises(ValueError):
        decode_session_token(_encode(type="other_session"))
    with pytest.raises(ValueError):
        decode_session_token(_encode(iss="someone-else"))


def test_token_signed_with_other_secret_is_rejected():
    forged = jwt.encode(
        {"sub": "acct-token", "type": SESSION_TOKEN_TYPE, "iss": settings.JWT_ISSUER},
        "a-different-secret-value-entirely",
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(ValueError):
        decode_session_token(forged)
