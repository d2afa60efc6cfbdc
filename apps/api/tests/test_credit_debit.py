import asyncio

import pytest

from conftest import auth_header, balance_of, seed_account
from services.credits import debit_credit
from services.errors import AccountNotFound, Forbidden, InsufficientCredits, Unauthorized


@pytest.mark.asyncio
async def test_ten_sequential_debits_then_insufficient(api_client, session_maker):
    await seed_account(session_maker, "acct-ten", credits=10)
    headers = auth_header("acct-ten")

    for expected_remaining in range(9, -1, -1):
        response = await api_client.post("/credits/deduct", json={"account_id": "acct-ten"}, headers=headers)
        assert response.status_code == 200
        payload = response.json()
        assert payload["success"] is True
        assert payload["credits_remaining"] == expected_remaining

    eleventh = await api_client.post("/credits/deduct", json={"account_id": "acct-ten"}, headers=headers)
    assert eleventh.status_code == 400
    assert eleventh.json()["error"] == "Insufficient credits"
    assert eleventh.json()["code"] == "INSUFFICIENT_CREDITS"
    assert await balance_of(session_maker, "acct-ten") == 0


@pytest.mark.asyncio
async def test_debit_at_zero_leaves_balance_unchanged(api_client, session_maker):
    await seed_account(session_maker, "acct-empty", credits=0)

    response = await api_client.post("/credits/deduct", json={}, headers=auth_header("acct-empty"))
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert await balance_of(session_maker, "acct-empty") == 0


@pytest.mark.asyncio
async def test_debit_for_another_account_is_forbidden(api_client, session_maker):
    await seed_account(session_maker, "acct-owner", credits=5)
    await seed_account(session_maker, "acct-victim", credits=5)

    response = await api_client.post(
        "/credits/deduct",
        json={"account_id": "acct-victim"},
        headers=auth_header("acct-owner"),
    )
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"
    assert await balance_of(session_maker, "acct-owner") == 5
    assert await balance_of(session_maker, "acct-victim") == 5


@pytest.mark.asyncio
async def test_debit_requires_valid_bearer_token(api_client, session_maker):
    await seed_account(session_maker, "acct-anon", credits=2)

    missing = await api_client.post("/credits/deduct", json={"account_id": "acct-anon"})
    assert missing.status_code == 401
    assert missing.json()["code"] == "UNAUTHORIZED"

    garbage = await api_client.post(
        "/credits/deduct",
        json={"account_id": "acct-anon"},
        headers={"Authorization": "Bearer not-a-real-token"},
    )
    assert garbage.status_code == 401
    assert await balance_of(session_maker, "acct-anon") == 2


@pytest.mark.asyncio
async def test_debit_unknown_account_returns_not_found(api_client):
    response = await api_client.post("/credits/deduct", json={}, headers=auth_header("acct-ghost"))
    assert response.status_code == 404
    assert response.json()["code"] == "ACCOUNT_NOT_FOUND"


@pytest.mark.asyncio
async def test_concurrent_debits_on_last_credit_yield_one_success(session_maker):
    await seed_account(session_maker, "acct-race", credits=1)

    async def attempt():
        async with session_maker() as session:
            return await debit_credit(session, auth_user_id="acct-race", account_id="acct-race")

    results = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

    successes = [result for result in results if isinstance(result, dict)]
    failures = [result for result in results if isinstance(result, InsufficientCredits)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert successes[0]["credits_remaining"] == 0
    assert await balance_of(session_maker, "acct-race") == 0


@pytest.mark.asyncio
async def test_debit_service_guards_identity_before_touching_ledger(session_maker):
    await seed_account(session_maker, "acct-guard", credits=1)

    async with session_maker() as session:
        with pytest.raises(Unauthorized):
            await debit_credit(session, auth_user_id=None, account_id="acct-guard")
        with pytest.raises(Forbidden):
            await debit_credit(session, auth_user_id="acct-other", account_id="acct-guard")
        with pytest.raises(AccountNotFound):
            await debit_credit(session, auth_user_id="acct-other")

    assert await balance_of(session_maker, "acct-guard") == 1


@pytest.mark.asyncio
async def test_entitlement_endpoint_reads_ledger_for_authenticated_callers(api_client, session_maker):
    await seed_account(session_maker, "acct-entitled", credits=4)

    anonymous = await api_client.post("/credits/entitlement", json={"anonymous_download_count": 1})
    assert anonymous.status_code == 200
    assert anonymous.json()["allowed"] is False
    assert anonymous.json()["authenticated"] is False

    authed = await api_client.post(
        "/credits/entitlement",
        json={"has_used_introductory_free_export": True},
        headers=auth_header("acct-entitled"),
    )
    assert authed.status_code == 200
    payload = authed.json()
    assert payload["allowed"] is True
    assert payload["remaining"] == 4
    assert payload["bucket"] == "paid_credit"
    assert await balance_of(session_maker, "acct-entitled") == 4


@pytest.mark.asyncio
async def test_accounts_me_provisions_account_once(api_client, session_maker):
    headers = auth_header("acct-new", "new@example.com")

    first = await api_client.get("/accounts/me", headers=headers)
    assert first.status_code == 200
    assert first.json() == {"account_id": "acct-new", "email": "new@example.com", "credits": 0}

    second = await api_client.get("/accounts/me", headers=headers)
    assert second.status_code == 200
    assert second.json()["account_id"] == "acct-new"

    summary = await api_client.get("/credits", headers=headers)
    assert summary.status_code == 200
    assert summary.json()["credits"] == 0
    assert summary.json()["recent_payments"] == []
