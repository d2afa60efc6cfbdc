import json
from typing import Any, Dict, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
from models.account import Account
from routers import rate_limit
from services.payment_provider import RazorpayClient, compute_payment_signature, get_payment_provider
from services.session_token import create_session_token


TEST_KEY_ID = "rzp_test_public_key"
TEST_KEY_SECRET = "rzp_test_shared_secret"


def auth_header(account_id: str, email: Optional[str] = None) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_session_token(account_id, email)['token']}"}


class FakeRazorpay:
    """In-memory Razorpay Orders API served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.create_calls = 0
        self.fetch_calls = 0
        self.create_failures: list = []
        self.fetch_unavailable = False
        self.auth_rejected = False
        self.last_create_payload: Optional[Dict[str, Any]] = None

    def add_order(
        self,
        order_id: str,
        *,
        amount: int,
        currency: str = "INR",
        product: Optional[str] = "proPack",
        account_id: Optional[str] = None,
    ) -> None:
        notes: Dict[str, str] = {"account_id": account_id or "anonymous"}
        if product:
            notes["product"] = product
        self.orders[order_id] = {
            "id": order_id,
            "amount": amount,
            "currency": currency,
            "receipt": f"rcpt_{order_id}",
            "status": "created",
            "notes": notes,
        }

    def sign(self, order_id: str, payment_id: str) -> str:
        return compute_payment_signature(order_id, payment_id, TEST_KEY_SECRET)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.auth_rejected:
            return httpx.Response(401, json={"error": {"description": "Authentication failed"}})

        if request.method == "POST" and request.url.path == "/v1/orders":
            self.create_calls += 1
            if self.create_failures:
                raise self.create_failures.pop(0)(request)
            payload = json.loads(request.content)
            self.last_create_payload = payload
            order_id = f"order_test_{self.create_calls}"
            self.orders[order_id] = {
                "id": order_id,
                "amount": payload["amount"],
                "currency": payload["currency"],
                "receipt": payload["receipt"],
                "status": "created",
                "notes": payload["notes"],
            }
            return httpx.Response(200, json=self.orders[order_id])

        if request.method == "GET" and request.url.path.startswith("/v1/orders/"):
            self.fetch_calls += 1
            if self.fetch_unavailable:
                raise httpx.ConnectError("connection refused", request=request)
            order_id = request.url.path.rsplit("/", 1)[-1]
            order = self.orders.get(order_id)
            if order is None:
                return httpx.Response(400, json={"error": {"description": "The id provided does not exist"}})
            return httpx.Response(200, json=order)

        return httpx.Response(404, json={"error": {"description": "not found"}})

    def client(self, *, key_id: str = TEST_KEY_ID, key_secret: str = TEST_KEY_SECRET) -> RazorpayClient:
        return RazorpayClient(
            key_id=key_id,
            key_secret=key_secret,
            base_url="https://api.razorpay.test/v1",
            timeout_seconds=1.0,
            max_attempts=2,
            transport=httpx.MockTransport(self.handler),
        )


def read_timeout(request: httpx.Request) -> Exception:
    return httpx.ReadTimeout("timed out", request=request)


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest.fixture
def razorpay():
    return FakeRazorpay()


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "credits.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def api_client(session_maker, razorpay):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_provider] = lambda: razorpay.client()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_payment_provider, None)


async def seed_account(maker, account_id: str, credits: int = 0, email: Optional[str] = None) -> None:
    async with maker() as session:
        session.add(Account(id=account_id, email=email, credits=credits))
        await session.commit()


async def balance_of(maker, account_id: str) -> Optional[int]:
    async with maker() as session:
        account = await session.get(Account, account_id)
        return None if account is None else int(account.credits)
