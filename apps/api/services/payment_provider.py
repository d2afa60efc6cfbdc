"""Razorpay REST client and checkout signature helpers."""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional

import httpx

from config import settings

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Raised for any failed call to the payment provider."""


class ProviderTimeout(ProviderError):
    pass


class ProviderConnectionError(ProviderError):
    pass


class ProviderAuthError(ProviderError):
    pass


class ProviderRequestError(ProviderError):
    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        super().__init__(message)


def compute_payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    """Return the hex HMAC-SHA256 the provider issues over ``order_id|payment_id``."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signature_matches(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    expected = compute_payment_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), str(signature or "").encode("utf-8"))


class RazorpayClient:
    """Minimal async client for the Razorpay Orders API."""

    def __init__(
        self,
        *,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout_seconds: float = 45.0,
        max_attempts: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.key_id = (key_id or "").strip()
        self.key_secret = (key_secret or "").strip()
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = float(timeout_seconds)
        self.max_attempts = max(int(max_attempts), 1)
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.key_id, self.key_secret),
            timeout=httpx.Timeout(self.timeout_seconds),
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, *, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            raise ProviderTimeout(f"Razorpay {method} {path} timed out") from exc
        except httpx.TransportError as exc:
            raise ProviderConnectionError(f"Razorpay {method} {path} failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise ProviderAuthError(f"Razorpay rejected credentials ({response.status_code})")
        if response.status_code >= 500:
            raise ProviderConnectionError(f"Razorpay returned {response.status_code}")
        if response.status_code >= 400:
            raise ProviderRequestError(response.status_code, _error_description(response))
        return response.json()

    async def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: Dict[str, str],
    ) -> Dict[str, Any]:
        """Create an order, retrying only transient failures.

        Retrying is safe because an unpaid order grants nothing.
        """
        payload = {"amount": int(amount), "currency": currency, "receipt": receipt, "notes": notes}
        last_error: Optional[ProviderError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._request("POST", "/orders", json=payload)
            except (ProviderTimeout, ProviderConnectionError) as exc:
                last_error = exc
                logger.warning(
                    "Razorpay order create attempt %s/%s failed: %s", attempt, self.max_attempts, exc
                )
        raise last_error

    async def fetch_order(self, order_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/orders/{order_id}")


def _error_description(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"Razorpay returned {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return str(error["description"])
    return f"Razorpay returned {response.status_code}"


def get_payment_provider() -> RazorpayClient:
    """FastAPI dependency returning a client built from settings."""
    return RazorpayClient(
        key_id=settings.RAZORPAY_KEY_ID,
        key_secret=settings.RAZORPAY_KEY_SECRET,
        base_url=settings.RAZORPAY_API_BASE,
        timeout_seconds=settings.PAYMENT_PROVIDER_TIMEOUT_SECONDS,
        max_attempts=settings.ORDER_CREATE_MAX_ATTEMPTS,
    )
