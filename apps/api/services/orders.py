"""Order creation against the payment provider."""

from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Dict, Optional

from services.errors import Misconfigured, ProviderUnavailable
from services.payment_provider import (
    ProviderAuthError,
    ProviderConnectionError,
    ProviderRequestError,
    ProviderTimeout,
    RazorpayClient,
)
from services.pricing import get_price

logger = logging.getLogger(__name__)

ANONYMOUS_ACCOUNT_NOTE = "anonymous"


def generate_receipt_id() -> str:
    return f"rcpt_{secrets.token_hex(8)}_{int(time.time() * 1000)}"


async def create_order(
    provider: RazorpayClient,
    *,
    currency: Optional[str],
    product: Optional[str],
    account_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Open a provider order priced from the server-side table."""
    price = get_price(currency, product)

    if not provider.configured:
        logger.error("Razorpay credentials not configured")
        raise Misconfigured()

    notes = {
        "credits": str(price.credits),
        "account_id": account_id or ANONYMOUS_ACCOUNT_NOTE,
        "product": price.product,
    }
    try:
        order = await provider.create_order(
            amount=price.amount,
            currency=price.currency,
            receipt=generate_receipt_id(),
            notes=notes,
        )
    except ProviderTimeout as exc:
        raise ProviderUnavailable(
            "Payment service is slow. Please try again in a moment.", status_code=504
        ) from exc
    except ProviderConnectionError as exc:
        raise ProviderUnavailable() from exc
    except ProviderAuthError as exc:
        logger.error("Razorpay authentication failed: %s", exc)
        raise Misconfigured("Payment authentication failed. Please contact support.") from exc
    except ProviderRequestError as exc:
        logger.error("Razorpay rejected order request (%s): %s", exc.status_code, exc)
        raise Misconfigured("Failed to create payment order.") from exc

    order_id = str(order.get("id") or "")
    if not order_id:
        raise ProviderUnavailable("Failed to create payment order.")

    logger.info(
        "order_created order=%s account=%s product=%s amount=%s %s",
        order_id,
        notes["account_id"],
        price.product,
        price.amount,
        price.currency,
    )
    return {
        "success": True,
        "order_id": order_id,
        "amount": int(order.get("amount") or price.amount),
        "currency": str(order.get("currency") or price.currency),
        "receipt": order.get("receipt"),
        "product": price.product,
        "credits": price.credits,
        "key_id": provider.key_id,
    }
