"""Server-side price table for credit packs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from services.errors import InvalidCurrency, InvalidProduct


PRODUCT_PRO_PACK = "proPack"
PRODUCT_BUSINESS = "business"

SUPPORTED_CURRENCIES = ("INR", "USD")

PRODUCT_CREDITS: Dict[str, int] = {
    PRODUCT_PRO_PACK: 10,
    PRODUCT_BUSINESS: 50,
}

PRODUCT_LABELS: Dict[str, str] = {
    PRODUCT_PRO_PACK: "Pro Pack - 10 Exports",
    PRODUCT_BUSINESS: "Business - 50 Exports",
}

# Amounts in the smallest currency unit (paise / cents).
_AMOUNTS: Dict[Tuple[str, str], int] = {
    ("INR", PRODUCT_PRO_PACK): 19900,
    ("INR", PRODUCT_BUSINESS): 99900,
    ("USD", PRODUCT_PRO_PACK): 299,
    ("USD", PRODUCT_BUSINESS): 1299,
}


@dataclass(frozen=True)
class PriceEntry:
    currency: str
    product: str
    amount: int
    credits: int
    label: str


def normalize_currency(value: Optional[str]) -> str:
    currency = str(value or "").strip().upper()
    if currency not in SUPPORTED_CURRENCIES:
        raise InvalidCurrency(f"Unsupported currency: {value!r}.")
    return currency


def normalize_product(value: Optional[str]) -> str:
    token = str(value or "").strip()
    for product in PRODUCT_CREDITS:
        if token.lower() == product.lower():
            return product
    raise InvalidProduct(f"Unknown product: {value!r}.")


def get_price(currency: Optional[str], product: Optional[str]) -> PriceEntry:
    """Return the fixed price entry for a currency/product pair."""
    resolved_currency = normalize_currency(currency)
    resolved_product = normalize_product(product)
    return PriceEntry(
        currency=resolved_currency,
        product=resolved_product,
        amount=_AMOUNTS[(resolved_currency, resolved_product)],
        credits=PRODUCT_CREDITS[resolved_product],
        label=PRODUCT_LABELS[resolved_product],
    )


def price_table(currency: Optional[str]) -> List[PriceEntry]:
    resolved_currency = normalize_currency(currency)
    return [get_price(resolved_currency, product) for product in PRODUCT_CREDITS]
