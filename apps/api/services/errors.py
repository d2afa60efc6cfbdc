"""Closed error taxonomy for the credit and payment services."""

from __future__ import annotations

from typing import Any, Dict, Optional


class BillingError(RuntimeError):
    """Base error carrying a machine-readable code and an HTTP status."""

    code = "UNKNOWN_ERROR"
    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: Optional[str] = None, *, status_code: Optional[int] = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "code": self.code}


# Client input errors


class MissingDetails(BillingError):
    code = "MISSING_DETAILS"
    status_code = 400
    default_message = "Missing payment verification details."


class InvalidProduct(BillingError):
    code = "INVALID_PRODUCT"
    status_code = 400
    default_message = "Unknown product."


class InvalidCurrency(BillingError):
    code = "INVALID_CURRENCY"
    status_code = 400
    default_message = "Unsupported currency."


# Authentication / authorization errors


class Unauthorized(BillingError):
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Unauthorized - missing or invalid session token."


class Forbidden(BillingError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "account_id does not match authenticated session."


class UserMismatch(BillingError):
    code = "USER_MISMATCH"
    status_code = 403
    default_message = "We could not match this payment to your account. Please contact support."


# Resource errors


class InsufficientCredits(BillingError):
    code = "INSUFFICIENT_CREDITS"
    status_code = 400
    default_message = "Insufficient credits"


class AccountNotFound(BillingError):
    code = "ACCOUNT_NOT_FOUND"
    status_code = 404
    default_message = "Account not found."


# Integrity errors


class InvalidSignature(BillingError):
    code = "INVALID_SIGNATURE"
    status_code = 400
    default_message = "Payment verification failed - invalid signature."


class ReplayAttack(BillingError):
    code = "REPLAY_ATTACK"
    status_code = 400
    default_message = (
        "This order has already been paid. If you believe this is an error, please contact support."
    )


class OrderMismatch(BillingError):
    code = "ORDER_MISMATCH"
    status_code = 400
    default_message = "Payment order does not match a known price. Please contact support."


# Persistence errors


class ProfileError(BillingError):
    code = "PROFILE_ERROR"
    status_code = 404
    default_message = "Failed to load the account for this payment."


class CreditUpdateError(BillingError):
    code = "CREDIT_UPDATE_ERROR"
    status_code = 500
    default_message = "Failed to update credits. Please contact support."


# Upstream / provider errors


class ProviderUnavailable(BillingError):
    code = "PROVIDER_UNAVAILABLE"
    status_code = 503
    default_message = "Cannot connect to payment service. Please try again later."


class Misconfigured(BillingError):
    code = "MISCONFIGURED"
    status_code = 500
    default_message = "Payment service not configured."


class RateLimited(BillingError):
    code = "RATE_LIMITED"
    status_code = 429
    default_message = "Too many requests. Try again later."
