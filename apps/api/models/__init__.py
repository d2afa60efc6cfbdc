"""Models package."""

from .account import Account
from .payment_record import PaymentRecord
