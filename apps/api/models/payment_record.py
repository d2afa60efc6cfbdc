"""PaymentRecord model for verification audit and idempotence."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


PAYMENT_STATUS_SUCCESS = "success"
PAYMENT_STATUS_SIGNATURE_FAILED = "signature_failed"
PAYMENT_STATUS_REPLAY_REJECTED = "replay_rejected"

_SUCCESS_ONLY = text("status = 'success'")


class PaymentRecord(Base):
    """Immutable record of one verification attempt."""

    __tablename__ = "payment_records"
    __table_args__ = (
        # At most one successful row per payment and per order.
        Index(
            "uq_payment_records_success_payment_id",
            "payment_id",
            unique=True,
            postgresql_where=_SUCCESS_ONLY,
            sqlite_where=_SUCCESS_ONLY,
        ),
        Index(
            "uq_payment_records_success_order_id",
            "order_id",
            unique=True,
            postgresql_where=_SUCCESS_ONLY,
            sqlite_where=_SUCCESS_ONLY,
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String, nullable=False, index=True)
    payment_id = Column(String, nullable=False, index=True)
    account_id = Column(String, ForeignKey("accounts.id"), nullable=True, index=True)
    amount = Column(Integer, nullable=False, default=0)
    currency = Column(String, nullable=True)
    product = Column(String, nullable=True)
    credits_granted = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    account = relationship("Account", back_populates="payments")
