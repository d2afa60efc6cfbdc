"""Account model holding the authoritative credit balance."""

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from config import settings
from database import Base


class Account(Base):
    """Principal that can hold export credits."""

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_accounts_credits_non_negative"),
    )

    id = Column(String, primary_key=True)
    email = Column(String, nullable=True, index=True)
    credits = Column(Integer, nullable=False, default=lambda: max(int(settings.DEFAULT_ACCOUNT_CREDITS), 0))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    payments = relationship("PaymentRecord", back_populates="account")
