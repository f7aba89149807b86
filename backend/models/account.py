"""Account model - the canonical, user-facing account."""

from decimal import Decimal

from sqlalchemy import Boolean, Column, DateTime, Numeric, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now


class Account(Base):
    """The application's own representation of a financial account.

    The sync engine only reads and writes balance, cash balance and
    currency, and appends entries, holdings and valuations.
    """

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    balance = Column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    cash_balance = Column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    account_type = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
    )

    # Relationships
    account_links = relationship("AccountLink", back_populates="account")
    entries = relationship("Entry", back_populates="account")
    holdings = relationship("Holding", back_populates="account")
    valuations = relationship("Valuation", back_populates="account")
