"""Holding model - a dated position for an account."""

from decimal import Decimal

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now

COST_BASIS_SOURCE_PROVIDER = "provider"
COST_BASIS_SOURCE_MANUAL = "manual"


class Holding(Base):
    """A position record (account, security, date, currency).

    ``cost_basis_source == "manual"`` marks a user-entered cost basis that
    provider data must never overwrite.
    """

    __tablename__ = "holdings"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "security_id", "date", "currency",
            name="uix_holding_account_security_date_currency",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    account_id = Column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    security_id = Column(
        String(36), ForeignKey("securities.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    account_link_id = Column(
        String(36), ForeignKey("account_links.id", ondelete="SET NULL"), nullable=True, index=True
    )
    date = Column(Date, nullable=False)
    currency = Column(String(3), nullable=False)
    quantity = Column(Numeric(18, 8), nullable=False, default=Decimal("0"))
    price = Column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    amount = Column(Numeric(18, 2), nullable=False, default=Decimal("0"))
    cost_basis = Column(Numeric(18, 4), nullable=True)  # Per-unit
    cost_basis_source = Column(String, nullable=True)
    external_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
    )

    # Relationships
    account = relationship("Account", back_populates="holdings")
    security = relationship("Security", back_populates="holdings")
    account_link = relationship("AccountLink", back_populates="holdings")
