"""Valuation model - a dated balance fact for an account."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now

VALUATION_KIND_CURRENT_ANCHOR = "current_anchor"


class Valuation(Base):
    """A balance fact used as ground truth by balance-history backfill."""

    __tablename__ = "valuations"
    __table_args__ = (
        UniqueConstraint("account_id", "date", "kind", name="uix_valuation_account_date_kind"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    account_id = Column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date = Column(Date, nullable=False)
    kind = Column(String, nullable=False, default=VALUATION_KIND_CURRENT_ANCHOR)
    amount = Column(Numeric(18, 2), nullable=False)
    cash_balance = Column(Numeric(18, 2), nullable=True)
    currency = Column(String(3), nullable=False)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
    )

    # Relationships
    account = relationship("Account", back_populates="valuations")
