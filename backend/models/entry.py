"""Entry model - a ledger row, either a securities Trade or a cash Transaction."""

from decimal import Decimal

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now

ENTRYABLE_TRADE = "trade"
ENTRYABLE_TRANSACTION = "transaction"


class Entry(Base):
    """An amount-signed ledger entry on a canonical account.

    Provider-sourced entries carry an ``external_id`` that is unique per
    (account, source), which makes re-imports idempotent. Each entry owns
    exactly one Trade or one Transaction.
    """

    __tablename__ = "entries"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "source", "external_id",
            name="uix_entry_account_source_external",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    account_id = Column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date = Column(Date, nullable=False)
    name = Column(String, nullable=False)
    amount = Column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    currency = Column(String(3), nullable=False)
    entryable_type = Column(String, nullable=False)  # "trade" | "transaction"
    external_id = Column(String, nullable=True)
    source = Column(String, nullable=True)  # Provider name for provider-sourced rows
    activity_label = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utc_now)

    # Relationships
    account = relationship("Account", back_populates="entries")
    trade = relationship(
        "Trade", back_populates="entry", uselist=False, cascade="all, delete-orphan"
    )
    transaction = relationship(
        "Transaction", back_populates="entry", uselist=False, cascade="all, delete-orphan"
    )


class Trade(Base):
    """Securities movement owned by an Entry. Sell-side quantities are negative."""

    __tablename__ = "trades"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    entry_id = Column(
        String(36), ForeignKey("entries.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    security_id = Column(
        String(36), ForeignKey("securities.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    quantity = Column(Numeric(18, 8), nullable=False)
    price = Column(Numeric(18, 4), nullable=False, default=Decimal("0"))
    currency = Column(String(3), nullable=False)

    # Relationships
    entry = relationship("Entry", back_populates="trade")
    security = relationship("Security")


class Transaction(Base):
    """Cash movement owned by an Entry."""

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    entry_id = Column(
        String(36), ForeignKey("entries.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    kind = Column(String, nullable=False, default="standard")

    # Relationships
    entry = relationship("Entry", back_populates="transaction")
