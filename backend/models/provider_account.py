"""ProviderAccount model - one upstream account as reported by a provider."""

from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now


class ProviderAccount(Base):
    """An account as seen through a provider's API.

    Owned by exactly one Connection. Linked to at most one canonical
    Account, either through an AccountLink or the legacy ``account_id``
    column. The three raw documents are versioned independently so each
    can be merged without touching the others.
    """

    __tablename__ = "provider_accounts"
    __table_args__ = (
        UniqueConstraint(
            "connection_id", "external_id", name="uix_provider_account_connection_external"
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    connection_id = Column(
        String(36), ForeignKey("connections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    external_id = Column(String, nullable=False)  # Provider's account ID
    name = Column(String, nullable=False)
    currency = Column(String(3), nullable=True)
    current_balance = Column(Numeric(18, 2), nullable=True)
    cash_balance = Column(Numeric(18, 2), nullable=True)
    account_type = Column(String, nullable=True)  # e.g., "investment", "credit", "loan"
    account_status = Column(String, nullable=True)

    # Legacy direct link, predates AccountLink
    account_id = Column(
        String(36), ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )

    raw_payload = Column(JSON, nullable=True)
    raw_payload_version = Column(Integer, nullable=False, default=0)
    raw_transactions_payload = Column(JSON, nullable=True)
    raw_transactions_version = Column(Integer, nullable=False, default=0)
    raw_holdings_payload = Column(JSON, nullable=True)
    raw_holdings_version = Column(Integer, nullable=False, default=0)

    last_transactions_sync = Column(DateTime, nullable=True)
    last_holdings_sync = Column(DateTime, nullable=True)

    zero_balance_runs = Column(Integer, nullable=False, default=0)
    is_inactive = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
    )

    # Relationships
    connection = relationship("Connection", back_populates="provider_accounts")
    account = relationship("Account", foreign_keys=[account_id])
    account_link = relationship(
        "AccountLink", back_populates="provider_account", uselist=False
    )

    @property
    def linked_account(self):
        """The canonical Account this provider account feeds, if any."""
        if self.account_link is not None:
            return self.account_link.account
        return self.account

    @property
    def is_linked(self) -> bool:
        return self.linked_account is not None

    @property
    def reported_cash(self) -> Decimal:
        return Decimal(self.cash_balance) if self.cash_balance is not None else Decimal("0")
