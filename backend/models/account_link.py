"""AccountLink model - weak association between provider and canonical accounts."""

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now


class AccountLink(Base):
    """Associates one ProviderAccount with one canonical Account.

    Deleting a link detaches holdings (``account_link_id`` set to NULL);
    it never deletes them.
    """

    __tablename__ = "account_links"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    account_id = Column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    provider_account_id = Column(
        String(36),
        ForeignKey("provider_accounts.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    created_at = Column(DateTime, default=utc_now)

    # Relationships
    account = relationship("Account", back_populates="account_links")
    provider_account = relationship("ProviderAccount", back_populates="account_link")
    holdings = relationship("Holding", back_populates="account_link")
