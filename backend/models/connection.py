"""Connection model - one authenticated link to an external data provider."""

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Integer, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now

CONNECTION_STATUS_ACTIVE = "active"
CONNECTION_STATUS_REQUIRES_UPDATE = "requires_update"


class Connection(Base):
    """An external credential/session covering a family of provider accounts.

    ``provider_name`` selects both the client factory and the payload
    profile from the provider registry. ``raw_payload`` holds the last
    account-list snapshot verbatim.
    """

    __tablename__ = "connections"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider_name = Column(String, nullable=False)  # e.g., "brokerage", "crypto"
    name = Column(String, nullable=False)
    status = Column(String, nullable=False, default=CONNECTION_STATUS_ACTIVE)
    credentials = Column(JSON, nullable=True)  # Opaque to the engine
    pending_account_setup = Column(Boolean, nullable=False, default=False)
    sync_start_date = Column(Date, nullable=True)
    last_synced_at = Column(DateTime, nullable=True)
    raw_payload = Column(JSON, nullable=True)
    raw_payload_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
    )

    # Relationships
    provider_accounts = relationship(
        "ProviderAccount",
        back_populates="connection",
        cascade="all, delete-orphan",
        order_by="ProviderAccount.created_at",
    )
    sync_runs = relationship(
        "SyncRun", back_populates="connection", cascade="all, delete-orphan"
    )

    @property
    def requires_update(self) -> bool:
        return self.status == CONNECTION_STATUS_REQUIRES_UPDATE
