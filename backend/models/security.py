"""Security model - master instrument list."""

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now


class Security(Base):
    """A financial instrument keyed by ticker.

    Crypto assets are stored under a ``CRYPTO:`` prefix so they never
    collide with an exchange-listed ticker. ``offline`` marks securities
    created without a successful resolver lookup.
    """

    __tablename__ = "securities"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    ticker = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=True)  # Company/fund name
    exchange_mic = Column(String, nullable=True)
    country_code = Column(String(2), nullable=True)
    offline = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
    )

    # Relationships
    holdings = relationship("Holding", back_populates="security")
