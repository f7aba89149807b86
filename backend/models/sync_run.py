"""SyncRun model - one execution record per connection sync attempt."""

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now

SYNC_STATUS_PENDING = "pending"
SYNC_STATUS_SYNCING = "syncing"
SYNC_STATUS_COMPLETED = "completed"
SYNC_STATUS_FAILED = "failed"


class SyncRun(Base):
    """A sync attempt for one Connection.

    ``status_text`` and ``sync_stats`` are the only progress signal a UI
    polls. ``sync_stats`` is merged across phases, never replaced.
    """

    __tablename__ = "sync_runs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    connection_id = Column(
        String(36), ForeignKey("connections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String, nullable=False, default=SYNC_STATUS_PENDING)
    phase = Column(String, nullable=True)
    status_text = Column(String, nullable=True)
    sync_stats = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)
    window_start_date = Column(Date, nullable=True)
    window_end_date = Column(Date, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now)

    # Relationships
    connection = relationship("Connection", back_populates="sync_runs")

    @property
    def is_active(self) -> bool:
        return self.status in (SYNC_STATUS_PENDING, SYNC_STATUS_SYNCING)
