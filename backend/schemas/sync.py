"""Pydantic schemas for sync runs and unlinking."""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel


class SyncRunResponse(BaseModel):
    """Response schema for a connection's sync run."""

    id: str
    connection_id: str
    status: str
    phase: Optional[str] = None
    status_text: Optional[str] = None
    sync_stats: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    window_start_date: Optional[date] = None
    window_end_date: Optional[date] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UnlinkResultResponse(BaseModel):
    """Outcome of unlinking one provider account."""

    provider_account_id: str
    name: str
    detached_holdings: int
    link_removed: bool
    error: Optional[str] = None

    model_config = {"from_attributes": True}


class UnlinkResponse(BaseModel):
    """Response schema for unlinking every account on a connection."""

    connection_id: str
    dry_run: bool
    results: list[UnlinkResultResponse]
