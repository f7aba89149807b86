"""Pydantic schemas for API request/response validation."""

from .sync import SyncRunResponse, UnlinkResponse, UnlinkResultResponse

__all__ = ["SyncRunResponse", "UnlinkResponse", "UnlinkResultResponse"]
