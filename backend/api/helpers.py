"""Shared API helpers for route handlers."""

from typing import TypeVar

from fastapi import HTTPException
from sqlalchemy.orm import Session

from database import Base
from models import Connection

T = TypeVar("T", bound=Base)


def get_or_404(db: Session, model: type[T], entity_id: str, detail: str = "Not found") -> T:
    """Load ``model`` by primary key, raising 404 with ``detail`` if absent."""
    entity = db.get(model, entity_id)
    if entity is None:
        raise HTTPException(status_code=404, detail=detail)
    return entity


def get_connection_or_404(db: Session, connection_id: str) -> Connection:
    return get_or_404(db, Connection, connection_id, "Connection not found")
