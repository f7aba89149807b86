"""Sync API endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from api.helpers import get_connection_or_404
from database import get_db
from integrations.exceptions import ProviderAuthError, ProviderError
from schemas import SyncRunResponse, UnlinkResponse, UnlinkResultResponse
from services.sync_service import SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])

SYNC_IN_PROGRESS_DETAIL = "Sync already in progress. Please wait for the current sync to complete."


def get_sync_service() -> SyncService:
    """Get a SyncService instance; tests override this dependency."""
    return SyncService()


@router.post("/connections/{connection_id}", response_model=SyncRunResponse)
def trigger_sync(
    connection_id: str,
    db: Session = Depends(get_db),
    sync_service: SyncService = Depends(get_sync_service),
):
    """Trigger a sync for one provider connection.

    Returns:
        The completed sync run, with its merged statistics.

    Raises:
        HTTPException:
            - 404 Not Found: Unknown connection
            - 409 Conflict: A sync is already running for the connection
            - 502 Bad Gateway: Provider authentication or connection error
            - 500 Internal Server Error: Unexpected sync error
    """
    connection = get_connection_or_404(db, connection_id)

    if sync_service.is_sync_in_progress(db, connection):
        db.commit()
        raise HTTPException(status_code=409, detail=SYNC_IN_PROGRESS_DETAIL)

    try:
        return sync_service.trigger_sync(db, connection)

    except ValueError as e:
        if "already in progress" in str(e).lower():
            raise HTTPException(status_code=409, detail=SYNC_IN_PROGRESS_DETAIL)
        logger.error("Sync could not start for connection %s", connection_id, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred during sync.",
        )

    except ProviderAuthError as e:
        logger.warning("Provider auth error during sync: %s", e)
        raise HTTPException(
            status_code=502,
            detail=(
                f"Provider authentication failed for {e.provider_name}. "
                "Please reconnect and try again."
            ),
        )

    except ProviderError as e:
        logger.warning("Provider error during sync: %s", e)
        raise HTTPException(
            status_code=502,
            detail="A provider error occurred during sync. Check the logs for details.",
        )

    except Exception:
        # Never expose str(e)
        logger.error("Unexpected error during sync", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred during sync.",
        )


@router.get("/connections/{connection_id}/latest", response_model=SyncRunResponse)
def get_latest_sync(
    connection_id: str,
    db: Session = Depends(get_db),
    sync_service: SyncService = Depends(get_sync_service),
):
    """Get the most recent sync run for a connection."""
    connection = get_connection_or_404(db, connection_id)
    sync_run = sync_service.latest_sync(db, connection)
    if sync_run is None:
        raise HTTPException(status_code=404, detail="No sync runs for this connection")
    return sync_run


@router.post("/connections/{connection_id}/unlink", response_model=UnlinkResponse)
def unlink_connection_accounts(
    connection_id: str,
    dry_run: bool = False,
    db: Session = Depends(get_db),
    sync_service: SyncService = Depends(get_sync_service),
):
    """Unlink every provider account on a connection.

    Holdings keep their canonical account and lose only their link.
    With ``dry_run`` the counts are reported and nothing is written.
    """
    connection = get_connection_or_404(db, connection_id)
    try:
        results = sync_service.unlink_all(db, connection, dry_run=dry_run)
    except Exception:
        db.rollback()
        logger.error("Unexpected error unlinking connection %s", connection_id, exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="An unexpected error occurred while unlinking accounts.",
        )
    return UnlinkResponse(
        connection_id=connection.id,
        dry_run=dry_run,
        results=[UnlinkResultResponse.model_validate(r) for r in results],
    )
