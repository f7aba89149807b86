"""Sync service - owns SyncRun records and wires a Syncer per connection."""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from config import settings
from integrations.parsing_utils import ensure_utc
from integrations.provider_registry import ProviderRegistry, get_provider_registry
from integrations.security_resolver import SecurityResolver, YahooSecurityResolver
from models import Connection, SyncRun
from models.sync_run import SYNC_STATUS_FAILED, SYNC_STATUS_PENDING, SYNC_STATUS_SYNCING
from services.account_linker import AccountLinker, UnlinkResult
from services.background_work import RQWorkQueue, WorkQueue
from services.importer import Importer
from services.inactivity import InactivityTracker
from services.security_service import SecurityService
from services.sync_stats import SyncStatsCollector
from services.syncer import AccountProcessor, Syncer

logger = logging.getLogger(__name__)

STALE_SYNC_MESSAGE = "Sync did not finish and was marked stale"


class SyncService:
    """Service for syncing one provider connection at a time.

    A connection runs at most one sync at once. The guard lives in the
    database (an active SyncRun) rather than in process memory, so it holds
    across workers; runs older than ``SYNC_STALE_AFTER_MINUTES`` are treated
    as abandoned.
    """

    def __init__(
        self,
        provider_registry: Optional[ProviderRegistry] = None,
        security_resolver: Optional[SecurityResolver] = None,
        work_queue: Optional[WorkQueue] = None,
    ):
        """Initialize with optional collaborators for dependency injection.

        Args:
            provider_registry: Registry of configured providers. If None,
                              the default registry is created on first use.
            security_resolver: Instrument lookup. Defaults to Yahoo Finance.
            work_queue: Background work sink. Defaults to the rq queue.
        """
        self._registry = provider_registry
        self._security_resolver = security_resolver
        self._work_queue = work_queue
        self.linker = AccountLinker()

    @property
    def registry(self) -> ProviderRegistry:
        """Get the provider registry, creating default if not provided."""
        if self._registry is None:
            self._registry = get_provider_registry()
        return self._registry

    @property
    def security_resolver(self) -> SecurityResolver:
        if self._security_resolver is None:
            self._security_resolver = YahooSecurityResolver()
        return self._security_resolver

    @property
    def work_queue(self) -> WorkQueue:
        if self._work_queue is None:
            self._work_queue = RQWorkQueue()
        return self._work_queue

    def is_sync_in_progress(self, db: Session, connection: Connection) -> bool:
        """Check whether a fresh sync is running for the connection.

        Active runs past the stale cutoff are marked failed as a side effect.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=settings.SYNC_STALE_AFTER_MINUTES)
        active_runs = (
            db.query(SyncRun)
            .filter(
                SyncRun.connection_id == connection.id,
                SyncRun.status.in_([SYNC_STATUS_PENDING, SYNC_STATUS_SYNCING]),
            )
            .all()
        )
        in_progress = False
        for run in active_runs:
            started = run.started_at or run.created_at
            if started is not None and ensure_utc(started) < cutoff:
                logger.warning("Marking stale sync %s for connection %s as failed", run.id, connection.id)
                run.status = SYNC_STATUS_FAILED
                run.error_message = STALE_SYNC_MESSAGE
                run.completed_at = datetime.now(timezone.utc)
            else:
                in_progress = True
        db.flush()
        return in_progress

    def latest_sync(self, db: Session, connection: Connection) -> Optional[SyncRun]:
        return (
            db.query(SyncRun)
            .filter(SyncRun.connection_id == connection.id)
            .order_by(SyncRun.created_at.desc())
            .first()
        )

    def build_syncer(self, connection: Connection, stats: SyncStatsCollector) -> Syncer:
        """Wire a Syncer for the connection's provider.

        Raises:
            ValueError: If the provider is not registered or its client
                cannot be built from the connection's credentials.
        """
        profile = self.registry.get_profile(connection.provider_name)
        client = self.registry.build_client(connection)
        importer = Importer(
            client,
            profile,
            stats=stats,
            linker=self.linker,
            inactivity=InactivityTracker(stats),
        )
        processor = AccountProcessor(profile, SecurityService(self.security_resolver))
        return Syncer(
            importer,
            processor,
            linker=self.linker,
            work_queue=self.work_queue,
            stats=stats,
            checkpoint=lambda session: session.commit(),
        )

    def trigger_sync(self, db: Session, connection: Connection) -> SyncRun:
        """Run a full sync for ``connection`` and return its SyncRun.

        The run is committed at every phase boundary. On failure the run is
        committed as failed, with the stats gathered so far, before the
        error propagates.

        Raises:
            ValueError: If a sync is already in progress for the connection,
                or the provider is not configured.
            ProviderError: If the provider failed during import.
        """
        if self.is_sync_in_progress(db, connection):
            logger.warning("Sync blocked: connection %s already syncing", connection.id)
            raise ValueError("Sync already in progress")

        sync_run = SyncRun(
            connection_id=connection.id,
            status=SYNC_STATUS_PENDING,
            window_start_date=connection.sync_start_date,
            window_end_date=date.today(),
        )
        db.add(sync_run)
        db.commit()
        logger.info(
            "Sync %s started for connection %s (%s)",
            sync_run.id, connection.id, connection.provider_name,
        )

        stats = SyncStatsCollector()
        syncer: Optional[Syncer] = None
        try:
            try:
                syncer = self.build_syncer(connection, stats)
            except Exception as e:
                logger.error("Could not prepare sync for connection %s: %s", connection.id, e)
                sync_error = stats.record_error(e, context="setup")
                sync_run.status = SYNC_STATUS_FAILED
                sync_run.error_message = sync_error.message
                sync_run.completed_at = datetime.now(timezone.utc)
                stats.flush_to(sync_run)
                raise
            syncer.perform_sync(db, connection, sync_run)
        finally:
            if syncer is not None:
                try:
                    syncer.perform_post_sync(db, connection, sync_run)
                except Exception:
                    logger.warning("Post-sync hook failed for sync %s", sync_run.id, exc_info=True)
            db.commit()
        return sync_run

    def unlink_all(
        self, db: Session, connection: Connection, dry_run: bool = False
    ) -> list[UnlinkResult]:
        """Unlink every provider account on the connection and commit."""
        results = self.linker.unlink_all(db, connection, dry_run=dry_run)
        if not dry_run:
            db.commit()
        return results
