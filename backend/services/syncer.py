"""Per-connection sync state machine.

    importing -> checking_configuration -> processing -> scheduling -> done
                                 (any) -> failed

Each transition writes ``SyncRun.phase`` and ``status_text`` and merges the
stats collected so far before the phase starts, so a polling client sees
progress even if a later phase fails.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from sqlalchemy.orm import Session

from integrations.provider_profiles import ProviderProfile
from models import Connection, ProviderAccount, SyncRun
from models.sync_run import SYNC_STATUS_COMPLETED, SYNC_STATUS_FAILED, SYNC_STATUS_SYNCING
from services.account_linker import AccountLinker
from services.activities_processor import ActivitiesProcessor, ActivityProcessResult
from services.background_work import SYNC_ACCOUNT, WorkQueue
from services.balance_reconciler import BalanceReconciler, ReconcileResult
from services.holdings_processor import HoldingsProcessor, HoldingsProcessResult
from services.importer import ImportResult
from services.security_service import SecurityService
from services.sync_stats import SyncStatsCollector

logger = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    IMPORTING = "importing"
    CHECKING_CONFIGURATION = "checking_configuration"
    PROCESSING = "processing"
    SCHEDULING = "scheduling"
    DONE = "done"
    FAILED = "failed"


class ConnectionImporter(Protocol):
    def import_connection(self, db: Session, connection: Connection) -> ImportResult:
        ...


class Processor(Protocol):
    def process(self, db: Session, provider_account: ProviderAccount) -> "AccountProcessResult":
        ...


class Reconciler(Protocol):
    def reconcile(self, db: Session, provider_account: ProviderAccount) -> ReconcileResult:
        ...


@dataclass
class AccountProcessResult:
    holdings: Optional[HoldingsProcessResult] = None
    activities: ActivityProcessResult = field(default_factory=ActivityProcessResult)


class AccountProcessor:
    """Holdings first, then activities, for one linked provider account."""

    def __init__(
        self,
        profile: ProviderProfile,
        security_service: Optional[SecurityService] = None,
        holdings: Optional[HoldingsProcessor] = None,
        activities: Optional[ActivitiesProcessor] = None,
    ):
        security_service = security_service or SecurityService()
        self.profile = profile
        self.holdings = holdings or HoldingsProcessor(profile, security_service)
        self.activities = activities or ActivitiesProcessor(profile, security_service)

    def process(self, db: Session, provider_account: ProviderAccount) -> AccountProcessResult:
        result = AccountProcessResult()
        if self.profile.supports_holdings:
            result.holdings = self.holdings.process(db, provider_account)
        result.activities = self.activities.process(db, provider_account)
        return result


class Syncer:
    """Drives one SyncRun through its phases.

    Collaborators are injected. ``checkpoint`` is called after every
    transition; the service layer uses it to commit so progress is visible
    to other sessions.
    """

    def __init__(
        self,
        importer: ConnectionImporter,
        processor: Processor,
        reconciler: Optional[Reconciler] = None,
        linker: Optional[AccountLinker] = None,
        work_queue: Optional[WorkQueue] = None,
        stats: Optional[SyncStatsCollector] = None,
        checkpoint: Optional[Callable[[Session], None]] = None,
    ):
        self.importer = importer
        self.processor = processor
        self.reconciler = reconciler or BalanceReconciler()
        self.linker = linker or AccountLinker()
        self.work_queue = work_queue
        self.stats = stats or SyncStatsCollector()
        self.checkpoint = checkpoint

    def perform_sync(self, db: Session, connection: Connection, sync_run: SyncRun) -> SyncRun:
        """Run every phase for ``connection``.

        Raises:
            Exception: Whatever stopped the run, after it has been marked
                failed with the stats gathered so far.
        """
        sync_run.status = SYNC_STATUS_SYNCING
        sync_run.started_at = sync_run.started_at or datetime.now(timezone.utc)

        try:
            self._transition(
                db, sync_run, SyncPhase.IMPORTING,
                f"Importing accounts from {connection.provider_name}...",
            )
            self.importer.import_connection(db, connection)

            self._transition(
                db, sync_run, SyncPhase.CHECKING_CONFIGURATION,
                "Checking account configuration...",
            )
            linked = self._check_configuration(db, connection, sync_run)

            self._transition(
                db, sync_run, SyncPhase.PROCESSING, "Processing holdings and activities..."
            )
            processed = self._process_accounts(db, linked)
            sync_run.status_text = "Calculating balances..."
            self._flush_progress(db, sync_run)
            reconciled = self._reconcile_accounts(db, processed)

            self._transition(db, sync_run, SyncPhase.SCHEDULING, "Scheduling account updates...")
            self._schedule(reconciled, sync_run)
        except Exception as e:
            self._fail(db, sync_run, e)
            raise

        connection.last_synced_at = datetime.now(timezone.utc)
        sync_run.status = SYNC_STATUS_COMPLETED
        sync_run.completed_at = datetime.now(timezone.utc)
        sync_run.error_message = None
        self._transition(db, sync_run, SyncPhase.DONE, "Sync complete")
        logger.info(
            "Sync %s for connection %s completed (%d errors)",
            sync_run.id, connection.id, self.stats.get("total_errors", 0),
        )
        return sync_run

    def perform_post_sync(self, db: Session, connection: Connection, sync_run: SyncRun) -> None:
        """Hook that runs after every sync, successful or not."""

    def _transition(self, db: Session, sync_run: SyncRun, phase: SyncPhase, text: str) -> None:
        logger.info("Sync %s: %s (%s)", sync_run.id, phase.value, text)
        sync_run.phase = phase.value
        sync_run.status_text = text
        self._flush_progress(db, sync_run)

    def _flush_progress(self, db: Session, sync_run: SyncRun) -> None:
        self.stats.flush_to(sync_run)
        db.flush()
        if self.checkpoint is not None:
            self.checkpoint(db)

    def _fail(self, db: Session, sync_run: SyncRun, error: Exception) -> None:
        logger.error("Sync %s failed: %s", sync_run.id, error, exc_info=True)
        phase = (sync_run.phase or SyncPhase.IMPORTING.value).replace("_", " ")
        sync_error = self.stats.record_error(error, context=phase)
        sync_run.status = SYNC_STATUS_FAILED
        sync_run.error_message = sync_error.message
        sync_run.completed_at = datetime.now(timezone.utc)
        self._transition(db, sync_run, SyncPhase.FAILED, "Sync failed")

    def _check_configuration(
        self, db: Session, connection: Connection, sync_run: SyncRun
    ) -> list[ProviderAccount]:
        linked = self.linker.linked_provider_accounts(db, connection)
        unlinked = self.linker.unlinked_provider_accounts(db, connection)
        self.stats.set(
            total_accounts=len(linked) + len(unlinked),
            linked_accounts=len(linked),
            unlinked_accounts=len(unlinked),
        )
        connection.pending_account_setup = bool(unlinked)
        if unlinked:
            logger.info(
                "Connection %s has %d accounts awaiting setup", connection.id, len(unlinked)
            )
            sync_run.status_text = f"{len(unlinked)} accounts need setup..."
            self._flush_progress(db, sync_run)
        return linked

    def _record_failure(self, provider_account: ProviderAccount, error: Exception, step: str) -> None:
        logger.error(
            "Failed to %s for provider account %s",
            step, provider_account.external_id, exc_info=True,
        )
        self.stats.record_error(error, account_id=provider_account.external_id, context=step)

    def _process_accounts(
        self, db: Session, provider_accounts: list[ProviderAccount]
    ) -> list[ProviderAccount]:
        """Process each linked account in its own savepoint.

        Returns:
            The accounts that processed without error.
        """
        processed = []
        for provider_account in provider_accounts:
            try:
                with db.begin_nested():
                    result = self.processor.process(db, provider_account)
            except Exception as e:
                self._record_failure(provider_account, e, "process activity")
                continue
            self._record_process_result(provider_account, result)
            processed.append(provider_account)
        return processed

    def _record_process_result(
        self, provider_account: ProviderAccount, result: AccountProcessResult
    ) -> None:
        if result.holdings is not None:
            self.stats.increment("holdings_processed", result.holdings.processed)
            self.stats.increment("holdings_skipped", result.holdings.skipped)
            for warning in result.holdings.warnings:
                self.stats.add_unique("data_warnings", f"{provider_account.external_id}: {warning}")
        activities = result.activities
        self.stats.increment("trades_imported", activities.trades_created)
        self.stats.increment("transactions_created", activities.transactions_created)
        self.stats.increment("activities_skipped", activities.skipped)
        for activity_type in activities.unmapped_types:
            self.stats.add_unique("unmapped_types", activity_type)

    def _reconcile_accounts(
        self, db: Session, provider_accounts: list[ProviderAccount]
    ) -> list[ProviderAccount]:
        reconciled = []
        for provider_account in provider_accounts:
            try:
                with db.begin_nested():
                    self.reconciler.reconcile(db, provider_account)
            except Exception as e:
                self._record_failure(provider_account, e, "calculate balance")
                continue
            reconciled.append(provider_account)
        return reconciled

    def _schedule(self, provider_accounts: list[ProviderAccount], sync_run: SyncRun) -> None:
        if self.work_queue is None:
            return
        for provider_account in provider_accounts:
            account = provider_account.linked_account
            if account is None:
                continue
            try:
                self.work_queue.enqueue(
                    SYNC_ACCOUNT, {"account_id": account.id, "sync_run_id": sync_run.id}
                )
            except Exception as e:
                logger.warning("Failed to enqueue %s for account %s: %s", SYNC_ACCOUNT, account.id, e)
