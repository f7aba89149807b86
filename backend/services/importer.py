"""Refreshes raw provider snapshots for one connection.

Fetches the account list, upserts provider accounts, prunes vanished
unlinked ones, then pulls transactions, balances and holdings for every
linked account. One account's failure is counted and logged; only an
authentication failure stops the import, because it affects every account
on the connection.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from config import settings
from integrations.exceptions import ProviderAuthError, ProviderDataError, public_error_message
from integrations.parsing_utils import ensure_utc
from integrations.provider_profiles import ProviderProfile
from integrations.provider_protocol import ProviderClient
from integrations.raw_payload import RawPayload
from models import Connection, ProviderAccount
from models.connection import CONNECTION_STATUS_REQUIRES_UPDATE
from services.account_linker import AccountLinker
from services.dedup import DeduplicationKeyer
from services.inactivity import InactivityTracker
from services.pagination import PaginationWalker
from services.raw_payload_store import RawPayloadStore
from services.sync_stats import SyncStatsCollector

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """Outcome of one import pass over a connection."""

    accounts_updated: int = 0
    accounts_created: int = 0
    accounts_failed: int = 0
    accounts_pruned: int = 0
    transactions_imported: int = 0
    transactions_failed: int = 0
    api_requests: int = 0
    truncated_accounts: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.accounts_failed == 0 and self.transactions_failed == 0


class Importer:
    """Import phase for one provider; collaborators are injected."""

    def __init__(
        self,
        client: ProviderClient,
        profile: ProviderProfile,
        stats: Optional[SyncStatsCollector] = None,
        store: Optional[RawPayloadStore] = None,
        keyer: Optional[DeduplicationKeyer] = None,
        walker: Optional[PaginationWalker] = None,
        linker: Optional[AccountLinker] = None,
        inactivity: Optional[InactivityTracker] = None,
    ):
        self.client = client
        self.profile = profile
        self.stats = stats or SyncStatsCollector()
        self.store = store or RawPayloadStore()
        self.keyer = keyer or DeduplicationKeyer(profile)
        self.walker = walker or PaginationWalker()
        self.linker = linker or AccountLinker()
        self.inactivity = inactivity or InactivityTracker(self.stats)
        self.last_result: Optional[ImportResult] = None

    @property
    def provider_name(self) -> str:
        return self.client.provider_name

    def import_connection(self, db: Session, connection: Connection) -> ImportResult:
        """Run the import for ``connection``.

        Counts gathered before an abort are still written to the stats, and
        the partial result stays readable as ``last_result`` with ``error``
        set.

        Returns:
            Counts for accounts and transactions, plus captured errors.

        Raises:
            ProviderAuthError: After flipping the connection to
                ``requires_update``.
            ProviderError: If the account list itself cannot be fetched.
        """
        result = self.last_result = ImportResult()
        logger.info("%s: starting import for connection %s", self.provider_name, connection.id)
        try:
            self._import_accounts(db, connection, result)
        except Exception as e:
            result.error = public_error_message(e, "import")
            raise
        finally:
            self._record_stats(result)

        logger.info(
            "%s: import complete for connection %s: %d transactions (%d accounts failed)",
            self.provider_name,
            connection.id,
            result.transactions_imported,
            result.transactions_failed,
        )
        return result

    def _import_accounts(self, db: Session, connection: Connection, result: ImportResult) -> None:
        accounts_data = self._fetch_accounts(db, connection, result)
        self.store.store_connection_snapshot(connection, accounts_data)

        upstream_ids: set[str] = set()
        for account_data in accounts_data:
            payload = RawPayload(account_data, self.profile)
            external_id = payload.external_id
            if not external_id:
                logger.warning("%s: skipping account with missing ID", self.provider_name)
                result.accounts_failed += 1
                continue
            upstream_ids.add(external_id)
            try:
                with db.begin_nested():
                    self._upsert_provider_account(db, connection, payload, result)
            except Exception as e:
                result.accounts_failed += 1
                sync_error = self.stats.record_error(e, account_id=external_id, context="import")
                result.errors.append(f"Account {external_id}: {sync_error.message}")
                logger.error(
                    "%s: failed to import account %s",
                    self.provider_name, external_id, exc_info=True,
                )

        result.accounts_pruned = self.linker.prune_removed(db, connection, upstream_ids)
        logger.info(
            "%s: %d accounts imported (%d new, %d failed, %d pruned)",
            self.provider_name,
            result.accounts_updated + result.accounts_created,
            result.accounts_created,
            result.accounts_failed,
            result.accounts_pruned,
        )

        for provider_account in self.linker.linked_provider_accounts(db, connection):
            try:
                with db.begin_nested():
                    imported = self._import_account_data(db, provider_account, result)
                result.transactions_imported += imported
            except ProviderAuthError as e:
                result.transactions_failed += 1
                sync_error = self.stats.record_error(e, account_id=provider_account.external_id)
                result.errors.append(f"Account {provider_account.external_id}: {sync_error.message}")
                self._mark_requires_update(db, connection)
                raise
            except Exception as e:
                result.transactions_failed += 1
                sync_error = self.stats.record_error(
                    e, account_id=provider_account.external_id, context="import"
                )
                result.errors.append(f"Account {provider_account.external_id}: {sync_error.message}")
                logger.error(
                    "%s: failed to fetch data for account %s",
                    self.provider_name, provider_account.external_id, exc_info=True,
                )

    def _fetch_accounts(
        self, db: Session, connection: Connection, result: ImportResult
    ) -> list[dict[str, Any]]:
        try:
            result.api_requests += 1
            accounts_data = self.client.list_accounts()
        except ProviderAuthError:
            self._mark_requires_update(db, connection)
            raise

        if not isinstance(accounts_data, list):
            raise ProviderDataError(
                f"Invalid accounts payload: expected list, got {type(accounts_data).__name__}",
                provider_name=self.provider_name,
            )
        return [a for a in accounts_data if isinstance(a, dict)]

    def _mark_requires_update(self, db: Session, connection: Connection) -> None:
        logger.warning(
            "%s: authentication failed; connection %s requires update",
            self.provider_name, connection.id,
        )
        connection.status = CONNECTION_STATUS_REQUIRES_UPDATE
        db.flush()

    def _upsert_provider_account(
        self,
        db: Session,
        connection: Connection,
        payload: RawPayload,
        result: ImportResult,
    ) -> ProviderAccount:
        """Create or refresh the ProviderAccount for one upstream account.

        New accounts become placeholders awaiting user setup; their
        transactions are not imported until they are linked.
        """
        external_id = payload.external_id
        provider_account = (
            db.query(ProviderAccount)
            .filter_by(connection_id=connection.id, external_id=external_id)
            .first()
        )
        if provider_account is None:
            provider_account = ProviderAccount(
                connection_id=connection.id,
                external_id=external_id,
                name=payload.text("name") or external_id,
                zero_balance_runs=0,
                is_inactive=False,
            )
            db.add(provider_account)
            result.accounts_created += 1
            logger.info(
                "%s: new provider account %s awaiting setup", self.provider_name, external_id
            )
        else:
            result.accounts_updated += 1
            provider_account.name = payload.text("name") or provider_account.name

        provider_account.currency = payload.currency or provider_account.currency
        provider_account.account_type = payload.text("account_type") or provider_account.account_type
        provider_account.account_status = payload.text("status") or provider_account.account_status
        current_balance = payload.decimal("current_balance")
        if current_balance is not None:
            provider_account.current_balance = current_balance
        cash_balance = payload.decimal("cash_balance")
        if cash_balance is not None:
            provider_account.cash_balance = cash_balance
        self.store.replace(provider_account, "accounts", payload.to_dict())

        has_holdings = bool(provider_account.raw_holdings_payload)
        self.inactivity.observe(provider_account, payload, has_holdings=has_holdings)
        db.flush()
        return provider_account

    def transactions_since(self, provider_account: ProviderAccount, connection: Connection) -> date:
        """Start date for the transaction fetch.

        Full history until enough transactions are stored; afterwards the
        last sync minus an overlap window, to catch late-posting items.
        """
        existing_count = len(provider_account.raw_transactions_payload or [])
        last_sync = provider_account.last_transactions_sync
        if last_sync is not None and existing_count >= settings.INCREMENTAL_MIN_EXISTING:
            return (ensure_utc(last_sync) - timedelta(days=settings.INCREMENTAL_OVERLAP_DAYS)).date()
        if connection.sync_start_date is not None:
            return connection.sync_start_date
        return date.today() - timedelta(days=settings.FULL_HISTORY_DAYS)

    def _import_account_data(
        self, db: Session, provider_account: ProviderAccount, result: ImportResult
    ) -> int:
        """Transactions, then balances, then holdings for one linked account.

        Returns:
            Number of new transactions stored.
        """
        ref = provider_account.external_id
        since = self.transactions_since(provider_account, provider_account.connection)

        def fetch_page(cursor: Optional[str]):
            result.api_requests += 1
            return self.client.get_transactions(ref, since=since, cursor=cursor)

        walk = self.walker.walk(fetch_page, label=f"{self.provider_name} account {ref}")
        if walk.truncated:
            result.truncated_accounts.append(ref)
            self.stats.add_unique("data_warnings", f"{ref}: pagination {walk.stop_reason.value}")
        merged = self.store.merge_append(provider_account, "transactions", walk.items, self.keyer)
        now = datetime.now(timezone.utc)
        provider_account.last_transactions_sync = now

        result.api_requests += 1
        balances = self.client.get_balances(ref)
        if isinstance(balances, dict):
            balance_payload = RawPayload(balances, self.profile)
            current_balance = balance_payload.decimal("current_balance")
            cash_balance = balance_payload.decimal("cash_balance")
            if current_balance is not None:
                provider_account.current_balance = current_balance
            if cash_balance is not None:
                provider_account.cash_balance = cash_balance
            provider_account.currency = balance_payload.currency or provider_account.currency

        if self.profile.supports_holdings:
            result.api_requests += 1
            holdings = self.client.get_holdings(ref)
            self.store.replace(
                provider_account,
                "holdings",
                [h for h in (holdings or []) if isinstance(h, dict)],
            )
            provider_account.last_holdings_sync = now

        db.flush()
        logger.info(
            "%s: account %s fetched %d transactions over %d pages (%d new)",
            self.provider_name, ref, len(walk.items), walk.pages, merged.new_items,
        )
        return merged.new_items

    def _record_stats(self, result: ImportResult) -> None:
        self.stats.set(
            accounts_created=result.accounts_created,
            accounts_updated=result.accounts_updated,
            accounts_failed=result.accounts_failed,
            accounts_pruned=result.accounts_pruned,
            tx_imported=result.transactions_imported,
            tx_failed=result.transactions_failed,
        )
        self.stats.increment("api_requests", result.api_requests)
