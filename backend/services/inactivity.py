"""Zero-balance inactivity heuristic.

Counts consecutive sync runs in which an account reports only zero
balances and no holdings, and flags it inactive once the count reaches the
configured threshold. A payload flagged closed or hidden is inactive
immediately. Any non-zero balance resets the counter.
"""

import logging
from decimal import Decimal

from config import settings
from integrations.raw_payload import RawPayload
from models import ProviderAccount
from services.sync_stats import SyncStatsCollector

logger = logging.getLogger(__name__)

# Zero is a normal, healthy balance for these account types
EXEMPT_ACCOUNT_TYPES = frozenset({"credit", "credit_card", "loan"})

_BALANCE_FIELDS = ("current_balance", "cash_balance")


class InactivityTracker:
    """Tracks zero-balance runs for the provider accounts of one sync.

    A tracker instance lives for exactly one sync run; observing the same
    account twice in that run counts at most once.
    """

    def __init__(
        self,
        stats: SyncStatsCollector,
        threshold: int | None = None,
        enabled: bool | None = None,
    ):
        self.stats = stats
        self.threshold = threshold if threshold is not None else settings.INACTIVITY_THRESHOLD
        self.enabled = enabled if enabled is not None else settings.INACTIVITY_ENABLED
        self._counted: set[str] = set()

    def _record(self, provider_account: ProviderAccount) -> None:
        key = provider_account.external_id
        self.stats.merge_map("zero_runs", {key: provider_account.zero_balance_runs or 0})
        self.stats.merge_map("inactive", {key: bool(provider_account.is_inactive)})

    def observe(
        self,
        provider_account: ProviderAccount,
        payload: RawPayload,
        has_holdings: bool = False,
    ) -> None:
        """Update the account's zero-balance counter from one account payload."""
        if not self.enabled:
            return

        key = provider_account.external_id

        if payload.flag("closed") or payload.flag("hidden"):
            provider_account.is_inactive = True
            self._record(provider_account)
            return

        account_type = (provider_account.account_type or payload.text("account_type") or "").lower()
        if account_type in EXEMPT_ACCOUNT_TYPES:
            self.stats.merge_map("inactive", {key: False})
            return

        balances = [payload.decimal(f) for f in _BALANCE_FIELDS if payload.has(f)]
        balances = [b for b in balances if b is not None]
        if not balances and not has_holdings:
            # Nothing reported; cannot tell zero from unknown
            self.stats.merge_map("inactive", {key: bool(provider_account.is_inactive)})
            return

        all_zero = all(b == Decimal("0") for b in balances) and not has_holdings
        if all_zero:
            if key not in self._counted:
                self._counted.add(key)
                provider_account.zero_balance_runs = (provider_account.zero_balance_runs or 0) + 1
            if provider_account.zero_balance_runs >= self.threshold:
                if not provider_account.is_inactive:
                    logger.info(
                        "Provider account %s inactive after %d zero-balance runs",
                        key, provider_account.zero_balance_runs,
                    )
                provider_account.is_inactive = True
        else:
            provider_account.zero_balance_runs = 0
            provider_account.is_inactive = False

        self._record(provider_account)
