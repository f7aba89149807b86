"""Tests for the zero-balance inactivity heuristic."""

from integrations.provider_profiles import BROKERAGE_PROFILE
from integrations.raw_payload import RawPayload
from services.inactivity import InactivityTracker
from services.sync_stats import SyncStatsCollector


def payload(**data) -> RawPayload:
    return RawPayload(data, BROKERAGE_PROFILE)


def run(provider_account, data, threshold=3, has_holdings=False, enabled=True):
    """One sync run: a fresh tracker observes the account once."""
    stats = SyncStatsCollector()
    tracker = InactivityTracker(stats, threshold=threshold, enabled=enabled)
    tracker.observe(provider_account, payload(**data), has_holdings=has_holdings)
    return stats


class TestInactivityTracker:
    def test_zero_runs_reach_threshold(self, provider_account):
        for _ in range(2):
            run(provider_account, {"balance": 0, "cash": 0})
        assert provider_account.zero_balance_runs == 2
        assert provider_account.is_inactive is False

        stats = run(provider_account, {"balance": 0, "cash": 0})

        assert provider_account.zero_balance_runs == 3
        assert provider_account.is_inactive is True
        assert stats.get("zero_runs") == {"acct-unlinked": 3}
        assert stats.get("inactive") == {"acct-unlinked": True}

    def test_counted_once_per_run(self, provider_account):
        stats = SyncStatsCollector()
        tracker = InactivityTracker(stats, threshold=3, enabled=True)
        tracker.observe(provider_account, payload(balance=0))
        tracker.observe(provider_account, payload(balance=0))
        assert provider_account.zero_balance_runs == 1

    def test_non_zero_resets(self, provider_account):
        provider_account.zero_balance_runs = 5
        provider_account.is_inactive = True

        run(provider_account, {"balance": 10})

        assert provider_account.zero_balance_runs == 0
        assert provider_account.is_inactive is False

    def test_holdings_count_as_activity(self, provider_account):
        run(provider_account, {"balance": 0}, has_holdings=True)
        assert provider_account.zero_balance_runs == 0

    def test_no_balance_keys_not_counted(self, provider_account):
        run(provider_account, {"name": "x"})
        assert provider_account.zero_balance_runs == 0

    def test_credit_accounts_exempt(self, provider_account):
        provider_account.account_type = "credit"
        stats = run(provider_account, {"balance": 0}, threshold=1)
        assert provider_account.zero_balance_runs == 0
        assert stats.get("inactive") == {"acct-unlinked": False}

    def test_closed_flag_is_immediate(self, provider_account):
        run(provider_account, {"balance": 100, "closed": True})
        assert provider_account.is_inactive is True

    def test_disabled(self, provider_account):
        stats = run(provider_account, {"balance": 0}, threshold=1, enabled=False)
        assert provider_account.zero_balance_runs == 0
        assert stats.get("zero_runs") is None
