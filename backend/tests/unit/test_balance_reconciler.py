"""Tests for BalanceReconciler."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from integrations.provider_profiles import BROKERAGE_PROFILE
from models import Holding, Valuation
from services.balance_reconciler import (
    BALANCE_SOURCE_CASH,
    BALANCE_SOURCE_HOLDINGS,
    BALANCE_SOURCE_PROVIDER,
    BalanceReconciler,
)
from services.holdings_processor import HoldingsProcessor
from services.security_service import SecurityService
from tests.fixtures.mocks import SAMPLE_HOLDINGS, MockSecurityResolver


@pytest.fixture
def reconciler():
    return BalanceReconciler()


class TestBalanceReconciler:
    def test_holdings_value_plus_cash_wins(self, db, reconciler, linked_provider_account, account):
        linked_provider_account.current_balance = Decimal("1000")
        linked_provider_account.cash_balance = Decimal("50")
        linked_provider_account.raw_holdings_payload = SAMPLE_HOLDINGS
        HoldingsProcessor(BROKERAGE_PROFILE, SecurityService(MockSecurityResolver())).process(
            db, linked_provider_account
        )

        result = reconciler.reconcile(db, linked_provider_account)

        assert result.source == BALANCE_SOURCE_HOLDINGS
        assert result.holdings_value == Decimal("600")
        assert account.balance == Decimal("650")
        assert account.cash_balance == Decimal("50")

    def test_provider_balance_without_holdings(self, db, reconciler, linked_provider_account, account):
        linked_provider_account.current_balance = Decimal("1000")
        linked_provider_account.cash_balance = Decimal("50")

        result = reconciler.reconcile(db, linked_provider_account)

        assert result.source == BALANCE_SOURCE_PROVIDER
        assert account.balance == Decimal("1000")

    def test_cash_only_fallback(self, db, reconciler, linked_provider_account, account):
        linked_provider_account.cash_balance = Decimal("75")

        result = reconciler.reconcile(db, linked_provider_account)

        assert result.source == BALANCE_SOURCE_CASH
        assert account.balance == Decimal("75")

    def test_old_holdings_ignored(self, db, reconciler, linked_provider_account, account, security):
        db.add(Holding(
            account_id=account.id,
            security_id=security.id,
            date=date.today() - timedelta(days=1),
            currency="USD",
            quantity=Decimal("1"),
            price=Decimal("100"),
            amount=Decimal("100"),
        ))
        linked_provider_account.current_balance = Decimal("900")
        db.flush()

        result = reconciler.reconcile(db, linked_provider_account)

        assert result.source == BALANCE_SOURCE_PROVIDER
        assert account.balance == Decimal("900")

    def test_currency_taken_from_provider_account(self, db, reconciler, linked_provider_account, account):
        linked_provider_account.currency = "EUR"
        reconciler.reconcile(db, linked_provider_account)
        assert account.currency == "EUR"

    def test_current_anchor_upserted(self, db, reconciler, linked_provider_account, account):
        linked_provider_account.current_balance = Decimal("1000")
        reconciler.reconcile(db, linked_provider_account)
        linked_provider_account.current_balance = Decimal("1100")
        reconciler.reconcile(db, linked_provider_account)

        valuation = db.query(Valuation).filter_by(account_id=account.id).one()
        assert valuation.date == date.today()
        assert valuation.amount == Decimal("1100")

    def test_unlinked_account_rejected(self, db, reconciler, provider_account):
        with pytest.raises(ValueError, match="not linked"):
            reconciler.reconcile(db, provider_account)
