"""Tests for turning stored holdings into canonical holdings."""

from datetime import date
from decimal import Decimal

import pytest

from integrations.provider_profiles import BROKERAGE_PROFILE, CRYPTO_PROFILE
from models import Holding, Security
from services.holdings_processor import HoldingsProcessor
from services.security_service import SecurityService
from tests.fixtures.mocks import SAMPLE_HOLDINGS, MockSecurityResolver


@pytest.fixture
def processor():
    return HoldingsProcessor(BROKERAGE_PROFILE, SecurityService(MockSecurityResolver()))


class TestHoldingsProcessor:
    def test_creates_holdings_for_today(self, db, processor, linked_provider_account, account):
        linked_provider_account.raw_holdings_payload = SAMPLE_HOLDINGS
        result = processor.process(db, linked_provider_account)

        assert result.processed == 2
        assert result.created == 2
        holdings = {h.security.ticker: h for h in db.query(Holding).all()}
        assert holdings["AAPL"].amount == Decimal("400")
        assert holdings["AAPL"].cost_basis == Decimal("150")
        assert holdings["VTI"].amount == Decimal("200")
        assert all(h.date == date.today() for h in holdings.values())
        assert all(h.account_id == account.id for h in holdings.values())
        assert all(
            h.account_link_id == linked_provider_account.account_link.id
            for h in holdings.values()
        )

    def test_reprocessing_updates_in_place(self, db, processor, linked_provider_account):
        linked_provider_account.raw_holdings_payload = SAMPLE_HOLDINGS
        processor.process(db, linked_provider_account)
        linked_provider_account.raw_holdings_payload = [
            {**SAMPLE_HOLDINGS[1], "units": 3}
        ]
        result = processor.process(db, linked_provider_account)

        assert result.created == 0
        vti = db.query(Holding).join(Security).filter(Security.ticker == "VTI").one()
        assert vti.quantity == Decimal("3")
        assert vti.amount == Decimal("600")

    def test_market_value_preferred(self, db, processor, linked_provider_account):
        linked_provider_account.raw_holdings_payload = [
            {"symbol": "VTI", "units": 2, "price": 100, "market_value": 210}
        ]
        processor.process(db, linked_provider_account)
        assert db.query(Holding).one().amount == Decimal("210")

    def test_price_derived_when_missing(self, db, processor, linked_provider_account):
        linked_provider_account.raw_holdings_payload = [
            {"symbol": "VTI", "units": 4, "market_value": 800}
        ]
        processor.process(db, linked_provider_account)
        assert db.query(Holding).one().price == Decimal("200")

    def test_skips_missing_symbol_and_empty_positions(self, db, processor, linked_provider_account):
        linked_provider_account.raw_holdings_payload = [
            {"units": 1, "price": 10},
            {"symbol": "VTI", "units": 0, "price": 0},
        ]
        result = processor.process(db, linked_provider_account)

        assert result.skipped == 2
        assert result.warnings == ["holding without instrument identifier"]
        assert db.query(Holding).count() == 0

    def test_crypto_prefix_applied(self, db, linked_provider_account):
        processor = HoldingsProcessor(CRYPTO_PROFILE, SecurityService(MockSecurityResolver()))
        linked_provider_account.raw_holdings_payload = [
            {"coin": {"symbol": "btc", "name": "Bitcoin"}, "count": "0.5", "price": 60000}
        ]
        processor.process(db, linked_provider_account)

        holding = db.query(Holding).one()
        assert holding.security.ticker == "CRYPTO:BTC"
        assert holding.security.offline is True
        assert holding.amount == Decimal("30000")

    def test_unlinked_account_rejected(self, db, processor, provider_account):
        with pytest.raises(ValueError, match="not linked"):
            processor.process(db, provider_account)

    def test_empty_snapshot(self, db, processor, linked_provider_account):
        result = processor.process(db, linked_provider_account)
        assert result.processed == 0

    def test_failing_holding_does_not_block_others(self, db, linked_provider_account, caplog):
        class FlakySecurityService(SecurityService):
            def resolve_or_create(self, db, ticker, name=None, prefix=None):
                if ticker == "AAPL":
                    raise RuntimeError("resolver unavailable")
                return super().resolve_or_create(db, ticker, name=name, prefix=prefix)

        processor = HoldingsProcessor(BROKERAGE_PROFILE, FlakySecurityService(MockSecurityResolver()))
        linked_provider_account.raw_holdings_payload = SAMPLE_HOLDINGS
        result = processor.process(db, linked_provider_account)

        assert result.processed == 1
        assert result.skipped == 1
        assert result.warnings == ["holding AAPL could not be processed"]
        assert [h.security.ticker for h in db.query(Holding).all()] == ["VTI"]
        assert "Failed to process holding AAPL" in caplog.text
