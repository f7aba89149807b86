"""Tests for turning stored activities into canonical entries."""

from datetime import date
from decimal import Decimal

import pytest

from integrations.provider_profiles import BANK_PROFILE, BROKERAGE_PROFILE, CashDirection
from models import Entry, Security, Trade
from models.entry import ENTRYABLE_TRADE, ENTRYABLE_TRANSACTION
from services.activities_processor import ActivitiesProcessor, normalize_cash_amount
from services.security_service import SecurityService
from tests.fixtures.mocks import SAMPLE_TRANSACTIONS, MockSecurityResolver


@pytest.fixture
def processor():
    return ActivitiesProcessor(BROKERAGE_PROFILE, SecurityService(MockSecurityResolver()))


def entries_by_id(db):
    return {e.external_id: e for e in db.query(Entry).all()}


class TestNormalizeCashAmount:
    def test_directions(self):
        assert normalize_cash_amount(Decimal("5"), CashDirection.OUTFLOW) == Decimal("-5")
        assert normalize_cash_amount(Decimal("-5"), CashDirection.INFLOW) == Decimal("5")
        assert normalize_cash_amount(Decimal("-5"), CashDirection.AS_REPORTED) == Decimal("-5")


class TestActivitiesProcessor:
    def test_trades_and_cash(self, db, processor, linked_provider_account):
        linked_provider_account.raw_transactions_payload = SAMPLE_TRANSACTIONS
        result = processor.process(db, linked_provider_account)

        assert result.trades_created == 2
        assert result.transactions_created == 2
        entries = entries_by_id(db)
        assert entries["tx-buy-1"].entryable_type == ENTRYABLE_TRADE
        assert entries["tx-div-1"].entryable_type == ENTRYABLE_TRANSACTION

    def test_sell_quantity_is_negative(self, db, processor, linked_provider_account):
        linked_provider_account.raw_transactions_payload = [SAMPLE_TRANSACTIONS[1]]
        processor.process(db, linked_provider_account)

        trade = db.query(Trade).one()
        entry = trade.entry
        assert trade.quantity == Decimal("-10")
        assert trade.price == Decimal("160")
        assert entry.amount == Decimal("-1600")
        assert entry.name == "Sell 10 AAPL"
        assert entry.activity_label == "Sell"

    def test_buy_uses_settlement_date(self, db, processor, linked_provider_account):
        linked_provider_account.raw_transactions_payload = [SAMPLE_TRANSACTIONS[0]]
        processor.process(db, linked_provider_account)

        entry = entries_by_id(db)["tx-buy-1"]
        assert entry.date == date(2026, 1, 17)
        assert entry.trade.quantity == Decimal("10")
        assert entry.amount == Decimal("1500")

    def test_cash_sign_normalized(self, db, processor, linked_provider_account):
        linked_provider_account.raw_transactions_payload = SAMPLE_TRANSACTIONS[2:]
        processor.process(db, linked_provider_account)

        entries = entries_by_id(db)
        assert entries["tx-div-1"].amount == Decimal("12.5")
        assert entries["tx-div-1"].name == "AAPL dividend"
        assert entries["tx-wd-1"].amount == Decimal("-200")
        assert entries["tx-wd-1"].name == "Withdrawal"

    def test_reprocessing_creates_no_duplicates(self, db, processor, linked_provider_account):
        linked_provider_account.raw_transactions_payload = SAMPLE_TRANSACTIONS
        processor.process(db, linked_provider_account)
        result = processor.process(db, linked_provider_account)

        assert result.trades_created == 0
        assert result.transactions_created == 0
        assert result.existing == 4
        assert db.query(Entry).count() == 4

    def test_records_without_id_deduplicated_by_hash(self, db, processor, linked_provider_account):
        record = {"type": "INTEREST", "date": "2026-03-01", "amount": 1.23}
        linked_provider_account.raw_transactions_payload = [record, dict(record)]
        result = processor.process(db, linked_provider_account)

        assert result.transactions_created == 1
        assert result.existing == 1
        assert db.query(Entry).one().external_id.startswith("fallback_")

    def test_unmapped_type_becomes_other(self, db, processor, linked_provider_account, caplog):
        linked_provider_account.raw_transactions_payload = [
            {"id": "x-1", "type": "WEIRD_THING", "date": "2026-03-01", "amount": 5}
        ]
        result = processor.process(db, linked_provider_account)

        assert result.unmapped_types == ["WEIRD_THING"]
        assert db.query(Entry).one().activity_label == "Other"
        assert "Unmapped brokerage activity type 'WEIRD_THING'" in caplog.text

    def test_zero_amount_cash_skipped(self, db, processor, linked_provider_account):
        linked_provider_account.raw_transactions_payload = [
            {"id": "fee-0", "type": "FEE", "date": "2026-03-01", "amount": 0},
            {"id": "int-1", "type": "INTEREST", "date": "2026-03-01", "amount": "0.00"},
            {"id": "int-2", "type": "INTEREST", "date": "2026-03-02", "amount": 0.42},
        ]
        result = processor.process(db, linked_provider_account)

        assert result.skipped == 2
        assert result.transactions_created == 1
        assert db.query(Entry).one().external_id == "int-2"

    def test_trade_without_symbol_skipped(self, db, processor, linked_provider_account):
        linked_provider_account.raw_transactions_payload = [
            {"id": "t-1", "type": "BUY", "units": 1, "price": 1, "date": "2026-01-01"}
        ]
        result = processor.process(db, linked_provider_account)
        assert result.skipped == 1
        assert db.query(Entry).count() == 0

    def test_price_derived_from_amount(self, db, processor, linked_provider_account):
        linked_provider_account.raw_transactions_payload = [
            {"id": "t-1", "type": "BUY", "symbol": "VTI", "units": 4, "amount": 800, "date": "2026-01-01"}
        ]
        processor.process(db, linked_provider_account)
        trade = db.query(Trade).one()
        assert trade.price == Decimal("200")

    def test_securities_resolved(self, db, processor, linked_provider_account):
        linked_provider_account.raw_transactions_payload = [SAMPLE_TRANSACTIONS[0]]
        processor.process(db, linked_provider_account)
        security = db.query(Security).filter_by(ticker="AAPL").one()
        assert security.offline is False

    def test_unlinked_account_rejected(self, db, processor, provider_account):
        with pytest.raises(ValueError, match="not linked"):
            processor.process(db, provider_account)

    def test_bank_profile_has_only_cash(self, db, linked_provider_account):
        processor = ActivitiesProcessor(BANK_PROFILE, SecurityService(MockSecurityResolver()))
        linked_provider_account.raw_transactions_payload = [
            {
                "transaction_id": "b-1",
                "credit_debit_indicator": "DBIT",
                "booking_date": "2026-02-02",
                "transaction_amount": {"amount": "42.10", "currency": "EUR"},
                "remittance_information": "Groceries",
            }
        ]
        result = processor.process(db, linked_provider_account)

        entry = db.query(Entry).one()
        assert result.transactions_created == 1
        assert entry.amount == Decimal("-42.10")
        assert entry.currency == "EUR"
        assert entry.name == "Groceries"
