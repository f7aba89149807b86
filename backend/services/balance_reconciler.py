"""Recomputes a canonical account's balance after processing.

Total balance is today's holdings value plus reported cash when any
holding exists for today; otherwise the provider's own total is used.
Holdings-derived totals win because providers often cache stale totals.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Holding, ProviderAccount, Valuation
from models.valuation import VALUATION_KIND_CURRENT_ANCHOR

logger = logging.getLogger(__name__)

BALANCE_SOURCE_HOLDINGS = "holdings"
BALANCE_SOURCE_PROVIDER = "provider"
BALANCE_SOURCE_CASH = "cash"


@dataclass
class ReconcileResult:
    balance: Decimal
    cash_balance: Decimal
    currency: str
    source: str
    holdings_value: Decimal = Decimal("0")


class BalanceReconciler:
    """Writes balance, cash balance and currency, then anchors today's value."""

    def reconcile(
        self, db: Session, provider_account: ProviderAccount, as_of: date | None = None
    ) -> ReconcileResult:
        """Reconcile the linked canonical account of ``provider_account``.

        Raises:
            ValueError: If the provider account is not linked.
        """
        account = provider_account.linked_account
        if account is None:
            raise ValueError(f"Provider account {provider_account.external_id} is not linked")

        as_of = as_of or date.today()
        currency = provider_account.currency or account.currency
        cash = provider_account.reported_cash

        holdings_count, holdings_value = (
            db.query(func.count(Holding.id), func.coalesce(func.sum(Holding.amount), 0))
            .filter(Holding.account_id == account.id, Holding.date == as_of)
            .one()
        )
        holdings_value = Decimal(str(holdings_value))

        if holdings_count > 0:
            balance = holdings_value + cash
            source = BALANCE_SOURCE_HOLDINGS
        elif provider_account.current_balance is not None:
            balance = Decimal(provider_account.current_balance)
            source = BALANCE_SOURCE_PROVIDER
        else:
            balance = cash
            source = BALANCE_SOURCE_CASH

        account.balance = balance
        account.cash_balance = cash
        account.currency = currency
        self._set_current_anchor(db, account.id, as_of, balance, cash, currency)
        db.flush()

        logger.info(
            "Balance for %s: %s %s from %s (holdings %s, cash %s)",
            provider_account.external_id, balance, currency, source, holdings_value, cash,
        )
        return ReconcileResult(
            balance=balance,
            cash_balance=cash,
            currency=currency,
            source=source,
            holdings_value=holdings_value,
        )

    @staticmethod
    def _set_current_anchor(
        db: Session,
        account_id: str,
        as_of: date,
        balance: Decimal,
        cash: Decimal,
        currency: str,
    ) -> Valuation:
        valuation = (
            db.query(Valuation)
            .filter_by(account_id=account_id, date=as_of, kind=VALUATION_KIND_CURRENT_ANCHOR)
            .first()
        )
        if valuation is None:
            valuation = Valuation(
                account_id=account_id,
                date=as_of,
                kind=VALUATION_KIND_CURRENT_ANCHOR,
            )
            db.add(valuation)
        valuation.amount = balance
        valuation.cash_balance = cash
        valuation.currency = currency
        return valuation
