"""Atomic writes of provider data onto a canonical account.

Every entry is created together with its Trade or Transaction inside one
savepoint, so a failure never leaves half a ledger row behind. A unique
key collision (a retried sync racing itself) re-reads the row that won
and reports "not created" instead of failing.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import Account, AccountLink, Entry, Holding, Security, Trade, Transaction
from models.entry import ENTRYABLE_TRADE, ENTRYABLE_TRANSACTION
from models.holding import COST_BASIS_SOURCE_MANUAL, COST_BASIS_SOURCE_PROVIDER

logger = logging.getLogger(__name__)


class ProviderImportAdapter:
    """Writes trades, cash transactions and holdings for one account."""

    def __init__(self, db: Session, account: Account, source: str):
        """Initialize the adapter.

        Args:
            db: Database session
            account: Canonical account receiving the data
            source: Provider name recorded on entries; part of the
                    (account, source, external_id) uniqueness key
        """
        self.db = db
        self.account = account
        self.source = source

    def find_entry(self, external_id: str) -> Optional[Entry]:
        return (
            self.db.query(Entry)
            .filter_by(account_id=self.account.id, source=self.source, external_id=external_id)
            .first()
        )

    def _existing_entry(self, external_id: str, activity_label: Optional[str]) -> Optional[Entry]:
        """Return the entry for ``external_id``, backfilling a missing label."""
        entry = self.find_entry(external_id)
        if entry is not None and activity_label and not entry.activity_label:
            entry.activity_label = activity_label
            self.db.flush()
            logger.debug("Backfilled activity label %s on entry %s", activity_label, external_id)
        return entry

    def _create_entry(self, entry: Entry, activity_label: Optional[str]) -> tuple[Entry, bool]:
        try:
            with self.db.begin_nested():
                self.db.add(entry)
                self.db.flush()
        except IntegrityError:
            existing = self._existing_entry(entry.external_id, activity_label)
            if existing is None:
                raise
            logger.debug("Entry %s already imported; treating as no-op", entry.external_id)
            return existing, False
        return entry, True

    def import_trade(
        self,
        *,
        external_id: str,
        security: Security,
        quantity: Decimal,
        price: Decimal,
        amount: Decimal,
        currency: str,
        date: date,
        name: str,
        activity_label: Optional[str] = None,
    ) -> tuple[Entry, bool]:
        """Create a trade entry unless ``external_id`` was already imported.

        Returns:
            ``(entry, created)``; ``created`` is False for an existing entry.
        """
        existing = self._existing_entry(external_id, activity_label)
        if existing is not None:
            return existing, False

        entry = Entry(
            account_id=self.account.id,
            date=date,
            name=name,
            amount=amount,
            currency=currency,
            entryable_type=ENTRYABLE_TRADE,
            external_id=external_id,
            source=self.source,
            activity_label=activity_label,
        )
        entry.trade = Trade(
            security_id=security.id,
            quantity=quantity,
            price=price,
            currency=currency,
        )
        return self._create_entry(entry, activity_label)

    def import_transaction(
        self,
        *,
        external_id: str,
        amount: Decimal,
        currency: str,
        date: date,
        name: str,
        activity_label: Optional[str] = None,
        kind: str = "standard",
        notes: Optional[str] = None,
    ) -> tuple[Entry, bool]:
        """Create a cash transaction entry unless already imported."""
        existing = self._existing_entry(external_id, activity_label)
        if existing is not None:
            return existing, False

        entry = Entry(
            account_id=self.account.id,
            date=date,
            name=name,
            amount=amount,
            currency=currency,
            entryable_type=ENTRYABLE_TRANSACTION,
            external_id=external_id,
            source=self.source,
            activity_label=activity_label,
            notes=notes,
        )
        entry.transaction = Transaction(kind=kind)
        return self._create_entry(entry, activity_label)

    def _find_holding(self, security: Security, as_of: date, currency: str) -> Optional[Holding]:
        return (
            self.db.query(Holding)
            .filter_by(
                account_id=self.account.id,
                security_id=security.id,
                date=as_of,
                currency=currency,
            )
            .first()
        )

    @staticmethod
    def _apply_holding_values(
        holding: Holding,
        quantity: Decimal,
        price: Decimal,
        amount: Decimal,
        cost_basis: Optional[Decimal],
        account_link: Optional[AccountLink],
        external_id: Optional[str],
    ) -> None:
        holding.quantity = quantity
        holding.price = price
        holding.amount = amount
        if account_link is not None:
            holding.account_link_id = account_link.id
        if external_id:
            holding.external_id = external_id
        if cost_basis is not None and holding.cost_basis_source != COST_BASIS_SOURCE_MANUAL:
            holding.cost_basis = cost_basis
            holding.cost_basis_source = COST_BASIS_SOURCE_PROVIDER

    def import_holding(
        self,
        *,
        security: Security,
        quantity: Decimal,
        price: Decimal,
        amount: Decimal,
        currency: str,
        date: date,
        cost_basis: Optional[Decimal] = None,
        account_link: Optional[AccountLink] = None,
        external_id: Optional[str] = None,
    ) -> tuple[Holding, bool]:
        """Upsert the holding for (account, security, date, currency).

        A ``manual`` cost basis is never overwritten.

        Returns:
            ``(holding, created)``
        """
        holding = self._find_holding(security, date, currency)
        if holding is not None:
            self._apply_holding_values(
                holding, quantity, price, amount, cost_basis, account_link, external_id
            )
            self.db.flush()
            return holding, False

        holding = Holding(
            account_id=self.account.id,
            security_id=security.id,
            date=date,
            currency=currency,
        )
        self._apply_holding_values(
            holding, quantity, price, amount, cost_basis, account_link, external_id
        )
        try:
            with self.db.begin_nested():
                self.db.add(holding)
                self.db.flush()
        except IntegrityError:
            existing = self._find_holding(security, date, currency)
            if existing is None:
                raise
            self._apply_holding_values(
                existing, quantity, price, amount, cost_basis, account_link, external_id
            )
            self.db.flush()
            return existing, False
        return holding, True
