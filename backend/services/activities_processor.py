"""Turns stored provider activities into canonical trades and cash transactions."""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from integrations.provider_profiles import ActivityLabel, CashDirection, ProviderProfile
from integrations.raw_payload import RawPayload
from models import ProviderAccount
from services.dedup import DeduplicationKeyer
from services.import_adapter import ProviderImportAdapter
from services.security_service import SecurityService

logger = logging.getLogger(__name__)


@dataclass
class ActivityProcessResult:
    trades_created: int = 0
    transactions_created: int = 0
    existing: int = 0
    skipped: int = 0
    unmapped_types: list[str] = field(default_factory=list)


def normalize_cash_amount(amount: Decimal, direction: CashDirection) -> Decimal:
    """Outflows negative, inflows positive, anything else as reported."""
    if direction == CashDirection.OUTFLOW:
        return -abs(amount)
    if direction == CashDirection.INFLOW:
        return abs(amount)
    return amount


class ActivitiesProcessor:
    """Classifies each stored activity as trade-like or cash-like and imports it.

    Every activity is keyed by the DeduplicationKeyer, so processing the
    same payload twice never creates a second entry.
    """

    def __init__(
        self,
        profile: ProviderProfile,
        security_service: SecurityService,
        keyer: DeduplicationKeyer | None = None,
    ):
        self.profile = profile
        self.security_service = security_service
        self.keyer = keyer or DeduplicationKeyer(profile)

    def resolve_label(self, activity_type: str | None, result: ActivityProcessResult) -> ActivityLabel:
        """Map the provider type to a label; unmapped types become ``Other``."""
        label = self.profile.label_for(activity_type)
        if label is not None:
            return label
        type_name = activity_type or "<blank>"
        logger.warning(
            "Unmapped %s activity type '%s'; recorded as Other",
            self.profile.name, type_name,
        )
        if type_name not in result.unmapped_types:
            result.unmapped_types.append(type_name)
        return ActivityLabel.OTHER

    def process(self, db: Session, provider_account: ProviderAccount) -> ActivityProcessResult:
        """Import every stored activity for a linked provider account.

        Raises:
            ValueError: If the provider account is not linked.
        """
        result = ActivityProcessResult()
        account = provider_account.linked_account
        if account is None:
            raise ValueError(f"Provider account {provider_account.external_id} is not linked")

        activities = provider_account.raw_transactions_payload or []
        if not activities:
            return result

        logger.info(
            "Processing %d activities for %s", len(activities), provider_account.external_id
        )
        adapter = ProviderImportAdapter(db, account, source=self.profile.name)
        default_currency = provider_account.currency or account.currency

        for raw in activities:
            if not isinstance(raw, dict):
                result.skipped += 1
                continue
            payload = RawPayload(raw, self.profile)
            try:
                self._process_activity(db, adapter, payload, default_currency, result)
            except Exception:
                logger.error(
                    "Failed to process activity %s for %s",
                    payload.external_id, provider_account.external_id, exc_info=True,
                )
                result.skipped += 1

        logger.info(
            "Activities for %s: %d trades, %d transactions created, %d existing, %d skipped",
            provider_account.external_id,
            result.trades_created,
            result.transactions_created,
            result.existing,
            result.skipped,
        )
        return result

    def _process_activity(
        self,
        db: Session,
        adapter: ProviderImportAdapter,
        payload: RawPayload,
        default_currency: str,
        result: ActivityProcessResult,
    ) -> None:
        activity_type = payload.activity_type
        label = self.resolve_label(activity_type, result)
        external_id = self.keyer.key_for(payload)
        activity_date = payload.effective_date() or date.today()
        currency = payload.currency or default_currency

        if activity_type and self.profile.is_trade(activity_type):
            self._process_trade(
                db, adapter, payload, activity_type, label, external_id,
                activity_date, currency, result,
            )
        else:
            self._process_cash(
                adapter, payload, activity_type, label, external_id,
                activity_date, currency, result,
            )

    def _process_trade(
        self,
        db: Session,
        adapter: ProviderImportAdapter,
        payload: RawPayload,
        activity_type: str,
        label: ActivityLabel,
        external_id: str,
        activity_date: date,
        currency: str,
        result: ActivityProcessResult,
    ) -> None:
        ticker = payload.symbol
        if not ticker:
            logger.warning("Skipping trade without symbol: %s", external_id)
            result.skipped += 1
            return

        quantity = payload.quantity
        if quantity is None:
            logger.warning("Skipping trade without quantity: %s", external_id)
            result.skipped += 1
            return
        quantity = -abs(quantity) if self.profile.is_sell_side(activity_type) else abs(quantity)

        price = payload.price
        if price is not None:
            amount = quantity * price
        else:
            amount = payload.amount
        if amount is None:
            logger.warning("Skipping trade without amount: %s", external_id)
            result.skipped += 1
            return
        if price is None:
            price = abs(amount / quantity) if quantity else Decimal("0")

        security = self.security_service.resolve_or_create(
            db,
            ticker,
            name=payload.text("security_name"),
            prefix=self.profile.security_prefix,
        )
        verb = "Sell" if quantity < 0 else "Buy"
        _, created = adapter.import_trade(
            external_id=external_id,
            security=security,
            quantity=quantity,
            price=price,
            amount=amount,
            currency=currency,
            date=activity_date,
            name=f"{verb} {abs(quantity)} {security.ticker}",
            activity_label=label.value,
        )
        if created:
            result.trades_created += 1
        else:
            result.existing += 1

    def _process_cash(
        self,
        adapter: ProviderImportAdapter,
        payload: RawPayload,
        activity_type: str | None,
        label: ActivityLabel,
        external_id: str,
        activity_date: date,
        currency: str,
        result: ActivityProcessResult,
    ) -> None:
        amount = payload.amount
        if amount is None:
            logger.warning("Skipping cash activity without amount: %s", external_id)
            result.skipped += 1
            return
        if amount == 0:
            logger.debug("Skipping zero-amount cash activity: %s", external_id)
            result.skipped += 1
            return

        direction = (
            self.profile.cash_direction(activity_type)
            if activity_type
            else CashDirection.AS_REPORTED
        )
        amount = normalize_cash_amount(amount, direction)
        name = payload.description or label.value

        _, created = adapter.import_transaction(
            external_id=external_id,
            amount=amount,
            currency=currency,
            date=activity_date,
            name=name,
            activity_label=label.value,
        )
        if created:
            result.transactions_created += 1
        else:
            result.existing += 1
