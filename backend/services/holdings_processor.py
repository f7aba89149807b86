"""Turns a provider account's raw holdings snapshot into canonical holdings."""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from integrations.provider_profiles import ProviderProfile
from integrations.raw_payload import RawPayload
from models import ProviderAccount
from services.import_adapter import ProviderImportAdapter
from services.security_service import SecurityService

logger = logging.getLogger(__name__)


@dataclass
class HoldingsProcessResult:
    processed: int = 0
    created: int = 0
    skipped: int = 0
    warnings: list[str] = field(default_factory=list)


class HoldingsProcessor:
    """Upserts today's holdings for one linked provider account.

    Instrument identifiers are read through the profile's key paths
    (nested symbol objects, ISINs, flat tickers) so provider quirks stay in
    the profile.
    """

    def __init__(self, profile: ProviderProfile, security_service: SecurityService):
        self.profile = profile
        self.security_service = security_service

    def process(
        self, db: Session, provider_account: ProviderAccount, as_of: date | None = None
    ) -> HoldingsProcessResult:
        """Process the stored holdings snapshot.

        Args:
            db: Database session
            provider_account: A linked provider account
            as_of: Holding date; defaults to today

        Returns:
            Counts of processed, created and skipped holdings.

        Raises:
            ValueError: If the provider account is not linked.
        """
        result = HoldingsProcessResult()
        account = provider_account.linked_account
        if account is None:
            raise ValueError(f"Provider account {provider_account.external_id} is not linked")

        holdings_data = provider_account.raw_holdings_payload or []
        if not holdings_data:
            logger.debug("No holdings to process for %s", provider_account.external_id)
            return result

        as_of = as_of or date.today()
        adapter = ProviderImportAdapter(db, account, source=self.profile.name)
        default_currency = provider_account.currency or account.currency

        for raw in holdings_data:
            if not isinstance(raw, dict):
                result.skipped += 1
                continue
            payload = RawPayload(raw, self.profile)
            try:
                with db.begin_nested():
                    self._process_holding(
                        db, adapter, provider_account, payload, as_of, default_currency, result
                    )
            except Exception:
                logger.error(
                    "Failed to process holding %s for %s",
                    payload.symbol, provider_account.external_id, exc_info=True,
                )
                result.skipped += 1
                result.warnings.append(f"holding {payload.symbol} could not be processed")

        logger.info(
            "Holdings for %s: %d processed (%d new), %d skipped",
            provider_account.external_id, result.processed, result.created, result.skipped,
        )
        return result

    def _process_holding(
        self,
        db: Session,
        adapter: ProviderImportAdapter,
        provider_account: ProviderAccount,
        payload: RawPayload,
        as_of: date,
        default_currency: str,
        result: HoldingsProcessResult,
    ) -> None:
        ticker = payload.symbol
        if not ticker:
            logger.warning(
                "Skipping holding without instrument identifier for %s",
                provider_account.external_id,
            )
            result.skipped += 1
            result.warnings.append("holding without instrument identifier")
            return

        quantity = payload.quantity or Decimal("0")
        price = payload.price or Decimal("0")
        amount = payload.decimal("market_value")
        if amount is None:
            amount = quantity * price

        if quantity == 0 and amount == 0:
            logger.debug("Skipping empty position %s", ticker)
            result.skipped += 1
            return

        if price == 0 and quantity != 0:
            price = amount / quantity

        security = self.security_service.resolve_or_create(
            db,
            ticker,
            name=payload.text("security_name"),
            prefix=self.profile.security_prefix,
        )

        _, created = adapter.import_holding(
            security=security,
            quantity=quantity,
            price=price,
            amount=amount,
            currency=payload.currency or default_currency,
            date=as_of,
            cost_basis=payload.decimal("cost_basis"),
            account_link=provider_account.account_link,
            external_id=payload.external_id,
        )
        result.processed += 1
        if created:
            result.created += 1
