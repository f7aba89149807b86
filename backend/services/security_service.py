"""Service for resolving and creating Security records."""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import settings
from integrations.security_resolver import SecurityResolver
from models import Security

logger = logging.getLogger(__name__)


def normalize_ticker(ticker: str, prefix: Optional[str] = None) -> str:
    """Upper-case and strip a ticker, adding a namespace prefix when given.

    A ticker that already carries the prefix is not prefixed twice.
    """
    normalized = ticker.strip().upper()
    if prefix and not normalized.startswith(prefix.upper()):
        normalized = f"{prefix.upper()}{normalized}"
    return normalized


class SecurityService:
    """Centralized resolve-or-create operations on the Security master list."""

    def __init__(self, resolver: Optional[SecurityResolver] = None):
        """Initialize with an optional instrument resolver.

        Args:
            resolver: Instrument lookup service. When None (or when
                      ``SECURITY_RESOLVER_ENABLED`` is off) every new
                      security is created offline.
        """
        self._resolver = resolver if settings.SECURITY_RESOLVER_ENABLED else None

    def resolve_or_create(
        self,
        db: Session,
        ticker: str,
        name: Optional[str] = None,
        prefix: Optional[str] = None,
    ) -> Security:
        """Return the Security for ``ticker``, creating it if needed.

        Lookup order: existing row, then the resolver, then an offline
        record. Prefixed (non-exchange) tickers skip the resolver. A
        concurrent insert of the same ticker is handled by re-reading the
        row that won.

        Args:
            db: Database session
            ticker: Raw ticker/ISIN/symbol from the provider payload
            name: Optional display name from the payload
            prefix: Namespace prefix, e.g. ``"CRYPTO:"``

        Returns:
            The Security record (flushed but not committed)

        Raises:
            ValueError: If ``ticker`` is blank.
        """
        if not ticker or not ticker.strip():
            raise ValueError("Ticker is required")

        normalized = normalize_ticker(ticker, prefix)
        security = db.query(Security).filter_by(ticker=normalized).first()
        if security:
            if name and not security.name:
                security.name = name
                db.flush()
                logger.info("Filled missing security name: %s -> %s", normalized, name)
            return security

        resolved = None
        if self._resolver is not None and not prefix:
            try:
                resolved = self._resolver.resolve(normalized)
            except Exception:
                logger.warning("Security resolution failed for %s", normalized, exc_info=True)

        if resolved is not None:
            security = Security(
                ticker=normalized,
                name=name or resolved.name or normalized,
                exchange_mic=resolved.exchange_mic,
                country_code=resolved.country_code,
                offline=False,
            )
        else:
            security = Security(ticker=normalized, name=name or normalized, offline=True)

        try:
            with db.begin_nested():
                db.add(security)
                db.flush()
        except IntegrityError:
            existing = db.query(Security).filter_by(ticker=normalized).first()
            if existing is None:
                raise
            logger.debug("Security %s created concurrently; using existing row", normalized)
            return existing

        logger.info(
            "Created security: %s%s", normalized, " (offline)" if security.offline else ""
        )
        return security
