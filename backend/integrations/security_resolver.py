"""Instrument resolution for securities referenced by provider payloads."""

import logging
from dataclasses import dataclass
from typing import Protocol

import yfinance as yf

logger = logging.getLogger(__name__)


@dataclass
class ResolvedSecurity:
    """Instrument details returned by a resolver."""

    ticker: str
    name: str | None = None
    exchange_mic: str | None = None
    country_code: str | None = None


class SecurityResolver(Protocol):
    """Looks up instrument details for a ticker."""

    def resolve(self, ticker: str) -> ResolvedSecurity | None:
        """Return the instrument, or None when the ticker is unknown."""
        ...


# yfinance reports exchange codes, not MICs
_EXCHANGE_TO_MIC = {
    "NMS": "XNAS",
    "NGM": "XNAS",
    "NCM": "XNAS",
    "NYQ": "XNYS",
    "PCX": "ARCX",
    "ASE": "XASE",
    "BTS": "BATS",
    "LSE": "XLON",
    "TOR": "XTSE",
    "GER": "XETR",
    "PAR": "XPAR",
    "AMS": "XAMS",
    "MCE": "XMAD",
}

_COUNTRY_CODES = {
    "United States": "US",
    "United Kingdom": "GB",
    "Canada": "CA",
    "Germany": "DE",
    "France": "FR",
    "Netherlands": "NL",
    "Spain": "ES",
    "Ireland": "IE",
    "Luxembourg": "LU",
}


class YahooSecurityResolver:
    """Security resolver backed by Yahoo Finance (yfinance library).

    Crypto tickers (``CRYPTO:`` namespace) are never sent to Yahoo; they
    resolve to None and are created offline.
    """

    def resolve(self, ticker: str) -> ResolvedSecurity | None:
        if not ticker or ":" in ticker:
            return None

        try:
            info = yf.Ticker(ticker).info or {}
        except Exception:
            logger.warning("yfinance lookup failed for %s", ticker, exc_info=True)
            return None

        name = info.get("longName") or info.get("shortName")
        if not name:
            logger.debug("yfinance has no instrument for %s", ticker)
            return None

        return ResolvedSecurity(
            ticker=ticker,
            name=name,
            exchange_mic=_EXCHANGE_TO_MIC.get(info.get("exchange", "")),
            country_code=_COUNTRY_CODES.get(info.get("country", "")),
        )
