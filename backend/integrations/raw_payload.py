"""Typed read access to raw provider payloads.

A :class:`RawPayload` wraps one stored provider record (account, balance,
transaction or holding) and resolves logical fields through the ordered
key paths of a :class:`~integrations.provider_profiles.ProviderProfile`.
The first path that yields a usable value wins.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Mapping

from integrations.parsing_utils import parse_date, parse_decimal
from integrations.provider_profiles import KeyPath, ProviderProfile

_MISSING = object()


def _dig(data: Any, path: KeyPath) -> Any:
    """Follow ``path`` through nested mappings; ``_MISSING`` if any hop fails."""
    current = data
    for key in path:
        if not isinstance(current, Mapping) or key not in current:
            return _MISSING
        current = current[key]
    return current


class RawPayload:
    """A provider record with named, profile-driven field accessors.

    Example:
        payload = RawPayload({"symbol": {"symbol": {"symbol": "VTI"}}}, BROKERAGE_PROFILE)
        payload.symbol  # "VTI"
    """

    def __init__(self, data: Mapping[str, Any], profile: ProviderProfile):
        self.data = data
        self.profile = profile
        self._paths = profile.field_paths

    def __repr__(self) -> str:
        return f"RawPayload({self.profile.name}, id={self.external_id!r})"

    def _candidates(self, field_name: str):
        for path in self._paths.get(field_name, ()):
            value = _dig(self.data, path)
            if value is _MISSING or value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            yield value

    def has(self, field_name: str) -> bool:
        """True when any path for the field is present with a non-null value."""
        return next(self._candidates(field_name), _MISSING) is not _MISSING

    def raw(self, field_name: str) -> Any:
        """First present value for the field, of whatever shape."""
        return next(self._candidates(field_name), None)

    def text(self, field_name: str) -> str | None:
        """First scalar value for the field as a stripped string.

        Nested objects are skipped so ``symbol`` can be tried both as an
        object path and as a flat key.
        """
        for value in self._candidates(field_name):
            if isinstance(value, (Mapping, list)):
                continue
            return str(value).strip()
        return None

    def decimal(self, field_name: str) -> Decimal | None:
        for value in self._candidates(field_name):
            parsed = parse_decimal(value)
            if parsed is not None:
                return parsed
        return None

    def date_of(self, field_name: str) -> date | None:
        for value in self._candidates(field_name):
            parsed = parse_date(value)
            if parsed is not None:
                return parsed
        return None

    def flag(self, field_name: str) -> bool:
        value = self.raw(field_name)
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
        return bool(value)

    # Named accessors used by the importer and processors

    @property
    def external_id(self) -> str | None:
        return self.text("id")

    @property
    def activity_type(self) -> str | None:
        value = self.text("type")
        return value.upper() if value else None

    @property
    def symbol(self) -> str | None:
        return self.text("symbol")

    @property
    def currency(self) -> str | None:
        value = self.text("currency")
        return value.upper() if value else None

    @property
    def quantity(self) -> Decimal | None:
        return self.decimal("quantity")

    @property
    def price(self) -> Decimal | None:
        return self.decimal("price")

    @property
    def amount(self) -> Decimal | None:
        return self.decimal("amount")

    @property
    def description(self) -> str | None:
        return self.text("description")

    def effective_date(self) -> date | None:
        """Settlement date, then trade date, then the plain date field."""
        for field_name in ("settlement_date", "trade_date", "date"):
            parsed = self.date_of(field_name)
            if parsed is not None:
                return parsed
        return None

    def to_dict(self) -> dict[str, Any]:
        return dict(self.data)
