"""Stable identity for provider records.

Prefers the provider's own ID. When a record has none, a content hash over
a fixed set of stable fields (date, type, amount, symbol, fee by default)
stands in. Live values such as current valuation or unrealized profit are
never hashed, so re-fetching the same record always yields the same key.
"""

import hashlib
from decimal import Decimal
from typing import Any, Iterable, Mapping

from integrations.provider_profiles import ProviderProfile
from integrations.raw_payload import RawPayload

FALLBACK_ID_PREFIX = "fallback_"
_DECIMAL_FIELDS = {"amount", "fee", "quantity", "price"}


def _normalize_decimal(value: Decimal) -> str:
    # 10, 10.0 and "10.00" hash identically
    return format(value.normalize(), "f")


def stable_hash(components: Iterable[str]) -> str:
    """Short sha256 digest of ``components`` joined with ``|``."""
    digest = hashlib.sha256("|".join(components).encode("utf-8")).hexdigest()
    return digest[:16]


class DeduplicationKeyer:
    """Derives the dedup key for records of one provider profile."""

    def __init__(self, profile: ProviderProfile):
        self.profile = profile

    def _component(self, payload: RawPayload, field_name: str) -> str:
        if field_name == "date":
            value = payload.effective_date()
            return value.isoformat() if value else ""
        if field_name == "type":
            return payload.activity_type or ""
        if field_name in _DECIMAL_FIELDS:
            value = payload.decimal(field_name)
            return _normalize_decimal(value) if value is not None else ""
        if field_name == "symbol":
            return (payload.symbol or "").upper()
        return payload.text(field_name) or ""

    def fallback_key(self, payload: RawPayload) -> str:
        components = [self._component(payload, f) for f in self.profile.fallback_id_fields]
        return FALLBACK_ID_PREFIX + stable_hash(components)

    def key_for(self, item: Mapping[str, Any] | RawPayload) -> str:
        """Provider ID when present, otherwise the content-hash fallback."""
        payload = item if isinstance(item, RawPayload) else RawPayload(item, self.profile)
        provider_id = payload.external_id
        if provider_id:
            return provider_id
        return self.fallback_key(payload)

    def existing_keys(self, items: Iterable[Mapping[str, Any]] | None) -> set[str]:
        """Keys for every stored item, built once per account per sync."""
        return {self.key_for(item) for item in (items or []) if isinstance(item, Mapping)}
