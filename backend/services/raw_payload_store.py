"""Persistence of raw provider snapshots.

Each ProviderAccount keeps three documents (accounts, transactions,
holdings), each with its own version counter, so one can be rewritten
without touching the others. Incremental data is merged with a single
read-merge-write per account rather than item-by-item writes.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from models import Connection, ProviderAccount
from services.dedup import DeduplicationKeyer

logger = logging.getLogger(__name__)

# slot -> (document column, version column)
SLOTS: dict[str, tuple[str, str]] = {
    "accounts": ("raw_payload", "raw_payload_version"),
    "transactions": ("raw_transactions_payload", "raw_transactions_version"),
    "holdings": ("raw_holdings_payload", "raw_holdings_version"),
}


@dataclass
class MergeResult:
    new_items: int = 0
    duplicates: int = 0
    total: int = 0


class RawPayloadStore:
    """Reads and writes the raw documents on Connections and ProviderAccounts.

    Documents are always reassigned (never mutated in place) so SQLAlchemy
    detects the change on its JSON columns.
    """

    @staticmethod
    def _columns(slot: str) -> tuple[str, str]:
        try:
            return SLOTS[slot]
        except KeyError:
            raise ValueError(f"Unknown raw payload slot '{slot}'") from None

    def store_connection_snapshot(self, connection: Connection, payload: Any) -> int:
        """Store the account-list snapshot verbatim. Returns the new version."""
        connection.raw_payload = payload
        connection.raw_payload_version = (connection.raw_payload_version or 0) + 1
        return connection.raw_payload_version

    def read(self, provider_account: ProviderAccount, slot: str) -> Any:
        column, _ = self._columns(slot)
        return getattr(provider_account, column)

    def version(self, provider_account: ProviderAccount, slot: str) -> int:
        _, version_column = self._columns(slot)
        return getattr(provider_account, version_column) or 0

    def replace(self, provider_account: ProviderAccount, slot: str, document: Any) -> int:
        """Explicitly replace a document. Returns the new version."""
        column, version_column = self._columns(slot)
        setattr(provider_account, column, document)
        new_version = (getattr(provider_account, version_column) or 0) + 1
        setattr(provider_account, version_column, new_version)
        return new_version

    def merge_append(
        self,
        provider_account: ProviderAccount,
        slot: str,
        items: Iterable[dict[str, Any]],
        keyer: DeduplicationKeyer,
    ) -> MergeResult:
        """Append genuinely new items to a list document.

        Items already present (by dedup key) are skipped, including
        duplicates within ``items`` itself. Stored items are never
        modified. The document is written once, and only if something new
        arrived.
        """
        existing = list(self.read(provider_account, slot) or [])
        seen = keyer.existing_keys(existing)
        new_items: list[dict[str, Any]] = []
        duplicates = 0

        for item in items:
            if not isinstance(item, dict):
                continue
            key = keyer.key_for(item)
            if key in seen:
                duplicates += 1
                continue
            seen.add(key)
            new_items.append(item)

        if new_items:
            self.replace(provider_account, slot, existing + new_items)
            logger.info(
                "Stored %d new %s for account %s (%d existing, %d duplicates skipped)",
                len(new_items), slot, provider_account.external_id, len(existing), duplicates,
            )
        else:
            logger.debug(
                "No new %s for account %s (%d duplicates skipped)",
                slot, provider_account.external_id, duplicates,
            )

        return MergeResult(
            new_items=len(new_items),
            duplicates=duplicates,
            total=len(existing) + len(new_items),
        )
