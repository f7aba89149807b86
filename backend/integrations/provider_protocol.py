"""Provider protocol definitions for multi-provider support.

This module defines the common interface that every data aggregation
provider client must implement for the sync engine to consume it. Payloads
are returned as plain dicts; field-name differences between providers are
absorbed by :mod:`integrations.raw_payload` and
:mod:`integrations.provider_profiles`, not by the clients.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Protocol


@dataclass
class TransactionPage:
    """One page of transactions plus the cursor for the next page."""

    items: list[dict[str, Any]] = field(default_factory=list)
    next_cursor: str | None = None  # None when the provider has no more pages


class ErrorCategory(str, Enum):
    """Category of a provider sync error."""

    CONNECTION = "connection"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    DATA = "data"
    UNKNOWN = "unknown"


@dataclass
class ProviderSyncError:
    """Structured error recorded against a sync run.

    Replaces plain error strings with typed, parseable error objects.
    """

    message: str
    category: ErrorCategory = ErrorCategory.UNKNOWN
    account_id: str | None = None  # Provider's external account ID
    retriable: bool = False

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "category": self.category.value,
            "account_id": self.account_id,
            "retriable": self.retriable,
        }


class ProviderClient(Protocol):
    """Protocol that all provider clients must implement.

    Every method must raise ``ProviderAuthError`` for credential problems
    (401/403 class) and another ``ProviderError`` subclass for anything
    else, so the importer can tell a dead connection from a bad request.
    """

    @property
    def provider_name(self) -> str:
        """Return the provider name (e.g., 'brokerage', 'bank')."""
        ...

    def list_accounts(self) -> list[dict[str, Any]]:
        """Fetch the account-list snapshot for the connection.

        Returns:
            One raw payload dict per upstream account.
        """
        ...

    def get_balances(self, account_ref: str) -> dict[str, Any]:
        """Fetch the balance payload for one account.

        Args:
            account_ref: The provider's external account ID.
        """
        ...

    def get_transactions(
        self,
        account_ref: str,
        since: date | None = None,
        cursor: str | None = None,
    ) -> TransactionPage:
        """Fetch one page of transactions for an account.

        Args:
            account_ref: The provider's external account ID.
            since: Only return transactions on or after this date.
            cursor: Continuation cursor from the previous page, or None
                    for the first page.

        Returns:
            The page of raw transaction payloads and the next cursor.
        """
        ...

    def get_holdings(self, account_ref: str) -> list[dict[str, Any]]:
        """Fetch the current holdings snapshot for an account."""
        ...
