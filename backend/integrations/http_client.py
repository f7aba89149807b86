"""Generic JSON-over-HTTP provider client.

Implements :class:`~integrations.provider_protocol.ProviderClient` against a
conventional REST layout::

    GET /accounts                              -> {"accounts": [...]}
    GET /accounts/{ref}/balances               -> {...}
    GET /accounts/{ref}/transactions?since&cursor
                                               -> {"transactions": [...], "next_cursor": ...}
    GET /accounts/{ref}/holdings               -> {"holdings": [...]}

Every request carries a per-call timeout, and HTTP/network failures are
mapped onto the typed provider exception hierarchy.
"""

import logging
from datetime import date
from typing import Any

import httpx

from config import settings
from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
    ProviderRateLimitError,
)
from integrations.provider_protocol import TransactionPage

logger = logging.getLogger(__name__)


class HttpProviderClient:
    """Provider client for aggregators exposing the conventional REST layout."""

    def __init__(
        self,
        base_url: str,
        provider_name: str,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Root URL of the provider API.
            provider_name: Name used in logs and raised errors.
            token: Bearer token, if the provider needs one.
            timeout: Per-request timeout in seconds. Defaults to
                     ``settings.PROVIDER_TIMEOUT_SECONDS``.
            transport: Optional httpx transport (tests use ``MockTransport``).
        """
        self._base_url = base_url.rstrip("/")
        self._provider_name = provider_name
        self._token = token
        self._timeout = timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return self._provider_name

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Issue one GET and return the decoded JSON body."""
        name = self._provider_name
        try:
            with httpx.Client(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=self._headers(),
                transport=self._transport,
            ) as client:
                response = client.get(path, params=params)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status in (401, 403):
                raise ProviderAuthError(
                    f"{name} authentication failed (HTTP {status})",
                    provider_name=name,
                ) from exc
            if status == 429:
                retry_after = exc.response.headers.get("Retry-After")
                raise ProviderRateLimitError(
                    f"{name} rate limit exceeded",
                    provider_name=name,
                    retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                ) from exc
            raise ProviderAPIError(
                f"{name} API error (HTTP {status})",
                provider_name=name,
                status_code=status,
            ) from exc
        except httpx.TransportError as exc:
            raise ProviderConnectionError(
                f"{name} connection failed: {exc}",
                provider_name=name,
            ) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ProviderDataError(
                f"{name} returned a non-JSON response for {path}",
                provider_name=name,
            ) from exc

    def _list_field(self, body: Any, key: str, path: str) -> list[dict[str, Any]]:
        if isinstance(body, list):
            items = body
        elif isinstance(body, dict):
            items = body.get(key) or []
        else:
            items = None
        if not isinstance(items, list):
            raise ProviderDataError(
                f"{self._provider_name} response for {path} has no '{key}' list",
                provider_name=self._provider_name,
            )
        return [item for item in items if isinstance(item, dict)]

    def list_accounts(self) -> list[dict[str, Any]]:
        body = self._get("/accounts")
        accounts = self._list_field(body, "accounts", "/accounts")
        logger.info("%s: %d accounts listed", self._provider_name, len(accounts))
        return accounts

    def get_balances(self, account_ref: str) -> dict[str, Any]:
        path = f"/accounts/{account_ref}/balances"
        body = self._get(path)
        if not isinstance(body, dict):
            raise ProviderDataError(
                f"{self._provider_name} balance response for {account_ref} is not an object",
                provider_name=self._provider_name,
            )
        return body

    def get_transactions(
        self,
        account_ref: str,
        since: date | None = None,
        cursor: str | None = None,
    ) -> TransactionPage:
        path = f"/accounts/{account_ref}/transactions"
        params: dict[str, Any] = {}
        if since is not None:
            params["since"] = since.isoformat()
        if cursor:
            params["cursor"] = cursor
        body = self._get(path, params=params)
        items = self._list_field(body, "transactions", path)
        next_cursor = body.get("next_cursor") if isinstance(body, dict) else None
        return TransactionPage(items=items, next_cursor=next_cursor or None)

    def get_holdings(self, account_ref: str) -> list[dict[str, Any]]:
        path = f"/accounts/{account_ref}/holdings"
        return self._list_field(self._get(path), "holdings", path)
