"""Tests for the generic HTTP provider client."""

from datetime import date

import httpx
import pytest

from integrations.exceptions import (
    ProviderAPIError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderDataError,
    ProviderRateLimitError,
)
from integrations.http_client import HttpProviderClient


def make_client(handler, token="secret") -> HttpProviderClient:
    return HttpProviderClient(
        base_url="https://api.example.test/",
        provider_name="brokerage",
        token=token,
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


class TestRequests:
    """Successful calls and request shape."""

    def test_list_accounts(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"accounts": [{"id": "a1"}, "junk", {"id": "a2"}]})

        accounts = make_client(handler).list_accounts()

        assert accounts == [{"id": "a1"}, {"id": "a2"}]
        assert seen["url"] == "https://api.example.test/accounts"
        assert seen["auth"] == "Bearer secret"

    def test_no_token_no_auth_header(self):
        def handler(request):
            assert "Authorization" not in request.headers
            return httpx.Response(200, json=[])

        assert make_client(handler, token=None).list_accounts() == []

    def test_get_transactions_passes_since_and_cursor(self):
        def handler(request):
            assert request.url.path == "/accounts/a1/transactions"
            assert request.url.params["since"] == "2026-01-01"
            assert request.url.params["cursor"] == "c1"
            return httpx.Response(200, json={"transactions": [{"id": "t1"}], "next_cursor": "c2"})

        page = make_client(handler).get_transactions("a1", since=date(2026, 1, 1), cursor="c1")

        assert page.items == [{"id": "t1"}]
        assert page.next_cursor == "c2"

    def test_empty_next_cursor_normalized_to_none(self):
        def handler(request):
            return httpx.Response(200, json={"transactions": [], "next_cursor": ""})

        assert make_client(handler).get_transactions("a1").next_cursor is None

    def test_get_holdings(self):
        def handler(request):
            return httpx.Response(200, json={"holdings": [{"symbol": "VTI"}]})

        assert make_client(handler).get_holdings("a1") == [{"symbol": "VTI"}]

    def test_get_balances(self):
        def handler(request):
            return httpx.Response(200, json={"balance": 10, "cash": 2})

        assert make_client(handler).get_balances("a1") == {"balance": 10, "cash": 2}


class TestErrorMapping:
    """HTTP and network failures map onto provider exceptions."""

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_errors(self, status):
        client = make_client(lambda r: httpx.Response(status))
        with pytest.raises(ProviderAuthError) as exc_info:
            client.list_accounts()
        assert exc_info.value.provider_name == "brokerage"

    def test_rate_limit_with_retry_after(self):
        client = make_client(lambda r: httpx.Response(429, headers={"Retry-After": "12"}))
        with pytest.raises(ProviderRateLimitError) as exc_info:
            client.list_accounts()
        assert exc_info.value.retry_after == 12.0
        assert exc_info.value.retriable is True

    def test_server_error(self):
        client = make_client(lambda r: httpx.Response(503))
        with pytest.raises(ProviderAPIError) as exc_info:
            client.get_holdings("a1")
        assert exc_info.value.status_code == 503
        assert exc_info.value.retriable is True

    def test_connect_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderConnectionError):
            make_client(handler).list_accounts()

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ProviderConnectionError):
            make_client(handler).list_accounts()

    def test_read_error_is_connection_error(self):
        def handler(request):
            raise httpx.ReadError("connection reset by peer", request=request)

        with pytest.raises(ProviderConnectionError) as exc_info:
            make_client(handler).list_accounts()
        assert exc_info.value.retriable is True

    def test_protocol_error_is_connection_error(self):
        def handler(request):
            raise httpx.RemoteProtocolError("server disconnected", request=request)

        with pytest.raises(ProviderConnectionError):
            make_client(handler).get_transactions("a1")

    def test_non_json_body(self):
        client = make_client(lambda r: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(ProviderDataError):
            client.list_accounts()

    def test_missing_list_key(self):
        client = make_client(lambda r: httpx.Response(200, json={"accounts": "nope"}))
        with pytest.raises(ProviderDataError, match="accounts"):
            client.list_accounts()

    def test_balances_must_be_object(self):
        client = make_client(lambda r: httpx.Response(200, json=[1, 2]))
        with pytest.raises(ProviderDataError):
            client.get_balances("a1")
