"""Unit tests for the provider registry."""

import pytest

from integrations.http_client import HttpProviderClient
from integrations.provider_profiles import (
    BANK_PROFILE,
    BROKERAGE_PROFILE,
    PROFILES,
)
from integrations.provider_registry import (
    ProviderRegistry,
    get_provider_registry,
    http_client_factory,
)
from models import Connection
from tests.fixtures.mocks import MockProviderClient


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def test_empty_registry(self):
        """A new registry has no providers."""
        assert ProviderRegistry().list_providers() == []

    def test_register_provider(self):
        registry = ProviderRegistry()
        registry.register("brokerage", BROKERAGE_PROFILE, lambda c: MockProviderClient())

        assert registry.list_providers() == ["brokerage"]
        assert registry.is_configured("brokerage")
        assert not registry.is_configured("bank")

    def test_get_profile(self):
        registry = ProviderRegistry()
        registry.register("bank", BANK_PROFILE, lambda c: MockProviderClient(name="bank"))
        assert registry.get_profile("bank") is BANK_PROFILE

    def test_unknown_provider_raises(self):
        registry = ProviderRegistry()
        with pytest.raises(ValueError, match="not configured"):
            registry.get_definition("nope")

    def test_build_client_calls_factory_per_connection(self):
        """No client is cached; each call builds a fresh one."""
        built = []

        def factory(connection):
            client = MockProviderClient()
            built.append((connection, client))
            return client

        registry = ProviderRegistry()
        registry.register("brokerage", BROKERAGE_PROFILE, factory)
        connection = Connection(provider_name="brokerage", name="c")

        first = registry.build_client(connection)
        second = registry.build_client(connection)

        assert first is not second
        assert [c for c, _ in built] == [connection, connection]

    def test_register_replaces_existing(self):
        registry = ProviderRegistry()
        registry.register("brokerage", BROKERAGE_PROFILE, lambda c: MockProviderClient())
        registry.register("brokerage", BANK_PROFILE, lambda c: MockProviderClient())
        assert registry.get_profile("brokerage") is BANK_PROFILE


class TestDefaultRegistry:
    """Tests for get_provider_registry and the HTTP client factory."""

    def test_all_builtin_profiles_registered(self):
        registry = get_provider_registry()
        assert set(registry.list_providers()) == set(PROFILES)

    def test_http_factory_builds_client(self):
        connection = Connection(
            provider_name="bank",
            name="My Bank",
            credentials={"base_url": "https://bank.example.test/", "token": "t"},
        )
        client = http_client_factory(connection)
        assert isinstance(client, HttpProviderClient)
        assert client.provider_name == "bank"

    def test_http_factory_requires_base_url(self):
        connection = Connection(provider_name="bank", name="My Bank", credentials={})
        with pytest.raises(ValueError, match="base_url"):
            http_client_factory(connection)
