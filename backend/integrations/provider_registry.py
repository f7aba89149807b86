"""Provider registry for managing multiple data aggregation providers.

The registry is responsible for:
- Mapping a connection's ``provider_name`` to a payload profile
- Building a provider client for a connection from an explicit factory
- Listing registered providers

Nothing is discovered at import time and no client is cached between
connections; every sync asks the registry for a fresh client.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from integrations.http_client import HttpProviderClient
from integrations.provider_profiles import PROFILES, ProviderProfile
from integrations.provider_protocol import ProviderClient
from models import Connection

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Connection], ProviderClient]


@dataclass
class ProviderDefinition:
    """Profile plus client factory for one provider."""

    profile: ProviderProfile
    client_factory: ClientFactory


class ProviderRegistry:
    """Registry of provider definitions, keyed by provider name.

    Example:
        registry = ProviderRegistry()
        registry.register("brokerage", BROKERAGE_PROFILE, my_factory)
        client = registry.build_client(connection)
    """

    def __init__(self):
        self._definitions: dict[str, ProviderDefinition] = {}

    def register(
        self, name: str, profile: ProviderProfile, client_factory: ClientFactory
    ) -> None:
        """Register (or replace) a provider definition.

        Args:
            name: Provider name stored on ``Connection.provider_name``.
            profile: Payload profile for the provider.
            client_factory: Callable building a client from a Connection.
        """
        self._definitions[name] = ProviderDefinition(profile, client_factory)

    def get_definition(self, name: str) -> ProviderDefinition:
        """Get a provider definition by name.

        Raises:
            ValueError: If the provider is not registered.
        """
        if name not in self._definitions:
            raise ValueError(f"Provider '{name}' is not configured")
        return self._definitions[name]

    def get_profile(self, name: str) -> ProviderProfile:
        return self.get_definition(name).profile

    def build_client(self, connection: Connection) -> ProviderClient:
        """Build a provider client for the connection's provider."""
        definition = self.get_definition(connection.provider_name)
        return definition.client_factory(connection)

    def list_providers(self) -> list[str]:
        """List all registered provider names."""
        return list(self._definitions.keys())

    def is_configured(self, name: str) -> bool:
        return name in self._definitions


def http_client_factory(connection: Connection) -> ProviderClient:
    """Build an :class:`HttpProviderClient` from connection credentials.

    Expects ``credentials`` of the form ``{"base_url": ..., "token": ...}``.

    Raises:
        ValueError: If the connection has no ``base_url`` credential.
    """
    credentials = connection.credentials or {}
    base_url = credentials.get("base_url")
    if not base_url:
        raise ValueError(
            f"Connection {connection.id} has no base_url credential"
        )
    return HttpProviderClient(
        base_url=base_url,
        provider_name=connection.provider_name,
        token=credentials.get("token"),
    )


def get_provider_registry() -> ProviderRegistry:
    """Create a registry with every built-in profile bound to the HTTP client.

    Returns:
        A ProviderRegistry with all built-in providers registered.
    """
    registry = ProviderRegistry()
    for name, profile in PROFILES.items():
        registry.register(name, profile, http_client_factory)
    logger.debug("Providers registered: %s", ", ".join(registry.list_providers()))
    return registry
