"""External API integrations.

This package contains:
- Provider protocol: Common interface for data aggregation providers
- Provider profiles: Per-provider field paths and activity-type maps
- Raw payload: Typed accessors over stored provider records
- HTTP client: Generic JSON provider client with typed errors
- Provider registry: Explicit provider name -> (profile, client) mapping
- Security resolver: Instrument lookup via Yahoo Finance
"""

from integrations.provider_protocol import ProviderClient, TransactionPage
from integrations.provider_registry import ProviderRegistry, get_provider_registry

__all__ = [
    "ProviderClient",
    "ProviderRegistry",
    "TransactionPage",
    "get_provider_registry",
]
