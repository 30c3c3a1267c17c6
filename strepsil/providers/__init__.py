"""
Provider clients, model lists and pricing.
"""
from strepsil.providers.clients import (
    NormalizedResponse,
    ProviderClient,
    ProviderError,
    ProviderRegistry,
    get_provider_registry,
)

__all__ = [
    "NormalizedResponse",
    "ProviderClient",
    "ProviderError",
    "ProviderRegistry",
    "get_provider_registry",
]
