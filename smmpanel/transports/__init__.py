"""
Transport implementations for talking to upstream SMM providers.
"""

from .provider import ProviderClient, ProviderError, map_provider_status

__all__ = ["ProviderClient", "ProviderError", "map_provider_status"]
