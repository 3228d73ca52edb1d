"""Oceanengine (Qianchuan) OAuth provider integration."""
from .client import OceanengineOAuthClient, TokenSet
from .exceptions import (
    ProviderDeniedError,
    ProviderError,
    ProviderRejectedError,
    ProviderUnreachableError,
)
from .factory import create_oceanengine_client

__all__ = [
    # Exceptions
    "ProviderError",
    "ProviderUnreachableError",
    "ProviderRejectedError",
    "ProviderDeniedError",
    # Client
    "OceanengineOAuthClient",
    "TokenSet",
    # Factory
    "create_oceanengine_client",
]
