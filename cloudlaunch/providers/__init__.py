"""Cloud vendor adapters behind one capability contract."""

from cloudlaunch.providers.base import CloudProvider
from cloudlaunch.providers.errors import ProviderError, map_provider_error
from cloudlaunch.providers.factory import (
    SUPPORTED_PROVIDERS,
    UnknownProviderError,
    create_provider,
    create_provider_with_token,
    is_valid_provider,
)

__all__ = [
    "CloudProvider",
    "ProviderError",
    "map_provider_error",
    "SUPPORTED_PROVIDERS",
    "UnknownProviderError",
    "create_provider",
    "create_provider_with_token",
    "is_valid_provider",
]
