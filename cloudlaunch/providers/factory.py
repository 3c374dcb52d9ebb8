"""Provider factory: map a vendor name to a constructed adapter."""

from cloudlaunch.providers.digitalocean import DigitalOceanProvider
from cloudlaunch.providers.hetzner import HetznerProvider
from cloudlaunch.providers.linode import LinodeProvider
from cloudlaunch.providers.vultr import VultrProvider

PROVIDERS = {
    "hetzner": HetznerProvider,
    "digitalocean": DigitalOceanProvider,
    "vultr": VultrProvider,
    "linode": LinodeProvider,
}

SUPPORTED_PROVIDERS = tuple(PROVIDERS)


class UnknownProviderError(ValueError):
    """Raised for vendor names that have no adapter."""

    def __init__(self, name):
        super().__init__(f"Unknown provider: {name}")
        self.provider = name


def is_valid_provider(name) -> bool:
    return name in PROVIDERS


def _provider_class(name):
    try:
        return PROVIDERS[name]
    except (KeyError, TypeError):
        raise UnknownProviderError(name) from None


def create_provider(name, client=None):
    """Build an adapter without a credential, for catalog-only use."""
    return _provider_class(name)("", client=client)


def create_provider_with_token(name, token, client=None):
    """Build an adapter bound to *token* for the lifetime of the instance."""
    return _provider_class(name)(token, client=client)
