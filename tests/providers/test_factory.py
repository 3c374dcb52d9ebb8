"""Tests for the provider factory and provider error hints."""

import pytest

from cloudlaunch.providers import (
    SUPPORTED_PROVIDERS,
    UnknownProviderError,
    create_provider,
    create_provider_with_token,
    is_valid_provider,
)
from cloudlaunch.providers.digitalocean import DigitalOceanProvider
from cloudlaunch.providers.errors import ProviderError, extract_error_message, map_provider_error
from cloudlaunch.providers.hetzner import HetznerProvider
from cloudlaunch.providers.linode import LinodeProvider
from cloudlaunch.providers.vultr import VultrProvider


@pytest.mark.parametrize(
    "name, cls",
    [
        ("hetzner", HetznerProvider),
        ("digitalocean", DigitalOceanProvider),
        ("vultr", VultrProvider),
        ("linode", LinodeProvider),
    ],
)
def test_create_provider_with_token(name, cls):
    provider = create_provider_with_token(name, "secret-token-value")
    assert isinstance(provider, cls)
    assert provider.api_token == "secret-token-value"
    assert provider.name == name


def test_create_provider_without_token_has_static_catalogs():
    provider = create_provider("hetzner")
    assert provider.api_token == ""
    assert provider.get_regions()
    assert provider.get_server_sizes()


@pytest.mark.parametrize("name", ["aws", "Hetzner", "", None])
def test_unknown_provider_fails_fast(name):
    with pytest.raises(UnknownProviderError, match=f"Unknown provider: {name}"):
        create_provider(name)
    with pytest.raises(UnknownProviderError):
        create_provider_with_token(name, "t")


def test_supported_providers():
    assert set(SUPPORTED_PROVIDERS) == {"hetzner", "digitalocean", "vultr", "linode"}
    assert is_valid_provider("vultr")
    assert not is_valid_provider("gcp")


def test_token_is_read_only():
    provider = create_provider_with_token("vultr", "abc")
    with pytest.raises(AttributeError):
        provider.api_token = "other"


def test_repr_does_not_leak_token():
    assert "secret" not in repr(create_provider_with_token("linode", "secret-token-value"))


# ── Error extraction and hints ───────────────────────────────────


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"error": {"message": "server name is already used", "code": "uniqueness_error"}}, "server name is already used"),
        ({"message": "You specified an invalid size"}, "You specified an invalid size"),
        ({"error": "Invalid plan", "status": 400}, "Invalid plan"),
        ({"errors": [{"reason": "a"}, {"reason": "b"}]}, "a, b"),
        ({"unexpected": True}, ""),
        ([], ""),
    ],
)
def test_extract_error_message(body, expected):
    assert extract_error_message(body) == expected


@pytest.mark.parametrize(
    "status, fragment",
    [
        (401, "cloud.digitalocean.com/account/api/tokens"),
        (402, "billing"),
        (404, "not found"),
        (429, "rate limit"),
        (502, "HTTP 502"),
    ],
)
def test_map_provider_error_by_status(status, fragment):
    assert fragment in map_provider_error(ProviderError("x", status_code=status), "digitalocean")


def test_map_provider_error_by_message():
    assert "not available" in map_provider_error(ProviderError("server type sold out"), "hetzner")
    assert "Check your internet" in map_provider_error(ProviderError("x", network_error=True), "vultr")
    assert map_provider_error(ProviderError("something odd"), "linode") == ""
