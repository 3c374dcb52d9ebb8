"""Tests for the DigitalOcean adapter against a faked v2 API."""

import pytest

from cloudlaunch.providers.digitalocean import DigitalOceanProvider
from cloudlaunch.providers.errors import ProviderError
from cloudlaunch.provisioning.types import ProvisionRequest

TOKEN = "dop_v1_SecretTokenValue_abcdef0123"
PUBLIC_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIDoKey user@laptop"


def _provider(client):
    return DigitalOceanProvider(TOKEN, client=client)


def _droplet(status="new", networks=None):
    return {"droplet": {"id": 3164444, "status": status, "networks": networks or {"v4": []}, "disk": 80}}


@pytest.mark.parametrize(
    "raw, expected",
    [("new", "initializing"), ("active", "running"), ("off", "off"), ("archive", "archive"), ("weird", "unknown")],
)
def test_normalize_status(raw, expected):
    assert DigitalOceanProvider().normalize_status(raw) == expected


async def test_create_droplet_ip_pending_until_networks_exist(vendor):
    fake, client = vendor({("POST", "/v2/droplets"): (202, _droplet())})

    result = await _provider(client).create_server(ProvisionRequest("web-1", "fra1", "s-2vcpu-4gb", "#cloud", ["12"]))

    assert result.id == "3164444"
    assert result.ip == "pending"
    body = fake.body("POST", "/v2/droplets")
    assert body["user_data"] == "#cloud"
    assert body["ssh_keys"] == [12]


async def test_get_server_details_picks_public_ipv4(vendor):
    networks = {
        "v4": [
            {"ip_address": "10.110.0.2", "type": "private"},
            {"ip_address": "164.90.1.2", "type": "public"},
        ]
    }
    fake, client = vendor({("GET", "/v2/droplets/3164444"): (200, _droplet("active", networks))})

    details = await _provider(client).get_server_details("3164444")

    assert details.ip == "164.90.1.2"
    assert details.status == "running"


async def test_droplet_without_id_is_provider_error(vendor):
    fake, client = vendor({("GET", "/v2/droplets/3164444"): (200, {"droplet": {"status": "active"}})})
    with pytest.raises(ProviderError, match="Failed to get server details: unexpected response from DigitalOcean"):
        await _provider(client).get_server_details("3164444")


async def test_error_message_shape(vendor):
    body = {"id": "unprocessable_entity", "message": "Region is not available"}
    fake, client = vendor({("POST", "/v2/droplets"): (422, body)})
    with pytest.raises(ProviderError, match="Failed to create server: Region is not available"):
        await _provider(client).create_server(ProvisionRequest("web-1", "fra1", "s-1", "x"))


async def test_upload_ssh_key_422_conflict_reuses_key(vendor):
    fake, client = vendor(
        {
            ("POST", "/v2/account/keys"): (422, {"message": "SSH Key is already in use on your account"}),
            ("GET", "/v2/account/keys"): (200, {"ssh_keys": [{"id": 512190, "public_key": PUBLIC_KEY}]}),
        }
    )
    provider = _provider(client)
    assert await provider.upload_ssh_key("k", PUBLIC_KEY) == "512190"
    assert await provider.upload_ssh_key("k", PUBLIC_KEY) == "512190"


async def test_reboot_posts_action(vendor):
    fake, client = vendor({("POST", "/v2/droplets/1/actions"): (201, {"action": {"id": 9, "status": "in-progress"}})})
    await _provider(client).reboot_server("1")
    assert fake.body("POST", "/v2/droplets/1/actions") == {"type": "reboot"}


async def test_create_snapshot_reports_action(vendor):
    action = {"action": {"id": 36805022, "status": "in-progress", "started_at": "2024-01-01T00:00:00Z"}}
    fake, client = vendor({("POST", "/v2/droplets/1/actions"): (201, action)})

    snap = await _provider(client).create_snapshot("1", "cloudlaunch-1")

    assert snap.id == "36805022"
    assert snap.name == "cloudlaunch-1"
    assert snap.cost_per_month == "pending"
    assert fake.body("POST", "/v2/droplets/1/actions") == {"type": "snapshot", "name": "cloudlaunch-1"}


async def test_sizes_require_two_vcpus_unless_bare(vendor):
    sizes = {
        "sizes": [
            {"slug": "s-1vcpu-2gb", "vcpus": 1, "memory": 2048, "disk": 50, "price_monthly": 12, "available": True, "regions": ["fra1"]},
            {"slug": "s-2vcpu-4gb", "vcpus": 2, "memory": 4096, "disk": 80, "price_monthly": 24, "available": True, "regions": ["fra1"]},
            {"slug": "s-2vcpu-2gb", "vcpus": 2, "memory": 2048, "disk": 60, "price_monthly": 18, "available": True, "regions": ["nyc1"]},
        ]
    }
    fake, client = vendor({("GET", "/v2/sizes"): (200, sizes)})
    provider = _provider(client)

    assert [s.id for s in await provider.get_available_server_types("fra1")] == ["s-2vcpu-4gb"]
    assert [s.id for s in await provider.get_available_server_types("fra1", mode="bare")] == ["s-1vcpu-2gb", "s-2vcpu-4gb"]


async def test_snapshot_cost_estimate(vendor):
    fake, client = vendor({("GET", "/v2/droplets/1"): (200, _droplet("active"))})
    assert await _provider(client).get_snapshot_cost_estimate("1") == "$4.80/mo"
