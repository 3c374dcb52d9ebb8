"""DigitalOcean provider: droplets, account SSH keys and droplet snapshots via the v2 API."""

import logging

from cloudlaunch.providers.base import CATALOG_ERRORS, CloudProvider
from cloudlaunch.providers.errors import ProviderError
from cloudlaunch.provisioning.types import (
    PENDING_IP,
    STATUS_INITIALIZING,
    STATUS_OFF,
    STATUS_RUNNING,
    ProvisionResult,
    Region,
    ServerSize,
    SnapshotInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.digitalocean.com/v2"
DEFAULT_IMAGE = "ubuntu-24-04-x64"
SNAPSHOT_PRICE_PER_GB = 0.06  # USD per GB per month
MIN_VCPUS = 2  # Coolify requires at least 2 CPUs


def _public_ipv4(droplet):
    for net in (droplet.get("networks") or {}).get("v4", []):
        if net.get("type") == "public" and net.get("ip_address"):
            return net["ip_address"]
    return PENDING_IP


class DigitalOceanProvider(CloudProvider):
    name = "digitalocean"
    display_name = "DigitalOcean"
    base_url = DEFAULT_API_URL
    validate_path = "/account"

    status_map = {
        "new": STATUS_INITIALIZING,
        "active": STATUS_RUNNING,
        "off": STATUS_OFF,
        "archive": "archive",
    }

    def _to_result(self, droplet) -> ProvisionResult:
        return ProvisionResult(
            id=str(droplet["id"]),
            ip=_public_ipv4(droplet),
            status=self.normalize_status(droplet.get("status")),
        )

    # ── Catalogs ───────────────────────────────────────────────────

    def get_regions(self):
        return [
            Region("nyc1", "New York 1", "USA"),
            Region("sfo3", "San Francisco 3", "USA"),
            Region("ams3", "Amsterdam 3", "Netherlands"),
            Region("sgp1", "Singapore 1", "Singapore"),
            Region("lon1", "London 1", "UK"),
            Region("fra1", "Frankfurt 1", "Germany"),
        ]

    def get_server_sizes(self):
        # Minimum 2GB RAM required for Coolify
        return [
            ServerSize("s-2vcpu-2gb", "Basic 2GB", vcpu=2, ram=2, disk=60, price="$12/mo"),
            ServerSize("s-2vcpu-4gb", "Basic 4GB", vcpu=2, ram=4, disk=80, price="$24/mo", recommended=True),
            ServerSize("s-4vcpu-8gb", "General 8GB", vcpu=4, ram=8, disk=160, price="$48/mo"),
        ]

    async def get_available_locations(self):
        try:
            data = await self._request("GET", "/regions", "list regions", params={"per_page": 200})
            regions = [Region(r["slug"], r["name"], r["slug"]) for r in data["regions"] if r.get("available")]
        except CATALOG_ERRORS as e:
            logger.debug(f"Live region lookup failed, using static catalog: {e}")
            return self.get_regions()
        return regions or self.get_regions()

    async def get_available_server_types(self, region, mode=None):
        try:
            data = await self._request("GET", "/sizes", "list sizes", params={"per_page": 200})
            floor_mb = self.ram_floor_gb(mode) * 1024
            min_vcpus = 1 if floor_mb == 0 else MIN_VCPUS
            sizes = [
                ServerSize(
                    id=s["slug"],
                    name=s["slug"].upper(),
                    vcpu=s["vcpus"],
                    ram=s["memory"] / 1024,
                    disk=s["disk"],
                    price=f"${s['price_monthly']:.2f}/mo",
                )
                for s in data["sizes"]
                if s.get("available") and region in s.get("regions", []) and s["memory"] >= floor_mb and s["vcpus"] >= min_vcpus
            ]
        except CATALOG_ERRORS as e:
            logger.debug(f"Live size lookup failed, using static catalog: {e}")
            return self.get_server_sizes()
        return sizes or self.get_server_sizes()

    # ── SSH keys ───────────────────────────────────────────────────

    async def upload_ssh_key(self, name, public_key):
        try:
            data = await self._request("POST", "/account/keys", "upload SSH key", json={"name": name, "public_key": public_key})
            with self._reading("upload SSH key"):
                return str(data["ssh_key"]["id"])
        except ProviderError as e:
            # DigitalOcean answers 422 "SSH Key is already in use on your account"
            if e.status_code not in (409, 422):
                raise
            conflict = e
        listing = await self._request("GET", "/account/keys", "list SSH keys", params={"per_page": 200})
        with self._reading("list SSH keys"):
            key_id = self._find_key_id(listing.get("ssh_keys", []), public_key, "public_key")
        if key_id is None:
            raise conflict
        logger.info(f"SSH key already registered on {self.display_name} (id={key_id}).")
        return key_id

    # ── Droplets ───────────────────────────────────────────────────

    async def create_server(self, request):
        body = {
            "name": request.name,
            "size": request.size,
            "region": request.region,
            "image": DEFAULT_IMAGE,
            "user_data": request.boot_script,
        }
        if request.ssh_key_ids:
            body["ssh_keys"] = [int(k) if str(k).isdigit() else k for k in request.ssh_key_ids]
        data = await self._request("POST", "/droplets", "create server", json=body)
        with self._reading("create server"):
            return self._to_result(data["droplet"])

    async def get_server_status(self, server_id):
        data = await self._request("GET", f"/droplets/{server_id}", "get server status")
        with self._reading("get server status"):
            return self.normalize_status(data["droplet"]["status"])

    async def get_server_details(self, server_id):
        data = await self._request("GET", f"/droplets/{server_id}", "get server details")
        with self._reading("get server details"):
            return self._to_result(data["droplet"])

    async def destroy_server(self, server_id):
        await self._request("DELETE", f"/droplets/{server_id}", "destroy server")

    async def reboot_server(self, server_id):
        await self._request("POST", f"/droplets/{server_id}/actions", "reboot server", json={"type": "reboot"})

    # ── Snapshots ──────────────────────────────────────────────────

    async def create_snapshot(self, server_id, name):
        data = await self._request(
            "POST", f"/droplets/{server_id}/actions", "create snapshot", json={"type": "snapshot", "name": name}
        )
        # The snapshot id is only known once the action completes; report the action.
        with self._reading("create snapshot"):
            action = data["action"]
            return SnapshotInfo(
                id=str(action["id"]),
                server_id=str(server_id),
                name=name,
                status=action.get("status", "in-progress"),
                size_gb=0.0,
                created_at=action.get("started_at", ""),
                cost_per_month="pending",
            )

    async def list_snapshots(self, server_id):
        data = await self._request("GET", f"/droplets/{server_id}/snapshots", "list snapshots", params={"per_page": 200})
        with self._reading("list snapshots"):
            return [
                SnapshotInfo(
                    id=str(snap["id"]),
                    server_id=str(server_id),
                    name=snap.get("name", ""),
                    status="available",
                    size_gb=float(snap.get("size_gigabytes") or 0),
                    created_at=snap.get("created_at", ""),
                    cost_per_month=f"${(snap.get('size_gigabytes') or 0) * SNAPSHOT_PRICE_PER_GB:.2f}/mo",
                )
                for snap in data.get("snapshots", [])
            ]

    async def delete_snapshot(self, snapshot_id):
        await self._request("DELETE", f"/snapshots/{snapshot_id}", "delete snapshot")

    async def get_snapshot_cost_estimate(self, server_id):
        data = await self._request("GET", f"/droplets/{server_id}", "get snapshot cost")
        with self._reading("get snapshot cost"):
            disk_gb = data["droplet"].get("disk") or 0
            return f"${disk_gb * SNAPSHOT_PRICE_PER_GB:.2f}/mo"
