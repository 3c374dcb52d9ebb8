"""Vultr provider: instances, SSH keys and snapshots via the v2 API."""

import base64
import logging

from cloudlaunch.providers.base import CATALOG_ERRORS, CloudProvider
from cloudlaunch.providers.errors import ProviderError
from cloudlaunch.provisioning.types import (
    PENDING_IP,
    SNAPSHOT_PREFIX,
    STATUS_INITIALIZING,
    STATUS_OFF,
    STATUS_RUNNING,
    STATUS_UNKNOWN,
    ProvisionResult,
    Region,
    ServerSize,
    SnapshotInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.vultr.com/v2"
UBUNTU_OS_ID = 2284  # Ubuntu 24.04 LTS x64
SNAPSHOT_PRICE_PER_GB = 0.05  # USD per GB per month
_BYTES_PER_GB = 1024**3


class VultrProvider(CloudProvider):
    name = "vultr"
    display_name = "Vultr"
    base_url = DEFAULT_API_URL
    validate_path = "/account"

    # Vultr reports both a lifecycle status and a power status; see normalize_instance().
    status_map = {
        "pending": STATUS_INITIALIZING,
        "running": STATUS_RUNNING,
        "stopped": STATUS_OFF,
        "suspended": "suspended",
        "resizing": "resizing",
    }

    def normalize_instance(self, instance) -> str:
        """Normalize an instance dict using status first, then power_status."""
        status = instance.get("status")
        if status in ("pending", "suspended", "resizing"):
            return self.status_map[status]
        if status == "active":
            return self.normalize_status(instance.get("power_status"))
        return STATUS_UNKNOWN

    def _to_result(self, instance) -> ProvisionResult:
        # main_ip is "0.0.0.0" until an address is allocated
        return ProvisionResult(
            id=str(instance["id"]),
            ip=instance.get("main_ip") or PENDING_IP,
            status=self.normalize_instance(instance),
        )

    # ── Catalogs ───────────────────────────────────────────────────

    def get_regions(self):
        return [
            Region("ewr", "New Jersey", "USA"),
            Region("ord", "Chicago", "USA"),
            Region("ams", "Amsterdam", "Netherlands"),
            Region("fra", "Frankfurt", "Germany"),
        ]

    def get_server_sizes(self):
        return [
            ServerSize("vc2-1c-2gb", "VC2-1C-2GB", vcpu=1, ram=2, disk=55, price="$10/mo"),
            ServerSize("vc2-2c-4gb", "VC2-2C-4GB", vcpu=2, ram=4, disk=80, price="$20/mo", recommended=True),
            ServerSize("vc2-4c-8gb", "VC2-4C-8GB", vcpu=4, ram=8, disk=160, price="$40/mo"),
        ]

    async def get_available_locations(self):
        try:
            data = await self._request("GET", "/regions", "list regions")
            regions = [Region(r["id"], r["city"], r["country"]) for r in data["regions"] if r.get("options")]
        except CATALOG_ERRORS as e:
            logger.debug(f"Live region lookup failed, using static catalog: {e}")
            return self.get_regions()
        return regions or self.get_regions()

    async def get_available_server_types(self, region, mode=None):
        try:
            data = await self._request("GET", "/plans", "list plans", params={"type": "vc2"})
            floor_mb = self.ram_floor_gb(mode) * 1024
            sizes = [
                ServerSize(
                    id=p["id"],
                    name=p["id"].upper(),
                    vcpu=p["vcpu_count"],
                    ram=p["ram"] / 1024,
                    disk=p["disk"],
                    price=f"${p['monthly_cost']:.2f}/mo",
                )
                for p in data["plans"]
                if p.get("type") == "vc2" and p["ram"] >= floor_mb and region in p.get("locations", [])
            ]
        except CATALOG_ERRORS as e:
            logger.debug(f"Live plan lookup failed, using static catalog: {e}")
            return self.get_server_sizes()
        return sizes or self.get_server_sizes()

    # ── SSH keys ───────────────────────────────────────────────────

    async def upload_ssh_key(self, name, public_key):
        try:
            data = await self._request("POST", "/ssh-keys", "upload SSH key", json={"name": name, "ssh_key": public_key})
            with self._reading("upload SSH key"):
                return str(data["ssh_key"]["id"])
        except ProviderError as e:
            if e.status_code != 409:
                raise
            conflict = e
        listing = await self._request("GET", "/ssh-keys", "list SSH keys")
        with self._reading("list SSH keys"):
            key_id = self._find_key_id(listing.get("ssh_keys", []), public_key, "ssh_key")
        if key_id is None:
            raise conflict
        logger.info(f"SSH key already registered on {self.display_name} (id={key_id}).")
        return key_id

    # ── Instances ──────────────────────────────────────────────────

    async def create_server(self, request):
        body = {
            "label": request.name,
            "hostname": request.name,
            "plan": request.size,
            "region": request.region,
            "os_id": UBUNTU_OS_ID,
            "user_data": base64.b64encode(request.boot_script.encode()).decode(),
        }
        if request.ssh_key_ids:
            body["sshkey_id"] = list(request.ssh_key_ids)
        data = await self._request("POST", "/instances", "create server", json=body)
        with self._reading("create server"):
            return self._to_result(data["instance"])

    async def get_server_status(self, server_id):
        data = await self._request("GET", f"/instances/{server_id}", "get server status")
        with self._reading("get server status"):
            return self.normalize_instance(data["instance"])

    async def get_server_details(self, server_id):
        data = await self._request("GET", f"/instances/{server_id}", "get server details")
        with self._reading("get server details"):
            return self._to_result(data["instance"])

    async def destroy_server(self, server_id):
        await self._request("DELETE", f"/instances/{server_id}", "destroy server")

    async def reboot_server(self, server_id):
        await self._request("POST", f"/instances/{server_id}/reboot", "reboot server")

    # ── Snapshots ──────────────────────────────────────────────────

    def _to_snapshot(self, snap, server_id) -> SnapshotInfo:
        size_gb = (snap.get("size") or 0) / _BYTES_PER_GB
        return SnapshotInfo(
            id=str(snap["id"]),
            server_id=str(server_id),
            name=snap.get("description", ""),
            status=snap.get("status", "unknown"),
            size_gb=size_gb,
            created_at=snap.get("date_created", ""),
            cost_per_month=f"${size_gb * SNAPSHOT_PRICE_PER_GB:.2f}/mo",
        )

    async def create_snapshot(self, server_id, name):
        data = await self._request(
            "POST", "/snapshots", "create snapshot", json={"instance_id": server_id, "description": name}
        )
        with self._reading("create snapshot"):
            return self._to_snapshot(data["snapshot"], server_id)

    async def list_snapshots(self, server_id):
        # Vultr snapshots do not reference their source instance; match on our naming prefix.
        data = await self._request("GET", "/snapshots", "list snapshots", params={"per_page": 100})
        with self._reading("list snapshots"):
            return [
                self._to_snapshot(snap, server_id)
                for snap in data.get("snapshots", [])
                if str(snap.get("description", "")).startswith(SNAPSHOT_PREFIX)
            ]

    async def delete_snapshot(self, snapshot_id):
        await self._request("DELETE", f"/snapshots/{snapshot_id}", "delete snapshot")

    async def get_snapshot_cost_estimate(self, server_id):
        data = await self._request("GET", f"/instances/{server_id}", "get snapshot cost")
        with self._reading("get snapshot cost"):
            disk_gb = data["instance"].get("disk") or 0
            return f"${disk_gb * SNAPSHOT_PRICE_PER_GB:.2f}/mo"
