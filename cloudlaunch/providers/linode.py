"""Linode (Akamai) provider: instances, profile SSH keys and disk images via the v4 API."""

import base64
import logging
import secrets

from cloudlaunch.providers.base import CATALOG_ERRORS, CloudProvider
from cloudlaunch.providers.errors import ProviderError
from cloudlaunch.provisioning.types import (
    PENDING_IP,
    SNAPSHOT_PREFIX,
    STATUS_INITIALIZING,
    STATUS_OFF,
    STATUS_RUNNING,
    ProvisionResult,
    Region,
    ServerSize,
    SnapshotInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.linode.com/v4"
DEFAULT_IMAGE = "linode/ubuntu24.04"
SNAPSHOT_PRICE_PER_GB = 0.10  # USD per GB per month for custom images


def _root_password():
    # Linode requires upper, lower, digit and special characters
    return f"Ql1!{secrets.token_urlsafe(21)[:28]}"


def _mb_to_gb(mb):
    return (mb or 0) / 1024


class LinodeProvider(CloudProvider):
    name = "linode"
    display_name = "Linode (Akamai)"
    base_url = DEFAULT_API_URL
    validate_path = "/profile"
    min_ram_gb = 4  # Coolify needs 2GB, 4GB recommended

    status_map = {
        "provisioning": STATUS_INITIALIZING,
        "booting": STATUS_INITIALIZING,
        "running": STATUS_RUNNING,
        "offline": STATUS_OFF,
        "shutting_down": STATUS_OFF,
        "stopped": STATUS_OFF,
        "rebooting": "rebooting",
        "rebuilding": "rebuilding",
        "migrating": "migrating",
        "resizing": "resizing",
        "restoring": "restoring",
        "cloning": "cloning",
        "deleting": "deleting",
    }

    def _to_result(self, instance) -> ProvisionResult:
        ipv4 = instance.get("ipv4") or []
        return ProvisionResult(
            id=str(instance["id"]),
            ip=ipv4[0] if ipv4 else PENDING_IP,
            status=self.normalize_status(instance.get("status")),
        )

    # ── Catalogs ───────────────────────────────────────────────────

    def get_regions(self):
        return [
            Region("us-east", "Newark, NJ", "USA"),
            Region("eu-west", "London", "UK"),
            Region("eu-central", "Frankfurt", "Germany"),
            Region("ap-south", "Singapore", "Singapore"),
        ]

    def get_server_sizes(self):
        return [
            ServerSize("g6-standard-2", "Linode 4GB", vcpu=2, ram=4, disk=80, price="$24/mo", recommended=True),
            ServerSize("g6-standard-4", "Linode 8GB", vcpu=4, ram=8, disk=160, price="$48/mo"),
            ServerSize("g6-standard-6", "Linode 16GB", vcpu=6, ram=16, disk=320, price="$96/mo"),
        ]

    async def get_available_locations(self):
        try:
            data = await self._request("GET", "/regions", "list regions")
            regions = [
                Region(r["id"], r["label"], r["country"])
                for r in data["data"]
                if r.get("status") == "ok" and "Linodes" in r.get("capabilities", [])
            ]
        except CATALOG_ERRORS as e:
            logger.debug(f"Live region lookup failed, using static catalog: {e}")
            return self.get_regions()
        return regions or self.get_regions()

    async def get_available_server_types(self, region, mode=None):
        # Linode types are offered in every region; region is not part of the filter.
        try:
            data = await self._request("GET", "/linode/types", "list types")
            floor_mb = self.ram_floor_gb(mode) * 1024
            sizes = [
                ServerSize(
                    id=t["id"],
                    name=t["label"],
                    vcpu=t["vcpus"],
                    ram=round(t["memory"] / 1024),
                    disk=round(t["disk"] / 1024),
                    price=f"${t['price']['monthly']:.2f}/mo",
                )
                for t in data["data"]
                if t["memory"] >= floor_mb and t["id"].startswith("g6-standard") and not t.get("successor")
            ]
        except CATALOG_ERRORS as e:
            logger.debug(f"Live type lookup failed, using static catalog: {e}")
            return self.get_server_sizes()
        return sizes or self.get_server_sizes()

    # ── SSH keys ───────────────────────────────────────────────────

    async def upload_ssh_key(self, name, public_key):
        try:
            data = await self._request("POST", "/profile/sshkeys", "upload SSH key", json={"label": name, "ssh_key": public_key})
            with self._reading("upload SSH key"):
                return str(data["id"])
        except ProviderError as e:
            # Linode rejects duplicate keys with a plain 400
            if e.status_code not in (400, 409):
                raise
            conflict = e
        listing = await self._request("GET", "/profile/sshkeys", "list SSH keys")
        with self._reading("list SSH keys"):
            key_id = self._find_key_id(listing.get("data", []), public_key, "ssh_key")
        if key_id is None:
            raise conflict
        logger.info(f"SSH key already registered on {self.display_name} (id={key_id}).")
        return key_id

    async def _profile_username(self):
        """Account username used for authorized_users, or None if it cannot be read."""
        try:
            data = await self._request("GET", "/profile", "read profile")
        except ProviderError as e:
            logger.debug(f"Could not read Linode profile, relying on cloud-init for SSH keys: {e}")
            return None
        username = data.get("username")
        return username if isinstance(username, str) and username else None

    # ── Instances ──────────────────────────────────────────────────

    async def create_server(self, request):
        body = {
            "label": request.name,
            "type": request.size,
            "region": request.region,
            "image": DEFAULT_IMAGE,
            "root_pass": _root_password(),
            "metadata": {"user_data": base64.b64encode(request.boot_script.encode()).decode()},
        }
        if request.ssh_key_ids:
            # Linode injects keys through the profile username, not key ids
            username = await self._profile_username()
            if username:
                body["authorized_users"] = [username]
        data = await self._request("POST", "/linode/instances", "create server", json=body)
        with self._reading("create server"):
            return self._to_result(data)

    async def get_server_status(self, server_id):
        data = await self._request("GET", f"/linode/instances/{server_id}", "get server status")
        with self._reading("get server status"):
            return self.normalize_status(data["status"])

    async def get_server_details(self, server_id):
        data = await self._request("GET", f"/linode/instances/{server_id}", "get server details")
        with self._reading("get server details"):
            return self._to_result(data)

    async def destroy_server(self, server_id):
        await self._request("DELETE", f"/linode/instances/{server_id}", "destroy server")

    async def reboot_server(self, server_id):
        await self._request("POST", f"/linode/instances/{server_id}/reboot", "reboot server", json={})

    # ── Snapshots (private images) ─────────────────────────────────

    def _to_snapshot(self, image, server_id, fallback_name="") -> SnapshotInfo:
        size_gb = _mb_to_gb(image.get("size"))
        return SnapshotInfo(
            id=str(image["id"]),
            server_id=str(server_id),
            name=image.get("label") or fallback_name,
            status=image.get("status", "unknown"),
            size_gb=size_gb,
            created_at=image.get("created", ""),
            cost_per_month=f"${size_gb * SNAPSHOT_PRICE_PER_GB:.2f}/mo",
        )

    async def create_snapshot(self, server_id, name):
        disks = await self._request("GET", f"/linode/instances/{server_id}/disks", "create snapshot")
        with self._reading("create snapshot"):
            found = disks.get("data") or []
            disk_id = max(found, key=lambda d: d.get("size", 0))["id"] if found else None
        if disk_id is None:
            raise ProviderError("Failed to create snapshot: No disks found on this instance")
        image = await self._request("POST", "/images", "create snapshot", json={"disk_id": disk_id, "label": name})
        with self._reading("create snapshot"):
            return self._to_snapshot(image, server_id, fallback_name=name)

    async def list_snapshots(self, server_id):
        data = await self._request("GET", "/images", "list snapshots", params={"page": 1, "page_size": 100})
        with self._reading("list snapshots"):
            return [
                self._to_snapshot(image, server_id)
                for image in data.get("data", [])
                if image.get("type") == "manual" and str(image.get("label", "")).startswith(SNAPSHOT_PREFIX)
            ]

    async def delete_snapshot(self, snapshot_id):
        await self._request("DELETE", f"/images/{snapshot_id}", "delete snapshot")

    async def get_snapshot_cost_estimate(self, server_id):
        data = await self._request("GET", f"/linode/instances/{server_id}", "get snapshot cost")
        with self._reading("get snapshot cost"):
            disk_gb = _mb_to_gb((data.get("specs") or {}).get("disk") or data.get("disk"))
            return f"${disk_gb * SNAPSHOT_PRICE_PER_GB:.2f}/mo"
