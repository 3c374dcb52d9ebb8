"""Hetzner Cloud provider: servers, SSH keys and snapshot images via the v1 REST API."""

import logging

from cloudlaunch.providers.base import CATALOG_ERRORS, CloudProvider
from cloudlaunch.providers.errors import ProviderError
from cloudlaunch.provisioning.types import (
    PENDING_IP,
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

DEFAULT_API_URL = "https://api.hetzner.cloud/v1"
DEFAULT_IMAGE = "ubuntu-24.04"
SNAPSHOT_PRICE_PER_GB = 0.0119  # EUR per GB per month


class HetznerProvider(CloudProvider):
    name = "hetzner"
    display_name = "Hetzner Cloud"
    base_url = DEFAULT_API_URL
    validate_path = "/servers"

    status_map = {
        "initializing": STATUS_INITIALIZING,
        "starting": STATUS_INITIALIZING,
        "running": STATUS_RUNNING,
        "stopping": STATUS_OFF,
        "off": STATUS_OFF,
        "unknown": STATUS_UNKNOWN,
        "deleting": "deleting",
        "migrating": "migrating",
        "rebuilding": "rebuilding",
    }

    def _to_result(self, server) -> ProvisionResult:
        ipv4 = (server.get("public_net") or {}).get("ipv4") or {}
        return ProvisionResult(
            id=str(server["id"]),
            ip=ipv4.get("ip") or PENDING_IP,
            status=self.normalize_status(server.get("status")),
        )

    # ── Catalogs ───────────────────────────────────────────────────

    def get_regions(self):
        return [
            Region("nbg1", "Nuremberg", "Germany"),
            Region("fsn1", "Falkenstein", "Germany"),
            Region("hel1", "Helsinki", "Finland"),
            Region("ash", "Ashburn", "USA"),
            Region("hil", "Hillsboro", "USA"),
        ]

    def get_server_sizes(self):
        return [
            ServerSize("cax11", "CAX11", vcpu=2, ram=4, disk=40, price="€3.85/mo", recommended=True),
            ServerSize("cpx11", "CPX11", vcpu=2, ram=2, disk=40, price="€4.15/mo"),
            ServerSize("cax21", "CAX21", vcpu=4, ram=8, disk=80, price="€7.05/mo"),
            ServerSize("cpx21", "CPX21", vcpu=3, ram=4, disk=80, price="€7.35/mo"),
        ]

    async def get_available_locations(self):
        try:
            data = await self._request("GET", "/locations", "list locations")
            regions = [Region(loc["name"], loc["city"], loc["country"]) for loc in data["locations"]]
        except CATALOG_ERRORS as e:
            logger.debug(f"Live location lookup failed, using static catalog: {e}")
            return self.get_regions()
        return regions or self.get_regions()

    async def get_available_server_types(self, region, mode=None):
        try:
            data = await self._request("GET", "/server_types", "list server types")
            floor = self.ram_floor_gb(mode)
            sizes = []
            for st in data["server_types"]:
                if st.get("deprecated") or st.get("deprecation"):
                    continue
                if st["memory"] < floor:
                    continue
                price = next((p for p in st.get("prices", []) if p.get("location") == region), None)
                if price is None:
                    continue
                gross = (price.get("price_monthly") or {}).get("gross")
                monthly = f"{float(gross):.2f}" if gross else "N/A"
                sizes.append(
                    ServerSize(
                        id=st["name"],
                        name=st["name"].upper(),
                        vcpu=st["cores"],
                        ram=st["memory"],
                        disk=st["disk"],
                        price=f"€{monthly}/mo",
                        recommended=st["name"] == "cax11",
                    )
                )
        except CATALOG_ERRORS as e:
            logger.debug(f"Live server type lookup failed, using static catalog: {e}")
            return self.get_server_sizes()
        return sizes or self.get_server_sizes()

    # ── SSH keys ───────────────────────────────────────────────────

    async def upload_ssh_key(self, name, public_key):
        try:
            data = await self._request("POST", "/ssh_keys", "upload SSH key", json={"name": name, "public_key": public_key})
            with self._reading("upload SSH key"):
                return str(data["ssh_key"]["id"])
        except ProviderError as e:
            if e.status_code != 409:
                raise
            conflict = e
        listing = await self._request("GET", "/ssh_keys", "list SSH keys")
        with self._reading("list SSH keys"):
            key_id = self._find_key_id(listing.get("ssh_keys", []), public_key, "public_key")
        if key_id is None:
            raise conflict
        logger.info(f"SSH key already registered on {self.display_name} (id={key_id}).")
        return key_id

    # ── Servers ────────────────────────────────────────────────────

    async def create_server(self, request):
        body = {
            "name": request.name,
            "server_type": request.size,
            "location": request.region,
            "image": DEFAULT_IMAGE,
            "user_data": request.boot_script,
        }
        if request.ssh_key_ids:
            body["ssh_keys"] = [int(k) if str(k).isdigit() else k for k in request.ssh_key_ids]
        data = await self._request("POST", "/servers", "create server", json=body)
        with self._reading("create server"):
            return self._to_result(data["server"])

    async def get_server_status(self, server_id):
        data = await self._request("GET", f"/servers/{server_id}", "get server status")
        with self._reading("get server status"):
            return self.normalize_status(data["server"]["status"])

    async def get_server_details(self, server_id):
        data = await self._request("GET", f"/servers/{server_id}", "get server details")
        with self._reading("get server details"):
            return self._to_result(data["server"])

    async def destroy_server(self, server_id):
        await self._request("DELETE", f"/servers/{server_id}", "destroy server")

    async def reboot_server(self, server_id):
        await self._request("POST", f"/servers/{server_id}/actions/reboot", "reboot server")

    # ── Snapshots ──────────────────────────────────────────────────

    def _to_snapshot(self, image, server_id, fallback_name="") -> SnapshotInfo:
        size_gb = image.get("image_size") or 0
        return SnapshotInfo(
            id=str(image["id"]),
            server_id=str(server_id),
            name=image.get("description") or fallback_name,
            status=image.get("status", "unknown"),
            size_gb=float(size_gb),
            created_at=image.get("created", ""),
            cost_per_month=f"€{size_gb * SNAPSHOT_PRICE_PER_GB:.2f}/mo",
        )

    async def create_snapshot(self, server_id, name):
        data = await self._request(
            "POST",
            f"/servers/{server_id}/actions/create_image",
            "create snapshot",
            json={"description": name, "type": "snapshot", "labels": {"managed-by": "cloudlaunch"}},
        )
        with self._reading("create snapshot"):
            return self._to_snapshot(data["image"], server_id, fallback_name=name)

    async def list_snapshots(self, server_id):
        data = await self._request("GET", "/images", "list snapshots", params={"type": "snapshot", "per_page": 50})
        snapshots = []
        with self._reading("list snapshots"):
            for image in data.get("images", []):
                created_from = image.get("created_from") or {}
                if str(created_from.get("id")) == str(server_id):
                    snapshots.append(self._to_snapshot(image, server_id))
        return snapshots

    async def delete_snapshot(self, snapshot_id):
        await self._request("DELETE", f"/images/{snapshot_id}", "delete snapshot")

    async def get_snapshot_cost_estimate(self, server_id):
        data = await self._request("GET", f"/servers/{server_id}", "get snapshot cost")
        with self._reading("get snapshot cost"):
            server = data["server"]
            disk_gb = server.get("primary_disk_size") or (server.get("server_type") or {}).get("disk") or 0
            return f"€{disk_gb * SNAPSHOT_PRICE_PER_GB:.2f}/mo"
