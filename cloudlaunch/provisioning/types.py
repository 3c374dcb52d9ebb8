"""Shared data types for cloud providers and the provisioning flow."""

import ipaddress
import re
from dataclasses import asdict, dataclass, field

PENDING_IP = "pending"
SNAPSHOT_PREFIX = "cloudlaunch-"

# Normalized server statuses returned at the adapter boundary
STATUS_INITIALIZING = "initializing"
STATUS_RUNNING = "running"
STATUS_OFF = "off"
STATUS_UNKNOWN = "unknown"

MODE_COOLIFY = "coolify"
MODE_BARE = "bare"
SERVER_MODES = (MODE_COOLIFY, MODE_BARE)

_SERVER_NAME_RE = re.compile(r"[a-z][a-z0-9-]*[a-z0-9]")
_DOMAIN_RE = re.compile(r"(?=.{1,253}\Z)([a-z0-9]([a-z0-9-]*[a-z0-9])?\.)+[a-z]{2,}", re.IGNORECASE | re.ASCII)


def is_valid_ip(ip) -> bool:
    """Return True for a plain dotted-quad IPv4 address.

    ASCII digits only, octets 0-255, no leading zeros and no surrounding
    whitespace or newlines.
    """
    if not isinstance(ip, str):
        return False
    try:
        ipaddress.IPv4Address(ip)
    except ValueError:
        return False
    return True


def is_valid_server_name(name) -> bool:
    """3-63 chars of lowercase letters, digits and hyphens, starting with a letter."""
    return isinstance(name, str) and 3 <= len(name) <= 63 and bool(_SERVER_NAME_RE.fullmatch(name))


def is_valid_domain(domain) -> bool:
    """Fully qualified hostname such as coolify.example.com."""
    return isinstance(domain, str) and bool(_DOMAIN_RE.fullmatch(domain))


def is_pending_ip(ip) -> bool:
    """Return True while the vendor has not allocated a usable public address.

    Empty, "pending", "0.0.0.0" and anything failing format validation all
    count as not yet assigned.
    """
    return not ip or ip in (PENDING_IP, "0.0.0.0") or not is_valid_ip(ip)


@dataclass
class Region:
    """Vendor catalog entry for a location."""

    id: str
    name: str
    location: str = ""


@dataclass
class ServerSize:
    """Vendor catalog entry for a server type. ram and disk are in GB."""

    id: str
    name: str
    vcpu: int
    ram: float
    disk: float
    price: str
    recommended: bool = False


@dataclass
class ProvisionRequest:
    """Single vendor-side creation request.

    name, region and size are vendor-specific identifiers taken from that
    vendor's catalog.
    """

    name: str
    region: str
    size: str
    boot_script: str
    ssh_key_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProvisionResult:
    """Vendor view of a server: opaque id, public address and normalized status."""

    id: str
    ip: str = PENDING_IP
    status: str = STATUS_UNKNOWN


@dataclass
class SnapshotInfo:
    """Snapshot of a server disk. size_gb is always in GB."""

    id: str
    server_id: str
    name: str
    status: str
    size_gb: float
    created_at: str
    cost_per_month: str


@dataclass
class ServerRecord:
    """Locally persisted record of a provisioned server."""

    id: str
    name: str
    provider: str
    ip: str
    region: str
    size: str
    created_at: str
    mode: str = MODE_COOLIFY

    @property
    def is_bare(self) -> bool:
        return self.mode == MODE_BARE

    @property
    def is_manual(self) -> bool:
        """Hand-edited servers.json entries use an id of the form manual-<n>.

        They have no vendor-side server, so only local operations apply.
        """
        return self.id.startswith("manual-")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ServerRecord":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            provider=data["provider"],
            ip=data.get("ip", PENDING_IP),
            region=data.get("region", ""),
            size=data.get("size", ""),
            created_at=data.get("created_at", data.get("createdAt", "")),
            mode=data.get("mode") or MODE_COOLIFY,
        )
