"""Provider capability contract shared by all vendor adapters."""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager

import httpx

from cloudlaunch.providers.errors import ProviderError, response_error_message
from cloudlaunch.provisioning.types import (
    MODE_BARE,
    STATUS_UNKNOWN,
    ProvisionRequest,
    ProvisionResult,
    Region,
    ServerSize,
    SnapshotInfo,
)
from cloudlaunch.redact import scrub

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30

# A 2xx body that lacks the documented fields raises one of these while being read
RESPONSE_SHAPE_ERRORS = (KeyError, IndexError, TypeError, ValueError, AttributeError)

# Failures that make a live catalog lookup fall back to the static catalog
CATALOG_ERRORS = (ProviderError, *RESPONSE_SHAPE_ERRORS)


class CloudProvider(ABC):
    """One vendor REST API behind a uniform, normalized interface.

    Each instance owns exactly one base URL and one bearer token; the token
    cannot be changed after construction. All methods that talk to the
    vendor raise ProviderError only, with the vendor's own message when the
    error body carries one. Success bodies are read inside _reading(), so a
    response with an unexpected shape is a ProviderError too.
    """

    name = ""
    display_name = ""
    base_url = ""
    validate_path = ""

    # Raw vendor status -> normalized status. Anything missing maps to "unknown".
    status_map: dict[str, str] = {}

    # Minimum RAM (GB) for servers that will run Coolify
    min_ram_gb = 2

    def __init__(self, api_token="", client: httpx.AsyncClient | None = None, timeout=DEFAULT_TIMEOUT):
        self._api_token = api_token
        self._client = client
        self._timeout = timeout

    @property
    def api_token(self) -> str:
        return self._api_token

    def __repr__(self):
        return f"{type(self).__name__}(base_url={self.base_url!r})"

    # ── HTTP ───────────────────────────────────────────────────────

    def _headers(self, token=None):
        return {
            "Authorization": f"Bearer {self._api_token if token is None else token}",
            "Content-Type": "application/json",
        }

    async def _send(self, method, url, headers, json=None, params=None):
        if self._client is not None:
            return await self._client.request(method, url, headers=headers, json=json, params=params, timeout=self._timeout)
        async with httpx.AsyncClient() as client:
            return await client.request(method, url, headers=headers, json=json, params=params, timeout=self._timeout)

    async def _request(self, method, path, action, json=None, params=None, token=None):
        """Make an authenticated vendor API request.

        Returns:
            Parsed JSON body, or {} for empty responses.

        Raises:
            ProviderError: "Failed to <action>: <message>". The error is
                raised outside the httpx exception handler so it carries no
                reference to the request headers or body.
        """
        url = f"{self.base_url}{path}"
        failure = None
        try:
            resp = await self._send(method, url, self._headers(token), json=json, params=params)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = scrub(response_error_message(e.response), token, self._api_token)
            failure = ProviderError(f"Failed to {action}: {message}", status_code=e.response.status_code)
        except httpx.HTTPError as e:
            message = scrub(str(e) or type(e).__name__, token, self._api_token)
            failure = ProviderError(f"Failed to {action}: {message}", network_error=True)
        if failure is not None:
            raise failure

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            failure = ProviderError(f"Failed to {action}: invalid JSON in response", status_code=resp.status_code)
        raise failure

    @contextmanager
    def _reading(self, action):
        """Read a success body; missing or mistyped fields raise ProviderError."""
        try:
            yield
        except RESPONSE_SHAPE_ERRORS as e:
            raise ProviderError(f"Failed to {action}: unexpected response from {self.display_name} ({type(e).__name__})") from None

    # ── Normalization helpers ──────────────────────────────────────

    def normalize_status(self, raw_status) -> str:
        """Map a raw vendor status onto the shared status vocabulary."""
        return self.status_map.get(raw_status, STATUS_UNKNOWN)

    def ram_floor_gb(self, mode=None) -> float:
        return 0 if mode == MODE_BARE else self.min_ram_gb

    @staticmethod
    def _find_key_id(keys, public_key, key_field):
        """Return the id of the registered key whose content equals *public_key*."""
        wanted = public_key.strip()
        for key in keys:
            if str(key.get(key_field, "")).strip() == wanted:
                return str(key["id"])
        return None

    # ── Contract ───────────────────────────────────────────────────

    async def validate_token(self, token) -> bool:
        """Cheap authenticated read. Returns False on any failure, never raises."""
        try:
            await self._request("GET", self.validate_path, "validate token", token=token)
        except ProviderError as e:
            logger.debug(f"{self.display_name} token validation failed: {e}")
            return False
        return True

    @abstractmethod
    def get_regions(self) -> list[Region]:
        """Static fallback region catalog."""

    @abstractmethod
    def get_server_sizes(self) -> list[ServerSize]:
        """Static fallback size catalog."""

    @abstractmethod
    async def get_available_locations(self) -> list[Region]:
        """Live region catalog; falls back to get_regions() on any error."""

    @abstractmethod
    async def get_available_server_types(self, region, mode=None) -> list[ServerSize]:
        """Live size catalog for *region*; falls back to get_server_sizes()."""

    @abstractmethod
    async def upload_ssh_key(self, name, public_key) -> str:
        """Register a public key and return its id, reusing an identical existing key."""

    @abstractmethod
    async def create_server(self, request: ProvisionRequest) -> ProvisionResult:
        pass

    @abstractmethod
    async def get_server_status(self, server_id) -> str:
        pass

    @abstractmethod
    async def get_server_details(self, server_id) -> ProvisionResult:
        pass

    @abstractmethod
    async def destroy_server(self, server_id) -> None:
        pass

    @abstractmethod
    async def reboot_server(self, server_id) -> None:
        pass

    @abstractmethod
    async def create_snapshot(self, server_id, name) -> SnapshotInfo:
        pass

    @abstractmethod
    async def list_snapshots(self, server_id) -> list[SnapshotInfo]:
        pass

    @abstractmethod
    async def delete_snapshot(self, snapshot_id) -> None:
        pass

    @abstractmethod
    async def get_snapshot_cost_estimate(self, server_id) -> str:
        """Approximate monthly snapshot cost: price per GB times disk size."""
