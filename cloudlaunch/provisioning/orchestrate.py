"""Provisioning orchestration: request -> running, reachable, recorded server.

The flow is a small state machine:

    SELECTING_INPUTS -> CREATING -> AWAITING_BOOT -> RESOLVING_IP
        -> AWAITING_REACHABILITY -> PERSISTING -> RUNNING_FOLLOWUPS -> DONE

CREATING may loop on itself while classified vendor rejections are retried.
Only CREATING and AWAITING_BOOT (and credential validation before them) can
fail the run; everything after boot degrades to warnings.
"""

import enum
import inspect
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from cloudlaunch.providers.errors import ProviderError, map_provider_error, token_url
from cloudlaunch.providers.factory import create_provider_with_token, is_valid_provider
from cloudlaunch.provisioning import firewall, health, secure
from cloudlaunch.provisioning.cloud_init import cloud_init_for_mode
from cloudlaunch.provisioning.errors import (
    BootTimeoutError,
    CreationFatalError,
    CredentialInvalidError,
    InvalidRequestError,
    LocationDisabledError,
    NameConflictError,
    ProvisionError,
    TypeUnavailableError,
    classify_creation_error,
)
from cloudlaunch.provisioning.poll import PollTimeout, poll
from cloudlaunch.provisioning.sshkeys import find_local_public_key, ssh_key_name
from cloudlaunch.provisioning.types import (
    MODE_BARE,
    MODE_COOLIFY,
    PENDING_IP,
    SERVER_MODES,
    STATUS_RUNNING,
    ProvisionRequest,
    ServerRecord,
    is_pending_ip,
    is_valid_domain,
    is_valid_server_name,
)

logger = logging.getLogger(__name__)

MAX_CREATE_RETRIES = 2

# provider -> (attempts, interval seconds) while waiting for a public IP
IP_WAIT = {
    "hetzner": (10, 3),
    "digitalocean": (20, 3),
    "vultr": (40, 5),
    "linode": (30, 5),
}
DEFAULT_IP_WAIT = (20, 3)

# provider -> seconds to wait for cloud-init before the first Coolify probe
READY_MIN_WAIT = {
    "hetzner": 60,
    "digitalocean": 120,
    "vultr": 180,
    "linode": 120,
}
DEFAULT_READY_MIN_WAIT = 60


class ProvisionState(enum.Enum):
    SELECTING_INPUTS = "selecting-inputs"
    CREATING = "creating"
    AWAITING_BOOT = "awaiting-boot"
    RESOLVING_IP = "resolving-ip"
    AWAITING_REACHABILITY = "awaiting-reachability"
    PERSISTING = "persisting"
    RUNNING_FOLLOWUPS = "running-followups"
    DONE = "done"
    FAILED = "failed"


S = ProvisionState

_TRANSITIONS = {
    S.SELECTING_INPUTS: {S.CREATING, S.DONE, S.FAILED},
    S.CREATING: {S.CREATING, S.AWAITING_BOOT, S.FAILED},
    S.AWAITING_BOOT: {S.RESOLVING_IP, S.AWAITING_REACHABILITY, S.PERSISTING, S.FAILED},
    S.RESOLVING_IP: {S.AWAITING_REACHABILITY, S.PERSISTING},
    S.AWAITING_REACHABILITY: {S.PERSISTING},
    S.PERSISTING: {S.RUNNING_FOLLOWUPS, S.DONE, S.FAILED},
    S.RUNNING_FOLLOWUPS: {S.DONE},
    S.DONE: set(),
    S.FAILED: set(),
}


# ── Request / run state ────────────────────────────────────────────


@dataclass
class DeploymentRequest:
    """Everything a provisioning run can be asked to do.

    Values arrive already merged (flag > config file > template default).
    Fields left as None are filled in by the selector collaborators.
    """

    provider: str
    token: str = ""
    name: str | None = None
    region: str | None = None
    size: str | None = None
    mode: str = MODE_COOLIFY
    template: str | None = None
    full_setup: bool = False
    public_key: str | None = None
    boot_script: str | None = None
    ssh_port: int | None = None
    domain: str | None = None
    dry_run: bool = False
    force: bool = False

    @property
    def is_bare(self) -> bool:
        return self.mode == MODE_BARE

    @classmethod
    def from_config(cls, merged: dict, **overrides) -> "DeploymentRequest":
        """Build from merge_config() output; *overrides* win over merged values."""
        values = {
            "provider": merged.get("provider"),
            "token": merged.get("token") or "",
            "name": merged.get("name"),
            "region": merged.get("region"),
            "size": merged.get("size"),
            "mode": merged.get("mode") or MODE_COOLIFY,
            "template": merged.get("template"),
            "full_setup": bool(merged.get("full_setup")),
            "domain": merged.get("domain"),
        }
        values.update(overrides)
        return cls(**values)

    def validate(self):
        """Raise InvalidRequestError describing the first invalid field."""
        if not is_valid_provider(self.provider):
            raise InvalidRequestError(f"Unknown provider: {self.provider}")
        if not self.token and not self.dry_run:
            raise InvalidRequestError(
                f"No API token for {self.provider}",
                hint=f"Use --token or set {self.provider.upper()}_TOKEN",
            )
        if self.mode not in SERVER_MODES:
            raise InvalidRequestError(f"Invalid mode: {self.mode} (choose from {', '.join(SERVER_MODES)})")
        if self.name is not None and not is_valid_server_name(self.name):
            raise InvalidRequestError(
                f"Invalid server name: {self.name!r}",
                hint="Use 3-63 lowercase letters, digits and hyphens, starting with a letter",
            )
        for field_name in ("region", "size"):
            if getattr(self, field_name) == "":
                raise InvalidRequestError(f"Empty {field_name}")
        if self.ssh_port is not None and not firewall.is_valid_port(self.ssh_port):
            raise InvalidRequestError(f"Invalid SSH port: {self.ssh_port}")
        if self.domain is not None and not is_valid_domain(self.domain):
            raise InvalidRequestError(f"Invalid domain: {self.domain!r}")
        if self.domain and self.is_bare:
            raise InvalidRequestError("A Coolify domain needs coolify mode", hint="Drop the domain or use --mode coolify")


@dataclass
class ProvisionRun:
    """Mutable state of one provisioning run, including retry bookkeeping."""

    state: ProvisionState = ProvisionState.SELECTING_INPUTS
    name: str | None = None
    region: str | None = None
    size: str | None = None
    attempt: int = 0
    excluded_regions: set[str] = field(default_factory=set)
    excluded_sizes: set[str] = field(default_factory=set)
    warnings: list[str] = field(default_factory=list)
    history: list[ProvisionState] = field(default_factory=list)

    def advance(self, new_state):
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal provisioning transition {self.state.value} -> {new_state.value}")
        logger.debug(f"Provisioning state: {self.state.value} -> {new_state.value}")
        self.history.append(self.state)
        self.state = new_state

    def warn(self, message):
        logger.warning(f"WARNING: {message}")
        self.warnings.append(message)


@dataclass
class ProvisionOutcome:
    record: ServerRecord | None
    ready: bool
    warnings: list[str] = field(default_factory=list)


# ── Default (non-interactive) selectors ────────────────────────────


def auto_select_name(rejected=None) -> str:
    """Random-suffixed name; keeps the rejected name as the stem."""
    stem = (rejected or "coolify")[:56].rstrip("-")
    return f"{stem}-{secrets.token_hex(3)}"


async def auto_select_region(provider, excluded) -> str:
    for region in await provider.get_available_locations():
        if region.id not in excluded:
            return region.id
    raise ProvisionError(f"No {provider.display_name} region left to try", hint="Pick a region with --region")


async def auto_select_size(provider, region, excluded, mode=None) -> str:
    sizes = [s for s in await provider.get_available_server_types(region, mode) if s.id not in excluded]
    if not sizes:
        raise ProvisionError(
            f"No {provider.display_name} server type left to try in {region}", hint="Pick a size with --size"
        )
    recommended = [s for s in sizes if s.recommended]
    return (recommended or sizes)[0].id


@dataclass
class Collaborators:
    """External pieces the orchestrator drives. Every callable may be sync or async.

    select_name(rejected_name) -> str
    select_region(provider, excluded_regions) -> str
    select_size(provider, region, excluded_sizes, mode) -> str
    wait_for_ready(ip, min_wait) -> bool
    setup_firewall(ip, name, dry_run=..., is_bare=...)
    setup_security(ip, name, port=..., dry_run=..., force=...)
    find_public_key() -> str | None
    """

    store: object
    select_name: Callable = auto_select_name
    select_region: Callable = auto_select_region
    select_size: Callable = auto_select_size
    wait_for_ready: Callable = health.wait_for_ready
    setup_firewall: Callable = firewall.setup_firewall
    setup_security: Callable = secure.setup_security
    find_public_key: Callable = find_local_public_key


@dataclass
class Timings:
    boot_attempts: int = 30
    boot_interval: float = 1
    ip_wait: dict = field(default_factory=lambda: dict(IP_WAIT))
    ready_min_wait: dict = field(default_factory=lambda: dict(READY_MIN_WAIT))

    def ip_wait_for(self, provider):
        return self.ip_wait.get(provider, DEFAULT_IP_WAIT)

    def ready_wait_for(self, provider):
        return self.ready_min_wait.get(provider, DEFAULT_READY_MIN_WAIT)


async def _call(fn, *args, **kwargs):
    result = fn(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


# ── Orchestrator ───────────────────────────────────────────────────


class Orchestrator:
    """Drives one DeploymentRequest through the provisioning state machine.

    Holds no per-run state: each provision() call gets its own adapter and
    ProvisionRun, so independent runs may share one Orchestrator.
    """

    def __init__(self, collaborators, provider_factory=create_provider_with_token, timings=None,
                 max_retries=MAX_CREATE_RETRIES):
        self.collaborators = collaborators
        self.provider_factory = provider_factory
        self.timings = timings or Timings()
        self.max_retries = max_retries

    async def provision(self, request: DeploymentRequest, run: ProvisionRun | None = None) -> ProvisionOutcome:
        """Provision one server.

        Args:
            request: validated here before any vendor call.
            run: optional state object to observe retries and transitions.

        Returns:
            ProvisionOutcome; record is None for dry runs.

        Raises:
            InvalidRequestError, CredentialInvalidError, CreationRejectedError
            subclasses, BootTimeoutError. No record is persisted on failure.
        """
        run = run if run is not None else ProvisionRun()
        try:
            return await self._provision(request, run)
        except (ProvisionError, ProviderError):
            run.state = ProvisionState.FAILED
            raise

    async def _provision(self, request, run):
        request.validate()
        c = self.collaborators
        provider = self.provider_factory(request.provider, request.token)

        # Step 1: Credentials and inputs
        if request.dry_run:
            return self._dry_run(request, run)
        if not await provider.validate_token(request.token):
            raise CredentialInvalidError(
                f"Invalid {provider.display_name} API token",
                hint=f"Generate a new Read & Write token from {token_url(request.provider)}",
            )
        ssh_key_ids = await self._upload_ssh_key(provider, request, run)

        run.name = request.name or await _call(c.select_name, None)
        run.region = request.region or await _call(c.select_region, provider, run.excluded_regions)
        run.size = request.size or await _call(c.select_size, provider, run.region, run.excluded_sizes, request.mode)

        # Step 2: Create, retrying classified rejections
        run.advance(S.CREATING)
        result = await self._create(provider, request, run, ssh_key_ids)
        logger.info(f"Server created (id={result.id}).")

        # Step 3: Boot
        run.advance(S.AWAITING_BOOT)
        await self._await_boot(provider, result.id)

        # Step 4: Public IP
        ip = result.ip
        if is_pending_ip(ip):
            run.advance(S.RESOLVING_IP)
            ip = await self._resolve_ip(provider, request.provider, result.id, run)

        # Step 5: Coolify reachability
        if request.is_bare:
            ready = not is_pending_ip(ip)
        elif is_pending_ip(ip):
            ready = False
        else:
            run.advance(S.AWAITING_REACHABILITY)
            ready = bool(await _call(c.wait_for_ready, ip, self.timings.ready_wait_for(request.provider)))
            if not ready:
                run.warn(f"Coolify did not respond yet. Check later with: cloudlaunch status {ip}")

        # Step 6: Record
        run.advance(S.PERSISTING)
        record = ServerRecord(
            id=result.id,
            name=run.name,
            provider=request.provider,
            ip=ip,
            region=run.region,
            size=run.size,
            created_at=datetime.now(timezone.utc).isoformat(),
            mode=request.mode,
        )
        c.store.save(record)
        c.store.clear_pending(request.provider, run.name)

        # Step 7: Best-effort hardening
        if request.full_setup:
            run.advance(S.RUNNING_FOLLOWUPS)
            await self._run_followups(request, record, run)

        run.advance(S.DONE)
        return ProvisionOutcome(record=record, ready=ready, warnings=run.warnings)

    def _dry_run(self, request, run):
        logger.info(
            f"[dry-run] Would create {request.mode} server {request.name or '<auto>'} on {request.provider} "
            f"(region={request.region or '<auto>'}, size={request.size or '<auto>'}, full_setup={request.full_setup})"
        )
        run.advance(S.DONE)
        return ProvisionOutcome(record=None, ready=False, warnings=run.warnings)

    async def _upload_ssh_key(self, provider, request, run):
        public_key = request.public_key or await _call(self.collaborators.find_public_key)
        if not public_key:
            logger.info("No local SSH public key found; the server will use password authentication.")
            return []
        try:
            key_id = await provider.upload_ssh_key(ssh_key_name(), public_key)
        except ProviderError as e:
            run.warn(f"SSH key upload failed, continuing without it: {e}")
            return []
        logger.info("SSH key uploaded.")
        return [key_id]

    async def _create(self, provider, request, run, ssh_key_ids):
        c = self.collaborators
        while True:
            boot_script = request.boot_script or cloud_init_for_mode(run.name, request.mode)
            creation = ProvisionRequest(run.name, run.region, run.size, boot_script, list(ssh_key_ids))
            logger.info(f"Creating server {run.name} ({run.size} in {run.region})...")
            c.store.mark_pending(request.provider, run.name, run.region, run.size)
            try:
                return await provider.create_server(creation)
            except ProviderError as e:
                c.store.clear_pending(request.provider, run.name)
                error = e

            kind = classify_creation_error(error.message)
            hint = map_provider_error(error, request.provider)
            if kind is CreationFatalError or run.attempt >= self.max_retries:
                raise kind(error.message, hint=hint) from error

            if kind is NameConflictError:
                logger.warning(f"Server name \"{run.name}\" is already in use")
                run.name = await _call(c.select_name, run.name)
            elif kind is LocationDisabledError:
                logger.warning(f"Location \"{run.region}\" is currently disabled for new servers")
                run.excluded_regions.add(run.region)
                run.region = await _call(c.select_region, provider, run.excluded_regions)
                run.size = await _call(c.select_size, provider, run.region, run.excluded_sizes, request.mode)
            elif kind is TypeUnavailableError:
                logger.warning(f"Server type \"{run.size}\" is not available in {run.region}")
                run.excluded_sizes.add(run.size)
                run.size = await _call(c.select_size, provider, run.region, run.excluded_sizes, request.mode)
            run.attempt += 1
            run.advance(S.CREATING)

    async def _await_boot(self, provider, server_id):
        logger.info("Waiting for server to boot...")
        try:
            await poll(
                lambda: provider.get_server_status(server_id),
                attempts=self.timings.boot_attempts,
                interval=self.timings.boot_interval,
                accept=lambda status: status == STATUS_RUNNING,
                retry_on=(ProviderError,),
            )
        except PollTimeout as e:
            raise BootTimeoutError(
                f"Server {server_id} did not reach running state (last status: {e.last_result})",
                server_id=server_id,
                hint=f"Check the server in the {provider.display_name} console",
            ) from None
        logger.info("Server is running.")

    async def _resolve_ip(self, provider, provider_name, server_id, run):
        attempts, interval = self.timings.ip_wait_for(provider_name)
        logger.info("Waiting for IP address assignment...")
        try:
            details = await poll(
                lambda: provider.get_server_details(server_id),
                attempts=attempts,
                interval=interval,
                accept=lambda d: not is_pending_ip(d.ip),
                retry_on=(ProviderError,),
            )
        except PollTimeout:
            run.warn(f"Could not resolve an IP address for server {server_id}; look it up in the provider console")
            return PENDING_IP
        logger.info(f"IP address assigned: {details.ip}")
        return details.ip

    async def _run_followups(self, request, record, run):
        if is_pending_ip(record.ip):
            run.warn("Skipping firewall and SSH hardening: the server has no IP address yet")
            return
        c = self.collaborators
        try:
            await _call(c.setup_firewall, record.ip, record.name, dry_run=request.dry_run, is_bare=request.is_bare)
        except Exception as e:
            run.warn(f"Firewall setup failed: {e}")
        try:
            await _call(
                c.setup_security,
                record.ip,
                record.name,
                port=request.ssh_port,
                dry_run=request.dry_run,
                force=request.force,
            )
        except Exception as e:
            run.warn(f"Security setup failed: {e}")
