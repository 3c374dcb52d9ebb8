"""Init command: provision a new server and install Coolify on it."""

import asyncio
import logging
import sys

from cloudlaunch.commands import prompts
from cloudlaunch.config import load_config, merge_config, validate_config
from cloudlaunch.providers.errors import ProviderError, get_provider_display_name
from cloudlaunch.providers.factory import SUPPORTED_PROVIDERS
from cloudlaunch.provisioning.errors import ProvisionError
from cloudlaunch.provisioning.orchestrate import Collaborators, DeploymentRequest, Orchestrator
from cloudlaunch.provisioning.templates import TEMPLATES
from cloudlaunch.provisioning.tokens import resolve_token
from cloudlaunch.provisioning.types import SERVER_MODES, is_pending_ip
from cloudlaunch.storage import ServerStore

logger = logging.getLogger(__name__)


def report_error(message, hint="", header="Error"):
    logger.error(f"{header}: {message}")
    if hint:
        logger.error(f"  Hint: {hint}")


def domain_instructions(domain, ip) -> list[str]:
    """Steps that put the Coolify dashboard behind *domain*."""
    if is_pending_ip(ip):
        return [f"Domain {domain}: once the server has an IP, point an A record for {domain} at it."]
    return [
        f"Domain: create an A record {domain} -> {ip}",
        f"Then set https://{domain} as the Instance Domain in Coolify (Settings > General).",
    ]


def _interactive(args):
    return not args.yes and sys.stdin.isatty()


def _resolve_provider(merged, interactive):
    if merged.get("provider"):
        return merged["provider"]
    if not interactive:
        logger.error("Error: --provider is required in non-interactive mode.")
        sys.exit(1)
    labels = [get_provider_display_name(p) for p in SUPPORTED_PROVIDERS]
    return SUPPORTED_PROVIDERS[prompts.prompt_choice("Select a cloud provider:", labels)]


def _resolve_token(provider, flag_token, interactive, dry_run):
    resolved = resolve_token(provider, flag_token)
    if resolved:
        logger.debug(f"Using {provider} token from {resolved.source}")
        return resolved.token
    if dry_run:
        return ""
    if interactive:
        return prompts.prompt_token(get_provider_display_name(provider))
    logger.error(f"Error: No API token. Use --token or set {provider.upper()}_TOKEN.")
    sys.exit(1)


def build_collaborators(store, interactive):
    if not interactive:
        return Collaborators(store=store)
    return Collaborators(
        store=store,
        select_name=prompts.prompt_name,
        select_region=prompts.prompt_region,
        select_size=prompts.prompt_size,
    )


# ── CLI handler ────────────────────────────────────────────────────


def handle_init(args):
    """CLI handler for 'init'."""
    asyncio.run(_handle_init(args))


async def _handle_init(args):
    file_config = validate_config(load_config(args.config)) if args.config else {}
    cli = {
        "template": args.template,
        "provider": args.provider,
        "token": args.token,
        "region": args.region,
        "size": args.size,
        "name": args.name,
        "mode": args.mode,
        "full_setup": args.full_setup,
    }
    merged = merge_config(cli, file_config)
    interactive = _interactive(args)

    provider = _resolve_provider(merged, interactive)
    token = _resolve_token(provider, args.token, interactive, args.dry_run)
    request = DeploymentRequest.from_config(
        merged,
        provider=provider,
        token=token,
        ssh_port=args.ssh_port,
        dry_run=args.dry_run,
        force=args.force,
    )

    store = ServerStore(args.config_dir)
    orchestrator = Orchestrator(build_collaborators(store, interactive))
    try:
        outcome = await orchestrator.provision(request)
    except (ProvisionError, ProviderError) as e:
        report_error(e, hint=getattr(e, "hint", ""), header="Provisioning failed")
        sys.exit(1)

    if outcome.record is None:
        return
    record = outcome.record
    logger.info("")
    logger.info(f"Server {record.name} is up ({get_provider_display_name(record.provider)}, id={record.id}).")
    logger.info(f"  IP: {record.ip}")
    if not record.is_bare:
        if outcome.ready:
            logger.info(f"  Coolify: http://{record.ip}:8000")
        else:
            logger.info(f"  Coolify is still installing. Check with: cloudlaunch status {record.name}")
        if request.domain:
            for line in domain_instructions(request.domain, record.ip):
                logger.info(f"  {line}")
    for warning in outcome.warnings:
        logger.info(f"  Warning: {warning}")


# ── Registration ───────────────────────────────────────────────────


def register_init_command(subparsers):
    """Register the 'init' command."""
    parser = subparsers.add_parser("init", help="Provision a new server")
    parser.add_argument("--provider", choices=SUPPORTED_PROVIDERS, default=None, help="Cloud provider")
    parser.add_argument("--token", default=None, help="API token (fallback: <PROVIDER>_TOKEN env var)")
    parser.add_argument("--region", default=None, help="Region id (e.g. nbg1, fra1)")
    parser.add_argument("--size", default=None, help="Server type id (e.g. cax11, s-2vcpu-4gb)")
    parser.add_argument("--name", default=None, help="Server name")
    parser.add_argument("--mode", choices=SERVER_MODES, default=None, help="coolify (default) or bare")
    parser.add_argument("--template", choices=sorted(TEMPLATES), default=None, help="Deployment template")
    parser.add_argument("--config", default=None, help="Path to a cloudlaunch.yaml config file")
    parser.add_argument("--full-setup", action="store_true", default=None, help="Configure firewall and harden SSH")
    parser.add_argument("--ssh-port", type=int, default=None, help="Custom SSH port applied during hardening")
    parser.add_argument("--force", action="store_true", help="Harden SSH even if no authorized keys are found")
    parser.add_argument("--yes", "-y", action="store_true", help="Never prompt; pick regions and sizes automatically")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be created without creating it")
    parser.set_defaults(func=handle_init)
