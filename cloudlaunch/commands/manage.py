"""Server management commands: list, status, destroy, reboot, pending."""

import asyncio
import logging
import sys

from cloudlaunch.commands import prompts
from cloudlaunch.commands.init import report_error
from cloudlaunch.providers.errors import ProviderError, get_provider_display_name, map_provider_error
from cloudlaunch.providers.factory import create_provider_with_token
from cloudlaunch.provisioning.status import check_all_servers_status
from cloudlaunch.provisioning.tokens import collect_tokens, resolve_token
from cloudlaunch.storage import ServerStore

logger = logging.getLogger(__name__)


def find_record_or_exit(store, query):
    record = store.find(query)
    if record is None:
        logger.error(f"Error: No server found matching '{query}'. Run 'cloudlaunch list' to see your servers.")
        sys.exit(1)
    return record


def token_or_exit(provider, flag_token=None):
    resolved = resolve_token(provider, flag_token)
    if resolved is None:
        logger.error(f"Error: No API token for {provider}. Use --token or set {provider.upper()}_TOKEN.")
        sys.exit(1)
    return resolved.token


# ── CLI handlers ───────────────────────────────────────────────────


def handle_list(args):
    """CLI handler for 'list'."""
    records = ServerStore(args.config_dir).list()
    if not records:
        logger.info("No servers recorded. Create one with: cloudlaunch init")
        return
    logger.info(f"{'NAME':<24} {'IP':<16} {'PROVIDER':<14} {'REGION':<10} {'SIZE':<16} {'MODE':<8} CREATED")
    for r in records:
        logger.info(f"{r.name:<24} {r.ip:<16} {r.provider:<14} {r.region:<10} {r.size:<16} {r.mode:<8} {r.created_at}")


def handle_status(args):
    """CLI handler for 'status'."""
    asyncio.run(_handle_status(args))


async def _handle_status(args):
    store = ServerStore(args.config_dir)
    records = [find_record_or_exit(store, args.query)] if args.query else store.list()
    if not records:
        logger.info("No servers recorded.")
        return
    tokens = collect_tokens(records)
    missing = sorted({r.provider for r in records if not r.is_manual} - set(tokens))
    for provider in missing:
        logger.info(f"No token for {provider} (set {provider.upper()}_TOKEN); its servers will show as errors.")

    results = await check_all_servers_status(records, tokens)
    failed = False
    for result in results:
        r = result.server
        line = f"{r.name:<24} {r.ip:<16} server: {result.server_status:<12} coolify: {result.coolify_status}"
        if result.error:
            failed = True
            line += f"  ({result.error})"
        logger.info(line)
    if failed:
        sys.exit(1)


def handle_destroy(args):
    """CLI handler for 'destroy'."""
    asyncio.run(_handle_destroy(args))


async def _handle_destroy(args):
    store = ServerStore(args.config_dir)
    record = find_record_or_exit(store, args.query)
    if record.is_manual:
        store.remove(record.id)
        logger.info(f"Removed manually added server {record.name} from the local list.")
        return

    if not args.yes and not prompts.confirm(
        f"Destroy {record.name} ({record.ip}) on {get_provider_display_name(record.provider)}? This cannot be undone."
    ):
        logger.info("Aborted.")
        return

    if args.dry_run:
        logger.info(f"[dry-run] Would destroy {record.provider} server {record.id} ({record.name})")
        return

    provider = create_provider_with_token(record.provider, token_or_exit(record.provider, args.token))
    try:
        await provider.destroy_server(record.id)
    except ProviderError as e:
        if e.status_code != 404:
            report_error(e, hint=map_provider_error(e, record.provider))
            sys.exit(1)
        logger.info(f"Server {record.id} no longer exists on {provider.display_name}.")
    store.remove(record.id)
    logger.info(f"Server {record.name} destroyed and removed from the local list.")


def handle_reboot(args):
    """CLI handler for 'reboot'."""
    asyncio.run(_handle_reboot(args))


async def _handle_reboot(args):
    store = ServerStore(args.config_dir)
    record = find_record_or_exit(store, args.query)
    if record.is_manual:
        logger.error("Error: Manually added servers cannot be rebooted through a provider API.")
        sys.exit(1)
    if args.dry_run:
        logger.info(f"[dry-run] Would reboot {record.provider} server {record.id} ({record.name})")
        return
    provider = create_provider_with_token(record.provider, token_or_exit(record.provider, args.token))
    try:
        await provider.reboot_server(record.id)
    except ProviderError as e:
        report_error(e, hint=map_provider_error(e, record.provider))
        sys.exit(1)
    logger.info(f"Reboot requested for {record.name}.")


def handle_pending(args):
    """CLI handler for 'pending'."""
    entries = ServerStore(args.config_dir).list_pending()
    if not entries:
        logger.info("No interrupted server creations.")
        return
    logger.info("Server creations that never completed; these servers may exist on the provider but are not tracked:")
    for e in entries:
        logger.info(
            f"  {e.get('name')} on {e.get('provider')} ({e.get('size')} in {e.get('region')}), started {e.get('started_at')}"
        )
    logger.info("Check the provider console and delete any leftover servers you do not need.")


# ── Registration ───────────────────────────────────────────────────


def register_manage_commands(subparsers):
    """Register 'list', 'status', 'destroy', 'reboot' and 'pending'."""
    parser = subparsers.add_parser("list", help="List recorded servers")
    parser.set_defaults(func=handle_list)

    parser = subparsers.add_parser("status", help="Show provider and Coolify status")
    parser.add_argument("query", nargs="?", default=None, help="Server IP or name (default: all servers)")
    parser.set_defaults(func=handle_status)

    parser = subparsers.add_parser("destroy", help="Destroy a server")
    parser.add_argument("query", help="Server IP or name")
    parser.add_argument("--token", default=None, help="API token (fallback: <PROVIDER>_TOKEN env var)")
    parser.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be destroyed")
    parser.set_defaults(func=handle_destroy)

    parser = subparsers.add_parser("reboot", help="Reboot a server")
    parser.add_argument("query", help="Server IP or name")
    parser.add_argument("--token", default=None, help="API token (fallback: <PROVIDER>_TOKEN env var)")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be rebooted")
    parser.set_defaults(func=handle_reboot)

    parser = subparsers.add_parser("pending", help="List server creations that were interrupted")
    parser.set_defaults(func=handle_pending)
