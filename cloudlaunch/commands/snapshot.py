"""Snapshot command: create, list and delete server snapshots."""

import asyncio
import logging
import sys

from cloudlaunch.commands import prompts
from cloudlaunch.commands.init import report_error
from cloudlaunch.commands.manage import find_record_or_exit, token_or_exit
from cloudlaunch.provisioning import snapshot as snapshots
from cloudlaunch.storage import ServerStore

logger = logging.getLogger(__name__)


def _record_or_exit(args):
    record = find_record_or_exit(ServerStore(args.config_dir), args.query)
    if record.is_manual:
        logger.error("Error: Snapshots need a provider-managed server.")
        sys.exit(1)
    return record


def _dry_run_message(args, record):
    if not getattr(args, "dry_run", False):
        return None
    if args.action == "create":
        return f"[dry-run] Would snapshot {record.provider} server {record.id} ({record.name})"
    return f"[dry-run] Would delete snapshot {args.snapshot_id}"


def handle_snapshot(args):
    """CLI handler for 'snapshot'."""
    asyncio.run(_handle_snapshot(args))


async def _handle_snapshot(args):
    record = _record_or_exit(args)
    # Dry runs never touch the vendor, so they need no token
    message = _dry_run_message(args, record)
    if message:
        logger.info(message)
        return
    token = token_or_exit(record.provider, args.token)

    if args.action == "create":
        result = await snapshots.create_snapshot(record, token)
        if not result.success:
            report_error(result.error, hint=result.hint, header="Snapshot failed")
            sys.exit(1)
        s = result.snapshot
        logger.info(f"Snapshot {s.name} ({s.id}) started, status: {s.status}")
        logger.info(f"  Estimated cost: {result.cost_estimate}")

    elif args.action == "list":
        result = await snapshots.list_snapshots(record, token)
        if result.error:
            report_error(result.error, hint=result.hint, header="Listing snapshots failed")
            sys.exit(1)
        if not result.snapshots:
            logger.info(f"No snapshots for {record.name}.")
            return
        for s in result.snapshots:
            logger.info(f"{s.id:<14} {s.name:<28} {s.status:<12} {s.size_gb:>7.1f}GB  {s.cost_per_month:<10} {s.created_at}")

    elif args.action == "delete":
        if not args.yes and not prompts.confirm(f"Delete snapshot {args.snapshot_id}?"):
            logger.info("Aborted.")
            return
        result = await snapshots.delete_snapshot(record, token, args.snapshot_id)
        if not result.success:
            report_error(result.error, hint=result.hint, header="Deleting snapshot failed")
            sys.exit(1)
        logger.info(f"Snapshot {args.snapshot_id} deleted.")


# ── Registration ───────────────────────────────────────────────────


def register_snapshot_command(subparsers):
    """Register 'snapshot' with create/list/delete actions."""
    parser = subparsers.add_parser("snapshot", help="Manage server snapshots")
    actions = parser.add_subparsers(dest="action", required=True)

    for action, help_text in (("create", "Create a snapshot"), ("list", "List snapshots"), ("delete", "Delete a snapshot")):
        p = actions.add_parser(action, help=help_text)
        p.add_argument("query", help="Server IP or name")
        p.add_argument("--token", default=None, help="API token (fallback: <PROVIDER>_TOKEN env var)")
        if action == "delete":
            p.add_argument("snapshot_id", help="Snapshot id")
            p.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
        if action != "list":
            p.add_argument("--dry-run", action="store_true", help="Show what would be done")
        p.set_defaults(func=handle_snapshot)
