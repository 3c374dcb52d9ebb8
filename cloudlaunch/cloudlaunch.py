#!/usr/bin/env python3
"""cloudlaunch CLI entrypoint: provision Coolify servers on Hetzner, DigitalOcean, Vultr and Linode."""

import argparse

from cloudlaunch.commands.init import register_init_command
from cloudlaunch.commands.manage import register_manage_commands
from cloudlaunch.commands.snapshot import register_snapshot_command
from cloudlaunch.logging_setup import setup_cli_logging


def build_parser():
    parser = argparse.ArgumentParser(prog="cloudlaunch", description="Provision and manage Coolify servers")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument(
        "--config-dir", default=None, help="Directory for servers.json and pending.json (default: ~/.cloudlaunch)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_init_command(subparsers)
    register_manage_commands(subparsers)
    register_snapshot_command(subparsers)
    return parser


def main():
    args = build_parser().parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
