"""Interactive terminal prompts used as orchestrator selectors."""

import getpass
import logging

from cloudlaunch.provisioning.errors import ProvisionError
from cloudlaunch.provisioning.types import is_valid_server_name

logger = logging.getLogger(__name__)


def prompt_choice(title, labels, default=0, input_fn=input) -> int:
    """Show a numbered list and return the chosen index."""
    if not labels:
        raise ProvisionError(f"Nothing to choose for: {title}")
    logger.info(title)
    for i, label in enumerate(labels, 1):
        marker = " (default)" if i - 1 == default else ""
        logger.info(f"  {i}) {label}{marker}")
    while True:
        answer = input_fn(f"Choice [1-{len(labels)}]: ").strip()
        if not answer:
            return default
        if answer.isdigit() and 1 <= int(answer) <= len(labels):
            return int(answer) - 1
        logger.info(f"Enter a number between 1 and {len(labels)}.")


def confirm(message, default=False, input_fn=input) -> bool:
    suffix = " [Y/n] " if default else " [y/N] "
    answer = input_fn(message + suffix).strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


def prompt_name(rejected=None, input_fn=input) -> str:
    if rejected:
        logger.info(f"Server name \"{rejected}\" cannot be used. Choose another one.")
    while True:
        name = input_fn("Server name: ").strip()
        if is_valid_server_name(name) and name != rejected:
            return name
        logger.info("Use 3-63 lowercase letters, digits and hyphens, starting with a letter.")


def prompt_token(provider_display_name) -> str:
    return getpass.getpass(f"{provider_display_name} API token: ").strip()


async def prompt_region(provider, excluded):
    regions = [r for r in await provider.get_available_locations() if r.id not in excluded]
    labels = [f"{r.name} ({r.id})" + (f", {r.location}" if r.location else "") for r in regions]
    return regions[prompt_choice("Select a region:", labels)].id


async def prompt_size(provider, region, excluded, mode=None):
    sizes = [s for s in await provider.get_available_server_types(region, mode) if s.id not in excluded]
    default = next((i for i, s in enumerate(sizes) if s.recommended), 0)
    labels = [f"{s.name}: {s.vcpu} vCPU, {s.ram:g}GB RAM, {s.disk:g}GB disk, {s.price}" for s in sizes]
    return sizes[prompt_choice(f"Select a server type in {region}:", labels, default=default)].id
