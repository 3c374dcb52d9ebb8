"""Coolify reachability probe."""

import asyncio
import logging

import httpx

from cloudlaunch.provisioning.poll import PollTimeout, poll
from cloudlaunch.provisioning.ssh_transport import assert_valid_ip

logger = logging.getLogger(__name__)

COOLIFY_PORT = 8000
PROBE_TIMEOUT = 5

HEALTH_RUNNING = "running"
HEALTH_UNREACHABLE = "not reachable"


def coolify_url(ip) -> str:
    return f"http://{ip}:{COOLIFY_PORT}"


async def probe_coolify(ip, client: httpx.AsyncClient | None = None) -> bool:
    """Single GET against the Coolify UI. Any HTTP response counts as up."""
    try:
        if client is not None:
            await client.get(coolify_url(ip), timeout=PROBE_TIMEOUT)
        else:
            async with httpx.AsyncClient() as c:
                await c.get(coolify_url(ip), timeout=PROBE_TIMEOUT)
    except httpx.HTTPError as e:
        logger.debug(f"Coolify on {ip} not reachable yet: {type(e).__name__}")
        return False
    return True


async def wait_for_ready(ip, min_wait, interval=5, attempts=60, client=None) -> bool:
    """Wait *min_wait* seconds for cloud-init, then poll Coolify until it answers.

    Returns:
        True once Coolify responds, False after *attempts* failed probes.
    """
    logger.info("Installing Coolify...")
    if min_wait:
        await asyncio.sleep(min_wait)
    logger.info("Waiting for Coolify to be ready...")
    try:
        await poll(lambda: probe_coolify(ip, client), attempts=attempts, interval=interval)
    except PollTimeout:
        logger.warning("Coolify did not respond in time")
        return False
    logger.info("Coolify is ready!")
    return True


async def check_coolify_health(ip, client=None) -> str:
    assert_valid_ip(ip)
    return HEALTH_RUNNING if await probe_coolify(ip, client) else HEALTH_UNREACHABLE
