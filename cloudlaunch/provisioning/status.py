"""Server status checks: vendor status plus Coolify reachability."""

import asyncio
import logging
from dataclasses import dataclass

from cloudlaunch.providers.errors import ProviderError
from cloudlaunch.providers.factory import UnknownProviderError, create_provider_with_token
from cloudlaunch.provisioning.health import check_coolify_health
from cloudlaunch.provisioning.types import ServerRecord, is_valid_ip

logger = logging.getLogger(__name__)

MANUAL_STATUS = "unknown (manual)"


@dataclass
class StatusResult:
    server: ServerRecord
    server_status: str
    coolify_status: str
    error: str | None = None


async def get_cloud_server_status(record, token, client=None) -> str:
    if record.is_manual:
        return MANUAL_STATUS
    provider = create_provider_with_token(record.provider, token, client=client)
    return await provider.get_server_status(record.id)


async def check_server_status(record, token, client=None) -> StatusResult:
    """Vendor status and Coolify health for one record. Never raises."""
    try:
        server_status = await get_cloud_server_status(record, token, client=client)
        if record.is_bare:
            coolify_status = "n/a (bare)"
        elif is_valid_ip(record.ip):
            coolify_status = await check_coolify_health(record.ip, client=client)
        else:
            coolify_status = "unknown"
    except (ProviderError, UnknownProviderError) as e:
        logger.debug(f"Status check for {record.name} failed: {e}")
        return StatusResult(record, "error", "unknown", error=str(e))
    return StatusResult(record, server_status, coolify_status)


async def check_all_servers_status(records, tokens, client=None) -> list[StatusResult]:
    """Check every record concurrently; results keep the order of *records*."""
    return list(
        await asyncio.gather(*(check_server_status(r, tokens.get(r.provider, ""), client=client) for r in records))
    )
