"""Snapshot operations on recorded servers, reported as result objects."""

import logging
import time
from dataclasses import dataclass, field

from cloudlaunch.providers.errors import ProviderError, map_provider_error
from cloudlaunch.providers.factory import create_provider_with_token
from cloudlaunch.provisioning.types import SNAPSHOT_PREFIX, SnapshotInfo

logger = logging.getLogger(__name__)


@dataclass
class SnapshotCreateResult:
    success: bool
    snapshot: SnapshotInfo | None = None
    cost_estimate: str | None = None
    error: str | None = None
    hint: str | None = None


@dataclass
class SnapshotListResult:
    snapshots: list[SnapshotInfo] = field(default_factory=list)
    error: str | None = None
    hint: str | None = None


@dataclass
class SnapshotDeleteResult:
    success: bool
    error: str | None = None
    hint: str | None = None


def snapshot_name(now=None) -> str:
    """Snapshot names carry our prefix so list_snapshots can find them."""
    millis = int((time.time() if now is None else now) * 1000)
    return f"{SNAPSHOT_PREFIX}{millis}"


async def create_snapshot(record, token, client=None) -> SnapshotCreateResult:
    provider = create_provider_with_token(record.provider, token, client=client)
    try:
        cost = await provider.get_snapshot_cost_estimate(record.id)
    except ProviderError as e:
        logger.debug(f"Snapshot cost estimate failed: {e}")
        cost = "unknown"
    try:
        snapshot = await provider.create_snapshot(record.id, snapshot_name())
    except ProviderError as e:
        return SnapshotCreateResult(False, error=str(e), hint=map_provider_error(e, record.provider))
    return SnapshotCreateResult(True, snapshot=snapshot, cost_estimate=cost)


async def list_snapshots(record, token, client=None) -> SnapshotListResult:
    provider = create_provider_with_token(record.provider, token, client=client)
    try:
        snapshots = await provider.list_snapshots(record.id)
    except ProviderError as e:
        return SnapshotListResult(error=str(e), hint=map_provider_error(e, record.provider))
    return SnapshotListResult(snapshots=snapshots)


async def delete_snapshot(record, token, snapshot_id, client=None) -> SnapshotDeleteResult:
    provider = create_provider_with_token(record.provider, token, client=client)
    try:
        await provider.delete_snapshot(snapshot_id)
    except ProviderError as e:
        return SnapshotDeleteResult(False, error=str(e), hint=map_provider_error(e, record.provider))
    return SnapshotDeleteResult(True)
