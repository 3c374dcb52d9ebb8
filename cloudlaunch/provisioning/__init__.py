"""Server provisioning: shared types, polling, orchestration and post-boot automation."""

from cloudlaunch.provisioning.errors import (
    BootTimeoutError,
    CreationFatalError,
    CreationRejectedError,
    CredentialInvalidError,
    InvalidRequestError,
    LocationDisabledError,
    NameConflictError,
    ProvisionError,
    TypeUnavailableError,
)
from cloudlaunch.provisioning.poll import PollTimeout, poll
from cloudlaunch.provisioning.types import (
    ProvisionRequest,
    ProvisionResult,
    Region,
    ServerRecord,
    ServerSize,
    SnapshotInfo,
)

__all__ = [
    "ProvisionRequest",
    "ProvisionResult",
    "Region",
    "ServerSize",
    "SnapshotInfo",
    "ServerRecord",
    "poll",
    "PollTimeout",
    "ProvisionError",
    "CredentialInvalidError",
    "CreationRejectedError",
    "NameConflictError",
    "LocationDisabledError",
    "TypeUnavailableError",
    "CreationFatalError",
    "BootTimeoutError",
    "InvalidRequestError",
]
