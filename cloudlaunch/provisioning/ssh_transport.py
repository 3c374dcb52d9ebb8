"""SSH transport: run commands on provisioned servers as root."""

import asyncio
import logging
import os

from cloudlaunch.provisioning.types import is_valid_ip

logger = logging.getLogger(__name__)

SSH_USER = "root"
DEFAULT_TIMEOUT = 300
_SENSITIVE_ENV_MARKERS = ("TOKEN", "SECRET", "PASSWORD", "CREDENTIAL")


class RemoteCommandError(Exception):
    """A remote command could not be run or exited non-zero."""

    def __init__(self, message, returncode=None, stderr=""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


def assert_valid_ip(ip):
    if not is_valid_ip(ip):
        raise ValueError(f"Invalid IP address: {ip!r}")


def sanitized_env(env=None) -> dict[str, str]:
    """Copy of *env* without variables that look like credentials."""
    env = os.environ if env is None else env
    return {k: v for k, v in env.items() if not any(marker in k.upper() for marker in _SENSITIVE_ENV_MARKERS)}


def ssh_base_args(ip, ssh_port=None, connect_timeout=10):
    """Build base SSH arguments for root@<ip>."""
    args = [
        "ssh",
        "-o", "StrictHostKeyChecking=accept-new",
        "-o", "BatchMode=yes",
        "-o", f"ConnectTimeout={connect_timeout}",
        "-o", "ServerAliveInterval=60",
        "-o", "ServerAliveCountMax=5",
    ]
    if ssh_port and ssh_port != 22:
        args += ["-p", str(ssh_port)]
    args.append(f"{SSH_USER}@{ip}")
    return args


async def ssh_exec(ip, command, ssh_port=None, timeout=DEFAULT_TIMEOUT, dry_run=False):
    """Run *command* on the server and return (returncode, stdout, stderr).

    The local environment passed to ssh is stripped of credential-like
    variables. A timeout or a missing ssh binary is reported as returncode 1.

    Raises:
        ValueError: if *ip* is not a valid IPv4 address.
    """
    assert_valid_ip(ip)
    if dry_run:
        logger.info(f"[dry-run] ssh {SSH_USER}@{ip}: {command}")
        return 0, "", ""

    args = ssh_base_args(ip, ssh_port)
    args.append(command)
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=sanitized_env(),
        )
    except FileNotFoundError:
        logger.error("Error: 'ssh' not found. Is it installed and on PATH?")
        return 1, "", "'ssh' not found"

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        logger.error(f"SSH command timed out after {timeout}s on {ip}")
        proc.kill()
        await proc.wait()
        return 1, "", "timeout"

    stdout = stdout_bytes.decode() if stdout_bytes else ""
    stderr = stderr_bytes.decode() if stderr_bytes else ""
    if proc.returncode != 0 and stderr:
        logger.debug(f"SSH error ({ip}): {stderr.strip()}")
    return proc.returncode, stdout, stderr
