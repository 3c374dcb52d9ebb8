"""UFW firewall setup and inspection over SSH."""

import logging
import re
from dataclasses import dataclass, field

from cloudlaunch.provisioning.ssh_transport import RemoteCommandError, ssh_exec

logger = logging.getLogger(__name__)

PROTECTED_PORTS = (22,)
COOLIFY_PORTS = (80, 443, 8000, 6001, 6002)
BARE_PORTS = (80, 443)

_RULE_RE = re.compile(r"\[\s*\d+\]\s+(\d+)/(tcp|udp)\s+(ALLOW|DENY)\s+IN\s+(.*)", re.IGNORECASE)


@dataclass
class FirewallRule:
    port: int
    protocol: str
    action: str
    source: str = "Anywhere"


@dataclass
class FirewallStatus:
    active: bool
    rules: list[FirewallRule] = field(default_factory=list)


def is_valid_port(port) -> bool:
    return isinstance(port, int) and not isinstance(port, bool) and 1 <= port <= 65535


def is_protected_port(port) -> bool:
    return port in PROTECTED_PORTS


def build_firewall_setup_command(is_bare=False) -> str:
    """UFW setup: deny incoming by default, open the mode's ports and SSH."""
    ports = BARE_PORTS if is_bare else COOLIFY_PORTS
    commands = [
        "apt-get install -y ufw",
        "ufw default deny incoming",
        "ufw default allow outgoing",
        *(f"ufw allow {p}/tcp" for p in ports),
        "ufw allow 22/tcp",
        'echo "y" | ufw enable',
    ]
    return " && ".join(commands)


def build_ufw_rule_command(action, port, protocol="tcp") -> str:
    return f"ufw {action} {port}/{protocol}"


def parse_ufw_status(stdout) -> FirewallStatus:
    """Parse `ufw status numbered` output."""
    rules = []
    for line in stdout.splitlines():
        m = _RULE_RE.search(line)
        if m:
            rules.append(
                FirewallRule(
                    port=int(m.group(1)),
                    protocol=m.group(2).lower(),
                    action=m.group(3).upper(),
                    source=m.group(4).strip() or "Anywhere",
                )
            )
    return FirewallStatus(active="status: active" in stdout.lower(), rules=rules)


async def setup_firewall(ip, name, dry_run=False, is_bare=False):
    """Install and enable UFW on the server.

    Raises:
        RemoteCommandError: if the setup command exits non-zero.
    """
    command = build_firewall_setup_command(is_bare=is_bare)
    if dry_run:
        logger.info(f"[dry-run] Firewall setup on {name} ({ip}): {command}")
        return
    logger.info(f"Configuring firewall on {name} ({ip})...")
    rc, _, stderr = await ssh_exec(ip, command)
    if rc != 0:
        raise RemoteCommandError(f"Firewall setup failed (exit code {rc})", returncode=rc, stderr=stderr)
    logger.info("Firewall configured.")


async def get_firewall_status(ip) -> FirewallStatus:
    rc, stdout, stderr = await ssh_exec(ip, "ufw status numbered")
    if rc != 0:
        raise RemoteCommandError(f"Could not read firewall status (exit code {rc})", returncode=rc, stderr=stderr)
    return parse_ufw_status(stdout)
