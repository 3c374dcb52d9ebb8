"""SSH hardening and fail2ban setup over SSH."""

import logging

from cloudlaunch.provisioning.firewall import is_valid_port
from cloudlaunch.provisioning.ssh_transport import RemoteCommandError, ssh_exec

logger = logging.getLogger(__name__)

SSHD_CONFIG = "/etc/ssh/sshd_config"

# sshd_config key -> hardened value
HARDENED_SETTINGS = {
    "PasswordAuthentication": "no",
    "PermitRootLogin": "prohibit-password",
    "PubkeyAuthentication": "yes",
    "MaxAuthTries": "3",
}

FAIL2BAN_JAIL = (
    "[sshd]",
    "enabled = true",
    "port = ssh",
    "filter = sshd",
    "backend = systemd",
    "maxretry = 5",
    "bantime = 3600",
    "findtime = 600",
)


def _sed_set(key, value):
    return f"sed -i 's/^#\\?{key}.*/{key} {value}/' {SSHD_CONFIG}"


def build_hardening_command(port=None) -> str:
    """sshd_config hardening; *port* is applied only when valid and not 22."""
    commands = [f"cp {SSHD_CONFIG} {SSHD_CONFIG}.bak"]
    commands += [_sed_set(key, value) for key, value in HARDENED_SETTINGS.items()]
    if port is not None and port != 22 and is_valid_port(port):
        commands.append(_sed_set("Port", port))
    commands.append("systemctl restart sshd 2>/dev/null || systemctl restart ssh")
    return " && ".join(commands)


def build_fail2ban_command() -> str:
    jail = "\\n".join(FAIL2BAN_JAIL)
    return " && ".join(
        [
            "apt-get install -y fail2ban python3-systemd",
            f"printf '{jail}\\n' > /etc/fail2ban/jail.local",
            "systemctl enable fail2ban",
            "systemctl restart fail2ban",
        ]
    )


def build_key_check_command() -> str:
    return "test -f /root/.ssh/authorized_keys && wc -l < /root/.ssh/authorized_keys || echo 0"


def parse_sshd_settings(content) -> dict[str, str]:
    """Return the effective value of each hardened key ("" when absent)."""
    found = dict.fromkeys(HARDENED_SETTINGS, "")
    for line in content.splitlines():
        parts = line.strip().split(None, 1)
        if len(parts) == 2 and parts[0] in found and not found[parts[0]]:
            found[parts[0]] = parts[1].strip()
    return found


async def setup_security(ip, name, port=None, dry_run=False, force=False):
    """Harden sshd and enable fail2ban.

    Refuses to disable password login when root has no authorized keys,
    unless *force* is set.

    Raises:
        RemoteCommandError: on a missing key or a failed remote step.
    """
    if dry_run:
        logger.info(f"[dry-run] SSH hardening on {name} ({ip}): {build_hardening_command(port)}")
        logger.info(f"[dry-run] fail2ban on {name} ({ip}): {build_fail2ban_command()}")
        return

    if not force:
        _, stdout, _ = await ssh_exec(ip, build_key_check_command())
        try:
            key_count = int(stdout.strip() or 0)
        except ValueError:
            key_count = 0
        if key_count == 0:
            raise RemoteCommandError(
                "No SSH keys found in /root/.ssh/authorized_keys; refusing to disable password "
                f"authentication (add a key with: ssh-copy-id root@{ip})"
            )

    logger.info(f"Hardening SSH on {name} ({ip})...")
    rc, _, stderr = await ssh_exec(ip, build_hardening_command(port))
    if rc != 0:
        raise RemoteCommandError(f"SSH hardening failed (exit code {rc})", returncode=rc, stderr=stderr)

    rc, _, stderr = await ssh_exec(ip, build_fail2ban_command())
    if rc != 0:
        raise RemoteCommandError(f"fail2ban setup failed (exit code {rc})", returncode=rc, stderr=stderr)
    logger.info("SSH hardened and fail2ban enabled.")
