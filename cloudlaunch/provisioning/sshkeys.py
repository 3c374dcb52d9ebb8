"""Local SSH public key discovery."""

import logging
import time
from pathlib import Path

logger = logging.getLogger(__name__)

PUBLIC_KEY_FILES = ("id_ed25519.pub", "id_rsa.pub", "id_ecdsa.pub")


def find_local_public_key(home=None) -> str | None:
    """Return the first public key found under ~/.ssh, or None."""
    ssh_dir = Path(home).expanduser() / ".ssh" if home else Path.home() / ".ssh"
    for filename in PUBLIC_KEY_FILES:
        path = ssh_dir / filename
        try:
            content = path.read_text().strip()
        except OSError:
            continue
        if content:
            logger.debug(f"Using SSH public key {path}")
            return content
    return None


def ssh_key_name(now=None) -> str:
    return f"cloudlaunch-{int(time.time() if now is None else now)}"
