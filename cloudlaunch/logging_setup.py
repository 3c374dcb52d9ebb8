"""CLI logging setup: plain %(message)s format with token redaction."""

import logging
import sys

from cloudlaunch.redact import SecretRedactingFilter


def setup_cli_logging(verbose=False):
    """Configure root logger with plain message format for CLI commands.

    Every record passes through SecretRedactingFilter so vendor tokens
    taken from the environment never reach the terminal.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)
    root.addFilter(SecretRedactingFilter())
    # httpx logs every request URL at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
