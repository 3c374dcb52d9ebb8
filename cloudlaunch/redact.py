"""Secret redaction for log output and provider error messages.

Two sources of secrets are handled: the vendor token environment variables
(known up front) and explicit credentials an adapter passes to scrub().
Bearer authorization values are masked wherever they appear.
"""

import logging
import os
import re

MASK = "***"

# Env vars whose values never reach the terminal
_SECRET_ENV_VARS = [
    "HETZNER_TOKEN",
    "DIGITALOCEAN_TOKEN",
    "VULTR_TOKEN",
    "LINODE_TOKEN",
]

_MIN_SECRET_LENGTH = 8  # shorter values cause false positives

_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9._\-~+/=]+", re.IGNORECASE)

# Compiled env var patterns, built on first use
_patterns: list[re.Pattern] | None = None


def _compile(values) -> list[re.Pattern]:
    # Longest first, so a token containing another token is masked whole
    return [re.compile(re.escape(v)) for v in sorted(values, key=len, reverse=True)]


def _env_patterns() -> list[re.Pattern]:
    global _patterns
    if _patterns is None:
        values = {os.environ.get(var, "") for var in _SECRET_ENV_VARS}
        _patterns = _compile(v for v in values if len(v) >= _MIN_SECRET_LENGTH)
    return _patterns


def _mask(text: str, patterns) -> str:
    for pattern in patterns:
        text = pattern.sub(MASK, text)
    return text


def redact_secrets(text: str) -> str:
    """Mask vendor token env var values in *text*."""
    return _mask(text, _env_patterns())


def scrub(text: str, *secrets: str) -> str:
    """Mask explicit secrets, env var tokens and bearer values in *text*.

    Adapters call this on every vendor message before raising it, so their
    own credential never ends up inside an exception.
    """
    text = _mask(text, _compile({s for s in secrets if s}))
    return redact_secrets(_BEARER_RE.sub(rf"\1{MASK}", text))


class SecretRedactingFilter(logging.Filter):
    """Mask token values and bearer headers in log records.

    The record is rendered once (msg % args) and stored back pre-formatted,
    so %-style and f-string messages are treated the same. Records without
    anything to mask are left untouched.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        masked = _BEARER_RE.sub(rf"\1{MASK}", redact_secrets(message))
        if masked != message:
            record.msg = masked
            record.args = None
        return True
