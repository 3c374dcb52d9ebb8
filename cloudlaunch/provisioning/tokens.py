"""Credential resolution: flag > environment variable."""

import os
from dataclasses import dataclass

ENV_KEYS = {
    "hetzner": "HETZNER_TOKEN",
    "digitalocean": "DIGITALOCEAN_TOKEN",
    "vultr": "VULTR_TOKEN",
    "linode": "LINODE_TOKEN",
}

SOURCE_FLAG = "flag"
SOURCE_ENV = "env"
SOURCE_PROMPT = "prompt"


@dataclass(frozen=True)
class ResolvedToken:
    token: str
    source: str

    def __repr__(self):
        return f"ResolvedToken(token='***', source={self.source!r})"


def env_key(provider) -> str | None:
    return ENV_KEYS.get(provider)


def resolve_token(provider, flag_token=None, env=None):
    """Resolve the bearer token for *provider*.

    Order: explicit flag value, then the provider's environment variable.
    Interactive entry is left to the caller.

    Args:
        env: mapping to read variables from (default: os.environ).

    Returns:
        ResolvedToken, or None when no source supplies a token.
    """
    if flag_token:
        return ResolvedToken(flag_token, SOURCE_FLAG)
    env = os.environ if env is None else env
    key = env_key(provider)
    value = env.get(key) if key else None
    if value:
        return ResolvedToken(value, SOURCE_ENV)
    return None


def collect_tokens(records, env=None) -> dict[str, str]:
    """Map each provider used by *records* to its environment token.

    Manual records have no vendor-side resource and are skipped.
    """
    tokens = {}
    for provider in {r.provider for r in records if not r.is_manual}:
        resolved = resolve_token(provider, env=env)
        if resolved:
            tokens[provider] = resolved.token
    return tokens
