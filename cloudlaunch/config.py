"""Deployment config file loading, validation and merging."""

import logging
import re
import sys

import yaml

from cloudlaunch.providers.factory import is_valid_provider
from cloudlaunch.provisioning.templates import TEMPLATES, get_template, get_template_defaults
from cloudlaunch.provisioning.types import SERVER_MODES, is_valid_domain, is_valid_server_name

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "cloudlaunch.yaml"

KNOWN_KEYS = ("template", "provider", "region", "size", "name", "mode", "fullSetup", "domain")

_TOKEN_KEY_RE = re.compile(r"token|secret|password|api[_-]?key|credential", re.IGNORECASE)


def load_config(config_path: str = DEFAULT_CONFIG_FILE) -> dict:
    """Load a deployment config from YAML. Exits on missing or unparsable files."""
    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        logger.error(f"Error: Config file '{config_path}' not found.")
        sys.exit(1)
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML config: {e}")
        sys.exit(1)
    if config is None:
        return {}
    if not isinstance(config, dict):
        logger.error(f"Error: Config file '{config_path}' must contain a mapping.")
        sys.exit(1)
    return config


def validate_config(config: dict) -> dict:
    """Return the valid subset of *config*, logging a warning for everything dropped.

    Token-like keys are never honored: credentials belong in flags or the
    environment, not in files that end up in version control.
    """
    clean = {}
    for key, value in config.items():
        if _TOKEN_KEY_RE.search(str(key)):
            logger.warning(
                f"Security warning: '{key}' found in config file. Tokens are ignored here; "
                "use --token or the provider's environment variable."
            )
            continue
        if key not in KNOWN_KEYS:
            logger.warning(f"Unknown config key '{key}' ignored.")
            continue
        problem = _check_value(key, value)
        if problem:
            logger.warning(f"Invalid value for '{key}': {problem}. Ignored.")
            continue
        clean[key] = value
    return clean


def _check_value(key, value):
    if key == "fullSetup":
        return None if isinstance(value, bool) else "expected true or false"
    if not isinstance(value, str) or not value:
        return "expected a non-empty string"
    if key == "template" and value not in TEMPLATES:
        return f"unknown template (choose from {', '.join(TEMPLATES)})"
    if key == "provider" and not is_valid_provider(value):
        return "unknown provider"
    if key == "mode" and value not in SERVER_MODES:
        return f"expected one of {', '.join(SERVER_MODES)}"
    if key == "name" and not is_valid_server_name(value):
        return "must be 3-63 chars of lowercase letters, digits and hyphens, starting with a letter"
    if key == "domain" and not is_valid_domain(value):
        return "not a valid domain name"
    return None


def merge_config(cli: dict, file_config: dict | None = None) -> dict:
    """Merge CLI values, config file values and template defaults.

    Priority: CLI flag > config file > template default. Keys left as None
    are resolved later (interactively or automatically). Tokens only ever
    come from the CLI.
    """
    file_config = file_config or {}

    def pick(cli_key, file_key=None):
        value = cli.get(cli_key)
        return value if value is not None else file_config.get(file_key or cli_key)

    template_name = pick("template")
    provider = pick("provider")
    defaults = get_template_defaults(template_name, provider) if template_name and provider else None
    template = get_template(template_name) if template_name else None

    full_setup = pick("full_setup", "fullSetup")
    if full_setup is None and template is not None:
        full_setup = template.full_setup

    return {
        "template": template_name,
        "provider": provider,
        "token": cli.get("token"),
        "region": pick("region") or (defaults[0] if defaults else None),
        "size": pick("size") or (defaults[1] if defaults else None),
        "name": pick("name"),
        "mode": pick("mode"),
        "full_setup": full_setup,
        "domain": file_config.get("domain"),
    }
