"""Deployment templates: per-provider region/size defaults."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Template:
    name: str
    description: str
    defaults: dict[str, tuple[str, str]] = field(default_factory=dict)  # provider -> (region, size)
    full_setup: bool = False


TEMPLATES = {
    "starter": Template(
        name="starter",
        description="Minimal setup for trying out Coolify (cheapest option)",
        defaults={
            "hetzner": ("nbg1", "cax11"),
            "digitalocean": ("fra1", "s-2vcpu-2gb"),
            "vultr": ("ewr", "vc2-1c-2gb"),
            "linode": ("us-east", "g6-standard-2"),
        },
    ),
    "production": Template(
        name="production",
        description="Production-ready setup with firewall and SSH hardening",
        defaults={
            "hetzner": ("nbg1", "cx33"),
            "digitalocean": ("fra1", "s-2vcpu-4gb"),
            "vultr": ("ewr", "vc2-2c-4gb"),
            "linode": ("us-east", "g6-standard-4"),
        },
        full_setup=True,
    ),
    "dev": Template(
        name="dev",
        description="Development/testing environment (cheap, no hardening)",
        defaults={
            "hetzner": ("nbg1", "cax11"),
            "digitalocean": ("fra1", "s-2vcpu-2gb"),
            "vultr": ("ewr", "vc2-1c-2gb"),
            "linode": ("us-east", "g6-standard-2"),
        },
    ),
}

DEFAULT_TEMPLATE = "starter"


def get_template(name) -> Template | None:
    return TEMPLATES.get(name)


def get_template_defaults(name, provider) -> tuple[str, str] | None:
    """Return (region, size) for *provider* under template *name*, if defined."""
    template = get_template(name)
    if template is None:
        return None
    return template.defaults.get(provider)
