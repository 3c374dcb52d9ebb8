"""Tests for deployment templates and local SSH key discovery."""

import pytest

from cloudlaunch.providers.factory import SUPPORTED_PROVIDERS
from cloudlaunch.provisioning.sshkeys import find_local_public_key, ssh_key_name
from cloudlaunch.provisioning.templates import TEMPLATES, get_template, get_template_defaults


@pytest.mark.parametrize("template", sorted(TEMPLATES))
def test_every_template_covers_every_provider(template):
    for provider in SUPPORTED_PROVIDERS:
        region, size = get_template_defaults(template, provider)
        assert region and size


def test_only_production_enables_full_setup():
    assert [name for name, t in TEMPLATES.items() if t.full_setup] == ["production"]


def test_unknown_template():
    assert get_template("huge") is None
    assert get_template_defaults("huge", "hetzner") is None
    assert get_template_defaults("starter", "aws") is None


def test_find_local_public_key_prefers_ed25519(tmp_path):
    ssh_dir = tmp_path / ".ssh"
    ssh_dir.mkdir()
    (ssh_dir / "id_rsa.pub").write_text("ssh-rsa AAAA rsa\n")
    assert find_local_public_key(tmp_path) == "ssh-rsa AAAA rsa"

    (ssh_dir / "id_ed25519.pub").write_text("ssh-ed25519 AAAA ed\n")
    assert find_local_public_key(tmp_path) == "ssh-ed25519 AAAA ed"


def test_find_local_public_key_missing(tmp_path):
    assert find_local_public_key(tmp_path) is None


def test_ssh_key_name():
    assert ssh_key_name(now=1700000000.5) == "cloudlaunch-1700000000"
