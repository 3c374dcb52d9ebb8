"""Tests for cloud-init boot script generation and templates."""

from cloudlaunch.provisioning.cloud_init import bare_cloud_init, cloud_init_for_mode, coolify_cloud_init
from cloudlaunch.provisioning.templates import TEMPLATES, get_template, get_template_defaults


def test_coolify_script_installs_and_opens_ports():
    script = coolify_cloud_init("my-server")
    assert script.startswith("#!/bin/bash")
    assert "cdn.coollabs.io/coolify/install.sh" in script
    for port in (22, 80, 443, 8000, 6001, 6002):
        assert f"ufw allow {port}/tcp" in script


def test_server_name_is_sanitized():
    script = coolify_cloud_init('evil"; rm -rf / #')
    assert '"; rm' not in script
    assert "Server: evilrm-rf" in script


def test_bare_script_has_no_coolify():
    script = bare_cloud_init("plain")
    assert "coolify" not in script.lower().replace("cloudlaunch", "")
    assert "fail2ban" in script


def test_mode_dispatch():
    assert cloud_init_for_mode("x-1", "bare") == bare_cloud_init("x-1")
    assert cloud_init_for_mode("x-1", "coolify") == coolify_cloud_init("x-1")


def test_templates_cover_every_provider():
    for template in TEMPLATES.values():
        assert set(template.defaults) == {"hetzner", "digitalocean", "vultr", "linode"}


def test_template_lookup():
    assert get_template("production").full_setup is True
    assert get_template("starter").full_setup is False
    assert get_template("nope") is None
    assert get_template_defaults("starter", "hetzner") == ("nbg1", "cax11")
    assert get_template_defaults("starter", "aws") is None
    assert get_template_defaults("nope", "hetzner") is None
