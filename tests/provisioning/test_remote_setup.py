"""Tests for SSH transport, firewall and hardening collaborators."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cloudlaunch.provisioning import firewall, secure
from cloudlaunch.provisioning.ssh_transport import RemoteCommandError, sanitized_env, ssh_base_args, ssh_exec

IP = "203.0.113.10"


def _proc(returncode=0, stdout=b"", stderr=b""):
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    return proc


# ── ssh_transport ────────────────────────────────────────────────


def test_ssh_base_args():
    args = ssh_base_args(IP, ssh_port=2222)
    assert args[0] == "ssh"
    assert "StrictHostKeyChecking=accept-new" in args
    assert args[-3:] == ["-p", "2222", f"root@{IP}"]
    assert "-p" not in ssh_base_args(IP, ssh_port=22)


def test_sanitized_env_drops_credentials():
    env = {"PATH": "/usr/bin", "HETZNER_TOKEN": "x", "DB_PASSWORD": "y", "MY_SECRET": "z", "aws_credentials": "w"}
    assert sanitized_env(env) == {"PATH": "/usr/bin"}


async def test_ssh_exec_runs_command_with_clean_env(monkeypatch):
    monkeypatch.setenv("VULTR_TOKEN", "vultr-secret-token")
    proc = _proc(0, b"hello\n", b"")
    with patch("cloudlaunch.provisioning.ssh_transport.asyncio.create_subprocess_exec", AsyncMock(return_value=proc)) as mock_exec:
        rc, stdout, stderr = await ssh_exec(IP, "echo hello")

    assert (rc, stdout, stderr) == (0, "hello\n", "")
    args = mock_exec.call_args.args
    assert args[-2:] == (f"root@{IP}", "echo hello")
    assert "VULTR_TOKEN" not in mock_exec.call_args.kwargs["env"]


async def test_ssh_exec_rejects_invalid_ip():
    with pytest.raises(ValueError, match="Invalid IP"):
        await ssh_exec("1.2.3.4; rm -rf /", "true")


async def test_ssh_exec_dry_run(caplog):
    caplog.set_level("INFO")
    assert await ssh_exec(IP, "ufw status", dry_run=True) == (0, "", "")
    assert f"[dry-run] ssh root@{IP}: ufw status" in caplog.text


# ── firewall ─────────────────────────────────────────────────────


def test_firewall_command_coolify_ports():
    command = firewall.build_firewall_setup_command()
    for port in (80, 443, 8000, 6001, 6002, 22):
        assert f"ufw allow {port}/tcp" in command
    assert command.startswith("apt-get install -y ufw && ufw default deny incoming")
    assert command.endswith('echo "y" | ufw enable')


def test_firewall_command_bare_ports():
    command = firewall.build_firewall_setup_command(is_bare=True)
    assert "ufw allow 8000/tcp" not in command
    assert "ufw allow 443/tcp" in command
    assert "ufw allow 22/tcp" in command


def test_parse_ufw_status():
    output = (
        "Status: active\n\n"
        "     To                         Action      From\n"
        "     --                         ------      ----\n"
        "[ 1] 22/tcp                     ALLOW IN    Anywhere\n"
        "[ 2] 8000/tcp                   ALLOW IN    Anywhere\n"
        "[ 3] 53/udp                     DENY IN     10.0.0.0/8\n"
    )
    status = firewall.parse_ufw_status(output)
    assert status.active
    assert [(r.port, r.protocol, r.action) for r in status.rules] == [(22, "tcp", "ALLOW"), (8000, "tcp", "ALLOW"), (53, "udp", "DENY")]
    assert status.rules[2].source == "10.0.0.0/8"
    assert not firewall.parse_ufw_status("Status: inactive").active


def test_port_validation():
    assert firewall.is_valid_port(2222)
    assert not firewall.is_valid_port(0)
    assert not firewall.is_valid_port(70000)
    assert not firewall.is_valid_port("22")
    assert firewall.is_protected_port(22)


async def test_setup_firewall_raises_on_failure():
    with patch("cloudlaunch.provisioning.firewall.ssh_exec", AsyncMock(return_value=(1, "", "ufw: not found"))):
        with pytest.raises(RemoteCommandError, match="exit code 1"):
            await firewall.setup_firewall(IP, "web-1")


async def test_setup_firewall_dry_run_does_not_connect(caplog):
    caplog.set_level("INFO")
    with patch("cloudlaunch.provisioning.firewall.ssh_exec", AsyncMock()) as mock_exec:
        await firewall.setup_firewall(IP, "web-1", dry_run=True)
    mock_exec.assert_not_called()
    assert "[dry-run] Firewall setup on web-1" in caplog.text


# ── hardening ────────────────────────────────────────────────────


def test_hardening_command():
    command = secure.build_hardening_command()
    assert "PasswordAuthentication no" in command
    assert "PermitRootLogin prohibit-password" in command
    assert "MaxAuthTries 3" in command
    assert "Port " not in command
    assert "Port 2222" in secure.build_hardening_command(port=2222)
    assert "Port 0" not in secure.build_hardening_command(port=0)


def test_fail2ban_command():
    command = secure.build_fail2ban_command()
    assert "apt-get install -y fail2ban" in command
    assert "/etc/fail2ban/jail.local" in command
    assert "maxretry = 5" in command


def test_parse_sshd_settings():
    content = "#PasswordAuthentication yes\nPasswordAuthentication no\nPermitRootLogin yes\n"
    settings = secure.parse_sshd_settings(content)
    assert settings["PasswordAuthentication"] == "no"
    assert settings["PermitRootLogin"] == "yes"
    assert settings["MaxAuthTries"] == ""


async def test_setup_security_refuses_without_keys():
    mock_exec = AsyncMock(return_value=(0, "0\n", ""))
    with patch("cloudlaunch.provisioning.secure.ssh_exec", mock_exec):
        with pytest.raises(RemoteCommandError, match="No SSH keys"):
            await secure.setup_security(IP, "web-1")
    assert mock_exec.call_count == 1


async def test_setup_security_force_skips_key_check():
    mock_exec = AsyncMock(return_value=(0, "", ""))
    with patch("cloudlaunch.provisioning.secure.ssh_exec", mock_exec):
        await secure.setup_security(IP, "web-1", port=2222, force=True)
    commands = [c.args[1] for c in mock_exec.call_args_list]
    assert len(commands) == 2
    assert "Port 2222" in commands[0]
    assert "fail2ban" in commands[1]


async def test_setup_security_with_keys_runs_both_steps():
    mock_exec = AsyncMock(side_effect=[(0, "2\n", ""), (0, "", ""), (0, "", "")])
    with patch("cloudlaunch.provisioning.secure.ssh_exec", mock_exec):
        await secure.setup_security(IP, "web-1")
    assert mock_exec.call_count == 3


async def test_setup_security_hardening_failure_raises():
    mock_exec = AsyncMock(side_effect=[(0, "1\n", ""), (255, "", "connection reset")])
    with patch("cloudlaunch.provisioning.secure.ssh_exec", mock_exec):
        with pytest.raises(RemoteCommandError, match="SSH hardening failed"):
            await secure.setup_security(IP, "web-1")
