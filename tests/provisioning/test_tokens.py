"""Tests for credential resolution."""

from cloudlaunch.provisioning.tokens import ResolvedToken, collect_tokens, resolve_token
from cloudlaunch.provisioning.types import ServerRecord


def _record(provider, id="1"):
    return ServerRecord(id=id, name=f"{provider}-srv", provider=provider, ip="1.2.3.4", region="r", size="s", created_at="")


def test_flag_wins_over_environment():
    resolved = resolve_token("hetzner", flag_token="from-flag", env={"HETZNER_TOKEN": "from-env"})
    assert resolved == ResolvedToken("from-flag", "flag")


def test_environment_variable_per_provider():
    env = {"DIGITALOCEAN_TOKEN": "do-token", "HETZNER_TOKEN": "hz-token"}
    assert resolve_token("digitalocean", env=env) == ResolvedToken("do-token", "env")
    assert resolve_token("hetzner", env=env).token == "hz-token"


def test_nothing_resolved():
    assert resolve_token("vultr", env={}) is None
    assert resolve_token("vultr", flag_token="", env={"VULTR_TOKEN": ""}) is None
    assert resolve_token("unknown", env={"UNKNOWN_TOKEN": "x"}) is None


def test_default_env_is_process_environment(monkeypatch):
    monkeypatch.setenv("LINODE_TOKEN", "linode-env-token")
    assert resolve_token("linode") == ResolvedToken("linode-env-token", "env")


def test_repr_hides_token():
    assert "secret" not in repr(ResolvedToken("secret-value", "flag"))


def test_collect_tokens_skips_manual_and_missing():
    records = [_record("hetzner"), _record("vultr"), _record("linode", id="manual-123")]
    env = {"HETZNER_TOKEN": "hz", "LINODE_TOKEN": "ln"}
    assert collect_tokens(records, env=env) == {"hetzner": "hz"}
