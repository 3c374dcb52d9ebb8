"""Tests for the local server store and the pending-creation journal."""

import json
import os
import stat

from cloudlaunch.provisioning.types import ServerRecord


def _record(id="1", name="web-1", ip="1.2.3.4", provider="hetzner"):
    return ServerRecord(id=id, name=name, provider=provider, ip=ip, region="nbg1", size="cax11", created_at="2024-01-01T00:00:00+00:00")


def test_empty_store(store):
    assert store.list() == []
    assert store.find("web-1") is None
    assert store.list_pending() == []


def test_save_and_list_round_trip(store):
    store.save(_record())
    store.save(_record(id="2", name="web-2", ip="5.6.7.8"))

    records = store.list()
    assert [r.id for r in records] == ["1", "2"]
    assert records[0] == _record()


def test_file_is_private(store):
    store.save(_record())
    mode = stat.S_IMODE(os.stat(store.servers_path).st_mode)
    assert mode == 0o600


def test_find_prefers_ip_over_name(store):
    store.save(_record(id="1", name="5.6.7.8", ip="1.1.1.1"))
    store.save(_record(id="2", name="other", ip="5.6.7.8"))
    assert store.find("5.6.7.8").id == "2"
    assert store.find("other").id == "2"


def test_remove(store):
    store.save(_record())
    assert store.remove("1") is True
    assert store.remove("1") is False
    assert store.list() == []


def test_corrupt_file_reads_as_empty(store):
    store.servers_path.parent.mkdir(parents=True)
    store.servers_path.write_text("{not json")
    assert store.list() == []


def test_legacy_records_default_mode(store):
    store.servers_path.parent.mkdir(parents=True)
    legacy = [{"id": 7, "name": "old", "provider": "vultr", "ip": "9.9.9.9", "region": "ewr", "size": "vc2", "createdAt": "x"}]
    store.servers_path.write_text(json.dumps(legacy))
    record = store.list()[0]
    assert record.id == "7"
    assert record.mode == "coolify"
    assert record.created_at == "x"


def test_pending_journal(store):
    store.mark_pending("hetzner", "web-1", "nbg1", "cax11")
    store.mark_pending("vultr", "web-2", "ewr", "vc2-1c-2gb")
    assert [e["name"] for e in store.list_pending()] == ["web-1", "web-2"]

    store.clear_pending("hetzner", "web-1")
    pending = store.list_pending()
    assert len(pending) == 1
    assert pending[0]["provider"] == "vultr"
    assert pending[0]["started_at"]
