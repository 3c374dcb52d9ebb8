"""Local JSON persistence of server records and pending creations."""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from cloudlaunch.provisioning.types import ServerRecord

logger = logging.getLogger(__name__)

DEFAULT_DIR = Path("~/.cloudlaunch")
SERVERS_FILE = "servers.json"
PENDING_FILE = "pending.json"


def _write_private(path: Path, data):
    """Write JSON to *path* readable by the owner only (0600)."""
    path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
    tmp = path.with_suffix(path.suffix + ".tmp")
    fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        json.dump(data, f, indent=2)
    os.chmod(tmp, 0o600)
    os.replace(tmp, path)


def _read_list(path: Path) -> list:
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read {path}: {e}")
        return []
    return data if isinstance(data, list) else []


class ServerStore:
    """Server records in ``servers.json`` plus a journal of creations in flight.

    A journal entry is written before each vendor create call and cleared
    once the outcome is known. Entries that survive a crash point at
    vendor-side servers that may not be tracked locally.
    """

    def __init__(self, directory=None):
        self.directory = Path(directory) if directory else DEFAULT_DIR.expanduser()

    @property
    def servers_path(self) -> Path:
        return self.directory / SERVERS_FILE

    @property
    def pending_path(self) -> Path:
        return self.directory / PENDING_FILE

    # ── Server records ─────────────────────────────────────────────

    def list(self) -> list[ServerRecord]:
        records = []
        for entry in _read_list(self.servers_path):
            try:
                records.append(ServerRecord.from_dict(entry))
            except (KeyError, TypeError) as e:
                logger.warning(f"Skipping malformed server record: {e}")
        return records

    def save(self, record: ServerRecord):
        records = [r.to_dict() for r in self.list()]
        records.append(record.to_dict())
        _write_private(self.servers_path, records)

    def find(self, query) -> ServerRecord | None:
        """Look a record up by IP first, then by name."""
        records = self.list()
        for attr in ("ip", "name"):
            for record in records:
                if getattr(record, attr) == query:
                    return record
        return None

    def remove(self, server_id) -> bool:
        records = self.list()
        kept = [r for r in records if r.id != server_id]
        if len(kept) == len(records):
            return False
        _write_private(self.servers_path, [r.to_dict() for r in kept])
        return True

    # ── Pending-creation journal ───────────────────────────────────

    def mark_pending(self, provider, name, region, size) -> dict:
        entry = {
            "provider": provider,
            "name": name,
            "region": region,
            "size": size,
            "started_at": datetime.now(timezone.utc).isoformat(),
        }
        entries = _read_list(self.pending_path)
        entries.append(entry)
        _write_private(self.pending_path, entries)
        return entry

    def clear_pending(self, provider, name):
        entries = _read_list(self.pending_path)
        kept = [e for e in entries if not (e.get("provider") == provider and e.get("name") == name)]
        if len(kept) != len(entries):
            _write_private(self.pending_path, kept)

    def list_pending(self):
        return _read_list(self.pending_path)
