"""State store — JSON snapshot of the hub and every ledger it owns.

The event log records what happened; the snapshot records where things
stand, so a process can resume without replaying notifications.

Writes go to a sibling temporary file which then replaces the snapshot,
so a crash mid-write leaves the previous snapshot intact. Amounts are
stored as JSON integers; Python reads them back at full precision.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from circles.hub.registry import HubRegistry
from circles.models.hub import MAX_UINT256
from circles.persistence.event_log import EventLog

SNAPSHOT_VERSION = 1


class StateStore:
    """Loads and saves hub snapshots at a fixed path.

    Usage:
        store = StateStore(Path("data/state.json"))
        store.save(hub)
        hub = store.load(event_log)
    """

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    @property
    def storage_path(self) -> Path:
        return self._storage_path

    def exists(self) -> bool:
        return self._storage_path.exists()

    def save(self, hub: HubRegistry) -> None:
        with hub.lock:
            record = {"version": SNAPSHOT_VERSION, "hub": hub.to_record()}
        tmp_path = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(record, f, indent=2, sort_keys=True)
            f.write("\n")
        os.replace(tmp_path, self._storage_path)

    def load(
        self,
        event_log: Optional[EventLog] = None,
        bound: int = MAX_UINT256,
    ) -> Optional[HubRegistry]:
        """Return the stored hub, or None if no snapshot exists."""
        if not self._storage_path.exists():
            return None
        with self._storage_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        version = data.get("version")
        if version != SNAPSHOT_VERSION:
            raise ValueError(
                f"Unsupported snapshot version {version!r} in {self._storage_path}"
            )
        return HubRegistry.from_record(data["hub"], event_log=event_log, bound=bound)
