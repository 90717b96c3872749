"""Append-only event log — the notification sink of the hub and its tokens.

Every committed operation appends its notifications here, in emission
order. A failed operation appends nothing. The log serves as:
1. The queryable record consumers filter by kind, source and position.
2. The audit trail of signups, transfers and approvals.
3. The execution markers written by proxy accounts.

Positions are zero-based indexes into the log. A from/to window is
inclusive on both ends; a missing upper end means "latest".
"""

from __future__ import annotations

import enum
import hashlib
import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional


class EventKind(str, enum.Enum):
    """Classification of hub notifications."""
    SIGNUP = "signup"
    TRANSFER = "transfer"
    APPROVAL = "approval"
    # Proxy execution markers
    EXECUTION_SUCCESS = "execution_success"
    EXECUTION_FAILED = "execution_failed"


def new_event_id() -> str:
    return f"evt_{uuid.uuid4().hex}"


def _resolve_timestamp(timestamp: Optional[int]) -> int:
    if timestamp is None:
        return int(datetime.now(timezone.utc).timestamp())
    return timestamp


def _canonical_hash(
    event_id: str,
    event_kind: str,
    source: str,
    actor_id: str,
    timestamp: int,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "event_id": event_id,
            "event_kind": event_kind,
            "source": source,
            "actor_id": actor_id,
            "timestamp": timestamp,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class EventRecord:
    """A single immutable notification.

    source is the identity of the emitter (hub, token or proxy account);
    actor_id is the caller whose operation produced it.
    """
    event_id: str
    event_kind: EventKind
    source: str
    actor_id: str
    timestamp: int  # unix seconds, unbounded
    payload: dict[str, Any]
    event_hash: str  # SHA-256 of canonical JSON

    @staticmethod
    def create(
        event_kind: EventKind,
        source: str,
        actor_id: str,
        payload: dict[str, Any],
        timestamp: Optional[int] = None,
        event_id: Optional[str] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash."""
        eid = event_id or new_event_id()
        ts = _resolve_timestamp(timestamp)
        return EventRecord(
            event_id=eid,
            event_kind=event_kind,
            source=source,
            actor_id=actor_id,
            timestamp=ts,
            payload=payload,
            event_hash=_canonical_hash(
                eid, event_kind.value, source, actor_id, ts, payload
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "source": self.source,
            "actor_id": self.actor_id,
            "timestamp": self.timestamp,
            "payload": self.payload,
            "event_hash": self.event_hash,
        }


class EventLog:
    """Append-only event log with optional file persistence.

    Events can only be appended, never modified or deleted.
    The log can be persisted to a JSONL file (one JSON object per line)
    and loaded back for recovery.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._storage_path = storage_path
        self._event_ids: set[str] = set()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, event: EventRecord) -> None:
        """Append a single event to the log."""
        self.append_all([event])

    def append_all(self, events: Iterable[EventRecord]) -> None:
        """Append a batch of events, all or nothing.

        Raises ValueError if any event_id is a duplicate (replay
        protection), before anything is stored.
        """
        batch = list(events)
        seen: set[str] = set()
        for event in batch:
            if event.event_id in self._event_ids or event.event_id in seen:
                raise ValueError(f"Duplicate event ID: {event.event_id}")
            seen.add(event.event_id)

        if self._storage_path and batch:
            self._append_to_file(batch)

        self._events.extend(batch)
        self._event_ids.update(seen)

    def events(
        self,
        kind: Optional[EventKind] = None,
        source: Optional[str] = None,
    ) -> list[EventRecord]:
        """Return events, optionally filtered by kind and source."""
        return self.events_in_range(0, None, kind=kind, source=source)

    def events_in_range(
        self,
        from_position: int = 0,
        to_position: Optional[int] = None,
        kind: Optional[EventKind] = None,
        source: Optional[str] = None,
    ) -> list[EventRecord]:
        """Return events between two log positions, inclusive."""
        if from_position < 0:
            raise ValueError(f"from_position must be non-negative, got {from_position}")
        if to_position is not None and to_position < 0:
            raise ValueError(f"to_position must be non-negative, got {to_position}")
        stop = len(self._events) if to_position is None else to_position + 1
        result = self._events[from_position:stop]
        if kind is not None:
            result = [e for e in result if e.event_kind == kind]
        if source is not None:
            result = [e for e in result if e.source == source]
        return result

    def event_hashes(self, kind: Optional[EventKind] = None) -> list[str]:
        return [e.event_hash for e in self.events(kind)]

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _append_to_file(self, events: list[EventRecord]) -> None:
        lines = "".join(
            json.dumps(e.to_dict(), sort_keys=True, ensure_ascii=False) + "\n"
            for e in events
        )
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(lines)

    def _load_from_file(self, path: Path) -> None:
        """Load events from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch) and
        duplicate event IDs (replay protection on recovery).
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)

                event_id = data["event_id"]
                if event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event_id}"
                    )

                expected_hash = _canonical_hash(
                    event_id,
                    data["event_kind"],
                    data["source"],
                    data["actor_id"],
                    data["timestamp"],
                    data["payload"],
                )
                if data["event_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event_id} "
                        f"stored hash {data['event_hash']} != computed {expected_hash}"
                    )

                event = EventRecord(
                    event_id=event_id,
                    event_kind=EventKind(data["event_kind"]),
                    source=data["source"],
                    actor_id=data["actor_id"],
                    timestamp=data["timestamp"],
                    payload=data["payload"],
                    event_hash=data["event_hash"],
                )
                self._events.append(event)
                self._event_ids.add(event.event_id)
