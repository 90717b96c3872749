"""Tests for the event log — append-only, windowed queries, tamper detection."""

import json
from pathlib import Path

import pytest

from circles.persistence.event_log import EventKind, EventLog, EventRecord

HUB = "0xhub"
TOKEN = "0xtoken"


def _event(kind: EventKind = EventKind.TRANSFER, source: str = TOKEN, event_id: str = None) -> EventRecord:
    return EventRecord.create(
        event_kind=kind,
        source=source,
        actor_id="0xalice",
        payload={"from": "0xalice", "to": "0xbob", "value": 10**30},
        timestamp=1_600_000_000,
        event_id=event_id,
    )


class TestEventRecord:
    def test_hash_is_deterministic(self) -> None:
        a = _event(event_id="e1")
        b = _event(event_id="e1")
        assert a.event_hash == b.event_hash
        assert a.event_hash.startswith("sha256:")

    def test_hash_covers_source(self) -> None:
        a = _event(source=TOKEN, event_id="e1")
        b = _event(source=HUB, event_id="e1")
        assert a.event_hash != b.event_hash

    def test_timestamp_is_unix_seconds(self) -> None:
        assert _event().timestamp == 1_600_000_000

    def test_timestamp_beyond_calendar_range(self) -> None:
        far = 10**20
        event = EventRecord.create(EventKind.SIGNUP, HUB, "0xalice", {}, timestamp=far)
        assert event.timestamp == far
        assert event.to_dict()["timestamp"] == far

    def test_hash_covers_timestamp(self) -> None:
        a = EventRecord.create(EventKind.SIGNUP, HUB, "0xalice", {}, timestamp=1, event_id="e1")
        b = EventRecord.create(EventKind.SIGNUP, HUB, "0xalice", {}, timestamp=2, event_id="e1")
        assert a.event_hash != b.event_hash

    def test_generated_ids_are_unique(self) -> None:
        assert _event().event_id != _event().event_id


class TestAppend:
    def test_append_and_count(self) -> None:
        log = EventLog()
        log.append(_event())
        log.append(_event())
        assert log.count == 2

    def test_duplicate_rejected(self) -> None:
        log = EventLog()
        log.append(_event(event_id="e1"))
        with pytest.raises(ValueError, match="Duplicate"):
            log.append(_event(event_id="e1"))
        assert log.count == 1

    def test_batch_is_all_or_nothing(self) -> None:
        log = EventLog()
        log.append(_event(event_id="e1"))
        with pytest.raises(ValueError):
            log.append_all([_event(event_id="e2"), _event(event_id="e1")])
        assert log.count == 1

    def test_duplicate_within_batch_rejected(self) -> None:
        log = EventLog()
        with pytest.raises(ValueError):
            log.append_all([_event(event_id="e2"), _event(event_id="e2")])
        assert log.count == 0

    def test_last_event(self) -> None:
        log = EventLog()
        assert log.last_event is None
        e = _event()
        log.append(e)
        assert log.last_event == e


class TestQueries:
    def _log(self) -> EventLog:
        log = EventLog()
        log.append_all([
            _event(EventKind.TRANSFER, TOKEN, "e0"),
            _event(EventKind.SIGNUP, HUB, "e1"),
            _event(EventKind.APPROVAL, TOKEN, "e2"),
            _event(EventKind.TRANSFER, "0xother", "e3"),
        ])
        return log

    def test_filter_by_kind(self) -> None:
        ids = [e.event_id for e in self._log().events(EventKind.TRANSFER)]
        assert ids == ["e0", "e3"]

    def test_filter_by_source(self) -> None:
        ids = [e.event_id for e in self._log().events(source=TOKEN)]
        assert ids == ["e0", "e2"]

    def test_window_is_inclusive(self) -> None:
        ids = [e.event_id for e in self._log().events_in_range(1, 2)]
        assert ids == ["e1", "e2"]

    def test_window_to_latest(self) -> None:
        ids = [e.event_id for e in self._log().events_in_range(2)]
        assert ids == ["e2", "e3"]

    def test_window_with_kind(self) -> None:
        ids = [
            e.event_id
            for e in self._log().events_in_range(1, None, kind=EventKind.TRANSFER)
        ]
        assert ids == ["e3"]

    def test_window_past_end_is_empty(self) -> None:
        assert self._log().events_in_range(10) == []

    def test_negative_start_rejected(self) -> None:
        with pytest.raises(ValueError):
            self._log().events_in_range(-1)

    def test_negative_end_rejected(self) -> None:
        with pytest.raises(ValueError, match="to_position"):
            self._log().events_in_range(0, -2)

    def test_event_hashes(self) -> None:
        log = self._log()
        assert len(log.event_hashes()) == 4
        assert len(log.event_hashes(EventKind.SIGNUP)) == 1


class TestFilePersistence:
    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        log = EventLog(storage_path=path)
        log.append_all([_event(event_id="e1"), _event(EventKind.SIGNUP, HUB, "e2")])

        reloaded = EventLog(storage_path=path)
        assert reloaded.count == 2
        assert reloaded.events() == log.events()
        # Big integers survive JSON
        assert reloaded.events()[0].payload["value"] == 10**30

    def test_tampered_record_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_event(event_id="e1"))

        record = json.loads(path.read_text(encoding="utf-8"))
        record["payload"]["value"] = 1
        path.write_text(json.dumps(record) + "\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Integrity"):
            EventLog(storage_path=path)

    def test_duplicate_on_recovery_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        EventLog(storage_path=path).append(_event(event_id="e1"))
        line = path.read_text(encoding="utf-8")
        path.write_text(line + line, encoding="utf-8")

        with pytest.raises(ValueError, match="Duplicate"):
            EventLog(storage_path=path)

    def test_failed_batch_not_written(self, tmp_path: Path) -> None:
        path = tmp_path / "events.jsonl"
        log = EventLog(storage_path=path)
        log.append(_event(event_id="e1"))
        with pytest.raises(ValueError):
            log.append_all([_event(event_id="e2"), _event(event_id="e1")])
        assert EventLog(storage_path=path).count == 1
