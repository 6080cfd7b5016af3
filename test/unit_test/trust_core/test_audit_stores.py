import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from trustgate_ai.trust_core.audit import InMemoryAuditStore, JsonlAuditStore
from trustgate_ai.trust_core.audit.stores import HWM_FILENAME
from trustgate_ai.trust_core.schemas.domain import AuditRecord, Decision, DecisionOutcome, Operation

DAY_ONE = datetime(2025, 1, 10, 23, 59, tzinfo=timezone.utc)
DAY_TWO = datetime(2025, 1, 11, 0, 1, tzinfo=timezone.utc)


def _record(sequence: int, recorded_at: datetime) -> AuditRecord:
    op = Operation(command="git", args=("status",))
    return AuditRecord(
        sequence_number=sequence,
        operation=op,
        decision=Decision(operation_id=op.id, outcome=DecisionOutcome.auto, reason="matched allow rule"),
        recorded_at=recorded_at,
        processing_time_ms=1.5,
    )


@pytest.fixture(params=["memory", "jsonl"])
def store(request, tmp_path: Path):
    if request.param == "memory":
        return InMemoryAuditStore()
    return JsonlAuditStore(tmp_path / "audit")


class TestAuditStoreContract:
    def test_empty_store(self, store) -> None:
        assert store.last_sequence() == 0
        assert list(store.read()) == []

    def test_reads_in_sequence_order(self, store) -> None:
        store.write(_record(1, DAY_ONE))
        store.write(_record(2, DAY_TWO))
        store.write(_record(3, DAY_TWO + timedelta(minutes=1)))

        assert [r.sequence_number for r in store.read()] == [1, 2, 3]
        assert store.last_sequence() == 3

    def test_time_window_is_half_open(self, store) -> None:
        store.write(_record(1, DAY_ONE))
        store.write(_record(2, DAY_TWO))

        assert [r.sequence_number for r in store.read(start=DAY_TWO)] == [2]
        assert [r.sequence_number for r in store.read(end=DAY_TWO)] == [1]

    def test_records_round_trip(self, store) -> None:
        original = _record(1, DAY_ONE)
        store.write(original)
        assert list(store.read()) == [original]

    def test_purge_keeps_last_sequence(self, store) -> None:
        store.write(_record(1, DAY_ONE))
        store.write(_record(2, DAY_TWO))

        assert store.purge(DAY_TWO.replace(hour=0, minute=0)) == 1
        assert [r.sequence_number for r in store.read()] == [2]
        assert store.last_sequence() == 2


class TestJsonlAuditStore:
    def test_writes_one_file_per_day(self, tmp_path: Path) -> None:
        store = JsonlAuditStore(tmp_path)
        store.write(_record(1, DAY_ONE))
        store.write(_record(2, DAY_TWO))

        assert store.path_for(DAY_ONE.date()).name == "audit-2025-01-10.jsonl"
        assert store.path_for(DAY_ONE.date()).read_text(encoding="utf-8").count("\n") == 1
        assert store.path_for(DAY_TWO.date()).exists()

    def test_skips_malformed_lines(self, tmp_path: Path, caplog) -> None:
        store = JsonlAuditStore(tmp_path)
        store.write(_record(1, DAY_ONE))
        with store.path_for(DAY_ONE.date()).open("a", encoding="utf-8") as f:
            f.write("{broken\n")

        with caplog.at_level(logging.WARNING, logger="trustgate_ai.trust_core.audit.stores"):
            records = list(store.read())

        assert [r.sequence_number for r in records] == [1]
        assert "Skipping malformed audit entry" in caplog.text

    def test_ignores_unrelated_files(self, tmp_path: Path) -> None:
        (tmp_path / "audit-notes.jsonl").write_text("", encoding="utf-8")
        store = JsonlAuditStore(tmp_path)
        store.write(_record(1, DAY_ONE))
        assert len(list(store.read())) == 1

    def test_recovers_high_water_mark_from_files(self, tmp_path: Path) -> None:
        JsonlAuditStore(tmp_path).write(_record(7, DAY_ONE))
        assert JsonlAuditStore(tmp_path).last_sequence() == 7

    def test_purge_persists_high_water_mark(self, tmp_path: Path) -> None:
        store = JsonlAuditStore(tmp_path)
        store.write(_record(1, DAY_ONE))

        store.purge(DAY_ONE + timedelta(days=2))

        assert not store.path_for(DAY_ONE.date()).exists()
        assert (tmp_path / HWM_FILENAME).read_text(encoding="utf-8") == "1"
        assert JsonlAuditStore(tmp_path).last_sequence() == 1

    def test_purge_only_removes_whole_days(self, tmp_path: Path) -> None:
        store = JsonlAuditStore(tmp_path)
        store.write(_record(1, DAY_TWO))
        assert store.purge(DAY_TWO + timedelta(hours=1)) == 0
        assert store.path_for(DAY_TWO.date()).exists()

    def test_failed_fsync_rolls_back_the_line(self, tmp_path: Path, monkeypatch) -> None:
        store = JsonlAuditStore(tmp_path)
        store.write(_record(1, DAY_ONE))
        before = store.path_for(DAY_ONE.date()).read_bytes()
        real_fsync = os.fsync
        failed = []

        def fsync_failing_once(fd: int) -> None:
            if not failed:
                failed.append(fd)
                raise OSError("input/output error")
            real_fsync(fd)

        monkeypatch.setattr(os, "fsync", fsync_failing_once)

        with pytest.raises(OSError):
            store.write(_record(2, DAY_ONE))

        assert store.path_for(DAY_ONE.date()).read_bytes() == before
        assert store.last_sequence() == 1
        assert [r.sequence_number for r in store.read()] == [1]
