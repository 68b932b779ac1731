"""Tests for pending-registration markers and their logs."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from medauth.core.engine import (
    FilePendingLog,
    InMemoryPendingLog,
    PendingLog,
    PendingRegistration,
    PendingState,
)
from medauth.core.store import ProductRecord
from medauth.exceptions import UnavailableError

MADE = datetime(2024, 1, 1, 8, 30, 0, 250000, tzinfo=timezone.utc)


def make_marker(product_id: str, created_at: datetime = MADE) -> PendingRegistration:
    record = ProductRecord(
        product_id=product_id,
        product_type="Aspirin",
        batch_number="B-1",
        manufactured_at=MADE,
        expires_at=MADE + timedelta(days=730),
        fingerprint="0x" + "9" * 64,
    )
    return PendingRegistration(record=record, state=PendingState.PENDING, created_at=created_at)


@pytest.fixture(params=["memory", "file"])
def log(request: pytest.FixtureRequest, tmp_path: Path) -> PendingLog:
    if request.param == "memory":
        return InMemoryPendingLog()
    return FilePendingLog(tmp_path / "state" / "pending.json")


class TestPendingLog:
    """Behaviour shared by every PendingLog implementation."""

    def test_put_then_get(self, log: PendingLog) -> None:
        marker = make_marker("P-1")
        log.put(marker)
        assert log.get("P-1") == marker

    def test_get_missing_is_none(self, log: PendingLog) -> None:
        assert log.get("P-404") is None

    def test_put_replaces(self, log: PendingLog) -> None:
        log.put(make_marker("P-1"))
        newer = make_marker("P-1", MADE + timedelta(minutes=1))
        log.put(newer)
        assert log.get("P-1") == newer
        assert len(log.markers()) == 1

    def test_clear(self, log: PendingLog) -> None:
        log.put(make_marker("P-1"))
        log.clear("P-1")
        log.clear("P-1")
        assert log.get("P-1") is None

    def test_markers_ordered_by_creation(self, log: PendingLog) -> None:
        log.put(make_marker("P-late", MADE + timedelta(hours=1)))
        log.put(make_marker("P-early", MADE))
        assert [m.product_id for m in log.markers()] == ["P-early", "P-late"]

    def test_add_refuses_existing_marker(self, log: PendingLog) -> None:
        first = make_marker("P-1")
        assert log.add(first)
        assert not log.add(make_marker("P-1", MADE + timedelta(minutes=1)))
        assert log.get("P-1") == first

    def test_add_after_clear(self, log: PendingLog) -> None:
        log.add(make_marker("P-1"))
        log.clear("P-1")
        assert log.add(make_marker("P-1"))

    def test_mark_committed(self, log: PendingLog) -> None:
        marker = make_marker("P-1")
        log.add(marker)
        committed = log.mark_committed(marker)
        assert committed.state is PendingState.LEDGER_COMMITTED
        assert log.get("P-1") == committed

    def test_mark_committed_restores_cleared_marker(self, log: PendingLog) -> None:
        marker = make_marker("P-1")
        log.add(marker)
        log.clear("P-1")
        log.mark_committed(marker)
        assert log.get("P-1").state is PendingState.LEDGER_COMMITTED


class TestFilePendingLog:

    def test_survives_reopen(self, tmp_path: Path) -> None:
        path = tmp_path / "pending.json"
        FilePendingLog(path).put(make_marker("P-1"))
        assert FilePendingLog(path).get("P-1") == make_marker("P-1")

    def test_document_layout(self, tmp_path: Path) -> None:
        path = tmp_path / "pending.json"
        FilePendingLog(path).put(make_marker("P-1"))
        data = json.loads(path.read_text(encoding="utf-8"))
        entry = data["pending"]["P-1"]
        assert entry["state"] == "PENDING"
        assert entry["created_at"] == "2024-01-01T08:30:00.250Z"
        assert entry["record"]["product_hash"] == "0x" + "9" * 64

    def test_no_temporary_files_left(self, tmp_path: Path) -> None:
        log = FilePendingLog(tmp_path / "pending.json")
        log.put(make_marker("P-1"))
        log.clear("P-1")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["pending.json", "pending.json.lock"]

    def test_corrupt_document(self, tmp_path: Path) -> None:
        path = tmp_path / "pending.json"
        path.write_text("[oops", encoding="utf-8")
        with pytest.raises(UnavailableError):
            FilePendingLog(path).markers()

    def test_two_logs_on_one_file_keep_both_markers(self, tmp_path: Path) -> None:
        path = tmp_path / "pending.json"
        first, second = FilePendingLog(path), FilePendingLog(path)
        first.put(make_marker("P-1"))
        second.put(make_marker("P-2"))
        first.clear("P-1")
        assert [m.product_id for m in second.markers()] == ["P-2"]

    def test_concurrent_writers_lose_nothing(self, tmp_path: Path) -> None:
        path = tmp_path / "pending.json"
        workers = 8
        barrier = threading.Barrier(workers)

        def write(n: int) -> None:
            log = FilePendingLog(path)
            barrier.wait()
            for i in range(5):
                log.add(make_marker(f"P-{n}-{i}"))

        threads = [threading.Thread(target=write, args=(n,)) for n in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(FilePendingLog(path).markers()) == workers * 5
