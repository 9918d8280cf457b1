"""
Directory Runtime — Integrity Monitor Tests

  1. Drift classification thresholds
  2. A drop of 6 students is data loss and writes an EMERGENCY file
  3. A drop of 3 students is only a decrease
  4. An emptied store is restored once per incident

Run:  python -m directory_runtime.test_monitor
"""

from __future__ import annotations

import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from directory_kernel.constants import EMERGENCY_PREFIX
from directory_kernel.stats import DirectoryStats
from directory_runtime.backup import read_json
from directory_runtime.document_store import SqliteDocumentStore
from directory_runtime.drift import DATA_LOSS, DECREASED, INCREASED, UNCHANGED, compare_stats
from directory_runtime.monitor import (
    AUTO_RESTORED,
    EMPTY,
    FIRST_SNAPSHOT,
    IDLE,
    TRACKING,
    IntegrityMonitor,
)


def _header(title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


class _StepClock:
    def __init__(self) -> None:
        self._now = datetime(2026, 2, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


def _document(students: int, colleges: int = 1) -> dict:
    document = {}
    for c in range(colleges):
        key = f"c{c}_edu"
        document[key] = {
            "name": f"College {c}",
            "domain": f"c{c}.edu",
            "students": [
                {"id": c * 1000 + i, "name": f"S{i}", "email": f"s{i}@c{c}.edu",
                 "linkedin": f"https://linkedin.com/in/s{i}", "collegeDomain": f"c{c}.edu",
                 "selections": []}
                for i in range(students)
            ],
            "companies": [],
        }
    return document


def test_01_drift_classification() -> None:
    _header("TEST 1: Drift classification")
    before = DirectoryStats(colleges=3, students=20, companies=4)
    cases = [
        (DirectoryStats(3, 14, 4), DATA_LOSS),
        (DirectoryStats(3, 15, 4), DECREASED),
        (DirectoryStats(1, 20, 4), DATA_LOSS),
        (DirectoryStats(2, 20, 4), DECREASED),
        (DirectoryStats(3, 21, 4), INCREASED),
        (DirectoryStats(3, 20, 0), UNCHANGED),
    ]
    for after, expected in cases:
        report = compare_stats(before, after)
        print(f"  {after} -> {report.classification}")
        assert report.classification == expected
    report = compare_stats(before, DirectoryStats(3, 14, 1))
    assert report.to_dict()["student_delta"] == -6
    assert report.company_loss == 3
    print("\n[PASS] Test 1 PASSED")


def test_02_data_loss_writes_emergency_file() -> None:
    _header("TEST 2: Data loss writes an EMERGENCY file")
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        store = SqliteDocumentStore(root / "directory.db")
        monitor = IntegrityMonitor(store, root / "backups", clock=_StepClock())
        assert monitor.state == IDLE

        before = _document(10)
        assert monitor.handle(before).outcome == FIRST_SNAPSHOT
        assert monitor.state == TRACKING

        event = monitor.handle(_document(4))
        assert event.outcome == DATA_LOSS
        assert event.emergency_file is not None
        assert event.emergency_file.name.startswith(EMERGENCY_PREFIX)

        payload = read_json(event.emergency_file)
        assert payload["alert"] == "Data loss detected"
        assert payload["before"]["students"] == 10
        assert payload["after"]["students"] == 4
        assert payload["recoveryData"] == before
        print(f"  wrote {event.emergency_file.name}")
    print("\n[PASS] Test 2 PASSED")


def test_03_small_drop_is_decrease() -> None:
    _header("TEST 3: Small drop is only a decrease")
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        store = SqliteDocumentStore(root / "directory.db")
        monitor = IntegrityMonitor(store, root / "backups", clock=_StepClock())
        monitor.handle(_document(10))
        event = monitor.handle(_document(7))
        assert event.outcome == DECREASED
        assert event.emergency_file is None
        assert not (root / "backups").exists()
        assert monitor.handle(_document(7)).outcome == UNCHANGED
    print("\n[PASS] Test 3 PASSED")


def test_04_empty_store_restored_once_per_incident() -> None:
    _header("TEST 4: Emptied store is restored once per incident")
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        store = SqliteDocumentStore(root / "directory.db")
        monitor = IntegrityMonitor(store, root / "backups", clock=_StepClock())
        monitor.start()
        try:
            assert monitor.events[-1].outcome == EMPTY  # nothing stored yet

            good = _document(3, colleges=2)
            store.write(good)
            assert monitor.events[-1].outcome == FIRST_SNAPSHOT

            store.write({})
            assert store.read() == good
            assert monitor.events[-1].outcome == AUTO_RESTORED
            # The restored payload itself was seen and disarmed the guard.
            assert monitor.events[-2].outcome == UNCHANGED
            assert monitor.auto_restore_armed is False

            store.write({})
            assert store.read() == good
            assert monitor.events[-1].outcome == AUTO_RESTORED

            # Guard armed with no recovery in between: a second empty is left alone.
            monitor._auto_restored = True
            assert monitor.handle(None).outcome == EMPTY
            outcomes = [e.outcome for e in monitor.events]
            print(f"  outcomes: {outcomes}")
        finally:
            monitor.stop()
            store.close()
    print("\n[PASS] Test 4 PASSED")


# ───────────────────────────────────────────────────────────────
# Runner
# ───────────────────────────────────────────────────────────────

def main() -> None:
    results = []
    for fn in [
        test_01_drift_classification,
        test_02_data_loss_writes_emergency_file,
        test_03_small_drop_is_decrease,
        test_04_empty_store_restored_once_per_incident,
    ]:
        try:
            fn()
            results.append(True)
        except Exception as e:
            print(f"\n[ERROR] UNEXPECTED ERROR in {fn.__name__}: {e}")
            import traceback
            traceback.print_exc()
            results.append(False)

    print(f"\n{'='*60}")
    passed = sum(results)
    print(f"  RESULTS: {passed}/{len(results)} passed")
    print(f"{'='*60}")
    sys.exit(0 if all(results) else 1)


if __name__ == "__main__":
    main()
