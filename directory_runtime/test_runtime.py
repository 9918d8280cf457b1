"""
Directory Runtime — Store, Session and Operator Tests

  1. Store subscription: current value first, then every write
  2. Sign-up flow through the session: college_required → created → login
  3. Legacy dotted keys are migrated and written back once
  4. Failed migration write-back degrades the session
  5. Load timeout: the session works offline and never writes
  6. The signed-in student survives a restart; logout clears it
  7. Company visit with self-selection + profile details
  8. Metrics and heartbeat
  9. Config parsing and JSON log records
 10. CLI check / repair / backup commands
 11. A monitor auto-restore after a wipe reaches the session
 12. A store value equal to the session's last write is still adopted

Run:  python -m directory_runtime.test_runtime
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import tempfile
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

from directory_kernel.transitions import UnknownStudentError
from directory_runtime import cli
from directory_runtime.config import DirectoryConfig, _coerce_bool, _coerce_float, load_config
from directory_runtime.document_store import DirectoryStoreError, SqliteDocumentStore
from directory_runtime.logging_setup import JsonLogFormatter
from directory_runtime.monitor import AUTO_RESTORED, IntegrityMonitor
from directory_runtime.observability import Heartbeat, collect_metrics, heartbeat_message
from directory_runtime.session import MIGRATION_WRITE_FAILED, DirectorySession
from directory_runtime.session_store import SessionStore

LINKEDIN = "https://linkedin.com/in/"


def _header(title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


class _CountingStore(SqliteDocumentStore):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.writes = 0

    def _store(self, document):
        self.writes += 1
        return super()._store(document)


class _ReadOnlyStore(SqliteDocumentStore):
    def _store(self, document):
        raise DirectoryStoreError("write", "permission denied")


class _StalledStore(SqliteDocumentStore):
    """First read blocks until ``release`` is set."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.release = threading.Event()

    def _fetch(self):
        self.release.wait(5.0)
        return super()._fetch()


def _legacy_document() -> dict:
    return {
        "x.edu": {
            "name": "X University",
            "domain": "x.edu",
            "createdAt": "2025-01-01T00:00:00.000Z",
            "students": [
                {"id": 1, "name": "Ann", "email": "ann@x.edu",
                 "linkedin": LINKEDIN + "ann", "collegeDomain": "x.edu",
                 "selections": [], "registeredAt": "2025-01-01T00:00:00.000Z"},
            ],
            "companies": [],
        },
    }


def _session(root: Path, store=None, load_timeout: float = 2.0) -> DirectorySession:
    store = store or SqliteDocumentStore(root / "directory.db")
    session = DirectorySession(store, SessionStore(root / "session.db"), load_timeout=load_timeout)
    session.load()
    return session


def _found_college(session: DirectorySession) -> int:
    outcome = session.register("ann@x.edu", "Ann", LINKEDIN + "ann")
    assert outcome.status == "college_required"
    created = session.create_college("X University", outcome.pending)
    return created.student.id


# ───────────────────────────────────────────────────────────────
# Tests
# ───────────────────────────────────────────────────────────────

def test_01_store_subscription() -> None:
    _header("TEST 1: Store subscription")
    with tempfile.TemporaryDirectory() as tmp:
        store = SqliteDocumentStore(Path(tmp) / "directory.db")
        seen = []
        unsubscribe = store.subscribe(seen.append)
        assert seen == [None]

        document = {"x_edu": {"name": "X"}}
        store.write(document)
        assert seen[-1] == document
        seen[-1]["x_edu"]["name"] = "mutated"
        assert store.read() == document

        unsubscribe()
        store.write({"y_edu": {"name": "Y"}})
        assert len(seen) == 2
        store.close()
    print("\n[PASS] Test 1 PASSED")


def test_02_sign_up_flow() -> None:
    _header("TEST 2: Sign-up flow")
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        session = _session(root)
        assert session.is_loaded and session.load_error is None

        ann = _found_college(session)
        bob = session.register("bob@x.edu", " Bob ", LINKEDIN + "bob")
        assert bob.status == "registered"
        assert bob.student.name == "Bob"

        again = session.register("bob@x.edu", "Bob", LINKEDIN + "bob")
        assert again.status == "logged_in"
        assert again.student.id == bob.student.id
        assert ann != bob.student.id

        stored = SqliteDocumentStore(root / "directory.db").read()
        assert [s["email"] for s in stored["x_edu"]["students"]] == ["ann@x.edu", "bob@x.edu"]
        session.close()
    print("\n[PASS] Test 2 PASSED")


def test_03_legacy_key_migration() -> None:
    _header("TEST 3: Legacy keys migrated and written back once")
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        store = _CountingStore(root / "directory.db")
        store.write(_legacy_document())
        store.writes = 0

        session = _session(root, store)
        assert list(session.state.colleges) == ["x_edu"]
        assert list(store.read()) == ["x_edu"]
        assert store.writes == 1

        # A later legacy payload is adopted but not written back again.
        store.write(_legacy_document())
        assert list(session.state.colleges) == ["x_edu"]
        assert store.writes == 2
        session.close()
    print("\n[PASS] Test 3 PASSED")


def test_04_migration_write_failure() -> None:
    _header("TEST 4: Failed migration write-back degrades the session")
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        SqliteDocumentStore(root / "directory.db").write(_legacy_document())

        session = _session(root, _ReadOnlyStore(root / "directory.db"))
        assert session.load_error == MIGRATION_WRITE_FAILED
        assert list(session.state.colleges) == ["x_edu"]

        outcome = session.register("bob@x.edu", "Bob", LINKEDIN + "bob")
        assert outcome.status == "registered"
        assert len(session.state.colleges["x_edu"].students) == 2
        # Nothing reached the store.
        assert "x.edu" in SqliteDocumentStore(root / "directory.db").read()
        session.close()
    print("\n[PASS] Test 4 PASSED")


def test_05_load_timeout() -> None:
    _header("TEST 5: Load timeout works offline")
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        store = _StalledStore(root / "directory.db")
        try:
            session = DirectorySession(store, load_timeout=0.2)
            assert session.load() is False
            assert session.is_loaded
            assert "did not load" in session.load_error

            _found_college(session)
            assert "x_edu" in session.state.colleges
            assert SqliteDocumentStore(root / "directory.db").read() is None
        finally:
            store.release.set()
    print("\n[PASS] Test 5 PASSED")


def test_06_session_slot() -> None:
    _header("TEST 6: Signed-in student survives a restart")
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        first = _session(root)
        ann = _found_college(first)
        first.close()

        second = _session(root)
        assert second.current_user is not None
        assert second.current_user.id == ann
        assert second.current_user_document()["collegeDomain"] == "x.edu"

        second.logout()
        assert second.current_user is None
        assert SessionStore(root / "session.db").get() is None
        second.close()
    print("\n[PASS] Test 6 PASSED")


def test_07_company_visit_and_profile() -> None:
    _header("TEST 7: Company visit with self-selection")
    with tempfile.TemporaryDirectory() as tmp:
        session = _session(Path(tmp))
        ann = _found_college(session)
        company = session.add_company_visit(
            "x_edu", ann, " Acme ", visit_date="2026-04-01",
            job_roles="SDE,Analyst", total_selections=3, self_selected=True,
        )
        assert company.name == "Acme"
        assert company.total_selections == 3
        assert session.current_user_document()["selections"][0]["companyName"] == "Acme"

        details = session.selection_details(ann)
        assert len(details) == 1
        assert details[0].visit_date == "2026-04-01"
        assert details[0].job_roles == ["SDE", "Analyst"]

        result = session.toggle_selection("x_edu", ann, "Acme")
        assert not result.noop
        assert session.selection_details(ann) == []

        try:
            session.selection_details(424242)
            raise AssertionError("unknown student accepted")
        except UnknownStudentError:
            pass
        session.close()
    print("\n[PASS] Test 7 PASSED")


def test_08_metrics_and_heartbeat() -> None:
    _header("TEST 8: Metrics and heartbeat")
    with tempfile.TemporaryDirectory() as tmp:
        session = _session(Path(tmp))
        ann = _found_college(session)
        session.add_company_visit("x_edu", ann, "Acme", self_selected=True)
        metrics = collect_metrics(session)
        assert (metrics.college_count, metrics.student_count) == (1, 1)
        assert (metrics.company_count, metrics.selection_count) == (1, 1)
        assert metrics.loaded and metrics.signed_in and metrics.load_error is None
        assert metrics.encode_latency_ms >= 0
        session.close()

    now = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert heartbeat_message(None, now) is None
    assert heartbeat_message(now - timedelta(minutes=5, seconds=30), now) == \
        "Monitor active - Last sync: 5 minutes ago"

    emitted = []
    last = [None]
    heartbeat = Heartbeat(lambda: last[0], 60.0, label="change", emit=emitted.append, clock=lambda: now)
    assert heartbeat.beat() is None
    last[0] = now - timedelta(minutes=2)
    heartbeat.beat()
    assert emitted == ["Monitor active - Last change: 2 minutes ago"]
    print("\n[PASS] Test 8 PASSED")


def test_09_config_and_logging() -> None:
    _header("TEST 9: Config parsing and JSON log records")
    assert _coerce_bool("Yes", False) is True
    assert _coerce_bool("off", True) is False
    assert _coerce_bool("maybe", True) is True
    assert _coerce_float("2.5", 1.0) == 2.5
    assert _coerce_float("soon", 1.0) == 1.0
    assert DirectoryConfig().backup_retention == 30

    previous = os.environ.get("DIRECTORY_STORE")
    os.environ["DIRECTORY_STORE"] = "mongo"
    try:
        load_config()
        raise AssertionError("unknown store accepted")
    except ValueError as exc:
        assert "DIRECTORY_STORE" in str(exc)
    finally:
        if previous is None:
            del os.environ["DIRECTORY_STORE"]
        else:
            os.environ["DIRECTORY_STORE"] = previous

    record = logging.LogRecord("directory", logging.INFO, __file__, 1, "sheet sync %d done", (3,), None)
    record.sync_number = 3
    payload = json.loads(JsonLogFormatter().format(record))
    assert payload["message"] == "sheet sync 3 done"
    assert payload["sync_number"] == 3
    assert payload["level"] == "INFO"
    plain = json.loads(JsonLogFormatter().format(logging.LogRecord("directory", logging.INFO, __file__, 1, "ready", (), None)))
    assert "sync_number" not in plain and plain["logger"] == "directory"
    print("\n[PASS] Test 9 PASSED")


def test_10_cli_commands() -> None:
    _header("TEST 10: CLI check / repair / backup")
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        config = DirectoryConfig(db_path=root / "directory.db", backup_dir=root / "backups")
        store = SqliteDocumentStore(config.db_path)
        args = argparse.Namespace()

        assert cli.cmd_check(store, config, args) == 0
        assert cli.cmd_backup(store, config, args) == 0
        assert not config.backup_dir.exists()

        broken = _legacy_document()
        del broken["x.edu"]["companies"]
        del broken["x.edu"]["students"][0]["selections"]
        store.write(broken)
        assert cli.cmd_repair(store, config, args) == 0
        repaired = store.read()["x.edu"]
        assert repaired["companies"] == []
        assert repaired["students"][0]["selections"] == []

        assert cli.cmd_backup(store, config, args) == 0
        assert len(list(config.backup_dir.glob("backup-*.json"))) == 1

        parsed = cli.build_parser().parse_args(["sync", "--watch"])
        assert parsed.command == "sync" and parsed.watch is True
        store.close()
    print("\n[PASS] Test 10 PASSED")


def test_11_monitor_restore_reaches_session() -> None:
    _header("TEST 11: Monitor auto-restore reaches the session")
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        store = SqliteDocumentStore(root / "directory.db")
        # Subscribed before the session, so it sees the wipe first.
        monitor = IntegrityMonitor(store, root / "backups")
        monitor.start()
        session = _session(root, store)
        _found_college(session)

        store.write({})
        assert monitor.events[-1].outcome == AUTO_RESTORED
        assert list(store.read()) == ["x_edu"]
        assert list(session.state.colleges) == ["x_edu"]

        session.register("bob@x.edu", "Bob", LINKEDIN + "bob")
        stored = store.read()
        assert [s["email"] for s in stored["x_edu"]["students"]] == ["ann@x.edu", "bob@x.edu"]
        monitor.stop()
        session.close()
    print("\n[PASS] Test 11 PASSED")


def test_12_rewrite_of_last_written_value_is_adopted() -> None:
    _header("TEST 12: Value equal to the last write is adopted again")
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        store = SqliteDocumentStore(root / "directory.db")
        session = _session(root, store)
        _found_college(session)
        written = store.read()

        store.write({"y_edu": {"name": "Y College", "domain": "y.edu", "students": [], "companies": []}})
        assert list(session.state.colleges) == ["y_edu"]
        store.write(written)
        assert list(session.state.colleges) == ["x_edu"]

        session.register("bob@x.edu", "Bob", LINKEDIN + "bob")
        stored = store.read()
        assert list(stored) == ["x_edu"]
        assert len(stored["x_edu"]["students"]) == 2
        session.close()
    print("\n[PASS] Test 12 PASSED")


# ───────────────────────────────────────────────────────────────
# Runner
# ───────────────────────────────────────────────────────────────

def main() -> None:
    results = []
    for fn in [
        test_01_store_subscription,
        test_02_sign_up_flow,
        test_03_legacy_key_migration,
        test_04_migration_write_failure,
        test_05_load_timeout,
        test_06_session_slot,
        test_07_company_visit_and_profile,
        test_08_metrics_and_heartbeat,
        test_09_config_and_logging,
        test_10_cli_commands,
        test_11_monitor_restore_reaches_session,
        test_12_rewrite_of_last_written_value_is_adopted,
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
