# file: directory_runtime/cli.py
"""
Operator CLI — ``college-directory <command>``.

  backup          snapshot the store into the backup directory
  list            list backups, newest first
  restore         interactive restore (pick a number, then type RESTORE)
  monitor         watch the store for data loss until Ctrl+C
  sync [--watch]  push the directory to Google Sheets once, or on every change
  check           report whether the store is empty, with counts
  repair          add missing companies / selections arrays

Exit status is 1 when the store, the filesystem or Google rejects a
command; the error is logged.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from google.auth.exceptions import GoogleAuthError
from requests import RequestException

from directory_kernel.migration import repair_structure
from directory_kernel.stats import DirectoryStats, compute_stats

from .backup import BackupError, BackupManager, read_json, run_interactive_restore
from .config import DirectoryConfig, load_config
from .document_store import DirectoryStoreError, DocumentStore, open_document_store
from .logging_setup import configure_logging
from .monitor import IntegrityMonitor
from .observability import Heartbeat
from .sheets_sync import SheetsSync

LOGGER = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_backup(store: DocumentStore, config: DirectoryConfig, args: argparse.Namespace) -> int:
    manager = BackupManager(store, config.backup_dir, retention=config.backup_retention)
    path = manager.create_backup()
    if path is None:
        print("No data found in the store to back up")
        return 0
    stats = DirectoryStats.from_dict(read_json(path).get("stats"))
    print(f"Backup created: {path}")
    print(f"   - {stats.colleges} colleges")
    print(f"   - {stats.students} students")
    print(f"   - {stats.companies} companies")
    return 0


def cmd_list(store: DocumentStore, config: DirectoryConfig, args: argparse.Namespace) -> int:
    manager = BackupManager(store, config.backup_dir, retention=config.backup_retention)
    backups = manager.list_backups()
    if not backups:
        print("No backups found")
        return 0
    for index, info in enumerate(backups, start=1):
        print(f"{index}. {info.filename}")
        print(f"   Date: {info.timestamp}")
        print(
            f"   Colleges: {info.stats.colleges}, Students: {info.stats.students}, "
            f"Companies: {info.stats.companies}"
        )
    return 0


def cmd_restore(store: DocumentStore, config: DirectoryConfig, args: argparse.Namespace) -> int:
    manager = BackupManager(store, config.backup_dir, retention=config.backup_retention)
    run_interactive_restore(manager)
    return 0


def cmd_check(store: DocumentStore, config: DirectoryConfig, args: argparse.Namespace) -> int:
    data = store.read()
    if not data:
        print(f"Store path {store.path!r} is EMPTY")
        return 0
    stats = compute_stats(data)
    print(f"Store path {store.path!r} holds data:")
    print(f"   - {stats.colleges} colleges")
    print(f"   - {stats.students} students")
    print(f"   - {stats.companies} companies")
    for key, college in data.items():
        name = college.get("name", "?") if isinstance(college, dict) else "?"
        print(f"   * {key}: {name}")
    return 0


def cmd_repair(store: DocumentStore, config: DirectoryConfig, args: argparse.Namespace) -> int:
    data = store.read()
    if not data:
        print("No data found")
        return 0
    repaired, fixes = repair_structure(data)
    for fix in fixes:
        print(f"   {fix}")
    if fixes:
        store.write(repaired)
        print("Data structure fixed and saved")
    else:
        print("Data structure is already correct")
    return 0


def _wait_until_interrupted(heartbeat: Heartbeat) -> None:
    heartbeat.start()
    try:
        while not heartbeat.wait(1.0):
            pass
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        heartbeat.stop()


def cmd_monitor(store: DocumentStore, config: DirectoryConfig, args: argparse.Namespace) -> int:
    monitor = IntegrityMonitor(store, config.backup_dir)
    monitor.start()
    print("Monitor active. Watching for changes... Press Ctrl+C to stop")
    heartbeat = Heartbeat(
        lambda: monitor.last_event_at, config.heartbeat_interval, label="change",
    )
    _wait_until_interrupted(heartbeat)
    monitor.stop()
    return 0


def _sheets_sync(config: DirectoryConfig) -> SheetsSync:
    from backend.sheets_client import SheetsClient

    client = SheetsClient.from_service_account_file(config.credentials_file)
    return SheetsSync(client, config.sheet_id)


def cmd_sync(store: DocumentStore, config: DirectoryConfig, args: argparse.Namespace) -> int:
    if not config.sheet_id:
        LOGGER.error("GOOGLE_SHEET_ID not set")
        print("Set it with: export GOOGLE_SHEET_ID=your_spreadsheet_id")
        return 1
    sheets = _sheets_sync(config)

    if not args.watch:
        result = sheets.manual_sync(store.read())
        print(f"Synced to {sheets.spreadsheet_url}")
        print(f"   - {result.students} students")
        print(f"   - {result.colleges} colleges")
        print(f"   - {result.companies} companies")
        return 0

    sheets.watch(store)
    print("Auto-sync is now active! Press Ctrl+C to stop.")
    heartbeat = Heartbeat(lambda: sheets.last_sync_at, config.heartbeat_interval)
    _wait_until_interrupted(heartbeat)
    sheets.stop()
    return 0


_COMMANDS = {
    "backup": cmd_backup,
    "list": cmd_list,
    "restore": cmd_restore,
    "monitor": cmd_monitor,
    "sync": cmd_sync,
    "check": cmd_check,
    "repair": cmd_repair,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="college-directory",
        description="Operator tooling for the college directory store",
    )
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--log-level", default=None, help="Override DIRECTORY_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("backup", help="Create a backup of the store")
    sub.add_parser("list", help="List backups, newest first")
    sub.add_parser("restore", help="Restore a backup (interactive)")
    sub.add_parser("monitor", help="Watch the store for data loss")
    sync = sub.add_parser("sync", help="Push the directory to Google Sheets")
    sync.add_argument("--watch", action="store_true", help="Keep syncing on every change")
    sub.add_parser("check", help="Show whether the store holds data")
    sub.add_parser("repair", help="Add missing companies/selections arrays")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.env_file)
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    configure_logging(config, log_level=args.log_level)

    store: Optional[DocumentStore] = None
    try:
        store = open_document_store(config)
        return _COMMANDS[args.command](store, config, args)
    except (DirectoryStoreError, BackupError, GoogleAuthError, RequestException, OSError) as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return 1
    finally:
        if store is not None:
            store.close()


if __name__ == "__main__":
    sys.exit(main())
