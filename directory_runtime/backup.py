# file: directory_runtime/backup.py
"""
Backup / Restore — JSON files next to the directory store.

  backup-<ISO timestamp to the second, ':' as '-'>.json
        {timestamp, data, stats: {colleges, students, companies}}
  emergency-before-restore-<epoch ms>.json
        {timestamp, note, data}          written before every restore
  EMERGENCY-<epoch ms>.json
        {timestamp, alert, before, after, recoveryData}   (monitor)

Backup names sort lexicographically in time order; pruning keeps the
newest ``retention`` backups by name. Emergency files are never pruned.

Backups work on the raw store document, so a restore writes back exactly
what was read.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional

from directory_kernel.clock import epoch_millis, iso_timestamp, utcnow
from directory_kernel.constants import (
    BACKUP_PREFIX,
    BACKUP_RETENTION,
    PRE_RESTORE_PREFIX,
    RESTORE_CONFIRMATION,
)
from directory_kernel.stats import DirectoryStats, compute_stats

from .document_store import DocumentStore

LOGGER = logging.getLogger(__name__)


class BackupError(Exception):
    """Raised when a backup file cannot be written, read or restored."""


@dataclass(frozen=True)
class BackupInfo:
    filename: str
    path: Path
    timestamp: str
    stats: DirectoryStats


def write_json(path: Path, payload: Any) -> Path:
    """Write *payload* as indented JSON, creating the parent directory."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    except OSError as exc:
        raise BackupError(f"Cannot write {path}: {exc}") from exc
    return path


def read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise BackupError(f"Cannot read {path}: {exc}") from exc


def backup_filename(moment: datetime) -> str:
    """Second precision: two backups within one second share a name."""
    return f"{BACKUP_PREFIX}{iso_timestamp(moment).split('.')[0].replace(':', '-')}.json"


class BackupManager:
    """Create, list, prune and restore directory backups."""

    def __init__(
        self,
        store: DocumentStore,
        backup_dir: str | Path,
        retention: int = BACKUP_RETENTION,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._backup_dir = Path(backup_dir)
        self._retention = retention
        self._clock = clock

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    # ------------------------------------------------------------------
    # Create / prune
    # ------------------------------------------------------------------

    def create_backup(self) -> Optional[Path]:
        """Snapshot the store into a new backup file. Empty store → None."""
        data = self._store.read()
        if not data:
            LOGGER.warning("No data found in the store to back up")
            return None

        now = self._clock()
        stats = compute_stats(data)
        path = write_json(self._backup_dir / backup_filename(now), {
            "timestamp": iso_timestamp(now),
            "data": data,
            "stats": stats.to_dict(),
        })
        LOGGER.info(
            "Backup created: %s (%d colleges, %d students, %d companies)",
            path.name, stats.colleges, stats.students, stats.companies,
        )
        self.prune()
        return path

    def _backup_files(self) -> List[Path]:
        if not self._backup_dir.is_dir():
            return []
        files = [
            p for p in self._backup_dir.iterdir()
            if p.is_file() and p.name.startswith(BACKUP_PREFIX) and p.name.endswith(".json")
        ]
        return sorted(files, key=lambda p: p.name, reverse=True)

    def prune(self) -> List[Path]:
        """Delete every backup beyond the newest ``retention``."""
        stale = self._backup_files()[self._retention:]
        for path in stale:
            try:
                path.unlink()
            except OSError as exc:
                raise BackupError(f"Cannot delete old backup {path}: {exc}") from exc
        if stale:
            LOGGER.info("Pruned %d old backups", len(stale))
        return stale

    # ------------------------------------------------------------------
    # List / restore
    # ------------------------------------------------------------------

    def list_backups(self) -> List[BackupInfo]:
        """Newest first. Unreadable files are logged and skipped."""
        infos = []
        for path in self._backup_files():
            try:
                payload = read_json(path)
                infos.append(BackupInfo(
                    filename=path.name,
                    path=path,
                    timestamp=str(payload.get("timestamp", "")),
                    stats=DirectoryStats.from_dict(payload.get("stats")),
                ))
            except (BackupError, AttributeError, TypeError, ValueError) as exc:
                LOGGER.warning("Skipping unreadable backup %s: %s", path.name, exc)
        return infos

    def load_backup(self, info: BackupInfo) -> dict:
        payload = read_json(info.path)
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or not data:
            raise BackupError(f"{info.filename} holds no directory data")
        return data

    def write_pre_restore_snapshot(self) -> Optional[Path]:
        """Save the current store contents before they are overwritten."""
        current = self._store.read()
        if not current:
            return None
        now = self._clock()
        path = write_json(
            self._backup_dir / f"{PRE_RESTORE_PREFIX}{epoch_millis(now)}.json",
            {
                "timestamp": iso_timestamp(now),
                "note": "Emergency backup before restore",
                "data": current,
            },
        )
        LOGGER.info("Created emergency backup of current state: %s", path.name)
        return path

    def restore(self, info: BackupInfo) -> Optional[Path]:
        """
        Overwrite the store with *info*'s data. The backup is read and
        the current state saved first, so any failure leaves the store
        untouched. Returns the pre-restore snapshot path, if one was made.
        """
        data = self.load_backup(info)
        emergency = self.write_pre_restore_snapshot()
        self._store.write(data)
        stats = compute_stats(data)
        LOGGER.info(
            "Restored %s: %d colleges, %d students, %d companies",
            info.filename, stats.colleges, stats.students, stats.companies,
        )
        return emergency


def run_interactive_restore(
    manager: BackupManager,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> bool:
    """
    Operator restore: pick a backup by number (or "cancel"), then type the
    confirmation phrase. Returns True only when a restore happened.
    """
    backups = manager.list_backups()
    if not backups:
        output_fn("No backups found")
        return False

    output_fn("\nAvailable Backups:\n")
    for index, info in enumerate(backups, start=1):
        output_fn(f"{index}. {info.filename}")
        output_fn(f"   Date: {info.timestamp}")
        output_fn(
            f"   Colleges: {info.stats.colleges}, Students: {info.stats.students}, "
            f"Companies: {info.stats.companies}\n"
        )

    answer = input_fn('Enter backup number to restore (or "cancel"): ').strip()
    if answer.lower() == "cancel":
        output_fn("Restore cancelled")
        return False
    try:
        index = int(answer) - 1
    except ValueError:
        index = -1
    if index < 0 or index >= len(backups):
        output_fn("Invalid selection")
        return False

    chosen = backups[index]
    output_fn(f"\nYou are about to restore: {chosen.filename}")
    output_fn("This will REPLACE the current directory with:")
    output_fn(f"   - {chosen.stats.colleges} colleges")
    output_fn(f"   - {chosen.stats.students} students")
    output_fn(f"   - {chosen.stats.companies} companies")

    confirm = input_fn(f'\nType "{RESTORE_CONFIRMATION}" to confirm: ')
    if confirm.strip() != RESTORE_CONFIRMATION:
        output_fn("Restore cancelled")
        return False

    emergency = manager.restore(chosen)
    if emergency is not None:
        output_fn(f"Created emergency backup of current state: {emergency.name}")
    output_fn("Backup restored successfully!")
    return True
