# file: directory_runtime/monitor.py
"""
Integrity Monitor — passive watcher on the directory document.

States:
  Idle      no snapshot yet
  Tracking  last non-empty snapshot + auto-restore guard

On every notification:
  empty payload  → in Tracking with the guard disarmed, write the last
                   snapshot back once and arm the guard; the snapshot
                   is kept as recovery data
  non-empty      → classify against the snapshot (see drift.py); data
                   loss writes an EMERGENCY file; then the snapshot is
                   replaced by a deep copy and the guard disarmed

The guard is per incident: once data is back, a later wipe is restored
again. The monitor never blocks writers and its only corrective action
is the empty-payload restore.
"""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from directory_kernel.clock import epoch_millis, iso_timestamp, utcnow
from directory_kernel.constants import (
    DATA_LOSS_COLLEGE_THRESHOLD,
    DATA_LOSS_STUDENT_THRESHOLD,
    EMERGENCY_PREFIX,
)
from directory_kernel.stats import DirectoryStats, compute_stats

from .backup import write_json
from .document_store import DirectoryStoreError, DocumentStore
from .drift import DATA_LOSS, DECREASED, INCREASED, DriftReport, compare_stats

LOGGER = logging.getLogger(__name__)

IDLE = "idle"
TRACKING = "tracking"

# Outcomes beyond the drift classifications
EMPTY = "empty"
AUTO_RESTORED = "auto_restored"
AUTO_RESTORE_FAILED = "auto_restore_failed"
FIRST_SNAPSHOT = "first_snapshot"


@dataclass(frozen=True)
class MonitorEvent:
    timestamp: str
    outcome: str
    stats: DirectoryStats
    report: Optional[DriftReport] = None
    emergency_file: Optional[Path] = None


class IntegrityMonitor:
    def __init__(
        self,
        store: DocumentStore,
        backup_dir: str | Path,
        *,
        clock: Callable[[], datetime] = utcnow,
        student_threshold: int = DATA_LOSS_STUDENT_THRESHOLD,
        college_threshold: int = DATA_LOSS_COLLEGE_THRESHOLD,
    ) -> None:
        self._store = store
        self._backup_dir = Path(backup_dir)
        self._clock = clock
        self._student_threshold = student_threshold
        self._college_threshold = college_threshold
        self._lock = threading.RLock()
        self._snapshot: Optional[dict] = None
        self._auto_restored = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.events: List[MonitorEvent] = []
        self.last_event_at: Optional[datetime] = None

    @property
    def state(self) -> str:
        return TRACKING if self._snapshot is not None else IDLE

    @property
    def auto_restore_armed(self) -> bool:
        return self._auto_restored

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._unsubscribe = self._store.subscribe(self.handle, self._on_error)
        LOGGER.info("Monitor active. Watching %r for changes", self._store.path)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_error(self, exc: Exception) -> None:
        LOGGER.error("Monitor error: %s", exc)

    # ------------------------------------------------------------------
    # Notification handler
    # ------------------------------------------------------------------

    def handle(self, document: Optional[dict]) -> MonitorEvent:
        with self._lock:
            now = self._clock()
            timestamp = iso_timestamp(now)
            stats = compute_stats(document)

            if not document:
                event = self._handle_empty(timestamp, stats)
            else:
                event = self._handle_payload(document, now, timestamp, stats)

            self.events.append(event)
            self.last_event_at = now
            return event

    def _handle_empty(self, timestamp: str, stats: DirectoryStats) -> MonitorEvent:
        LOGGER.warning("[%s] WARNING: Directory is empty!", timestamp)
        if self._snapshot is None or self._auto_restored:
            return MonitorEvent(timestamp, EMPTY, stats)

        LOGGER.info("Attempting auto-restore from last snapshot...")
        # Armed before the write: the write notifies synchronously and the
        # restored payload disarms it again.
        self._auto_restored = True
        try:
            self._store.write(copy.deepcopy(self._snapshot))
        except DirectoryStoreError as exc:
            self._auto_restored = False
            LOGGER.error("Auto-restore failed: %s", exc)
            return MonitorEvent(timestamp, AUTO_RESTORE_FAILED, stats)
        LOGGER.info("Directory restored from last snapshot")
        return MonitorEvent(timestamp, AUTO_RESTORED, stats)

    def _handle_payload(
        self, document: dict, now: datetime, timestamp: str, stats: DirectoryStats,
    ) -> MonitorEvent:
        report = None
        emergency = None
        outcome = FIRST_SNAPSHOT

        if self._snapshot is not None:
            before = compute_stats(self._snapshot)
            report = compare_stats(
                before, stats,
                student_threshold=self._student_threshold,
                college_threshold=self._college_threshold,
            )
            outcome = report.classification
            if outcome == DATA_LOSS:
                emergency = self._write_emergency(now, timestamp, report)
            elif outcome == DECREASED:
                LOGGER.warning(
                    "[%s] Data decreased: -%d students, -%d colleges",
                    timestamp, report.student_loss, report.college_loss,
                )
            elif outcome == INCREASED:
                LOGGER.info(
                    "[%s] Data increased: +%d students, +%d colleges",
                    timestamp, -report.student_loss, -report.college_loss,
                )

        LOGGER.info(
            "[%s] Directory healthy: %d colleges, %d students, %d companies",
            timestamp, stats.colleges, stats.students, stats.companies,
        )
        self._snapshot = copy.deepcopy(document)
        self._auto_restored = False
        return MonitorEvent(timestamp, outcome, stats, report, emergency)

    def _write_emergency(self, now: datetime, timestamp: str, report: DriftReport) -> Path:
        LOGGER.critical(
            "[%s] DATA LOSS DETECTED! Lost %d students, %d colleges, %d companies",
            timestamp, report.student_loss, report.college_loss, report.company_loss,
        )
        path = write_json(
            self._backup_dir / f"{EMERGENCY_PREFIX}{epoch_millis(now)}.json",
            {
                "timestamp": timestamp,
                "alert": "Data loss detected",
                "before": report.before.to_dict(),
                "after": report.after.to_dict(),
                "recoveryData": self._snapshot,
            },
        )
        LOGGER.critical("Emergency backup created: %s (restore with `college-directory restore`)", path)
        return path
