# file: directory_runtime/observability.py
"""
Observability — in-process metrics and the watcher heartbeat.

No external dependencies.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

from directory_kernel.clock import utcnow

if TYPE_CHECKING:
    from .session import DirectorySession

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionMetrics:
    """Snapshot of observable session metrics."""

    encode_latency_ms: float
    college_count: int
    student_count: int
    company_count: int
    selection_count: int
    loaded: bool
    load_error: Optional[str]
    signed_in: bool


def collect_metrics(session: "DirectorySession") -> SessionMetrics:
    """Collect metrics from a live session; times one full encode."""
    start = time.perf_counter()
    session.document()
    elapsed_ms = (time.perf_counter() - start) * 1000.0

    state = session.state
    colleges = state.colleges.values()
    return SessionMetrics(
        encode_latency_ms=round(elapsed_ms, 2),
        college_count=len(state.colleges),
        student_count=sum(len(c.students) for c in colleges),
        company_count=sum(len(c.companies) for c in colleges),
        selection_count=sum(len(c.selections) for c in colleges),
        loaded=session.is_loaded,
        load_error=session.load_error,
        signed_in=session.current_user is not None,
    )


def heartbeat_message(last_activity: Optional[datetime], now: datetime, label: str = "sync") -> Optional[str]:
    if last_activity is None:
        return None
    minutes = int((now - last_activity).total_seconds() // 60)
    return f"Monitor active - Last {label}: {minutes} minutes ago"


class Heartbeat:
    """
    Daemon thread that reports liveness every ``interval`` seconds.
    Silent until the watched process has done something once.
    """

    def __init__(
        self,
        last_activity: Callable[[], Optional[datetime]],
        interval: float,
        *,
        label: str = "sync",
        emit: Callable[[str], None] = LOGGER.info,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._last_activity = last_activity
        self._interval = interval
        self._label = label
        self._emit = emit
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def beat(self) -> Optional[str]:
        message = heartbeat_message(self._last_activity(), self._clock(), self._label)
        if message is not None:
            self._emit(message)
        return message

    def start(self) -> None:
        if self._thread is not None or self._interval <= 0:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="heartbeat", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stop() is called (or *timeout* passes)."""
        return self._stop.wait(timeout)

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self.beat()
