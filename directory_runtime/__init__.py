# file: directory_runtime/__init__.py
"""
Directory Runtime — persistence and operator processes v1

Document store, local session slot, session manager, backup/restore,
integrity monitor and spreadsheet sync around the Directory Kernel.
"""

from .config import DirectoryConfig, load_config
from .document_store import (
    DirectoryStoreError,
    DocumentStore,
    SqliteDocumentStore,
    open_document_store,
)
from .session_store import SessionStore
from .session import (
    DirectorySession,
    PendingRegistration,
    RegistrationOutcome,
    SelectionDetail,
)
from .drift import DriftReport, compare_stats
from .backup import BackupError, BackupInfo, BackupManager, run_interactive_restore
from .monitor import IntegrityMonitor, MonitorEvent
from .sheets_sync import SheetsSync, SyncResult, build_sheet_tables
from .observability import Heartbeat, SessionMetrics, collect_metrics

__all__ = [
    "DirectoryConfig",
    "load_config",
    "DirectoryStoreError",
    "DocumentStore",
    "SqliteDocumentStore",
    "open_document_store",
    "SessionStore",
    "DirectorySession",
    "PendingRegistration",
    "RegistrationOutcome",
    "SelectionDetail",
    "DriftReport",
    "compare_stats",
    "BackupError",
    "BackupInfo",
    "BackupManager",
    "run_interactive_restore",
    "IntegrityMonitor",
    "MonitorEvent",
    "SheetsSync",
    "SyncResult",
    "build_sheet_tables",
    "Heartbeat",
    "SessionMetrics",
    "collect_metrics",
]
