"""
Runtime configuration.

Every setting comes from an environment variable with a hard-coded
fallback. A ``.env`` file in the working directory is loaded first when
present; variables already set in the environment win.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from directory_kernel.constants import (
    BACKUP_RETENTION,
    COLLECTION_PATH,
    HEARTBEAT_INTERVAL_SECONDS,
    LOAD_TIMEOUT_SECONDS,
)

STORE_SQLITE = "sqlite"
STORE_SUPABASE = "supabase"


@dataclass(frozen=True)
class DirectoryConfig:
    """Settings shared by the API, the session manager and the operator CLI.

    Attributes
    ----------
    store:
        Which document store backs the directory: ``sqlite`` or ``supabase``.
    database_url:
        PostgreSQL connection string, used by the ``supabase`` store.
    db_path:
        File holding the sqlite document store and the local session slot.
    collection:
        Path of the directory document inside the store.
    backup_dir:
        Where backup and emergency files are written.
    poll_interval:
        Seconds between revision checks for writes made by other
        processes. Zero disables polling.
    """

    store: str = STORE_SQLITE
    database_url: str = ""
    db_path: Path = Path("college_directory.db")
    collection: str = COLLECTION_PATH
    backup_dir: Path = Path("backups")
    backup_retention: int = BACKUP_RETENTION
    load_timeout: float = LOAD_TIMEOUT_SECONDS
    poll_interval: float = 1.0
    sheet_id: str = ""
    credentials_file: Path = Path("google-credentials.json")
    heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"
    log_json: bool = False


def _coerce_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _coerce_float(value: Optional[str], default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _coerce_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def load_config(env_file: Optional[str] = None) -> DirectoryConfig:
    """Build a DirectoryConfig from the environment (and ``.env``)."""
    env_path = Path(env_file) if env_file else Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    store = os.environ.get("DIRECTORY_STORE", STORE_SQLITE).strip().lower()
    if store not in (STORE_SQLITE, STORE_SUPABASE):
        raise ValueError(
            f"DIRECTORY_STORE must be {STORE_SQLITE!r} or {STORE_SUPABASE!r}, got {store!r}"
        )

    return DirectoryConfig(
        store=store,
        database_url=os.environ.get("DATABASE_URL", ""),
        db_path=Path(os.environ.get("DIRECTORY_DB_PATH", "college_directory.db")),
        collection=os.environ.get("DIRECTORY_COLLECTION", COLLECTION_PATH),
        backup_dir=Path(os.environ.get("BACKUP_DIR", "backups")),
        backup_retention=_coerce_int(os.environ.get("BACKUP_RETENTION"), BACKUP_RETENTION),
        load_timeout=_coerce_float(
            os.environ.get("DIRECTORY_LOAD_TIMEOUT"), LOAD_TIMEOUT_SECONDS
        ),
        poll_interval=_coerce_float(os.environ.get("DIRECTORY_POLL_INTERVAL"), 1.0),
        sheet_id=os.environ.get("GOOGLE_SHEET_ID", ""),
        credentials_file=Path(
            os.environ.get("GOOGLE_CREDENTIALS_FILE", "google-credentials.json")
        ),
        heartbeat_interval=_coerce_float(
            os.environ.get("HEARTBEAT_INTERVAL"), HEARTBEAT_INTERVAL_SECONDS
        ),
        frontend_url=os.environ.get("FRONTEND_URL", "http://localhost:3000"),
        log_level=os.environ.get("DIRECTORY_LOG_LEVEL", "INFO"),
        log_json=_coerce_bool(os.environ.get("DIRECTORY_LOG_JSON"), False),
    )
