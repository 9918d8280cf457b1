"""Root logger setup shared by the API and the operator commands."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from directory_kernel.clock import iso_timestamp

from .config import DirectoryConfig

_PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class JsonLogFormatter(logging.Formatter):
    """One JSON line per record (``DIRECTORY_LOG_JSON=1``), for the watchers."""

    def format(self, record: logging.LogRecord) -> str:
        line = {
            "time": iso_timestamp(datetime.fromtimestamp(record.created, tz=timezone.utc)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        sync_number = getattr(record, "sync_number", None)
        if sync_number is not None:
            line["sync_number"] = sync_number
        if record.exc_info:
            line["exception"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False)


def configure_logging(config: DirectoryConfig, *, log_level: Optional[str] = None) -> None:
    """Install one stderr handler on the root logger; later calls are no-ops."""
    root = logging.getLogger()
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonLogFormatter() if config.log_json else logging.Formatter(_PLAIN_FORMAT))
    root.addHandler(handler)
    root.setLevel(getattr(logging, (log_level or config.log_level).upper(), logging.INFO))
    for noisy in ("urllib3", "google.auth"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
