"""Wall-clock helpers. Timestamps are ISO-8601 UTC with milliseconds and 'Z'."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    moment = moment or utcnow()
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def epoch_millis(moment: Optional[datetime] = None) -> int:
    moment = moment or utcnow()
    return int(moment.timestamp() * 1000)
