"""Time helpers.

Timestamps are stored as ISO-8601 UTC strings (``2024-05-01T13:45:00Z``) and
calendar dates as ``YYYY-MM-DD``. "Today" is evaluated in the configured
timezone so a borrow made late in the evening lands on the local date.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from .config import settings


def utcnow_iso() -> str:
    return datetime.utcnow().isoformat(timespec="seconds") + "Z"


def local_today() -> date:
    return datetime.now(ZoneInfo(settings.TZ)).date()


def utc_iso_days_ago(days: int, *, now: datetime | None = None) -> str:
    """UTC timestamp string ``days`` before ``now``, comparable with stored ``*_at`` columns."""

    reference = now or datetime.utcnow()
    return (reference - timedelta(days=days)).isoformat(timespec="seconds") + "Z"
