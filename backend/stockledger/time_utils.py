# Overview: UTC helpers; the database stores naive UTC datetimes.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

PERIOD_FORMATS = {
    "daily": "%Y-%m-%d",
    "monthly": "%Y-%m",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into a naive UTC datetime.

    Blank input is None. Naive input is taken as UTC; a trailing Z or an
    offset is converted. Raises ValueError on anything else.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    return _as_naive_utc(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render as second-precision ISO-8601 with a trailing Z (naive taken as UTC)."""
    if dt is None:
        return None
    return _as_naive_utc(dt).replace(microsecond=0).isoformat() + "Z"


def period_key(dt: datetime, period: str) -> str:
    """Bucket label for a reporting period: 2026-10-19, 2026-W42 or 2026-10."""
    if period == "weekly":
        year, week, _ = dt.isocalendar()
        return f"{year}-W{week:02d}"
    return dt.strftime(PERIOD_FORMATS[period])
