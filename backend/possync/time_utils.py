from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

EPOCH = datetime(1970, 1, 1)


def _to_millis(dt: datetime) -> datetime:
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical, millisecond precision)."""
    return _to_millis(datetime.now(timezone.utc).replace(tzinfo=None))


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    - precision is truncated to milliseconds, the precision clients keep
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)

    return _to_millis(dt)


def from_epoch_millis(value: int | float) -> datetime:
    """Epoch milliseconds (JavaScript Date value) to UTC-naive datetime."""
    dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc).replace(tzinfo=None)
    return _to_millis(dt)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with millisecond precision and trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc)
    return dt_utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")
