from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

UTC = timezone.utc


def utcnow() -> datetime:
    """Current time as a naive UTC datetime, the form stored in every timestamp column."""
    return datetime.now(UTC).replace(tzinfo=None)


def _as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Read a client timestamp (harvest dates, filters) as naive UTC.

    Clients send harvest dates as plain "YYYY-MM-DD", which becomes
    midnight of that day. Full datetimes may carry "Z" or an offset;
    blank input means no value. Raises ValueError on anything else.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()

    if len(text) == 10:
        day = date.fromisoformat(text)
        return datetime(day.year, day.month, day.day)

    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return _as_naive_utc(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 with a "Z" suffix; naive values are already UTC."""
    if dt is None:
        return None
    return _as_naive_utc(dt).replace(microsecond=0).isoformat() + "Z"
