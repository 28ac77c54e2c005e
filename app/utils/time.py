"""Time utility helpers."""

from __future__ import annotations

from datetime import UTC, date, datetime, time
from functools import lru_cache
from zoneinfo import ZoneInfo

from app.config import settings


def now_utc() -> datetime:
    """Return current timezone-aware UTC datetime."""
    return datetime.now(tz=UTC)


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def local_zone() -> ZoneInfo:
    """Return the center-local timezone used to place timestamps in months."""
    return _zone(settings.timezone)


def to_local(value: datetime) -> datetime:
    """Convert an aware datetime to local time; naive values are assumed UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(local_zone())


def parse_timestamp(value: object) -> datetime | None:
    """Coerce a stored timestamp (ISO string, date or datetime) to aware UTC.

    Returns None for empty or unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min, tzinfo=local_zone())
    elif isinstance(value, str):
        normalized = value.strip().replace("Z", "+00:00")
        try:
            if len(normalized) == 10:
                parsed = datetime.combine(
                    date.fromisoformat(normalized), time.min, tzinfo=local_zone()
                )
            else:
                parsed = datetime.fromisoformat(normalized)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def as_local_date(value: object) -> date | None:
    """Return the local calendar date of a stored timestamp, if any."""
    parsed = parse_timestamp(value)
    return to_local(parsed).date() if parsed else None
