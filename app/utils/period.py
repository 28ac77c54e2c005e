"""Calendar-month billing periods and period-key derivation."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from app.utils.time import now_utc, parse_timestamp, to_local

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^\s*(\d{4})-(\d{1,2})\s*$")
_MONTH_LABELS = (
    "ene",
    "feb",
    "mar",
    "abr",
    "may",
    "jun",
    "jul",
    "ago",
    "sept",
    "oct",
    "nov",
    "dic",
)


@dataclass(frozen=True, order=True)
class Period:
    """A calendar month. Ordering matches the ``YYYY-MM`` key ordering."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in 1..12, got {self.month}")

    @property
    def key(self) -> str:
        return to_key(self)

    def __str__(self) -> str:
        return self.key


def current_period(now: datetime | None = None) -> Period:
    """Return the local calendar month containing ``now`` (default: wall clock)."""
    return period_of_date(now or now_utc())


def to_key(period: Period) -> str:
    """Return the canonical ``YYYY-MM`` key."""
    return f"{period.year:04d}-{period.month:02d}"


def parse_key(text: str | None) -> Period | None:
    """Parse a ``YYYY-MM`` key, returning None when malformed."""
    if not text:
        return None
    match = _KEY_PATTERN.match(text)
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return Period(year, month)


def from_key(text: str | None, now: datetime | None = None) -> Period:
    """Parse a period key, correcting malformed input to the current period.

    The correction is non-fatal by contract; it is logged so bad input does
    not disappear without a trace.
    """
    parsed = parse_key(text)
    if parsed is not None:
        return parsed
    fallback = current_period(now)
    logger.warning("Malformed period key %r, using current period %s", text, fallback.key)
    return fallback


def period_of_date(value: date | datetime) -> Period:
    """Return the period of a date, or of a datetime in local time."""
    if isinstance(value, datetime):
        value = to_local(value)
    return Period(value.year, value.month)


def shift(period: Period, months: int) -> Period:
    """Move a period forward (positive) or backward (negative) by months."""
    index = period.year * 12 + (period.month - 1) + months
    return Period(index // 12, index % 12 + 1)


def trailing_keys(months: int, now: datetime | None = None) -> list[str]:
    """Return ``months`` period keys ending at the current month, oldest first."""
    count = max(1, months)
    current = current_period(now)
    return [to_key(shift(current, -offset)) for offset in range(count - 1, -1, -1)]


def month_label(period: Period) -> str:
    """Return a short human label such as ``mar 2024``."""
    return f"{_MONTH_LABELS[period.month - 1]} {period.year}"


def period_due_date(period: Period, day: int | None, max_day: int = 28) -> date:
    """Return the due date inside ``period`` with ``day`` clamped to 1..max_day."""
    clamped = min(max_day, max(1, int(day or 1)))
    return date(period.year, period.month, clamped)


def _key_from_timestamp(value: Any) -> str | None:
    parsed = parse_timestamp(value)
    return to_key(period_of_date(parsed)) if parsed else None


def derive_charge_period_key(row: Mapping[str, Any]) -> str | None:
    """Return the period a charge belongs to.

    Precedence: explicit ``period_key``, then ``issued_at``, then
    ``due_date``. None means the charge cannot be placed in any period.
    """
    explicit = row.get("period_key")
    if explicit:
        return str(explicit)
    return _key_from_timestamp(row.get("issued_at")) or _key_from_timestamp(
        row.get("due_date")
    )


def derive_payment_period_key(row: Mapping[str, Any]) -> str | None:
    """Return the period a payment belongs to: ``period_key``, then ``paid_at``."""
    explicit = row.get("period_key")
    if explicit:
        return str(explicit)
    return _key_from_timestamp(row.get("paid_at"))
