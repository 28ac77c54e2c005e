"""Period key and period derivation tests."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime

import pytest

from app.utils.period import (
    Period,
    current_period,
    derive_charge_period_key,
    derive_payment_period_key,
    from_key,
    month_label,
    parse_key,
    period_due_date,
    shift,
    to_key,
    trailing_keys,
)

NOW = datetime(2024, 2, 15, 9, 0, tzinfo=UTC)


def test_key_round_trip_is_zero_padded() -> None:
    assert to_key(Period(2024, 3)) == "2024-03"
    assert parse_key("2024-03") == Period(2024, 3)


@pytest.mark.parametrize("text", [None, "", "2024", "2024-13", "2024-00", "March 2024", "24-03"])
def test_parse_key_rejects_malformed_input(text: str | None) -> None:
    assert parse_key(text) is None


def test_from_key_falls_back_to_current_period_and_warns(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Malformed keys are corrected, not rejected, and the correction is logged."""
    with caplog.at_level(logging.WARNING, logger="app.utils.period"):
        period = from_key("garbage", now=NOW)

    assert period == Period(2024, 2)
    assert "Malformed period key" in caplog.text


def test_period_rejects_invalid_month() -> None:
    with pytest.raises(ValueError):
        Period(2024, 13)


def test_periods_order_like_their_keys() -> None:
    periods = [Period(2024, 1), Period(2023, 12), Period(2024, 11)]
    assert [p.key for p in sorted(periods)] == sorted(p.key for p in periods)


def test_current_period_uses_local_time() -> None:
    """23:30 UTC on 31 March is already April in Madrid."""
    assert current_period(datetime(2024, 3, 31, 23, 30, tzinfo=UTC)) == Period(2024, 4)


def test_shift_crosses_year_boundaries() -> None:
    assert shift(Period(2024, 1), -1) == Period(2023, 12)
    assert shift(Period(2023, 12), 1) == Period(2024, 1)
    assert shift(Period(2024, 3), -14) == Period(2023, 1)


def test_trailing_keys_are_oldest_first() -> None:
    assert trailing_keys(3, now=NOW) == ["2023-12", "2024-01", "2024-02"]
    assert trailing_keys(0, now=NOW) == ["2024-02"]


def test_month_label() -> None:
    assert month_label(Period(2024, 3)) == "mar 2024"
    assert month_label(Period(2023, 9)) == "sept 2023"


@pytest.mark.parametrize(
    ("day", "expected"),
    [(1, date(2024, 2, 1)), (10, date(2024, 2, 10)), (31, date(2024, 2, 28)), (0, date(2024, 2, 1))],
)
def test_period_due_date_clamps_day(day: int, expected: date) -> None:
    assert period_due_date(Period(2024, 2), day) == expected


def test_charge_period_precedence() -> None:
    """Explicit key wins, then issue timestamp, then due date."""
    assert (
        derive_charge_period_key(
            {"period_key": "2024-01", "issued_at": "2024-02-01T10:00:00Z", "due_date": "2024-03-10"}
        )
        == "2024-01"
    )
    assert (
        derive_charge_period_key({"issued_at": "2024-02-01T10:00:00Z", "due_date": "2024-03-10"})
        == "2024-02"
    )
    assert derive_charge_period_key({"due_date": "2024-03-10"}) == "2024-03"
    assert derive_charge_period_key({"issued_at": "junk"}) is None
    assert derive_charge_period_key({}) is None


def test_payment_period_uses_local_month_of_paid_at() -> None:
    assert derive_payment_period_key({"period_key": "2024-02", "paid_at": "2024-05-01"}) == "2024-02"
    assert derive_payment_period_key({"paid_at": "2024-03-31T23:30:00Z"}) == "2024-04"
    assert derive_payment_period_key({"amount": "10.00"}) is None
