"""Full-table reads must page past the server row cap."""

from __future__ import annotations

from decimal import Decimal

import pytest

from app.config import settings
from app.services.aggregation_service import AggregationService
from app.services.common import SupabaseService
from tests.conftest import CENTER_ID, NOW
from tests.fakes import FakeClient


def _march_charge(index: int) -> dict:
    return {
        "center_id": CENTER_ID,
        "rider_id": f"rider-{index}",
        "period_key": "2024-03",
        "amount": "1.00",
        "paid_amount": "0.00",
        "remaining_amount": "1.00",
        "status": "PENDING",
        "due_date": "2024-03-28",
    }


def test_select_all_reads_every_page(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "supabase_page_size", 10)
    db = FakeClient(max_rows=10)
    db.seed("charges", *(_march_charge(i) for i in range(25)))
    db.seed("charges", {**_march_charge(99), "center_id": "center-2"})

    rows = SupabaseService(db).select_all("charges", filters={"center_id": CENTER_ID})

    assert len(rows) == 25
    assert len({row["id"] for row in rows}) == 25


def test_select_all_stops_on_exact_multiple(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "supabase_page_size", 10)
    db = FakeClient(max_rows=10)
    db.seed("charges", *(_march_charge(i) for i in range(20)))

    assert len(SupabaseService(db).select_all("charges")) == 20


def test_monthly_summary_counts_rows_beyond_the_row_cap() -> None:
    db = FakeClient(max_rows=1000)
    db.seed("charges", *(_march_charge(i) for i in range(1200)))

    (march,) = AggregationService(db, clock=lambda: NOW).monthly_summary(CENTER_ID, months=1)

    assert march.billed == Decimal("1200.00")
    assert march.client_count == 1200
