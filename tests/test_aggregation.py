"""Monthly summary, client breakdown and activity ledger tests."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from app.schemas.billing import ChargeStatus
from app.schemas.reports import ClientStatus, LedgerEntryType
from app.services.aggregation_service import AggregationService, client_status
from app.utils.period import Period
from tests.conftest import CENTER_ID
from tests.fakes import FakeClient

NOW = datetime(2024, 4, 1, 12, 0, tzinfo=UTC)
MARCH = Period(2024, 3)


def _charge(rider_id: str, amount: str, **fields) -> dict:
    row = {
        "center_id": CENTER_ID,
        "rider_id": rider_id,
        "horse_id": "horse-1",
        "period_key": "2024-03",
        "description": "Pupilaje",
        "amount": amount,
        "paid_amount": "0.00",
        "remaining_amount": amount,
        "status": "PENDING",
        "due_date": "2024-03-10",
        "version": 0,
    }
    row.update(fields)
    return row


@pytest.fixture
def ledger_db(fake_db: FakeClient) -> FakeClient:
    fake_db.seed(
        "horse_stays",
        {"center_id": CENTER_ID, "rider_id": "rider-a", "horse_id": "horse-1", "active": True},
        {"center_id": CENTER_ID, "rider_id": "rider-b", "horse_id": "horse-2", "active": True},
        {"center_id": CENTER_ID, "rider_id": "rider-z", "horse_id": "horse-9", "active": False},
    )
    fake_db.seed(
        "center_members",
        {"center_id": CENTER_ID, "user_id": "rider-a", "display_name": "Ana"},
        {"center_id": CENTER_ID, "user_id": "rider-b", "email": "bruno@example.com"},
    )
    fake_db.seed(
        "recurring_services",
        {
            "id": "svc-a",
            "center_id": CENTER_ID,
            "rider_id": "rider-a",
            "horse_id": "horse-1",
            "name": "Pupilaje",
            "amount": "150.00",
            "due_day": 10,
            "active": True,
        },
    )
    fake_db.seed(
        "charges",
        _charge("rider-a", "150.00", id="c1", issued_at="2024-03-01T08:00:00Z"),
        _charge(
            "rider-a",
            "100.00",
            id="c2",
            paid_amount="100.00",
            remaining_amount="0.00",
            status="PAID",
            issued_at="2024-03-01T08:00:00Z",
        ),
        _charge(
            "rider-c",
            "40.00",
            id="c3",
            due_date="2024-04-10",
            issued_at="2024-03-02T08:00:00Z",
        ),
        _charge("rider-b", "999.00", id="c4", status="VOID"),
        _charge("rider-a", "150.00", id="c5", period_key="2024-04", due_date="2024-04-10"),
        _charge("rider-a", "5.00", id="c6", period_key=None, due_date=None),
    )
    fake_db.seed(
        "payments",
        {
            "id": "p1",
            "center_id": CENTER_ID,
            "rider_id": "rider-a",
            "charge_id": "c2",
            "period_key": "2024-03",
            "amount": "100.00",
            "method": "transfer",
            "paid_at": "2024-03-12T10:00:00Z",
        },
        {
            "id": "p2",
            "center_id": CENTER_ID,
            "rider_id": "rider-c",
            "charge_id": None,
            "period_key": "2024-03",
            "amount": "10.00",
            "paid_at": "2024-03-20T10:00:00Z",
        },
    )
    fake_db.seed(
        "expenses",
        {
            "id": "e1",
            "center_id": CENTER_ID,
            "category": "Luz",
            "description": "Factura",
            "amount": "40.00",
            "date": "2024-03-05",
        },
    )
    return fake_db


@pytest.fixture
def aggregation(ledger_db: FakeClient) -> AggregationService:
    return AggregationService(ledger_db, clock=lambda: NOW)


def test_summary_has_one_row_per_month_oldest_first(aggregation: AggregationService) -> None:
    rows = aggregation.monthly_summary(CENTER_ID, months=12)

    assert len(rows) == 12
    assert rows[0].period_key == "2023-05"
    assert rows[-1].period_key == "2024-04"
    assert rows[-1].period_label == "abr 2024"


def test_summary_figures_for_march(aggregation: AggregationService) -> None:
    rows = {row.period_key: row for row in aggregation.monthly_summary(CENTER_ID, months=3)}

    march = rows["2024-03"]
    assert march.billed == Decimal("290.00")
    assert march.collected == Decimal("110.00")
    assert march.pending == Decimal("190.00")
    assert march.overdue == Decimal("150.00")
    assert march.client_count == 2

    april = rows["2024-04"]
    assert (april.billed, april.pending, april.overdue) == (
        Decimal("150.00"),
        Decimal("150.00"),
        Decimal("0.00"),
    )


def test_summary_keeps_empty_months(aggregation: AggregationService) -> None:
    february = aggregation.monthly_summary(CENTER_ID, months=3)[0]
    assert february.period_key == "2024-02"
    assert february.billed == Decimal("0")
    assert february.client_count == 0


def test_summary_clamps_month_count(aggregation: AggregationService) -> None:
    assert len(aggregation.monthly_summary(CENTER_ID, months=0)) == 1
    assert len(aggregation.monthly_summary(CENTER_ID, months=100)) == 24
    assert len(aggregation.monthly_summary(CENTER_ID)) == 6


def test_summary_logs_records_without_period(
    aggregation: AggregationService, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.WARNING, logger="app.services.aggregation_service"):
        aggregation.monthly_summary(CENTER_ID, months=1)
    assert "without period" in caplog.text


def test_breakdown_covers_riders_with_active_stays(aggregation: AggregationService) -> None:
    rows = aggregation.monthly_client_breakdown(CENTER_ID, MARCH)

    assert [row.rider_id for row in rows] == ["rider-a", "rider-b"]
    ana, bruno = rows
    assert ana.rider_label == "Ana"
    assert ana.horse_ids == ["horse-1"]
    assert ana.month_amount == Decimal("250.00")
    assert ana.month_paid == Decimal("100.00")
    assert ana.month_pending == Decimal("150.00")
    assert ana.month_overdue == Decimal("150.00")
    assert ana.global_status is ClientStatus.OVERDUE
    assert ana.next_due_date == date(2024, 3, 10)

    assert bruno.rider_label == "bruno@example.com"
    assert bruno.global_status is ClientStatus.NO_CHARGES
    assert bruno.month_amount == Decimal("0")
    assert bruno.next_due_date is None


@pytest.mark.parametrize(
    ("amount", "paid", "pending", "overdue", "expected"),
    [
        ("100", "0", "100", "100", ClientStatus.OVERDUE),
        ("100", "40", "60", "0", ClientStatus.PARTIAL),
        ("100", "0", "100", "0", ClientStatus.PENDING),
        ("100", "100", "0", "0", ClientStatus.PAID),
        ("0", "0", "0", "0", ClientStatus.NO_CHARGES),
    ],
)
def test_client_status_rules(
    amount: str, paid: str, pending: str, overdue: str, expected: ClientStatus
) -> None:
    assert client_status(Decimal(amount), Decimal(paid), Decimal(pending), Decimal(overdue)) is expected


def test_global_ledger_totals_are_cash_only(aggregation: AggregationService) -> None:
    ledger = aggregation.activity_ledger(CENTER_ID, MARCH)

    assert ledger.totals.ingresos == Decimal("110.00")
    assert ledger.totals.gastos == Decimal("40.00")
    assert ledger.totals.neto == Decimal("70.00")
    assert len(ledger.entries) == 6
    assert "charge:c4" not in {entry.id for entry in ledger.entries}
    assert ledger.entries[0].id == "payment:p2"

    (expense,) = [e for e in ledger.entries if e.type is LedgerEntryType.EXPENSE]
    assert expense.amount_signed == Decimal("-40.00")
    assert expense.description == "Luz: Factura"


def test_ledger_type_filter_keeps_totals(aggregation: AggregationService) -> None:
    ledger = aggregation.activity_ledger(CENTER_ID, MARCH, entry_type=LedgerEntryType.PAYMENT)

    assert {entry.id for entry in ledger.entries} == {"payment:p1", "payment:p2"}
    assert ledger.totals.neto == Decimal("70.00")


def test_rider_ledger_has_no_expenses(aggregation: AggregationService) -> None:
    ledger = aggregation.activity_ledger(CENTER_ID, MARCH, rider_id="rider-a")

    assert {entry.id for entry in ledger.entries} == {"charge:c1", "charge:c2", "payment:p1"}
    assert ledger.totals.gastos == Decimal("0")
    assert ledger.totals.neto == Decimal("100.00")


def test_client_detail(aggregation: AggregationService) -> None:
    detail = aggregation.client_detail(CENTER_ID, "rider-a", MARCH)

    assert [service.name for service in detail.services] == ["Pupilaje"]
    assert [charge.id for charge in detail.charges] == ["c1", "c2"]
    assert detail.charges[0].display_status is ChargeStatus.OVERDUE
    assert detail.charges[1].display_status is ChargeStatus.PAID
    assert [payment.id for payment in detail.payments] == ["p1"]
    assert detail.payments_total == Decimal("100.00")
    assert detail.activity.rider_id == "rider-a"
