"""Monthly charge generation tests."""

from __future__ import annotations

import logging
import threading

import pytest

from app.services.generation_service import GenerationService
from app.utils.period import Period
from tests.conftest import CENTER_ID
from tests.fakes import FakeClient

MARCH = Period(2024, 3)


def _service(db: FakeClient, **overrides) -> dict:
    row = {
        "center_id": CENTER_ID,
        "rider_id": "rider-1",
        "horse_id": "horse-1",
        "name": "Pupilaje",
        "amount": "100.00",
        "billing_cycle": "MONTHLY",
        "due_day": 10,
        "active": True,
    }
    row.update(overrides)
    return db.seed("recurring_services", row)[0]


def test_generate_creates_one_charge_per_active_service(fake_db: FakeClient, clock) -> None:
    _service(fake_db)
    _service(fake_db, horse_id="horse-2", name="Clases", amount="60.00", due_day=31)
    _service(fake_db, rider_id="rider-2", active=False)

    result = GenerationService(fake_db, clock=clock).generate(CENTER_ID, MARCH)

    assert result == {"period_key": "2024-03", "created": 2, "skipped": 0}
    charges = sorted(fake_db.rows("charges"), key=lambda row: row["horse_id"])
    assert [row["due_date"] for row in charges] == ["2024-03-10", "2024-03-28"]
    assert all(row["period_key"] == "2024-03" for row in charges)
    assert all(row["status"] == "PENDING" for row in charges)
    assert charges[0]["remaining_amount"] == "100.00"
    assert charges[0]["paid_amount"] == "0.00"
    assert charges[0]["version"] == 0


def test_generate_is_idempotent(fake_db: FakeClient, clock) -> None:
    _service(fake_db)
    _service(fake_db, horse_id="horse-2")
    service = GenerationService(fake_db, clock=clock)

    first = service.generate(CENTER_ID, MARCH)
    second = service.generate(CENTER_ID, MARCH)

    assert (first["created"], first["skipped"]) == (2, 0)
    assert (second["created"], second["skipped"]) == (0, 2)
    assert len(fake_db.rows("charges")) == 2


def test_generate_fills_only_missing_charges(fake_db: FakeClient, clock) -> None:
    _service(fake_db)
    service = GenerationService(fake_db, clock=clock)
    service.generate(CENTER_ID, MARCH)
    _service(fake_db, horse_id="horse-9", name="Herrador", amount="45.00")

    result = service.generate(CENTER_ID, MARCH)

    assert (result["created"], result["skipped"]) == (1, 1)
    assert len(fake_db.rows("charges")) == 2


def test_each_period_is_billed_separately(fake_db: FakeClient, clock) -> None:
    _service(fake_db)
    service = GenerationService(fake_db, clock=clock)

    service.generate(CENTER_ID, MARCH)
    result = service.generate(CENTER_ID, Period(2024, 4))

    assert result["created"] == 1
    assert sorted(row["period_key"] for row in fake_db.rows("charges")) == ["2024-03", "2024-04"]


def test_rows_dropped_by_the_store_count_as_skipped(fake_db: FakeClient, clock) -> None:
    """A concurrent writer inserting the same charge first must not duplicate it."""
    service_row = _service(fake_db)
    key = f"{service_row['id']}|rider-1|horse-1|2024-03"
    fake_db.before_next(
        "charges",
        "upsert",
        lambda db: db.add(
            "charges",
            {"center_id": CENTER_ID, "dedupe_key": key, "period_key": "2024-03", "amount": "100.00"},
        ),
    )

    result = GenerationService(fake_db, clock=clock).generate(CENTER_ID, MARCH)

    assert (result["created"], result["skipped"]) == (0, 1)
    assert len(fake_db.rows("charges")) == 1


def test_one_off_charges_do_not_block_recurring_ones(fake_db: FakeClient, clock) -> None:
    _service(fake_db)
    fake_db.seed(
        "charges",
        {
            "center_id": CENTER_ID,
            "rider_id": "rider-1",
            "horse_id": "horse-1",
            "service_id": None,
            "dedupe_key": None,
            "period_key": "2024-03",
            "amount": "100.00",
            "status": "PENDING",
        },
    )

    result = GenerationService(fake_db, clock=clock).generate(CENTER_ID, MARCH)

    assert result["created"] == 1


def test_zero_amount_service_is_stored_paid(fake_db: FakeClient, clock) -> None:
    _service(fake_db, amount="0.00")

    GenerationService(fake_db, clock=clock).generate(CENTER_ID, MARCH)

    (charge,) = fake_db.rows("charges")
    assert charge["status"] == "PAID"
    assert charge["remaining_amount"] == "0.00"


def test_generate_logs_run_outcome(
    fake_db: FakeClient, clock, caplog: pytest.LogCaptureFixture
) -> None:
    _service(fake_db)
    with caplog.at_level(logging.INFO, logger="app.services.generation_service"):
        GenerationService(fake_db, clock=clock).generate(CENTER_ID, MARCH)
    assert "created=1" in caplog.text


def test_concurrent_runs_for_one_period_create_each_charge_once(
    fake_db: FakeClient, clock
) -> None:
    _service(fake_db)
    _service(fake_db, horse_id="horse-2")
    _service(fake_db, rider_id="rider-2", horse_id="horse-3")
    fake_db.latency = 0.005
    service = GenerationService(fake_db, clock=clock)
    start = threading.Barrier(2)
    results: list[dict] = []

    def run() -> None:
        start.wait()
        results.append(service.generate(CENTER_ID, MARCH))

    threads = [threading.Thread(target=run) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(result["created"] for result in results) == [0, 3]
    assert sum(result["skipped"] for result in results) == 3
    assert len(fake_db.rows("charges")) == 3


def test_zero_due_day_is_clamped_to_first(fake_db: FakeClient, clock) -> None:
    _service(fake_db, due_day=0)
    _service(fake_db, horse_id="horse-2", due_day=None)

    GenerationService(fake_db, clock=clock).generate(CENTER_ID, MARCH)

    due_by_horse = {row["horse_id"]: row["due_date"] for row in fake_db.rows("charges")}
    assert due_by_horse == {"horse-1": "2024-03-01", "horse-2": "2024-03-10"}
