"""Billing endpoints: charges, payments and derived reports."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_db_client, require_center_staff
from app.schemas.billing import (
    GenerateChargesRequest,
    GenerateChargesResponse,
    OneOffChargeCreate,
    PaymentCreate,
)
from app.schemas.reports import LedgerEntryType
from app.services.aggregation_service import AggregationService, charge_view
from app.services.charge_service import ChargeService
from app.services.generation_service import GenerationService
from app.services.one_off_charge_service import OneOffChargeService
from app.services.reconciliation_service import ReconciliationService
from app.utils.period import Period, current_period, from_key
from app.utils.time import now_utc
from supabase import Client

router = APIRouter()


def _period(value: str | None) -> Period:
    return from_key(value) if value else current_period()


@router.post("/charges/generate")
def generate_charges(
    center_id: str,
    payload: GenerateChargesRequest,
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> GenerateChargesResponse:
    """Bill every active recurring service for a period; safe to re-run."""
    result = GenerationService(client).generate(center_id, from_key(payload.period))
    return GenerateChargesResponse(**result)


@router.post("/charges")
def add_one_off_charge(
    center_id: str,
    payload: OneOffChargeCreate,
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Issue a one-off charge."""
    charge_id = OneOffChargeService(client).add_one_off_charge(
        center_id=center_id,
        rider_id=payload.rider_id,
        period=from_key(payload.period),
        description=payload.description,
        amount=payload.amount,
        horse_id=payload.horse_id,
        due_date=payload.due_date,
    )
    return {"charge_id": charge_id}


@router.post("/charges/{charge_id}/void")
def void_charge(
    center_id: str,
    charge_id: str,
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Cancel an unpaid charge."""
    now = now_utc()
    charge = ChargeService(client).void(center_id, charge_id, now)
    return {"charge": charge_view(charge, now)}


@router.post("/payments")
def register_payment(
    center_id: str,
    payload: PaymentCreate,
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Record a payment, optionally applied to one charge."""
    payment_id = ReconciliationService(client).register_payment(
        center_id=center_id,
        rider_id=payload.rider_id,
        amount=payload.amount,
        period=from_key(payload.period),
        charge_id=payload.charge_id,
        horse_id=payload.horse_id,
        method=payload.method,
        notes=payload.notes,
    )
    return {"payment_id": payment_id}


@router.get("/summary")
def monthly_summary(
    center_id: str,
    months: int = Query(default=6, ge=1, le=24),
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Return the trailing monthly summary series."""
    rows = AggregationService(client).monthly_summary(center_id, months)
    return {"rows": rows}


@router.get("/clients")
def monthly_client_breakdown(
    center_id: str,
    period: str | None = Query(default=None),
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Return per-rider figures for one period."""
    rows = AggregationService(client).monthly_client_breakdown(center_id, _period(period))
    return {"rows": rows}


@router.get("/clients/{rider_id}")
def client_detail(
    center_id: str,
    rider_id: str,
    period: str | None = Query(default=None),
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Return one rider's services, charges, payments and movements."""
    detail = AggregationService(client).client_detail(center_id, rider_id, _period(period))
    return {"detail": detail}


@router.get("/ledger")
def activity_ledger(
    center_id: str,
    period: str | None = Query(default=None),
    rider_id: str | None = Query(default=None),
    entry_type: LedgerEntryType | None = Query(default=None, alias="type"),
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Return the period's movements and cash totals."""
    ledger = AggregationService(client).activity_ledger(
        center_id, _period(period), rider_id=rider_id, entry_type=entry_type
    )
    return {"ledger": ledger}
