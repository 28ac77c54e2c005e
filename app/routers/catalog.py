"""Recurring service catalog endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_db_client, require_center_staff
from app.schemas.catalog import RecurringServiceCreate, RecurringServiceUpdate
from app.services.aggregation_service import service_view
from app.services.catalog_service import CatalogService
from supabase import Client

router = APIRouter()


@router.get("")
def list_services(
    center_id: str,
    rider_id: str | None = Query(default=None),
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Return active services, optionally for one rider."""
    service = CatalogService(client)
    rows = (
        service.list_for_rider(center_id, rider_id)
        if rider_id
        else service.list_active(center_id)
    )
    return {"services": [service_view(row) for row in rows]}


@router.post("")
def create_service(
    center_id: str,
    payload: RecurringServiceCreate,
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Add a recurring monthly service."""
    row = CatalogService(client).create(
        center_id=center_id,
        rider_id=payload.rider_id,
        horse_id=payload.horse_id,
        name=payload.name,
        amount=payload.amount,
        due_day=payload.due_day,
    )
    return {"service": service_view(row)}


@router.patch("/{service_id}")
def update_service(
    center_id: str,
    service_id: str,
    payload: RecurringServiceUpdate,
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Edit a recurring service."""
    row = CatalogService(client).update(
        center_id, service_id, payload.model_dump(exclude_unset=True)
    )
    return {"service": service_view(row)}


@router.post("/{service_id}/deactivate")
def deactivate_service(
    center_id: str,
    service_id: str,
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Stop billing a recurring service."""
    row = CatalogService(client).deactivate(center_id, service_id)
    return {"service": service_view(row)}
