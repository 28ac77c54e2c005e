"""Operating expense endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_db_client, require_center_staff
from app.schemas.expense import (
    EXPENSE_CATEGORIES,
    ExpenseCreate,
    ExpenseResponse,
    ExpenseUpdate,
)
from app.services.expense_service import ExpenseService, expense_date
from app.utils.money import to_decimal
from app.utils.period import current_period, from_key
from supabase import Client

router = APIRouter()


def _expense_view(row: dict[str, Any]) -> ExpenseResponse:
    return ExpenseResponse(
        id=str(row["id"]),
        center_id=str(row.get("center_id") or ""),
        category=str(row.get("category") or ""),
        description=str(row.get("description") or ""),
        amount=to_decimal(row.get("amount")),
        date=expense_date(row),
        method=row.get("method"),
        notes=row.get("notes"),
    )


@router.get("")
def list_expenses(
    center_id: str,
    period: str | None = Query(default=None),
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Return a period's expenses and their total."""
    target = from_key(period) if period else current_period()
    rows = ExpenseService(client).list_by_period(center_id, target)
    total = sum((to_decimal(row.get("amount")) for row in rows), to_decimal(0))
    return {
        "period_key": target.key,
        "expenses": [_expense_view(row) for row in rows],
        "total": total,
    }


@router.get("/categories")
def list_categories(_: str = Depends(require_center_staff)) -> dict:
    """Return the suggested expense categories."""
    return {"categories": list(EXPENSE_CATEGORIES)}


@router.post("")
def create_expense(
    center_id: str,
    payload: ExpenseCreate,
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Record an operating expense."""
    expense = ExpenseService(client).create(
        center_id=center_id,
        category=payload.category,
        description=payload.description,
        amount=payload.amount,
        spent_on=payload.date,
        method=payload.method,
        notes=payload.notes,
    )
    return {"expense": _expense_view(expense)}


@router.patch("/{expense_id}")
def update_expense(
    center_id: str,
    expense_id: str,
    payload: ExpenseUpdate,
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Edit an expense."""
    changes: dict[str, Any] = payload.model_dump(exclude_unset=True)
    expense = ExpenseService(client).update(center_id, expense_id, changes)
    return {"expense": _expense_view(expense)}


@router.delete("/{expense_id}")
def delete_expense(
    center_id: str,
    expense_id: str,
    _: str = Depends(require_center_staff),
    client: Client = Depends(get_db_client),
) -> dict:
    """Delete an expense."""
    ExpenseService(client).delete(center_id, expense_id)
    return {"deleted": True}
