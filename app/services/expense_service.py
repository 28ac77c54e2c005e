"""Operating expense store."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from app.services.common import SupabaseService, clean_text
from app.utils.errors import ValidationError
from app.utils.money import as_amount, to_decimal
from app.utils.period import Period, period_of_date
from app.utils.time import as_local_date, now_utc, to_local
from supabase import Client

EXPENSES_TABLE = "expenses"


def expense_date(row: dict[str, Any]) -> date | None:
    """Local date an expense is booked on: ``date``, falling back to ``created_at``."""
    return as_local_date(row.get("date")) or as_local_date(row.get("created_at"))


class ExpenseService:
    """Record and query center operating expenses."""

    def __init__(self, client: Client, clock: Callable[[], datetime] = now_utc) -> None:
        self.db = SupabaseService(client)
        self.clock = clock

    @staticmethod
    def _validate(category: str | None, description: str | None, amount: Decimal | None) -> None:
        if category is not None and not category.strip():
            raise ValidationError("Expense category is required")
        if description is not None and not description.strip():
            raise ValidationError("Expense description is required")
        if amount is not None and to_decimal(amount) <= 0:
            raise ValidationError("Expense amount must be greater than 0")

    def get(self, center_id: str, expense_id: str) -> dict[str, Any]:
        return self.db.select_one(
            EXPENSES_TABLE,
            {"id": expense_id, "center_id": center_id},
            not_found_label="Expense",
        )

    def create(
        self,
        center_id: str,
        category: str,
        description: str,
        amount: Decimal,
        spent_on: date | None = None,
        method: str | None = None,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """Create an expense; it lands in the period of ``spent_on`` (default today)."""
        self._validate(category or "", description or "", amount)
        now = self.clock()
        return self.db.insert_one(
            EXPENSES_TABLE,
            {
                "center_id": center_id,
                "category": category.strip(),
                "description": description.strip(),
                "amount": as_amount(to_decimal(amount)),
                "date": (spent_on or to_local(now).date()).isoformat(),
                "method": clean_text(method),
                "notes": clean_text(notes),
                "created_at": now.isoformat(),
            },
        )

    def update(self, center_id: str, expense_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update; unknown expenses raise NotFoundError."""
        self.get(center_id, expense_id)
        self._validate(changes.get("category"), changes.get("description"), changes.get("amount"))

        payload: dict[str, Any] = {}
        for field in ("category", "description"):
            if changes.get(field) is not None:
                payload[field] = changes[field].strip()
        for field in ("method", "notes"):
            if field in changes:
                payload[field] = clean_text(changes[field])
        if changes.get("amount") is not None:
            payload["amount"] = as_amount(to_decimal(changes["amount"]))
        if changes.get("date") is not None:
            payload["date"] = changes["date"].isoformat()
        if not payload:
            return self.get(center_id, expense_id)

        payload["updated_at"] = self.clock().isoformat()
        rows = self.db.update(EXPENSES_TABLE, {"id": expense_id, "center_id": center_id}, payload)
        return rows[0] if rows else self.get(center_id, expense_id)

    def delete(self, center_id: str, expense_id: str) -> None:
        self.get(center_id, expense_id)
        self.db.delete(EXPENSES_TABLE, {"id": expense_id, "center_id": center_id})

    def list_all(self, center_id: str) -> list[dict[str, Any]]:
        return self.db.select_all(EXPENSES_TABLE, filters={"center_id": center_id})

    def list_by_period(self, center_id: str, period: Period) -> list[dict[str, Any]]:
        """Return the period's expenses, newest first."""
        rows = []
        for row in self.list_all(center_id):
            booked = expense_date(row)
            if booked and period_of_date(booked) == period:
                rows.append(row)
        rows.sort(key=lambda row: expense_date(row) or date.min, reverse=True)
        return rows
