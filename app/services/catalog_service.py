"""Recurring service catalog: the monthly line items billed per rider and horse."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any

from app.config import settings
from app.services.common import SupabaseService
from app.utils.errors import ValidationError
from app.utils.money import as_amount, to_decimal
from app.utils.time import now_utc
from supabase import Client

SERVICES_TABLE = "recurring_services"


class CatalogService:
    """Manage recurring services. Services are deactivated, never deleted."""

    def __init__(self, client: Client, clock: Callable[[], datetime] = now_utc) -> None:
        self.db = SupabaseService(client)
        self.clock = clock

    @staticmethod
    def _check_due_day(due_day: int) -> None:
        if not 1 <= due_day <= settings.max_due_day:
            raise ValidationError(f"Due day must be between 1 and {settings.max_due_day}")

    def list_active(self, center_id: str) -> list[dict[str, Any]]:
        """Return all active services of the center."""
        return self.db.select_all(
            SERVICES_TABLE, filters={"center_id": center_id, "active": True}
        )

    def list_for_rider(self, center_id: str, rider_id: str) -> list[dict[str, Any]]:
        """Return a rider's active services sorted by name."""
        rows = [row for row in self.list_active(center_id) if str(row.get("rider_id")) == rider_id]
        return sorted(rows, key=lambda row: str(row.get("name") or "").lower())

    def get(self, center_id: str, service_id: str) -> dict[str, Any]:
        return self.db.select_one(
            SERVICES_TABLE,
            {"id": service_id, "center_id": center_id},
            not_found_label="Recurring service",
        )

    def create(
        self,
        center_id: str,
        rider_id: str,
        horse_id: str,
        name: str,
        amount: Decimal,
        due_day: int | None = None,
    ) -> dict[str, Any]:
        """Add an active monthly service for one rider and horse."""
        rider_id, horse_id, name = rider_id.strip(), horse_id.strip(), name.strip()
        if not rider_id:
            raise ValidationError("rider_id is required")
        if not horse_id:
            raise ValidationError("horse_id is required")
        if not name:
            raise ValidationError("Service name is required")
        if to_decimal(amount) < 0:
            raise ValidationError("Service amount cannot be negative")
        day = settings.default_due_day if due_day is None else due_day
        self._check_due_day(day)

        return self.db.insert_one(
            SERVICES_TABLE,
            {
                "center_id": center_id,
                "rider_id": rider_id,
                "horse_id": horse_id,
                "name": name,
                "amount": as_amount(to_decimal(amount)),
                "billing_cycle": "MONTHLY",
                "due_day": day,
                "active": True,
                "created_at": self.clock().isoformat(),
            },
        )

    def update(self, center_id: str, service_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Edit name, amount or due day; charges already issued are untouched."""
        self.get(center_id, service_id)
        payload: dict[str, Any] = {}
        if changes.get("name") is not None:
            if not changes["name"].strip():
                raise ValidationError("Service name is required")
            payload["name"] = changes["name"].strip()
        if changes.get("amount") is not None:
            if to_decimal(changes["amount"]) < 0:
                raise ValidationError("Service amount cannot be negative")
            payload["amount"] = as_amount(to_decimal(changes["amount"]))
        if changes.get("due_day") is not None:
            self._check_due_day(int(changes["due_day"]))
            payload["due_day"] = int(changes["due_day"])
        if not payload:
            return self.get(center_id, service_id)

        rows = self.db.update(SERVICES_TABLE, {"id": service_id, "center_id": center_id}, payload)
        return rows[0] if rows else self.get(center_id, service_id)

    def deactivate(self, center_id: str, service_id: str) -> dict[str, Any]:
        """Stop billing a service from the next generation run on."""
        self.get(center_id, service_id)
        rows = self.db.update(
            SERVICES_TABLE,
            {"id": service_id, "center_id": center_id},
            {"active": False, "deactivated_at": self.clock().isoformat()},
        )
        return rows[0] if rows else self.get(center_id, service_id)
