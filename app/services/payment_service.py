"""Payment store (append-only)."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from app.services.common import SupabaseService
from app.utils.period import Period, derive_payment_period_key, to_key
from app.utils.time import parse_timestamp
from supabase import Client

PAYMENTS_TABLE = "payments"
logger = logging.getLogger(__name__)


class PaymentService:
    """Insert and query payment rows for a center."""

    def __init__(self, client: Client) -> None:
        self.db = SupabaseService(client)

    def insert(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Append one payment row."""
        return self.db.insert_one(PAYMENTS_TABLE, payload)

    def list_all(self, center_id: str) -> list[dict[str, Any]]:
        """Return every payment of the center."""
        return self.db.select_all(PAYMENTS_TABLE, filters={"center_id": center_id})

    def list_by_period(self, center_id: str, period: Period) -> list[dict[str, Any]]:
        """Return payments whose derived period is ``period``."""
        key = to_key(period)
        matched: list[dict[str, Any]] = []
        unplaced = 0
        for row in self.list_all(center_id):
            row_key = derive_payment_period_key(row)
            if row_key is None:
                unplaced += 1
            elif row_key == key:
                matched.append(row)
        if unplaced:
            logger.warning(
                "Excluded %s payment(s) without period for center %s", unplaced, center_id
            )
        return matched

    def list_for_rider(
        self, center_id: str, rider_id: str, period: Period | None = None
    ) -> list[dict[str, Any]]:
        """Return a rider's payments, newest first."""
        rows = self.list_by_period(center_id, period) if period else self.list_all(center_id)
        epoch = datetime.min.replace(tzinfo=UTC)
        return sorted(
            (row for row in rows if str(row.get("rider_id")) == rider_id),
            key=lambda row: parse_timestamp(row.get("paid_at") or row.get("created_at"))
            or epoch,
            reverse=True,
        )
