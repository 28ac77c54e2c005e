"""Monthly charge generation from the recurring service catalog."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from app.config import settings
from app.services.catalog_service import CatalogService
from app.services.charge_service import (
    ChargeService,
    charge_dedupe_key,
    dedupe_key,
    stored_status,
)
from app.utils.locks import keyed_lock
from app.utils.money import ZERO, as_amount, to_decimal
from app.utils.period import Period, period_due_date, to_key
from app.utils.time import now_utc
from supabase import Client

logger = logging.getLogger(__name__)


class GenerationService:
    """Expand active recurring services into one charge each per period.

    Re-running for the same center and period only creates what is missing.
    """

    def __init__(self, client: Client, clock: Callable[[], datetime] = now_utc) -> None:
        self.catalog = CatalogService(client, clock=clock)
        self.charges = ChargeService(client)
        self.clock = clock

    def _charge_payload(
        self,
        center_id: str,
        service: dict[str, Any],
        period: Period,
        key: str,
        now: datetime,
    ) -> dict[str, Any]:
        period_key = to_key(period)
        amount = to_decimal(service.get("amount"))
        due_day = service.get("due_day")
        if due_day is None:
            due_day = settings.default_due_day
        status = stored_status(ZERO, amount)
        return {
            "center_id": center_id,
            "rider_id": str(service["rider_id"]),
            "horse_id": service.get("horse_id"),
            "service_id": str(service["id"]),
            "dedupe_key": key,
            "period_key": period_key,
            "description": service.get("name") or "",
            "amount": as_amount(amount),
            "paid_amount": as_amount(ZERO),
            "remaining_amount": as_amount(amount),
            "status": status.value,
            "due_date": period_due_date(period, int(due_day), settings.max_due_day).isoformat(),
            "issued_at": now.isoformat(),
            "version": 0,
        }

    def generate(self, center_id: str, period: Period) -> dict[str, Any]:
        """Create the period's missing recurring charges.

        Returns ``{"period_key", "created", "skipped"}``.
        """
        period_key = to_key(period)
        with keyed_lock(("generate", center_id, period_key)):
            services = self.catalog.list_active(center_id)
            existing = {
                charge_dedupe_key(charge, period_key)
                for charge in self.charges.list_by_period(center_id, period)
            }

            now = self.clock()
            payloads: list[dict[str, Any]] = []
            skipped = 0
            for service in services:
                key = dedupe_key(
                    str(service["id"]),
                    str(service["rider_id"]),
                    service.get("horse_id"),
                    period_key,
                )
                if key in existing:
                    skipped += 1
                    continue
                existing.add(key)
                payloads.append(self._charge_payload(center_id, service, period, key, now))

            inserted = self.charges.insert_missing(payloads)
            created = len(inserted)
            skipped += len(payloads) - created

        logger.info(
            "Generated charges center=%s period=%s created=%s skipped=%s",
            center_id,
            period_key,
            created,
            skipped,
        )
        return {"period_key": period_key, "created": created, "skipped": skipped}
