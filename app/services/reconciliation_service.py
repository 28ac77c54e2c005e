"""Payment registration and application against charges."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any

from app.config import settings
from app.services.charge_service import (
    ChargeService,
    cap_payment,
    is_void,
    stored_status,
)
from app.services.common import clean_text
from app.services.payment_service import PaymentService
from app.utils.errors import AppError, ValidationError
from app.utils.locks import keyed_lock
from app.utils.money import as_amount, to_decimal
from app.utils.period import Period, to_key
from app.utils.time import now_utc
from supabase import Client

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Record payments and keep charge balances in step with them."""

    def __init__(self, client: Client, clock: Callable[[], datetime] = now_utc) -> None:
        self.charges = ChargeService(client)
        self.payments = PaymentService(client)
        self.clock = clock

    def register_payment(
        self,
        center_id: str,
        rider_id: str,
        amount: Decimal,
        period: Period,
        charge_id: str | None = None,
        horse_id: str | None = None,
        method: str | None = None,
        notes: str | None = None,
    ) -> str:
        """Record a payment and apply it to ``charge_id`` when given.

        The payment belongs to the caller-declared ``period`` regardless of
        the charge's own period. Either both the charge update and the
        payment row are written or neither is.
        """
        rider_id = (rider_id or "").strip()
        value = to_decimal(amount)
        if not rider_id:
            raise ValidationError("rider_id is required")
        if value <= 0:
            raise ValidationError("Payment amount must be greater than 0")

        now = self.clock()
        payload: dict[str, Any] = {
            "center_id": center_id,
            "rider_id": rider_id,
            "horse_id": clean_text(horse_id),
            "charge_id": clean_text(charge_id),
            "period_key": to_key(period),
            "amount": as_amount(value),
            "method": clean_text(method) or settings.default_payment_method,
            "notes": clean_text(notes),
            "paid_at": now.isoformat(),
            "created_at": now.isoformat(),
        }

        if payload["charge_id"] is None:
            payment = self.payments.insert(payload)
        else:
            payment = self._apply_to_charge(center_id, payload, value, now)

        logger.info(
            "Registered payment center=%s rider=%s amount=%s charge=%s",
            center_id,
            rider_id,
            payload["amount"],
            payload["charge_id"],
        )
        return str(payment["id"])

    def _apply_to_charge(
        self,
        center_id: str,
        payload: dict[str, Any],
        value: Decimal,
        now: datetime,
    ) -> dict[str, Any]:
        charge_id = payload["charge_id"]
        with keyed_lock(("charge", center_id, charge_id)):
            charge = self.charges.get(center_id, charge_id)
            if str(charge.get("rider_id")) != payload["rider_id"]:
                raise ValidationError("Charge belongs to a different rider")
            if is_void(charge):
                raise ValidationError("Cannot pay a voided charge")
            if payload["horse_id"] is None:
                payload["horse_id"] = charge.get("horse_id")

            charge_amount = to_decimal(charge.get("amount"))
            current_paid = to_decimal(charge.get("paid_amount"))
            next_paid, remaining = cap_payment(charge_amount, current_paid, value)
            updated = self.charges.apply_paid_amount(
                charge,
                paid=next_paid,
                remaining=remaining,
                status=stored_status(next_paid, remaining),
                now=now,
            )
            try:
                return self.payments.insert(payload)
            except AppError:
                self.charges.restore(charge, updated, now)
                raise
