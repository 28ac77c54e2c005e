"""Ad-hoc charges outside the recurring catalog."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal

from app.config import settings
from app.schemas.billing import ChargeStatus
from app.services.charge_service import ChargeService
from app.services.common import clean_text
from app.utils.errors import ValidationError
from app.utils.money import ZERO, as_amount, to_decimal
from app.utils.period import Period, period_due_date, to_key
from app.utils.time import now_utc
from supabase import Client

logger = logging.getLogger(__name__)


class OneOffChargeService:
    """Issue penalties, extra lessons and other one-time charges."""

    def __init__(self, client: Client, clock: Callable[[], datetime] = now_utc) -> None:
        self.charges = ChargeService(client)
        self.clock = clock

    def add_one_off_charge(
        self,
        center_id: str,
        rider_id: str,
        period: Period,
        description: str,
        amount: Decimal,
        horse_id: str | None = None,
        due_date: date | None = None,
    ) -> str:
        """Create a pending charge for ``period`` and return its id.

        Without ``due_date`` the charge is due on the configured day of the
        period (the 10th by default). One-off charges carry no service id,
        so the generator never treats them as an existing recurring charge.
        """
        rider_id = (rider_id or "").strip()
        description = (description or "").strip()
        value = to_decimal(amount)
        if not rider_id:
            raise ValidationError("rider_id is required")
        if not description:
            raise ValidationError("Charge description is required")
        if value <= 0:
            raise ValidationError("Charge amount must be greater than 0")

        due = due_date or period_due_date(period, settings.one_off_due_day, settings.max_due_day)
        now = self.clock()
        charge = self.charges.insert_one(
            {
                "center_id": center_id,
                "rider_id": rider_id,
                "horse_id": clean_text(horse_id),
                "service_id": None,
                "dedupe_key": None,
                "period_key": to_key(period),
                "description": description,
                "amount": as_amount(value),
                "paid_amount": as_amount(ZERO),
                "remaining_amount": as_amount(value),
                "status": ChargeStatus.PENDING.value,
                "due_date": due.isoformat(),
                "issued_at": now.isoformat(),
                "version": 0,
            }
        )
        logger.info(
            "Issued one-off charge center=%s rider=%s amount=%s", center_id, rider_id, value
        )
        return str(charge["id"])
