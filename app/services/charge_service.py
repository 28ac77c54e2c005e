"""Charge store and charge status rules."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from app.schemas.billing import ChargeStatus
from app.services.common import SupabaseService
from app.utils.errors import ConcurrencyError, ValidationError
from app.utils.money import ZERO, as_amount, to_decimal
from app.utils.period import Period, derive_charge_period_key, to_key
from app.utils.time import parse_timestamp
from supabase import Client

CHARGES_TABLE = "charges"
DEDUPE_CONFLICT = "center_id,dedupe_key"
logger = logging.getLogger(__name__)


def dedupe_key(
    service_id: str | None, rider_id: str, horse_id: str | None, period_key: str
) -> str:
    """Identity of a recurring charge: one per service, rider, horse and period."""
    return f"{service_id or ''}|{rider_id}|{horse_id or ''}|{period_key}"


def charge_dedupe_key(row: Mapping[str, Any], period_key: str) -> str:
    return dedupe_key(
        row.get("service_id"), str(row.get("rider_id") or ""), row.get("horse_id"), period_key
    )


def charge_remaining(row: Mapping[str, Any]) -> Decimal:
    """Outstanding balance of a stored charge."""
    explicit = to_decimal(row.get("remaining_amount"))
    if explicit > 0:
        return explicit
    return max(ZERO, to_decimal(row.get("amount")) - to_decimal(row.get("paid_amount")))


def stored_status(paid: Decimal, remaining: Decimal) -> ChargeStatus:
    """Status persisted after a payment is applied."""
    if remaining <= 0:
        return ChargeStatus.PAID
    if paid > 0:
        return ChargeStatus.PARTIAL
    return ChargeStatus.PENDING


def cap_payment(amount: Decimal, paid: Decimal, payment: Decimal) -> tuple[Decimal, Decimal]:
    """Apply ``payment`` to a charge, returning ``(next_paid, remaining)``.

    Any excess over the outstanding balance is absorbed; there is no credit
    balance carried to other charges.
    """
    next_paid = min(amount, paid + payment)
    return next_paid, max(ZERO, amount - next_paid)


def classify(
    paid: Decimal,
    amount: Decimal,
    due_date: datetime | None,
    now: datetime,
    stored: str | None = None,
) -> ChargeStatus:
    """Read-time display status of a charge. Never written back."""
    if stored == ChargeStatus.VOID:
        return ChargeStatus.VOID
    remaining = max(ZERO, amount - paid)
    if remaining <= 0:
        return ChargeStatus.PAID
    if stored == ChargeStatus.OVERDUE or (due_date is not None and due_date < now):
        return ChargeStatus.OVERDUE
    return ChargeStatus.PARTIAL if paid > 0 else ChargeStatus.PENDING


def display_status(row: Mapping[str, Any], now: datetime) -> ChargeStatus:
    amount = to_decimal(row.get("amount"))
    return classify(
        paid=amount - charge_remaining(row),
        amount=amount,
        due_date=parse_timestamp(row.get("due_date")),
        now=now,
        stored=row.get("status"),
    )


def charge_overdue_amount(row: Mapping[str, Any], now: datetime) -> Decimal:
    """Remaining balance when the charge reads as overdue at ``now``, else zero."""
    if display_status(row, now) is ChargeStatus.OVERDUE:
        return charge_remaining(row)
    return ZERO


def is_void(row: Mapping[str, Any]) -> bool:
    return row.get("status") == ChargeStatus.VOID


class ChargeService:
    """Read and write charge rows for a center."""

    def __init__(self, client: Client) -> None:
        self.db = SupabaseService(client)

    def get(self, center_id: str, charge_id: str) -> dict[str, Any]:
        """Return one charge or raise NotFoundError."""
        return self.db.select_one(
            CHARGES_TABLE,
            {"id": charge_id, "center_id": center_id},
            not_found_label="Charge",
        )

    def list_all(self, center_id: str) -> list[dict[str, Any]]:
        """Return every charge of the center."""
        return self.db.select_all(CHARGES_TABLE, filters={"center_id": center_id})

    def list_by_period(self, center_id: str, period: Period) -> list[dict[str, Any]]:
        """Return charges whose derived period is ``period``."""
        key = to_key(period)
        matched: list[dict[str, Any]] = []
        unplaced = 0
        for row in self.list_all(center_id):
            row_key = derive_charge_period_key(row)
            if row_key is None:
                unplaced += 1
            elif row_key == key:
                matched.append(row)
        if unplaced:
            logger.warning(
                "Excluded %s charge(s) without period for center %s", unplaced, center_id
            )
        return matched

    def list_for_rider(
        self, center_id: str, rider_id: str, period: Period | None = None
    ) -> list[dict[str, Any]]:
        """Return a rider's charges, optionally for one period, by due date."""
        rows = self.list_by_period(center_id, period) if period else self.list_all(center_id)
        epoch = datetime.min.replace(tzinfo=UTC)
        return sorted(
            (row for row in rows if str(row.get("rider_id")) == rider_id),
            key=lambda row: parse_timestamp(row.get("due_date")) or epoch,
        )

    def insert_one(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self.db.insert_one(CHARGES_TABLE, payload)

    def insert_missing(self, payloads: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert charges in one batch; rows whose dedupe key exists are dropped.

        Relies on a unique constraint over ``(center_id, dedupe_key)``.
        """
        return self.db.insert_missing(CHARGES_TABLE, payloads, on_conflict=DEDUPE_CONFLICT)

    def apply_paid_amount(
        self,
        charge: Mapping[str, Any],
        paid: Decimal,
        remaining: Decimal,
        status: ChargeStatus,
        now: datetime,
    ) -> dict[str, Any]:
        """Write new balances if the charge is still at the version we read.

        Raises ConcurrencyError when another writer got there first.
        """
        version = int(charge.get("version") or 0)
        rows = self.db.update(
            CHARGES_TABLE,
            {"id": charge["id"], "center_id": charge["center_id"], "version": version},
            {
                "paid_amount": as_amount(paid),
                "remaining_amount": as_amount(remaining),
                "status": status.value,
                "version": version + 1,
                "updated_at": now.isoformat(),
            },
        )
        if not rows:
            raise ConcurrencyError(str(charge["id"]))
        return rows[0]

    def restore(
        self, original: Mapping[str, Any], current: Mapping[str, Any], now: datetime
    ) -> None:
        """Put back the balances of ``original`` after a failed follow-up write."""
        rows = self.db.update(
            CHARGES_TABLE,
            {
                "id": original["id"],
                "center_id": original["center_id"],
                "version": int(current.get("version") or 0),
            },
            {
                "paid_amount": as_amount(to_decimal(original.get("paid_amount"))),
                "remaining_amount": as_amount(charge_remaining(original)),
                "status": original.get("status") or ChargeStatus.PENDING.value,
                "version": int(current.get("version") or 0) + 1,
                "updated_at": now.isoformat(),
            },
        )
        if not rows:
            logger.error("Could not restore charge %s after failed payment", original["id"])

    def void(self, center_id: str, charge_id: str, now: datetime) -> dict[str, Any]:
        """Cancel an unpaid charge. Voided charges stay stored but stop counting."""
        charge = self.get(center_id, charge_id)
        if is_void(charge):
            return charge
        if to_decimal(charge.get("paid_amount")) > 0:
            raise ValidationError("Charges with payments applied cannot be voided")
        version = int(charge.get("version") or 0)
        rows = self.db.update(
            CHARGES_TABLE,
            {"id": charge_id, "center_id": center_id, "version": version},
            {
                "status": ChargeStatus.VOID.value,
                "version": version + 1,
                "updated_at": now.isoformat(),
            },
        )
        if not rows:
            raise ConcurrencyError(charge_id)
        return rows[0]
