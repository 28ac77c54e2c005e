"""Derived billing views computed on read.

Nothing here writes. Every call rescans the center's charges, payments and
expenses, so there is no cached state to invalidate and slightly stale reads
are tolerated.

Two different "net" figures exist on purpose. The monthly summary is the
billing view: billed against collected, with no expenses in it. The activity
ledger is the cash view: ``neto = ingresos - gastos``, where ingresos are the
period's payments and gastos its expenses. Charges appear in the ledger for
information but never move cash.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, time
from decimal import Decimal
from typing import Any

from app.config import settings
from app.schemas.billing import ChargeResponse, PaymentResponse
from app.schemas.catalog import RecurringServiceResponse
from app.schemas.reports import (
    ActivityLedger,
    ClientDetail,
    ClientStatus,
    LedgerEntry,
    LedgerEntryType,
    LedgerTotals,
    MonthlyClientBreakdownRow,
    MonthlySummaryRow,
)
from app.services.catalog_service import CatalogService
from app.services.charge_service import (
    ChargeService,
    charge_overdue_amount,
    charge_remaining,
    display_status,
    is_void,
)
from app.services.common import group_by
from app.services.expense_service import ExpenseService, expense_date
from app.services.membership_service import MembershipService
from app.services.payment_service import PaymentService
from app.utils.money import ZERO, to_decimal
from app.utils.period import (
    Period,
    derive_charge_period_key,
    derive_payment_period_key,
    month_label,
    parse_key,
    to_key,
    trailing_keys,
)
from app.utils.time import as_local_date, local_zone, now_utc, parse_timestamp
from supabase import Client

logger = logging.getLogger(__name__)
_EPOCH = datetime.min.replace(tzinfo=UTC)


def client_status(
    amount: Decimal, paid: Decimal, pending: Decimal, overdue: Decimal
) -> ClientStatus:
    """Collapse a rider's month into one status; first matching rule wins."""
    if overdue > 0:
        return ClientStatus.OVERDUE
    if pending > 0 and paid > 0:
        return ClientStatus.PARTIAL
    if pending > 0:
        return ClientStatus.PENDING
    if amount > 0:
        return ClientStatus.PAID
    return ClientStatus.NO_CHARGES


def charge_view(row: Mapping[str, Any], now: datetime) -> ChargeResponse:
    amount = to_decimal(row.get("amount"))
    remaining = charge_remaining(row)
    return ChargeResponse(
        id=str(row["id"]),
        center_id=str(row.get("center_id") or ""),
        rider_id=str(row.get("rider_id") or ""),
        horse_id=row.get("horse_id"),
        service_id=row.get("service_id"),
        period_key=derive_charge_period_key(row),
        description=row.get("description"),
        amount=amount,
        paid_amount=amount - remaining,
        remaining_amount=remaining,
        status=row.get("status") or "PENDING",
        display_status=display_status(row, now),
        due_date=as_local_date(row.get("due_date")),
        issued_at=parse_timestamp(row.get("issued_at")),
    )


def payment_view(row: Mapping[str, Any]) -> PaymentResponse:
    return PaymentResponse(
        id=str(row["id"]),
        center_id=str(row.get("center_id") or ""),
        rider_id=str(row.get("rider_id") or ""),
        horse_id=row.get("horse_id"),
        charge_id=row.get("charge_id"),
        period_key=derive_payment_period_key(row),
        amount=to_decimal(row.get("amount")),
        paid_at=parse_timestamp(row.get("paid_at") or row.get("created_at")),
        method=row.get("method"),
        notes=row.get("notes"),
    )


def service_view(row: Mapping[str, Any]) -> RecurringServiceResponse:
    return RecurringServiceResponse(
        id=str(row["id"]),
        center_id=str(row.get("center_id") or ""),
        rider_id=str(row.get("rider_id") or ""),
        horse_id=row.get("horse_id"),
        name=str(row.get("name") or ""),
        amount=to_decimal(row.get("amount")),
        billing_cycle=row.get("billing_cycle") or "MONTHLY",
        due_day=row.get("due_day"),
        active=bool(row.get("active")),
        created_at=parse_timestamp(row.get("created_at")),
    )


class AggregationService:
    """Monthly summaries, per-rider breakdowns and the activity ledger."""

    def __init__(self, client: Client, clock: Callable[[], datetime] = now_utc) -> None:
        self.charges = ChargeService(client)
        self.payments = PaymentService(client)
        self.expenses = ExpenseService(client, clock=clock)
        self.catalog = CatalogService(client, clock=clock)
        self.membership = MembershipService(client)
        self.clock = clock

    def monthly_summary(
        self, center_id: str, months: int | None = None, now: datetime | None = None
    ) -> list[MonthlySummaryRow]:
        """Return one row per trailing month ending at the current one, oldest first.

        Months with no activity are present as all-zero rows.
        """
        count = settings.summary_default_months if months is None else months
        count = min(max(1, count), settings.summary_max_months)
        now = now or self.clock()
        keys = trailing_keys(count, now)

        buckets: dict[str, dict[str, Any]] = {
            key: {
                "billed": ZERO,
                "collected": ZERO,
                "pending": ZERO,
                "overdue": ZERO,
                "riders": set(),
            }
            for key in keys
        }

        unplaced = 0
        for charge in self.charges.list_all(center_id):
            if is_void(charge):
                continue
            key = derive_charge_period_key(charge)
            if key is None:
                unplaced += 1
                continue
            bucket = buckets.get(key)
            if bucket is None:
                continue
            bucket["billed"] += to_decimal(charge.get("amount"))
            bucket["pending"] += charge_remaining(charge)
            bucket["overdue"] += charge_overdue_amount(charge, now)
            if charge.get("rider_id"):
                bucket["riders"].add(str(charge["rider_id"]))

        for payment in self.payments.list_all(center_id):
            key = derive_payment_period_key(payment)
            if key is None:
                unplaced += 1
                continue
            bucket = buckets.get(key)
            if bucket is None:
                continue
            bucket["collected"] += to_decimal(payment.get("amount"))
            if payment.get("rider_id"):
                bucket["riders"].add(str(payment["rider_id"]))

        if unplaced:
            logger.warning(
                "Monthly summary for center %s excluded %s record(s) without period",
                center_id,
                unplaced,
            )

        rows = []
        for key in keys:
            bucket = buckets[key]
            period = parse_key(key)
            rows.append(
                MonthlySummaryRow(
                    period_key=key,
                    period_label=month_label(period) if period else key,
                    billed=bucket["billed"],
                    collected=bucket["collected"],
                    pending=bucket["pending"],
                    overdue=bucket["overdue"],
                    client_count=len(bucket["riders"]),
                )
            )
        return rows

    def monthly_client_breakdown(
        self, center_id: str, period: Period, now: datetime | None = None
    ) -> list[MonthlyClientBreakdownRow]:
        """Return one row per rider with an active horse stay, sorted by label.

        Riders with charges but no active stay are left out; riders with a
        stay and no charges show up as ``NO_CHARGES``.
        """
        now = now or self.clock()
        horses_by_rider: dict[str, list[str]] = {}
        for stay in self.membership.active_stays(center_id):
            horses = horses_by_rider.setdefault(str(stay["rider_id"]), [])
            horse_id = stay.get("horse_id")
            if horse_id and str(horse_id) not in horses:
                horses.append(str(horse_id))

        labels = self.membership.rider_labels(center_id)
        charges_by_rider = group_by(
            [row for row in self.charges.list_by_period(center_id, period) if not is_void(row)],
            "rider_id",
        )

        rows = []
        for rider_id, horse_ids in horses_by_rider.items():
            charges = charges_by_rider.get(rider_id, [])
            amount = sum((to_decimal(row.get("amount")) for row in charges), ZERO)
            pending = sum((charge_remaining(row) for row in charges), ZERO)
            overdue = sum((charge_overdue_amount(row, now) for row in charges), ZERO)
            paid = max(ZERO, amount - pending)

            due_dates = [
                due
                for row in charges
                if charge_remaining(row) > 0 and (due := as_local_date(row.get("due_date")))
            ]
            rows.append(
                MonthlyClientBreakdownRow(
                    rider_id=rider_id,
                    rider_label=labels.get(rider_id, rider_id),
                    horse_ids=horse_ids,
                    horse_count=len(horse_ids),
                    month_amount=amount,
                    month_paid=paid,
                    month_pending=pending,
                    month_overdue=overdue,
                    global_status=client_status(amount, paid, pending, overdue),
                    next_due_date=min(due_dates) if due_dates else None,
                )
            )

        rows.sort(key=lambda row: row.rider_label.lower())
        return rows

    def activity_ledger(
        self,
        center_id: str,
        period: Period,
        rider_id: str | None = None,
        entry_type: LedgerEntryType | None = None,
    ) -> ActivityLedger:
        """Merge the period's charges, payments and expenses, newest first.

        A rider-scoped ledger has no expenses. ``entry_type`` filters the
        entries shown; totals always cover the whole period.
        """
        entries: list[LedgerEntry] = []

        for row in self.charges.list_by_period(center_id, period):
            if is_void(row) or (rider_id and str(row.get("rider_id")) != rider_id):
                continue
            amount = to_decimal(row.get("amount"))
            entries.append(
                LedgerEntry(
                    id=f"charge:{row['id']}",
                    type=LedgerEntryType.CHARGE,
                    occurred_at=parse_timestamp(row.get("issued_at"))
                    or parse_timestamp(row.get("due_date")),
                    rider_id=row.get("rider_id"),
                    description=row.get("description") or "Cargo",
                    amount=amount,
                    amount_signed=amount,
                    reference_id=str(row["id"]),
                )
            )

        for row in self.payments.list_by_period(center_id, period):
            if rider_id and str(row.get("rider_id")) != rider_id:
                continue
            amount = to_decimal(row.get("amount"))
            entries.append(
                LedgerEntry(
                    id=f"payment:{row['id']}",
                    type=LedgerEntryType.PAYMENT,
                    occurred_at=parse_timestamp(row.get("paid_at") or row.get("created_at")),
                    rider_id=row.get("rider_id"),
                    description=row.get("notes") or f"Pago ({row.get('method') or 'manual'})",
                    amount=amount,
                    amount_signed=amount,
                    reference_id=row.get("charge_id"),
                )
            )

        if rider_id is None:
            for row in self.expenses.list_by_period(center_id, period):
                amount = to_decimal(row.get("amount"))
                booked = expense_date(row)
                category = row.get("category") or "Otros"
                entries.append(
                    LedgerEntry(
                        id=f"expense:{row['id']}",
                        type=LedgerEntryType.EXPENSE,
                        occurred_at=(
                            datetime.combine(booked, time.min, tzinfo=local_zone())
                            if booked
                            else None
                        ),
                        description=f"{category}: {row.get('description') or ''}",
                        amount=amount,
                        amount_signed=-amount,
                        reference_id=str(row["id"]),
                    )
                )

        ingresos = sum(
            (e.amount_signed for e in entries if e.type is LedgerEntryType.PAYMENT), ZERO
        )
        gastos = sum(
            (abs(e.amount_signed) for e in entries if e.type is LedgerEntryType.EXPENSE), ZERO
        )
        entries.sort(key=lambda entry: entry.occurred_at or _EPOCH, reverse=True)
        if entry_type is not None:
            entries = [entry for entry in entries if entry.type is entry_type]

        return ActivityLedger(
            period_key=to_key(period),
            rider_id=rider_id,
            entries=entries,
            totals=LedgerTotals(ingresos=ingresos, gastos=gastos, neto=ingresos - gastos),
        )

    def client_detail(
        self, center_id: str, rider_id: str, period: Period, now: datetime | None = None
    ) -> ClientDetail:
        """Return a rider's services, charges, payments and movements for a period."""
        now = now or self.clock()
        payments = [
            payment_view(row)
            for row in self.payments.list_for_rider(center_id, rider_id, period)
        ]
        return ClientDetail(
            rider_id=rider_id,
            period_key=to_key(period),
            services=[
                service_view(row) for row in self.catalog.list_for_rider(center_id, rider_id)
            ],
            charges=[
                charge_view(row, now)
                for row in self.charges.list_for_rider(center_id, rider_id, period)
            ],
            payments=payments,
            payments_total=sum((payment.amount for payment in payments), ZERO),
            activity=self.activity_ledger(center_id, period, rider_id=rider_id),
        )
