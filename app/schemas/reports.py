"""Derived billing views: monthly summary, client breakdown and movements."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field

from app.schemas.billing import ChargeResponse, PaymentResponse
from app.schemas.catalog import RecurringServiceResponse

ZERO = Decimal("0.00")


class ClientStatus(StrEnum):
    """Monthly status of one rider across all their charges."""

    PAID = "PAID"
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    OVERDUE = "OVERDUE"
    NO_CHARGES = "NO_CHARGES"


class LedgerEntryType(StrEnum):
    """Kind of movement in the activity ledger."""

    CHARGE = "CHARGE"
    PAYMENT = "PAYMENT"
    EXPENSE = "EXPENSE"


class MonthlySummaryRow(BaseModel):
    """Center-wide billing figures for one period.

    ``collected`` and ``billed`` form the billing view. Expenses are not
    part of this row; see ``LedgerTotals`` for the cash view.
    """

    period_key: str
    period_label: str
    billed: Decimal = ZERO
    collected: Decimal = ZERO
    pending: Decimal = ZERO
    overdue: Decimal = ZERO
    client_count: int = 0


class MonthlyClientBreakdownRow(BaseModel):
    """Billing state of one rider with an active horse stay for a period."""

    rider_id: str
    rider_label: str
    horse_ids: list[str] = Field(default_factory=list)
    horse_count: int = 0
    month_amount: Decimal = ZERO
    month_paid: Decimal = ZERO
    month_pending: Decimal = ZERO
    month_overdue: Decimal = ZERO
    global_status: ClientStatus = ClientStatus.NO_CHARGES
    next_due_date: date | None = None


class LedgerEntry(BaseModel):
    """One movement in the merged activity ledger.

    Charges carry a positive ``amount_signed`` for information only; they
    are not cash movements.
    """

    id: str
    type: LedgerEntryType
    occurred_at: datetime | None = None
    rider_id: str | None = None
    description: str
    amount: Decimal
    amount_signed: Decimal
    reference_id: str | None = None


class LedgerTotals(BaseModel):
    """Cash view of a period: payments in, expenses out."""

    ingresos: Decimal = ZERO
    gastos: Decimal = ZERO
    neto: Decimal = ZERO


class ActivityLedger(BaseModel):
    """Movements of one period, globally or for one rider."""

    period_key: str
    rider_id: str | None = None
    entries: list[LedgerEntry] = Field(default_factory=list)
    totals: LedgerTotals = Field(default_factory=LedgerTotals)


class ClientDetail(BaseModel):
    """Everything the billing page shows for one rider in one period."""

    rider_id: str
    period_key: str
    services: list[RecurringServiceResponse] = Field(default_factory=list)
    charges: list[ChargeResponse] = Field(default_factory=list)
    payments: list[PaymentResponse] = Field(default_factory=list)
    payments_total: Decimal = ZERO
    activity: ActivityLedger
