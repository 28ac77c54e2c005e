"""Charge and payment schemas."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, Field


class ChargeStatus(StrEnum):
    """Stored and display status of a charge."""

    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    VOID = "VOID"


class GenerateChargesRequest(BaseModel):
    """Request body for generating recurring charges for one period."""

    period: str = Field(..., description="Period key, YYYY-MM")


class GenerateChargesResponse(BaseModel):
    """Outcome of one generator run."""

    period_key: str
    created: int
    skipped: int


class OneOffChargeCreate(BaseModel):
    """Request body for an ad-hoc charge outside the recurring catalog."""

    rider_id: str = Field(..., min_length=1)
    period: str
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    horse_id: str | None = None
    due_date: date | None = None


class PaymentCreate(BaseModel):
    """Request body for registering a payment."""

    rider_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    period: str
    charge_id: str | None = None
    horse_id: str | None = None
    method: str | None = None
    notes: str | None = None


class ChargeResponse(BaseModel):
    """Charge representation."""

    id: str
    center_id: str
    rider_id: str
    horse_id: str | None = None
    service_id: str | None = None
    period_key: str | None = None
    description: str | None = None
    amount: Decimal
    paid_amount: Decimal = Decimal("0")
    remaining_amount: Decimal = Decimal("0")
    status: ChargeStatus = ChargeStatus.PENDING
    display_status: ChargeStatus | None = None
    due_date: date | None = None
    issued_at: datetime | None = None


class PaymentResponse(BaseModel):
    """Payment representation."""

    id: str
    center_id: str
    rider_id: str
    horse_id: str | None = None
    charge_id: str | None = None
    period_key: str | None = None
    amount: Decimal
    paid_at: datetime | None = None
    method: str | None = None
    notes: str | None = None
