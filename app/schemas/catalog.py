"""Recurring service catalog schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class RecurringServiceCreate(BaseModel):
    """Request body for adding a recurring monthly line item."""

    rider_id: str = Field(..., min_length=1)
    horse_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=120)
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    due_day: int = Field(10, ge=1, le=28)


class RecurringServiceUpdate(BaseModel):
    """Partial update of a recurring service."""

    name: str | None = Field(None, min_length=1, max_length=120)
    amount: Decimal | None = Field(None, ge=0, decimal_places=2)
    due_day: int | None = Field(None, ge=1, le=28)


class RecurringServiceResponse(BaseModel):
    """Recurring service representation."""

    id: str
    center_id: str
    rider_id: str
    horse_id: str | None = None
    name: str
    amount: Decimal
    billing_cycle: str = "MONTHLY"
    due_day: int | None = None
    active: bool
    created_at: datetime | None = None
