"""Operating expense schemas."""

import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

EXPENSE_CATEGORIES = (
    "Piensos y forrajes",
    "Material / suministros",
    "Sueldos",
    "Mantenimiento / arreglos",
    "Agua",
    "Luz",
    "Veterinario (centro)",
    "Herrador (centro)",
    "Seguros",
    "Impuestos / tasas",
    "Marketing",
    "Otros",
)


class ExpenseCreate(BaseModel):
    """Request body for recording an operating expense."""

    category: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    date: datetime.date | None = None
    method: str | None = None
    notes: str | None = None


class ExpenseUpdate(BaseModel):
    """Partial update of an expense."""

    category: str | None = Field(None, min_length=1)
    description: str | None = Field(None, min_length=1)
    amount: Decimal | None = Field(None, gt=0, decimal_places=2)
    date: datetime.date | None = None
    method: str | None = None
    notes: str | None = None


class ExpenseResponse(BaseModel):
    """Expense representation."""

    id: str
    center_id: str
    category: str
    description: str
    amount: Decimal
    date: datetime.date | None = None
    method: str | None = None
    notes: str | None = None
