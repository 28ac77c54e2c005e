"""Service package exports with lazy loading."""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS = {
    "AggregationService": "app.services.aggregation_service",
    "CatalogService": "app.services.catalog_service",
    "ChargeService": "app.services.charge_service",
    "ExpenseService": "app.services.expense_service",
    "GenerationService": "app.services.generation_service",
    "MembershipService": "app.services.membership_service",
    "OneOffChargeService": "app.services.one_off_charge_service",
    "PaymentService": "app.services.payment_service",
    "ReconciliationService": "app.services.reconciliation_service",
    "SupabaseService": "app.services.common",
}

__all__ = sorted(_EXPORTS.keys())


def __getattr__(name: str) -> Any:
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(_EXPORTS[name])
    return getattr(module, name)
