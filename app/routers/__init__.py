"""API router package."""

from app.routers import billing, catalog, expenses

__all__ = [
    "billing",
    "catalog",
    "expenses",
]
