"""Shared Supabase data access helpers."""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict
from typing import Any

import httpx
from postgrest import APIError

from app.config import settings
from app.utils.errors import ConflictError, NotFoundError, StoreUnavailableError
from supabase import Client

UNIQUE_VIOLATION = "23505"
logger = logging.getLogger(__name__)
_cache_lock = threading.Lock()


def cache_get(cache: dict[Any, tuple[float, Any]], key: Any) -> Any | None:
    """Return a cached value when present and not expired."""
    now = time.monotonic()
    with _cache_lock:
        entry = cache.get(key)
        if not entry:
            return None
        expires_at, value = entry
        if expires_at <= now:
            cache.pop(key, None)
            return None
        return value


def cache_set(
    cache: dict[Any, tuple[float, Any]],
    key: Any,
    value: Any,
    ttl_seconds: int,
) -> None:
    """Store a bounded cache value with TTL."""
    if ttl_seconds <= 0:
        return

    with _cache_lock:
        max_entries = max(100, settings.data_cache_max_entries)
        if len(cache) >= max_entries:
            oldest_key = next(iter(cache))
            cache.pop(oldest_key, None)
        cache[key] = (time.monotonic() + ttl_seconds, value)


class SupabaseService:
    """Thin helper wrapper around a Supabase client."""

    def __init__(self, client: Client) -> None:
        self.client = client

    def execute(self, query, default: Any = None) -> Any:
        """Execute a Supabase query and normalize store errors."""
        started = time.perf_counter()
        try:
            response = query.execute()
        except APIError as exc:
            message = str(getattr(exc, "message", None) or "Database request failed")
            if str(getattr(exc, "code", "")) == UNIQUE_VIOLATION:
                raise ConflictError(message) from exc
            raise StoreUnavailableError(message) from exc
        except httpx.HTTPError as exc:
            raise StoreUnavailableError("Billing store unreachable") from exc

        elapsed_ms = (time.perf_counter() - started) * 1000
        threshold_ms = settings.slow_query_log_threshold_ms
        if threshold_ms > 0 and elapsed_ms >= threshold_ms:
            logger.warning("Slow Supabase query %.1fms", elapsed_ms)
        data = response.data
        return default if data is None and default is not None else data

    def select_one(
        self,
        table: str,
        filters: dict[str, Any],
        columns: str = "*",
        not_found_label: str | None = None,
    ) -> dict[str, Any]:
        """Select a single row and raise NotFoundError when missing."""
        query = self.client.table(table).select(columns)
        for key, value in filters.items():
            query = query.eq(key, value)
        rows = self.execute(query.limit(1), default=[])
        if not rows:
            label = not_found_label or table
            raise NotFoundError(label)
        return rows[0]

    def select_many(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        columns: str = "*",
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select many rows from a table with optional filters and paging."""
        query = self.client.table(table).select(columns)
        if filters:
            for key, value in filters.items():
                query = query.eq(key, value)
        if order_by:
            query = query.order(order_by, desc=descending)
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        return self.execute(query, default=[])

    def select_all(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        columns: str = "*",
        order_by: str = "id",
    ) -> list[dict[str, Any]]:
        """Select every matching row, paging past the server row cap.

        Pages are ordered by ``order_by`` so consecutive ranges neither skip
        nor repeat rows. Stops at the first short page.
        """
        page_size = max(1, settings.supabase_page_size)
        rows: list[dict[str, Any]] = []
        start = 0
        while True:
            query = self.client.table(table).select(columns)
            for key, value in (filters or {}).items():
                query = query.eq(key, value)
            page = self.execute(
                query.order(order_by).range(start, start + page_size - 1), default=[]
            )
            rows.extend(page)
            if len(page) < page_size:
                return rows
            start += page_size

    def insert_one(self, table: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return the created object."""
        rows = self.execute(self.client.table(table).insert(payload), default=[])
        if not rows:
            raise StoreUnavailableError(f"Failed to insert into {table}")
        return rows[0]

    def insert_missing(
        self,
        table: str,
        payloads: list[dict[str, Any]],
        on_conflict: str,
    ) -> list[dict[str, Any]]:
        """Insert rows in one batch, skipping those that hit ``on_conflict``.

        Only rows actually written are returned.
        """
        if not payloads:
            return []
        return self.execute(
            self.client.table(table).upsert(
                payloads,
                on_conflict=on_conflict,
                ignore_duplicates=True,
            ),
            default=[],
        )

    def update(
        self,
        table: str,
        filters: dict[str, Any],
        payload: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Update rows by equality filters and return the updated rows."""
        query = self.client.table(table).update(payload)
        for key, value in filters.items():
            query = query.eq(key, value)
        return self.execute(query, default=[])

    def delete(self, table: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Delete rows by equality filters and return removed rows."""
        query = self.client.table(table).delete()
        for key, value in filters.items():
            query = query.eq(key, value)
        return self.execute(query, default=[])


def clean_text(value: str | None) -> str | None:
    """Strip a free-text field, mapping blank input to None."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def group_by(rows: list[dict[str, Any]], key: str) -> dict[str, list[dict[str, Any]]]:
    """Group rows by an arbitrary key, skipping rows without it."""
    grouped: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for row in rows:
        value = row.get(key)
        if value:
            grouped[str(value)].append(row)
    return grouped
