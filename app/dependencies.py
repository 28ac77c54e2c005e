"""FastAPI dependency injection helpers."""

from __future__ import annotations

import threading
import time
from typing import Any

from fastapi import Depends, Header

from app.config import settings
from app.services.membership_service import MembershipService
from app.utils.errors import ForbiddenError, UnauthorizedError
from app.utils.supabase_client import get_auth_client, get_service_client
from supabase import Client

_token_cache: dict[str, tuple[float, Any]] = {}
_cache_lock = threading.Lock()


def _cache_get(key: str) -> Any | None:
    """Return a cached user when present and not expired."""
    now = time.monotonic()
    with _cache_lock:
        entry = _token_cache.get(key)
        if not entry:
            return None
        expires_at, value = entry
        if expires_at <= now:
            _token_cache.pop(key, None)
            return None
        return value


def _cache_set(key: str, value: Any) -> None:
    """Store a bounded cache value with TTL."""
    ttl_seconds = settings.auth_token_cache_ttl_seconds
    if ttl_seconds <= 0:
        return

    with _cache_lock:
        bounded_max_entries = max(1, settings.auth_token_cache_max_entries)
        if len(_token_cache) >= bounded_max_entries:
            oldest_key = next(iter(_token_cache))
            _token_cache.pop(oldest_key, None)
        _token_cache[key] = (time.monotonic() + ttl_seconds, value)


def get_authenticated_user(authorization: str = Header(None)) -> Any:
    """Extract and validate a Supabase JWT from the Authorization header.

    Raises:
        UnauthorizedError: 401 if the header is missing, malformed, or
            the token cannot be validated.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Missing authorization header")

    token = authorization.split(" ", 1)[1]
    cached_user = _cache_get(token)
    if cached_user is not None:
        return cached_user

    try:
        response = get_auth_client().auth.get_user(token)
        if not response or not response.user:
            raise UnauthorizedError("Invalid token")
        _cache_set(token, response.user)
        return response.user
    except UnauthorizedError:
        raise
    except Exception as exc:
        raise UnauthorizedError("Invalid or expired token") from exc


def get_current_user_id(user: Any) -> str:
    """Extract a stable user id string from the Supabase user object."""
    return str(user.id)


def get_db_client() -> Client:
    """Return the privileged Supabase client used by backend services."""
    return get_service_client()


def require_center_staff(
    center_id: str,
    user: Any = Depends(get_authenticated_user),
    client: Client = Depends(get_db_client),
) -> str:
    """Allow only center owners and admins through; return the caller id."""
    user_id = get_current_user_id(user)
    if MembershipService(client).staff_role(center_id, user_id) is None:
        raise ForbiddenError("Only center owners and admins can manage billing")
    return user_id
