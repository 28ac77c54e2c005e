"""Read-only access to center membership: horse stays, rider labels, staff roles."""

from __future__ import annotations

from typing import Any

from app.config import settings
from app.services.common import SupabaseService, cache_get, cache_set
from supabase import Client

STAFF_ROLES = ("CENTER_OWNER", "CENTER_ADMIN")
ROLE_PRIORITY = {"CENTER_OWNER": 2, "CENTER_ADMIN": 1}
_label_cache: dict[str, tuple[float, dict[str, str]]] = {}


def normalize_center_role(role: str | None) -> str | None:
    """Map stored role spellings onto a staff role, or None for non-staff."""
    if role in ("CENTER_OWNER", "centerOwner"):
        return "CENTER_OWNER"
    if role == "CENTER_ADMIN":
        return "CENTER_ADMIN"
    return None


class MembershipService:
    """Membership and identity lookups the billing engine depends on."""

    def __init__(self, client: Client) -> None:
        self.db = SupabaseService(client)

    def active_stays(self, center_id: str) -> list[dict[str, Any]]:
        """Return active horse stays; these define who gets billed."""
        rows = self.db.select_all(
            "horse_stays",
            filters={"center_id": center_id, "active": True},
            columns="id,rider_id,horse_id,active",
        )
        return [row for row in rows if row.get("active") and row.get("rider_id")]

    def rider_labels(self, center_id: str) -> dict[str, str]:
        """Return ``user_id -> display name or email`` for the center's members."""
        cached = cache_get(_label_cache, center_id)
        if cached is not None:
            return dict(cached)

        rows = self.db.select_all(
            "center_members",
            filters={"center_id": center_id},
            columns="id,user_id,display_name,email",
        )
        labels = {
            str(row["user_id"]): row.get("display_name") or row.get("email") or str(row["user_id"])
            for row in rows
            if row.get("user_id")
        }
        cache_set(_label_cache, center_id, labels, settings.member_label_cache_ttl_seconds)
        return dict(labels)

    def staff_role(self, center_id: str, user_id: str) -> str | None:
        """Return the caller's highest staff role in the center, if any."""
        best: str | None = None

        centers = self.db.select_many(
            "centers", filters={"id": center_id}, columns="id,owner_uid,admins", limit=1
        )
        if centers:
            center = centers[0]
            if str(center.get("owner_uid") or "") == user_id:
                return "CENTER_OWNER"
            if user_id in (center.get("admins") or []):
                best = "CENTER_ADMIN"

        members = self.db.select_many(
            "center_members",
            filters={"center_id": center_id, "user_id": user_id},
            columns="role,status",
        )
        for member in members:
            if member.get("status") and member["status"] != "active":
                continue
            role = normalize_center_role(member.get("role"))
            if role and (best is None or ROLE_PRIORITY[role] > ROLE_PRIORITY[best]):
                best = role
        return best
