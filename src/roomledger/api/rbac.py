"""RBAC (Role-Based Access Control) by hotel.

Provides:
- Role hierarchy: guest < staff < manager < admin
- _get_user_role_for_hotel(): DB lookup for a user's role on a hotel
- require_hotel_role(): FastAPI dependency for hotel-scoped authorization

Any authenticated user is a guest of every hotel; staff roles are granted
per hotel in `user_hotel_roles`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, HTTPException, Query

from roomledger.api.auth import CurrentUser, get_current_user

# Role hierarchy: lower index = less privilege
ROLE_HIERARCHY = ["guest", "staff", "manager", "admin"]


@dataclass
class HotelRoleContext:
    """Context returned by require_hotel_role."""

    user: CurrentUser
    hotel_id: str
    role: str

    @property
    def is_staff(self) -> bool:
        return _role_level(self.role) >= _role_level("staff")


def _role_level(role: str) -> int:
    """Get numeric level for role (higher = more privilege)."""
    try:
        return ROLE_HIERARCHY.index(role)
    except ValueError:
        return -1


def _hotel_exists(hotel_id: str) -> bool:
    from roomledger.infra.db import txn

    with txn() as cur:
        cur.execute("SELECT 1 FROM hotels WHERE id = %s", (hotel_id,))
        return cur.fetchone() is not None


def _get_user_role_for_hotel(user_id: str, hotel_id: str) -> str | None:
    """Lookup a user's granted role for a hotel (None if no grant)."""
    from roomledger.infra.db import txn

    with txn() as cur:
        cur.execute(
            "SELECT role FROM user_hotel_roles WHERE user_id = %s AND hotel_id = %s",
            (user_id, hotel_id),
        )
        row = cur.fetchone()
        if row is None:
            return None
        return row[0]


def require_hotel_role(min_role: str) -> Callable[..., HotelRoleContext]:
    """Create a dependency that requires a minimum role for a hotel.

    Args:
        min_role: Minimum required role (guest, staff, manager, admin).

    Returns:
        FastAPI dependency function.

    Usage:
        @router.get("/something")
        def endpoint(ctx: HotelRoleContext = Depends(require_hotel_role("staff"))):
            ...
    """
    min_level = _role_level(min_role)
    if min_level < 0:
        raise ValueError(f"Invalid role: {min_role}")

    def dependency(
        hotel_id: str = Query(..., description="Hotel ID"),
        user: CurrentUser = Depends(get_current_user),
    ) -> HotelRoleContext:
        if not _hotel_exists(hotel_id):
            raise HTTPException(status_code=404, detail="Hotel not found")

        role = _get_user_role_for_hotel(user.id, hotel_id) or "guest"

        if _role_level(role) < min_level:
            raise HTTPException(status_code=403, detail="Insufficient role")

        return HotelRoleContext(user=user, hotel_id=hotel_id, role=role)

    return dependency
