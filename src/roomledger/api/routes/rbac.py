"""RBAC routes - lets a client discover its role on a hotel."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from roomledger.api.rbac import HotelRoleContext, _role_level, require_hotel_role

router = APIRouter(prefix="/rbac", tags=["rbac"])


@router.get("/check")
def check_access(
    min_role: str = Query("guest", description="Minimum role to check"),
    ctx: HotelRoleContext = Depends(require_hotel_role("guest")),
) -> dict:
    """Return the caller's role on the hotel, or 403 if it is below min_role."""
    required_level = _role_level(min_role)
    if required_level < 0:
        raise HTTPException(status_code=400, detail="Invalid role")

    if _role_level(ctx.role) < required_level:
        raise HTTPException(status_code=403, detail="Insufficient role")

    return {
        "hotel_id": ctx.hotel_id,
        "role": ctx.role,
        "user_id": ctx.user.id,
    }
