"""Auth routes - identity of the caller and the hotels they staff."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from roomledger.api.auth import CurrentUser, get_current_user
from roomledger.infra.db import txn

router = APIRouter(prefix="/auth", tags=["auth"])


def _list_hotel_roles(user_id: str) -> list[dict]:
    """Staff grants of a user. Hotels without a grant are guest access and not listed."""
    with txn() as cur:
        cur.execute(
            """
            SELECT hotel_id, role
            FROM user_hotel_roles
            WHERE user_id = %s
            ORDER BY hotel_id
            """,
            (user_id,),
        )
        return [{"hotel_id": row[0], "role": row[1]} for row in cur.fetchall()]


@router.get("/whoami")
def whoami(user: CurrentUser = Depends(get_current_user)) -> dict:
    """Return the user behind the bearer token (401/403 come from get_current_user)."""
    return {
        "id": user.id,
        "external_subject": user.external_subject,
        "email": user.email,
        "name": user.name,
        "hotel_roles": _list_hotel_roles(user.id),
    }
