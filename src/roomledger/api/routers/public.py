"""Public-facing routes (APP_ROLE=public)."""

from fastapi import APIRouter

from roomledger.api.routes import auth, bookings, rbac, rooms

# Mounted for every role
router = APIRouter()

# Guest/staff API, mounted for the public role only
api_router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


api_router.include_router(auth.router)
api_router.include_router(bookings.router)
api_router.include_router(rbac.router)
api_router.include_router(rooms.router)
