"""Worker/internal routes (APP_ROLE=worker)."""

from fastapi import APIRouter

from roomledger.api.routes import tasks_bookings

router = APIRouter()


@router.get("/tasks/health")
def tasks_health() -> dict:
    """Tasks subsystem health check."""
    return {"status": "ok", "subsystem": "tasks"}


router.include_router(tasks_bookings.router)
