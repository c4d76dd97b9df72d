"""Rooms endpoints.

GET    /rooms?hotel_id=...               -> list            (guest+)
GET    /rooms/availability?hotel_id=...  -> available rooms (guest+)
GET    /rooms/status?hotel_id=...        -> live statuses   (staff+)
GET    /rooms/metrics?hotel_id=...       -> status summary  (staff+)
GET    /rooms/{id}?hotel_id=...          -> detail          (guest+)
POST   /rooms?hotel_id=...               -> create          (manager+)
PATCH  /rooms/{id}?hotel_id=...          -> update          (manager+)
DELETE /rooms/{id}?hotel_id=...          -> deactivate      (manager+, 204)
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from psycopg2 import errors as pg_errors
from pydantic import BaseModel, ConfigDict, Field

from roomledger.api.rbac import HotelRoleContext, require_hotel_role
from roomledger.domain.availability import find_available_rooms
from roomledger.domain.errors import RoomNotFoundError
from roomledger.domain.occupancy import resolve_status, resolve_statuses, summarize
from roomledger.infra.db import txn
from roomledger.infra.repositories import rooms_repository
from roomledger.infra.repositories.outbox_repository import emit_event
from roomledger.observability.correlation import get_correlation_id
from roomledger.observability.logging import get_logger
from roomledger.observability.redaction import safe_log_context

logger = get_logger(__name__)

router = APIRouter(prefix="/rooms", tags=["rooms"])

RoomType = Literal["single", "double", "suite", "deluxe"]
# "occupied" is derived from reservations and never set by hand
SettableRoomStatus = Literal["vacant", "dirty", "maintenance", "out_of_order"]


# ── Schemas ───────────────────────────────────────────────────────────────────


class CreateRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    room_number: str = Field(..., min_length=1, max_length=20)
    room_type: RoomType
    base_rate_cents: int = Field(..., ge=0)
    current_rate_cents: int | None = Field(None, ge=0)
    floor: int | None = None
    capacity: int = Field(2, ge=1)
    status: SettableRoomStatus = "vacant"
    maintenance_notes: str | None = None


class UpdateRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    room_number: str | None = Field(None, min_length=1, max_length=20)
    room_type: RoomType | None = None
    base_rate_cents: int | None = Field(None, ge=0)
    current_rate_cents: int | None = Field(None, ge=0)
    floor: int | None = None
    capacity: int | None = Field(None, ge=1)
    is_active: bool | None = None
    status: SettableRoomStatus | None = None
    maintenance_notes: str | None = None


# ── Read paths ────────────────────────────────────────────────────────────────


@router.get("")
def list_rooms(
    ctx: HotelRoleContext = Depends(require_hotel_role("guest")),
    room_type: RoomType | None = Query(None),
    floor: int | None = Query(None),
) -> list[dict]:
    """List active rooms of a hotel ordered by floor and room number."""
    with txn() as cur:
        rooms = rooms_repository.list_rooms(
            cur, hotel_id=ctx.hotel_id, room_type=room_type, floor=floor
        )
    return [room.to_dict() for room in rooms]


@router.get("/availability")
def check_availability(
    check_in: date = Query(...),
    check_out: date = Query(...),
    ctx: HotelRoleContext = Depends(require_hotel_role("guest")),
    room_ids: list[str] | None = Query(None),
    room_type: RoomType | None = Query(None),
    min_rate_cents: int | None = Query(None, ge=0),
    max_rate_cents: int | None = Query(None, ge=0),
) -> dict:
    """Rooms sellable for [check_in, check_out).

    Advisory only: the booking coordinator re-checks inside its transaction.
    """
    with txn() as cur:
        rooms = find_available_rooms(
            cur,
            hotel_id=ctx.hotel_id,
            check_in=check_in,
            check_out=check_out,
            room_ids=room_ids,
            room_type=room_type,
            min_rate_cents=min_rate_cents,
            max_rate_cents=max_rate_cents,
        )
    return {
        "check_in": check_in.isoformat(),
        "check_out": check_out.isoformat(),
        "nights": (check_out - check_in).days,
        "rooms": [room.to_dict() for room in rooms],
    }


@router.get("/status")
def room_statuses(
    ctx: HotelRoleContext = Depends(require_hotel_role("staff")),
    room_id: str | None = Query(None),
    room_type: RoomType | None = Query(None),
    floor: int | None = Query(None),
    at: datetime | None = Query(None, description="Instant to evaluate (default: now)"),
) -> list[dict]:
    """Live room statuses computed from occupying reservations."""
    if room_id is not None:
        return [resolve_status(room_id, at, hotel_id=ctx.hotel_id).to_dict()]
    statuses = resolve_statuses(ctx.hotel_id, at, room_type=room_type, floor=floor)
    return [item.to_dict() for item in statuses]


@router.get("/metrics")
def room_metrics(
    ctx: HotelRoleContext = Depends(require_hotel_role("staff")),
    at: datetime | None = Query(None),
) -> dict:
    """Room counts per live status with occupancy and availability rates."""
    return summarize(resolve_statuses(ctx.hotel_id, at))


@router.get("/{room_id}")
def get_room(
    room_id: str = Path(..., description="Room ID"),
    ctx: HotelRoleContext = Depends(require_hotel_role("guest")),
) -> dict:
    with txn() as cur:
        room = rooms_repository.get_room(cur, hotel_id=ctx.hotel_id, room_id=room_id)
    if room is None or not room.is_active:
        raise RoomNotFoundError("Room not found", room_id=room_id)
    return room.to_dict()


# ── Admin CRUD ────────────────────────────────────────────────────────────────


@router.post("", status_code=201)
def create_room(
    body: CreateRoomRequest,
    ctx: HotelRoleContext = Depends(require_hotel_role("manager")),
) -> dict:
    """Create a room. Fails with 409 if the room number exists in the hotel."""
    with txn() as cur:
        try:
            room = rooms_repository.insert_room(
                cur,
                hotel_id=ctx.hotel_id,
                room_number=body.room_number,
                room_type=body.room_type,
                base_rate_cents=body.base_rate_cents,
                current_rate_cents=body.current_rate_cents,
                floor=body.floor,
                capacity=body.capacity,
                status=body.status,
                maintenance_notes=body.maintenance_notes,
            )
        except pg_errors.UniqueViolation:
            raise HTTPException(status_code=409, detail="Room number already exists")

    logger.info(
        "room created",
        extra={
            "extra_fields": safe_log_context(
                correlationId=get_correlation_id(),
                hotel_id=ctx.hotel_id,
                room_id=room.id,
                room_type=room.room_type,
            )
        },
    )
    return room.to_dict()


@router.patch("/{room_id}")
def update_room(
    room_id: str = Path(..., description="Room ID"),
    body: UpdateRoomRequest = ...,
    ctx: HotelRoleContext = Depends(require_hotel_role("manager")),
) -> dict:
    """Partial update. Status changes emit a room.status_changed outbox event."""
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    correlation_id = get_correlation_id()

    with txn() as cur:
        try:
            room = rooms_repository.update_room(
                cur, hotel_id=ctx.hotel_id, room_id=room_id, fields=fields
            )
        except pg_errors.UniqueViolation:
            raise HTTPException(status_code=409, detail="Room number already exists")
        if room is None:
            raise HTTPException(status_code=404, detail="Room not found")

        if "status" in fields:
            emit_event(
                cur,
                hotel_id=ctx.hotel_id,
                event_type="room.status_changed",
                aggregate_type="room",
                aggregate_id=room.id,
                payload={
                    "room_id": room.id,
                    "status": room.status,
                    "changed_by": ctx.user.id,
                },
                correlation_id=correlation_id,
            )

    logger.info(
        "room updated",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                hotel_id=ctx.hotel_id,
                room_id=room.id,
                fields=sorted(fields),
            )
        },
    )
    return room.to_dict()


@router.delete("/{room_id}", status_code=204)
def delete_room(
    room_id: str = Path(..., description="Room ID"),
    ctx: HotelRoleContext = Depends(require_hotel_role("manager")),
) -> None:
    """Deactivate a room. Rooms are never hard-deleted (reservations reference them)."""
    with txn() as cur:
        found = rooms_repository.deactivate_room(cur, hotel_id=ctx.hotel_id, room_id=room_id)

    if not found:
        raise HTTPException(status_code=404, detail="Room not found")
