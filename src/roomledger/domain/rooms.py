"""Room registry domain types and lookups.

Rooms are read-mostly for the booking core: the coordinator resolves and
locks them, the availability and occupancy paths only read them. The
persisted `status` is authoritative only for out-of-service states;
"occupied" is always derived from reservations (see occupancy.py).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime

from psycopg2.extensions import cursor as PgCursor

from roomledger.domain.errors import RoomNotFoundError, ValidationError

ROOM_TYPES = ("single", "double", "suite", "deluxe")
ROOM_STATUSES = ("vacant", "occupied", "dirty", "maintenance", "out_of_order")

# Persisted statuses that take a room off the market regardless of bookings.
OUT_OF_SERVICE_STATUSES = ("maintenance", "out_of_order")


@dataclass(frozen=True)
class Room:
    """A physical room belonging to exactly one hotel."""

    id: str
    hotel_id: str
    room_number: str
    room_type: str
    base_rate_cents: int
    current_rate_cents: int
    floor: int | None
    capacity: int
    is_active: bool
    status: str
    maintenance_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data


def validate_room_type(room_type: str) -> None:
    if room_type not in ROOM_TYPES:
        raise ValidationError(f"Invalid room type '{room_type}'", allowed=list(ROOM_TYPES))


def validate_room_status(status: str) -> None:
    if status not in ROOM_STATUSES:
        raise ValidationError(f"Invalid room status '{status}'", allowed=list(ROOM_STATUSES))


def resolve_rooms(
    cur: PgCursor,
    *,
    hotel_id: str,
    room_ids: list[str],
    lock: bool = False,
) -> list[Room]:
    """Resolve requested rooms, failing if any is unknown, inactive or foreign.

    Args:
        cur: Database cursor (inside the caller's transaction when lock=True).
        hotel_id: Hotel the rooms must belong to.
        room_ids: Requested room ids (order is preserved in the result).
        lock: If True, rows are locked FOR UPDATE in id order so that two
              bookings touching the same room serialise on that row.

    Returns:
        Rooms in the same order as room_ids.

    Raises:
        RoomNotFoundError: If any id does not resolve to an active room of hotel_id.
    """
    from roomledger.infra.repositories.rooms_repository import fetch_rooms

    rooms = fetch_rooms(cur, hotel_id=hotel_id, room_ids=room_ids, lock=lock)
    by_id = {room.id: room for room in rooms if room.is_active}

    missing = [room_id for room_id in room_ids if room_id not in by_id]
    if missing:
        raise RoomNotFoundError(
            "One or more rooms not found or not available",
            hotel_id=hotel_id,
            missing_room_ids=missing,
        )

    return [by_id[room_id] for room_id in room_ids]
