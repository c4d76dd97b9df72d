"""Occupancy resolver - computes live room status from reservations.

A room is "occupied" at instant `at` when an occupying reservation
(confirmed or checked_in) references it and
    check_in <= stay_date(at) < check_out
where stay_date maps `at` onto a calendar date in the hotel's timezone
(hotels.timezone, else HOTEL_TIMEZONE).
Otherwise the persisted status stands, except that a persisted "occupied"
with no covering reservation is stale and reads as "vacant".

Read-only; store errors propagate.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from psycopg2.extensions import cursor as PgCursor

from roomledger.domain.errors import RoomNotFoundError
from roomledger.domain.reservations import OCCUPYING_STATUSES
from roomledger.domain.rooms import ROOM_STATUSES, Room
from roomledger.infra.db import txn
from roomledger.infra.repositories.hotels_repository import get_timezone
from roomledger.infra.time import stay_date


@dataclass(frozen=True)
class OccupyingReservation:
    reservation_id: str
    guest_id: str
    check_in: date
    check_out: date
    status: str

    def to_dict(self) -> dict:
        return {
            "reservation_id": self.reservation_id,
            "guest_id": self.guest_id,
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "status": self.status,
        }


@dataclass(frozen=True)
class RoomStatus:
    room: Room
    computed_status: str
    occupying_reservation: OccupyingReservation | None = None

    def to_dict(self) -> dict:
        return {
            **self.room.to_dict(),
            "computed_status": self.computed_status,
            "occupying_reservation": (
                self.occupying_reservation.to_dict() if self.occupying_reservation else None
            ),
        }


def compute_status(persisted_status: str, occupying: bool) -> str:
    """Derive the live status of a room.

    Args:
        persisted_status: Status stored on the room row.
        occupying: Whether an occupying reservation covers the instant.

    Returns:
        "occupied" if covered; "vacant" for a stale persisted "occupied";
        otherwise the persisted status.
    """
    if occupying:
        return "occupied"
    if persisted_status == "occupied":
        return "vacant"
    return persisted_status


def _query_statuses(
    cur: PgCursor,
    *,
    conditions: list[str],
    params: list,
    day: date,
) -> list[RoomStatus]:
    """Single query: rooms LEFT JOIN LATERAL their covering reservation (if any)."""
    from roomledger.infra.repositories.rooms_repository import room_columns, row_to_room

    cur.execute(
        f"""
        SELECT {room_columns("rm")},
               occ.id, occ.guest_id, occ.check_in, occ.check_out, occ.status
        FROM rooms rm
        LEFT JOIN LATERAL (
            SELECT r.id, r.guest_id, r.check_in, r.check_out, r.status
            FROM reservation_rooms rr
            JOIN reservations r ON r.id = rr.reservation_id
            WHERE rr.room_id = rm.id
              AND r.status = ANY(%s)
              AND r.check_in <= %s
              AND r.check_out > %s
            ORDER BY r.check_in DESC
            LIMIT 1
        ) occ ON true
        WHERE {" AND ".join(conditions)}
        ORDER BY rm.floor NULLS LAST, rm.room_number
        """,
        [list(OCCUPYING_STATUSES), day, day, *params],
    )

    statuses = []
    for row in cur.fetchall():
        room = row_to_room(row[:13])
        occupying = None
        if row[13] is not None:
            occupying = OccupyingReservation(
                reservation_id=str(row[13]),
                guest_id=row[14],
                check_in=row[15],
                check_out=row[16],
                status=row[17],
            )
        statuses.append(
            RoomStatus(
                room=room,
                computed_status=compute_status(room.status, occupying is not None),
                occupying_reservation=occupying,
            )
        )
    return statuses


def resolve_status(
    room_id: str,
    at: datetime | None = None,
    *,
    hotel_id: str | None = None,
) -> RoomStatus:
    """Compute the live status of one room at `at` (default: now).

    Raises:
        RoomNotFoundError: If the room does not exist (in hotel_id, if given).
    """
    conditions = ["rm.id::text = %s"]
    params: list = [room_id]
    if hotel_id is not None:
        conditions.append("rm.hotel_id = %s")
        params.append(hotel_id)

    with txn() as cur:
        if hotel_id is not None:
            tz_name = get_timezone(cur, hotel_id=hotel_id)
        else:
            tz_name = get_timezone(cur, room_id=room_id)
        statuses = _query_statuses(
            cur, conditions=conditions, params=params, day=stay_date(at, tz_name)
        )

    if not statuses:
        raise RoomNotFoundError("Room not found", room_id=room_id, hotel_id=hotel_id)
    return statuses[0]


def resolve_statuses(
    hotel_id: str,
    at: datetime | None = None,
    *,
    room_type: str | None = None,
    floor: int | None = None,
) -> list[RoomStatus]:
    """Compute live statuses for all active rooms of a hotel at `at` (default: now)."""
    conditions = ["rm.hotel_id = %s", "rm.is_active = true"]
    params: list = [hotel_id]
    if room_type:
        conditions.append("rm.room_type = %s")
        params.append(room_type)
    if floor is not None:
        conditions.append("rm.floor = %s")
        params.append(floor)

    with txn() as cur:
        tz_name = get_timezone(cur, hotel_id=hotel_id)
        return _query_statuses(
            cur, conditions=conditions, params=params, day=stay_date(at, tz_name)
        )


def summarize(statuses: list[RoomStatus]) -> dict:
    """Count rooms per computed status and derive occupancy/availability rates (%)."""
    counts = {status: 0 for status in ROOM_STATUSES}
    for item in statuses:
        counts[item.computed_status] = counts.get(item.computed_status, 0) + 1

    total = len(statuses)

    def _rate(count: int) -> float:
        return round(count / total * 100, 2) if total else 0.0

    return {
        "total_rooms": total,
        "occupied_rooms": counts["occupied"],
        "available_rooms": counts["vacant"],
        "dirty_rooms": counts["dirty"],
        "maintenance_rooms": counts["maintenance"],
        "out_of_order_rooms": counts["out_of_order"],
        "occupancy_rate": _rate(counts["occupied"]),
        "availability_rate": _rate(counts["vacant"]),
    }
