"""Availability checking for physical rooms.

Overlap formula:  (existing.check_in < requested.check_out) AND (existing.check_out > requested.check_in)
Strict inequality makes [check_in, check_out) half-open: a check-out on day
N and a new check-in on day N for the same room do not collide.

Only active statuses (pending, confirmed, checked_in) hold inventory.

These functions are pure queries: they run on whatever transaction the
cursor belongs to, so the same code serves the browse/search pre-check and
the in-transaction re-check of the booking coordinator. Store errors
propagate unchanged.
"""

from __future__ import annotations

from datetime import date

from psycopg2.extensions import cursor as PgCursor

from roomledger.domain.errors import ValidationError
from roomledger.domain.reservations import ACTIVE_STATUSES
from roomledger.domain.rooms import OUT_OF_SERVICE_STATUSES, Room, validate_room_type
from roomledger.observability.logging import get_logger
from roomledger.observability.redaction import safe_log_context

logger = get_logger(__name__)


def validate_interval(check_in: date, check_out: date) -> None:
    """Reject empty or inverted stay intervals."""
    if check_out <= check_in:
        raise ValidationError(
            "Check-out date must be after check-in date",
            check_in=check_in.isoformat(),
            check_out=check_out.isoformat(),
        )


def find_overlapping(
    cur: PgCursor,
    *,
    room_ids: list[str],
    check_in: date,
    check_out: date,
    exclude_reservation_id: str | None = None,
    hotel_id: str | None = None,
) -> list[str]:
    """Return ids of active reservations that overlap the interval on any of the rooms.

    Args:
        cur: Database cursor.
        room_ids: Physical room ids (non-empty).
        check_in: Requested check-in date (inclusive).
        check_out: Requested check-out date (exclusive / departure day).
        exclude_reservation_id: Reservation to ignore (for date edits).
        hotel_id: Optional hotel id (logging context only).

    Returns:
        Conflicting reservation ids, sorted; empty when the rooms are free.

    Raises:
        ValidationError: If room_ids is empty or check_out <= check_in.
    """
    if not room_ids:
        raise ValidationError("At least one room is required")
    validate_interval(check_in, check_out)

    conditions = [
        "rr.room_id::text = ANY(%s)",
        "r.status = ANY(%s)",
        "r.check_in < %s",  # existing check_in < requested check_out
        "r.check_out > %s",  # existing check_out > requested check_in
    ]
    params: list = [list(room_ids), list(ACTIVE_STATUSES), check_out, check_in]

    if exclude_reservation_id is not None:
        conditions.append("r.id::text != %s")
        params.append(exclude_reservation_id)

    cur.execute(
        f"""
        SELECT DISTINCT r.id
        FROM reservations r
        JOIN reservation_rooms rr ON rr.reservation_id = r.id
        WHERE {" AND ".join(conditions)}
        ORDER BY r.id
        """,
        params,
    )
    conflicting = [str(row[0]) for row in cur.fetchall()]

    if conflicting:
        logger.warning(
            "room overlap detected",
            extra={
                "extra_fields": safe_log_context(
                    hotel_id=hotel_id,
                    room_count=len(room_ids),
                    requested_check_in=check_in,
                    requested_check_out=check_out,
                    conflicting_count=len(conflicting),
                    first_conflicting_reservation_id=conflicting[0],
                )
            },
        )

    return conflicting


def has_overlap(
    cur: PgCursor,
    *,
    room_ids: list[str],
    check_in: date,
    check_out: date,
    exclude_reservation_id: str | None = None,
    hotel_id: str | None = None,
) -> bool:
    """True if any active reservation blocks one of the rooms in [check_in, check_out).

    All arguments are forwarded to find_overlapping.
    """
    return bool(
        find_overlapping(
            cur,
            room_ids=room_ids,
            check_in=check_in,
            check_out=check_out,
            exclude_reservation_id=exclude_reservation_id,
            hotel_id=hotel_id,
        )
    )


def find_available_rooms(
    cur: PgCursor,
    *,
    hotel_id: str,
    check_in: date,
    check_out: date,
    room_ids: list[str] | None = None,
    room_type: str | None = None,
    min_rate_cents: int | None = None,
    max_rate_cents: int | None = None,
) -> list[Room]:
    """List rooms of a hotel that can be sold for [check_in, check_out).

    A room is available when it is active, not out of service
    (maintenance / out_of_order) and not referenced by an overlapping
    active reservation. A persisted 'occupied' or 'dirty' status does not
    exclude a room: occupancy is derived from reservations, and dirty rooms
    are cleaned before arrival.

    Returns:
        Available rooms ordered by room number.
    """
    from roomledger.infra.repositories.rooms_repository import room_columns, row_to_room

    validate_interval(check_in, check_out)
    if room_type is not None:
        validate_room_type(room_type)

    conditions = [
        "rm.hotel_id = %s",
        "rm.is_active = true",
        "rm.status <> ALL(%s)",
    ]
    params: list = [hotel_id, list(OUT_OF_SERVICE_STATUSES)]

    if room_ids:
        conditions.append("rm.id::text = ANY(%s)")
        params.append(list(room_ids))
    if room_type:
        conditions.append("rm.room_type = %s")
        params.append(room_type)
    if min_rate_cents is not None:
        conditions.append("rm.current_rate_cents >= %s")
        params.append(min_rate_cents)
    if max_rate_cents is not None:
        conditions.append("rm.current_rate_cents <= %s")
        params.append(max_rate_cents)

    conditions.append(
        """NOT EXISTS (
            SELECT 1
            FROM reservation_rooms rr
            JOIN reservations r ON r.id = rr.reservation_id
            WHERE rr.room_id = rm.id
              AND r.status = ANY(%s)
              AND r.check_in < %s
              AND r.check_out > %s
        )"""
    )
    params.extend([list(ACTIVE_STATUSES), check_out, check_in])

    cur.execute(
        f"""
        SELECT {room_columns("rm")}
        FROM rooms rm
        WHERE {" AND ".join(conditions)}
        ORDER BY rm.room_number
        """,
        params,
    )
    return [row_to_room(row) for row in cur.fetchall()]
