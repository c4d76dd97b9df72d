"""Reservations repository - persistence for reservation records.

Uses raw SQL with psycopg2 (no ORM).

A reservation is stored as one `reservations` row plus one
`reservation_rooms` row per room. The room rows carry a copy of the stay
dates and a `holds_inventory` flag so the database can enforce the
no-overlap invariant with an exclusion constraint; the flag must be kept in
step with the reservation status (see update_status).
"""

from __future__ import annotations

from datetime import date

from psycopg2.extensions import cursor as PgCursor
from psycopg2.extras import Json

from roomledger.domain.reservations import (
    ACTIVE_STATUSES,
    GuestDetails,
    Reservation,
    ReservedRoom,
)

RESERVATION_COLUMNS = """
    id, hotel_id, guest_id, created_by, idempotency_key, request_hash,
    check_in, check_out, nights, status, payment_status, total_cents,
    currency, source, guest_details, cancellation_reason,
    check_in_time, check_out_time, created_at, updated_at
"""


def _row_to_reservation(row: tuple, rooms: list[ReservedRoom]) -> Reservation:
    return Reservation(
        id=str(row[0]),
        hotel_id=row[1],
        guest_id=row[2],
        created_by=row[3],
        idempotency_key=row[4],
        request_hash=row[5],
        check_in=row[6],
        check_out=row[7],
        nights=row[8],
        status=row[9],
        payment_status=row[10],
        total_cents=row[11],
        currency=row[12],
        source=row[13],
        guest_details=GuestDetails.from_dict(row[14]),
        cancellation_reason=row[15],
        check_in_time=row[16],
        check_out_time=row[17],
        created_at=row[18],
        updated_at=row[19],
        rooms=tuple(rooms),
    )


def _fetch_rooms(cur: PgCursor, reservation_id: str) -> list[ReservedRoom]:
    cur.execute(
        """
        SELECT room_id, rate_cents
        FROM reservation_rooms
        WHERE reservation_id = %s
        ORDER BY position
        """,
        (reservation_id,),
    )
    return [ReservedRoom(room_id=str(r[0]), rate_cents=r[1]) for r in cur.fetchall()]


def _fetch_rooms_by_reservation(
    cur: PgCursor, reservation_ids: list[str]
) -> dict[str, list[ReservedRoom]]:
    """Room rows of many reservations in one query, keyed by reservation id."""
    rooms: dict[str, list[ReservedRoom]] = {rid: [] for rid in reservation_ids}
    if not reservation_ids:
        return rooms
    cur.execute(
        """
        SELECT reservation_id, room_id, rate_cents
        FROM reservation_rooms
        WHERE reservation_id::text = ANY(%s)
        ORDER BY reservation_id, position
        """,
        (reservation_ids,),
    )
    for r in cur.fetchall():
        rooms.setdefault(str(r[0]), []).append(
            ReservedRoom(room_id=str(r[1]), rate_cents=r[2])
        )
    return rooms


def lock_idempotency_key(cur: PgCursor, idempotency_key: str) -> None:
    """Serialize transactions carrying the same idempotency key.

    Transaction-scoped advisory lock: a second request with the key waits
    here until the first commits or rolls back, then sees its row.
    """
    cur.execute("SELECT pg_advisory_xact_lock(hashtext(%s))", (idempotency_key,))


def find_by_idempotency_key(cur: PgCursor, idempotency_key: str) -> Reservation | None:
    """Look up a reservation by its globally unique idempotency key."""
    cur.execute(
        f"""
        SELECT {RESERVATION_COLUMNS}
        FROM reservations
        WHERE idempotency_key = %s
        """,
        (idempotency_key,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return _row_to_reservation(row, _fetch_rooms(cur, str(row[0])))


def get_reservation(
    cur: PgCursor,
    reservation_id: str,
    *,
    hotel_id: str | None = None,
    lock: bool = False,
) -> Reservation | None:
    """Get a reservation by id.

    Args:
        cur: Database cursor.
        reservation_id: Reservation UUID.
        hotel_id: If given, the reservation must belong to this hotel.
        lock: If True, lock the reservation row FOR UPDATE.

    Returns:
        Reservation or None if not found.
    """
    conditions = ["id::text = %s"]
    params: list = [reservation_id]
    if hotel_id is not None:
        conditions.append("hotel_id = %s")
        params.append(hotel_id)

    suffix = " FOR UPDATE" if lock else ""
    cur.execute(
        f"""
        SELECT {RESERVATION_COLUMNS}
        FROM reservations
        WHERE {" AND ".join(conditions)}
        {suffix}
        """,
        params,
    )
    row = cur.fetchone()
    if row is None:
        return None
    return _row_to_reservation(row, _fetch_rooms(cur, str(row[0])))


def insert_reservation(
    cur: PgCursor,
    *,
    hotel_id: str,
    guest_id: str,
    created_by: str,
    idempotency_key: str,
    request_hash: str,
    rooms: list[ReservedRoom],
    check_in: date,
    check_out: date,
    nights: int,
    status: str,
    payment_status: str,
    total_cents: int,
    currency: str,
    source: str,
    guest_details: GuestDetails,
) -> Reservation:
    """Insert a reservation and its room rows.

    Constraint violations are not handled here; the booking coordinator
    decides whether they are retryable:
    - UniqueViolation on idempotency_key (racing duplicate request)
    - ExclusionViolation on reservation_rooms (racing overlapping booking)

    Returns:
        The stored Reservation.
    """
    cur.execute(
        f"""
        INSERT INTO reservations (
            hotel_id, guest_id, created_by, idempotency_key, request_hash,
            check_in, check_out, nights, status, payment_status,
            total_cents, currency, source, guest_details
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING {RESERVATION_COLUMNS}
        """,
        (
            hotel_id,
            guest_id,
            created_by,
            idempotency_key,
            request_hash,
            check_in,
            check_out,
            nights,
            status,
            payment_status,
            total_cents,
            currency,
            source,
            Json(guest_details.to_dict()),
        ),
    )
    row = cur.fetchone()
    reservation_id = str(row[0])

    holds_inventory = status in ACTIVE_STATUSES
    for position, room in enumerate(rooms):
        cur.execute(
            """
            INSERT INTO reservation_rooms (
                reservation_id, position, room_id, hotel_id, rate_cents,
                check_in, check_out, holds_inventory
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                reservation_id,
                position,
                room.room_id,
                hotel_id,
                room.rate_cents,
                check_in,
                check_out,
                holds_inventory,
            ),
        )

    return _row_to_reservation(row, list(rooms))


def update_status(
    cur: PgCursor,
    reservation_id: str,
    *,
    status: str,
    cancellation_reason: str | None = None,
    stamp_check_in: bool = False,
    stamp_check_out: bool = False,
) -> Reservation:
    """Set reservation status and keep reservation_rooms.holds_inventory in step.

    Args:
        cur: Database cursor (within the transaction that locked the row).
        reservation_id: Reservation UUID.
        status: New lifecycle status.
        cancellation_reason: Stored when status is 'cancelled'.
        stamp_check_in: Set check_in_time = now().
        stamp_check_out: Set check_out_time = now().

    Returns:
        The updated Reservation.
    """
    cur.execute(
        f"""
        UPDATE reservations
        SET status = %s,
            cancellation_reason = COALESCE(%s, cancellation_reason),
            check_in_time = CASE WHEN %s THEN now() ELSE check_in_time END,
            check_out_time = CASE WHEN %s THEN now() ELSE check_out_time END,
            updated_at = now()
        WHERE id::text = %s
        RETURNING {RESERVATION_COLUMNS}
        """,
        (status, cancellation_reason, stamp_check_in, stamp_check_out, reservation_id),
    )
    row = cur.fetchone()

    cur.execute(
        """
        UPDATE reservation_rooms
        SET holds_inventory = %s
        WHERE reservation_id::text = %s
        """,
        (status in ACTIVE_STATUSES, reservation_id),
    )

    return _row_to_reservation(row, _fetch_rooms(cur, reservation_id))


def update_payment_status(
    cur: PgCursor,
    reservation_id: str,
    *,
    payment_status: str,
) -> Reservation:
    """Set reservation payment status."""
    cur.execute(
        f"""
        UPDATE reservations
        SET payment_status = %s, updated_at = now()
        WHERE id::text = %s
        RETURNING {RESERVATION_COLUMNS}
        """,
        (payment_status, reservation_id),
    )
    row = cur.fetchone()
    return _row_to_reservation(row, _fetch_rooms(cur, reservation_id))


def list_reservations(
    cur: PgCursor,
    *,
    hotel_id: str,
    guest_id: str | None = None,
    status: str | None = None,
    room_id: str | None = None,
    check_in_from: date | None = None,
    check_in_to: date | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Reservation], int]:
    """List reservations of a hotel with optional filters, newest first.

    Returns:
        Tuple of (page of reservations, total matching count).
    """
    conditions = ["r.hotel_id = %s"]
    params: list = [hotel_id]

    if guest_id:
        conditions.append("r.guest_id = %s")
        params.append(guest_id)
    if status:
        conditions.append("r.status = %s")
        params.append(status)
    if room_id:
        conditions.append(
            "EXISTS (SELECT 1 FROM reservation_rooms rr"
            " WHERE rr.reservation_id = r.id AND rr.room_id::text = %s)"
        )
        params.append(room_id)
    if check_in_from:
        conditions.append("r.check_in >= %s")
        params.append(check_in_from)
    if check_in_to:
        conditions.append("r.check_in <= %s")
        params.append(check_in_to)

    where_clause = " AND ".join(conditions)

    cur.execute(f"SELECT count(*) FROM reservations r WHERE {where_clause}", params)
    total = cur.fetchone()[0]

    columns = ", ".join(f"r.{c.strip()}" for c in RESERVATION_COLUMNS.split(","))
    cur.execute(
        f"""
        SELECT {columns}
        FROM reservations r
        WHERE {where_clause}
        ORDER BY r.created_at DESC
        LIMIT %s OFFSET %s
        """,
        [*params, limit, offset],
    )
    rows = cur.fetchall()

    rooms = _fetch_rooms_by_reservation(cur, [str(row[0]) for row in rows])
    items = [_row_to_reservation(row, rooms[str(row[0])]) for row in rows]
    return items, total
