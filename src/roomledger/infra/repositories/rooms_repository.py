"""Rooms repository - persistence for the room registry.

Uses raw SQL with psycopg2 (no ORM).
"""

from __future__ import annotations

from psycopg2.extensions import cursor as PgCursor

from roomledger.domain.rooms import Room

ROOM_COLUMNS = """
    id, hotel_id, room_number, room_type, base_rate_cents, current_rate_cents,
    floor, capacity, is_active, status, maintenance_notes, created_at, updated_at
"""

# Columns an admin may change through update_room (whitelist for dynamic SET).
UPDATABLE_COLUMNS = (
    "room_number",
    "room_type",
    "base_rate_cents",
    "current_rate_cents",
    "floor",
    "capacity",
    "is_active",
    "status",
    "maintenance_notes",
)


def room_columns(alias: str) -> str:
    """ROOM_COLUMNS qualified with a table alias, for joins."""
    return ", ".join(f"{alias}.{c.strip()}" for c in ROOM_COLUMNS.split(","))


def row_to_room(row: tuple) -> Room:
    """Map a ROOM_COLUMNS row onto a Room."""
    return Room(
        id=str(row[0]),
        hotel_id=row[1],
        room_number=row[2],
        room_type=row[3],
        base_rate_cents=row[4],
        current_rate_cents=row[5],
        floor=row[6],
        capacity=row[7],
        is_active=row[8],
        status=row[9],
        maintenance_notes=row[10],
        created_at=row[11],
        updated_at=row[12],
    )


def fetch_rooms(
    cur: PgCursor,
    *,
    hotel_id: str,
    room_ids: list[str],
    lock: bool = False,
) -> list[Room]:
    """Fetch rooms of a hotel by id (active or not).

    Args:
        cur: Database cursor.
        hotel_id: Hotel identifier.
        room_ids: Room ids to fetch.
        lock: If True, lock the rows FOR UPDATE (ordered by id for a
              deterministic lock order across concurrent bookings).

    Returns:
        Rooms found, ordered by id. Unknown ids are simply absent.
    """
    suffix = " FOR UPDATE" if lock else ""
    cur.execute(
        f"""
        SELECT {ROOM_COLUMNS}
        FROM rooms
        WHERE hotel_id = %s AND id::text = ANY(%s)
        ORDER BY id
        {suffix}
        """,
        (hotel_id, list(room_ids)),
    )
    return [row_to_room(row) for row in cur.fetchall()]


def get_room(cur: PgCursor, *, hotel_id: str, room_id: str) -> Room | None:
    """Get a single room of a hotel (active or not)."""
    cur.execute(
        f"""
        SELECT {ROOM_COLUMNS}
        FROM rooms
        WHERE hotel_id = %s AND id::text = %s
        """,
        (hotel_id, room_id),
    )
    row = cur.fetchone()
    return row_to_room(row) if row else None


def list_rooms(
    cur: PgCursor,
    *,
    hotel_id: str,
    room_type: str | None = None,
    floor: int | None = None,
    include_inactive: bool = False,
) -> list[Room]:
    """List rooms of a hotel ordered by floor and room number."""
    conditions = ["hotel_id = %s"]
    params: list = [hotel_id]

    if not include_inactive:
        conditions.append("is_active = true")
    if room_type:
        conditions.append("room_type = %s")
        params.append(room_type)
    if floor is not None:
        conditions.append("floor = %s")
        params.append(floor)

    cur.execute(
        f"""
        SELECT {ROOM_COLUMNS}
        FROM rooms
        WHERE {" AND ".join(conditions)}
        ORDER BY floor NULLS LAST, room_number
        """,
        params,
    )
    return [row_to_room(row) for row in cur.fetchall()]


def insert_room(
    cur: PgCursor,
    *,
    hotel_id: str,
    room_number: str,
    room_type: str,
    base_rate_cents: int,
    current_rate_cents: int | None,
    floor: int | None,
    capacity: int,
    status: str,
    maintenance_notes: str | None,
) -> Room:
    """Insert a room. current_rate_cents defaults to the base rate.

    Raises:
        psycopg2.errors.UniqueViolation: If room_number already exists in the hotel.
    """
    cur.execute(
        f"""
        INSERT INTO rooms (
            hotel_id, room_number, room_type, base_rate_cents,
            current_rate_cents, floor, capacity, status, maintenance_notes
        )
        VALUES (%s, %s, %s, %s, COALESCE(%s, %s), %s, %s, %s, %s)
        RETURNING {ROOM_COLUMNS}
        """,
        (
            hotel_id,
            room_number,
            room_type,
            base_rate_cents,
            current_rate_cents,
            base_rate_cents,
            floor,
            capacity,
            status,
            maintenance_notes,
        ),
    )
    return row_to_room(cur.fetchone())


def update_room(
    cur: PgCursor,
    *,
    hotel_id: str,
    room_id: str,
    fields: dict,
) -> Room | None:
    """Partially update a room. Only UPDATABLE_COLUMNS are accepted.

    Returns:
        Updated Room, or None if the room does not exist.

    Raises:
        ValueError: If fields is empty or names a non-updatable column.
    """
    if not fields:
        raise ValueError("No fields to update")
    unknown = set(fields) - set(UPDATABLE_COLUMNS)
    if unknown:
        raise ValueError(f"Non-updatable columns: {sorted(unknown)}")

    sets = ["updated_at = now()"]
    params: list = []
    for column in UPDATABLE_COLUMNS:
        if column in fields:
            sets.append(f"{column} = %s")
            params.append(fields[column])
    params.extend([hotel_id, room_id])

    cur.execute(
        f"""
        UPDATE rooms
        SET {", ".join(sets)}
        WHERE hotel_id = %s AND id::text = %s
        RETURNING {ROOM_COLUMNS}
        """,  # noqa: S608 - SET clause built from whitelisted column names only
        params,
    )
    row = cur.fetchone()
    return row_to_room(row) if row else None


def deactivate_room(cur: PgCursor, *, hotel_id: str, room_id: str) -> bool:
    """Soft-delete a room (is_active = false). Rooms are never hard-deleted.

    Returns:
        True if the room exists, False otherwise.
    """
    cur.execute(
        """
        UPDATE rooms
        SET is_active = false, updated_at = now()
        WHERE hotel_id = %s AND id::text = %s
        RETURNING id
        """,
        (hotel_id, room_id),
    )
    return cur.fetchone() is not None
