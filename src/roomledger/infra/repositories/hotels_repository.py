"""Hotels repository - per-hotel settings read by the booking core."""

from __future__ import annotations

from psycopg2.extensions import cursor as PgCursor


def get_timezone(
    cur: PgCursor,
    *,
    hotel_id: str | None = None,
    room_id: str | None = None,
) -> str | None:
    """Return the hotel's IANA timezone, looked up by hotel or by one of its rooms.

    Returns None when the hotel has no timezone of its own (or is unknown);
    callers then fall back to HOTEL_TIMEZONE.
    """
    if hotel_id is not None:
        cur.execute("SELECT timezone FROM hotels WHERE id = %s", (hotel_id,))
    elif room_id is not None:
        cur.execute(
            """
            SELECT h.timezone
            FROM rooms rm
            JOIN hotels h ON h.id = rm.hotel_id
            WHERE rm.id::text = %s
            """,
            (room_id,),
        )
    else:
        raise ValueError("hotel_id or room_id is required")

    row = cur.fetchone()
    if row is None:
        return None
    return row[0]
