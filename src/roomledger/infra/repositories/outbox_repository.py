"""Outbox repository - durable event records written in the business transaction.

Uses raw SQL with psycopg2 (no ORM). An event row commits or rolls back
together with the reservation change it describes; delivery to downstream
collaborators happens after commit (see domain/side_effects.py).
"""

from psycopg2.extensions import cursor as PgCursor
from psycopg2.extras import Json


def emit_event(
    cur: PgCursor,
    *,
    hotel_id: str,
    event_type: str,
    aggregate_type: str,
    aggregate_id: str,
    payload: dict | None = None,
    correlation_id: str | None = None,
) -> int:
    """Emit an event to the outbox.

    Args:
        cur: Database cursor (within transaction).
        hotel_id: Hotel identifier.
        event_type: Event type (e.g., booking.created).
        aggregate_type: Aggregate type (e.g., reservation).
        aggregate_id: Aggregate ID (e.g., reservation UUID).
        payload: Optional JSON payload (no PII).
        correlation_id: Optional correlation ID for tracing.

    Returns:
        The generated event ID.
    """
    cur.execute(
        """
        INSERT INTO outbox_events (
            hotel_id, event_type, aggregate_type,
            aggregate_id, payload, correlation_id
        )
        VALUES (%s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        (
            hotel_id,
            event_type,
            aggregate_type,
            aggregate_id,
            Json(payload) if payload else None,
            correlation_id or None,
        ),
    )
    return cur.fetchone()[0]


def reservation_event_payload(reservation, **extra) -> dict:
    """Build a PII-free payload describing a reservation."""
    payload = {
        "reservation_id": reservation.id,
        "guest_id": reservation.guest_id,
        "room_ids": reservation.room_ids,
        "check_in": reservation.check_in.isoformat(),
        "check_out": reservation.check_out.isoformat(),
        "nights": reservation.nights,
        "status": reservation.status,
        "payment_status": reservation.payment_status,
        "total_cents": reservation.total_cents,
        "currency": reservation.currency,
    }
    payload.update(extra)
    return payload
