"""Cancel booking domain logic - transactional cancellation that frees inventory.

Orchestrates cancellation inside a single DB transaction:
lock -> validate -> check cutoff -> update status (releases room holds) -> emit event.
The dashboard/guest notification tasks are enqueued after commit.
"""

from __future__ import annotations

import os
from datetime import datetime, time

from roomledger.domain.errors import InvalidStateError, ReservationNotFoundError
from roomledger.domain.reservations import CANCELLABLE_STATUSES, Reservation
from roomledger.domain.side_effects import on_booking_cancelled
from roomledger.infra.db import txn
from roomledger.infra.repositories.hotels_repository import get_timezone
from roomledger.infra.repositories.outbox_repository import (
    emit_event,
    reservation_event_payload,
)
from roomledger.infra.repositories.reservations_repository import (
    get_reservation,
    update_status,
)
from roomledger.infra.time import hotel_timezone, utc_now
from roomledger.observability.logging import get_logger
from roomledger.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_CANCELLATION_REASON = "Cancelled by user"


def _cutoff_hours() -> float:
    return float(os.environ.get("CANCELLATION_CUTOFF_HOURS", "24"))


def hours_until_check_in(
    reservation: Reservation,
    now: datetime | None = None,
    tz_name: str | None = None,
) -> float:
    """Hours from `now` until the start of the check-in day in the hotel timezone."""
    now = now or utc_now()
    arrival = datetime.combine(reservation.check_in, time.min, tzinfo=hotel_timezone(tz_name))
    return (arrival - now).total_seconds() / 3600


def can_cancel(
    reservation: Reservation,
    *,
    now: datetime | None = None,
    enforce_cutoff: bool = True,
    tz_name: str | None = None,
) -> bool:
    """True if the reservation may be cancelled at `now`.

    Only pending/confirmed reservations are cancellable. With
    enforce_cutoff, check-in must be more than CANCELLATION_CUTOFF_HOURS away.
    """
    if reservation.status not in CANCELLABLE_STATUSES:
        return False
    if not enforce_cutoff:
        return True
    return hours_until_check_in(reservation, now, tz_name) > _cutoff_hours()


def cancel_booking(
    reservation_id: str,
    *,
    reason: str | None = None,
    cancelled_by: str,
    hotel_id: str | None = None,
    now: datetime | None = None,
    enforce_cutoff: bool = True,
    correlation_id: str | None = None,
) -> Reservation:
    """Cancel a pending or confirmed reservation and release its rooms.

    This function:
    1. Locks the reservation with FOR UPDATE
    2. Returns it unchanged if already cancelled (idempotent)
    3. Validates status and (unless bypassed) the cancellation cutoff
    4. Sets status 'cancelled' with the reason; room holds are released
    5. Emits a booking.cancelled outbox event

    Args:
        reservation_id: Reservation UUID.
        reason: Cancellation reason (default "Cancelled by user").
        cancelled_by: User who initiated the cancellation.
        hotel_id: If given, the reservation must belong to this hotel.
        now: Clock override for the cutoff check.
        enforce_cutoff: False lets staff cancel inside the cutoff window.
        correlation_id: Optional correlation ID for tracing.

    Returns:
        The cancelled Reservation.

    Raises:
        ReservationNotFoundError: If reservation doesn't exist.
        InvalidStateError: If status or timing forbids cancellation.
    """
    reason = (reason or "").strip() or DEFAULT_CANCELLATION_REASON

    with txn() as cur:
        reservation = get_reservation(cur, reservation_id, hotel_id=hotel_id, lock=True)
        if reservation is None:
            raise ReservationNotFoundError(
                "Reservation not found", reservation_id=reservation_id
            )

        if reservation.status == "cancelled":
            return reservation

        if reservation.status not in CANCELLABLE_STATUSES:
            raise InvalidStateError(
                f"Reservation has status '{reservation.status}' and cannot be cancelled",
                reservation_id=reservation_id,
                status=reservation.status,
            )

        tz_name = get_timezone(cur, hotel_id=reservation.hotel_id)
        if not can_cancel(
            reservation, now=now, enforce_cutoff=enforce_cutoff, tz_name=tz_name
        ):
            raise InvalidStateError(
                f"Reservations can only be cancelled more than "
                f"{_cutoff_hours():g} hours before check-in",
                reservation_id=reservation_id,
            )

        cancelled = update_status(
            cur,
            reservation_id,
            status="cancelled",
            cancellation_reason=reason,
        )

        emit_event(
            cur,
            hotel_id=cancelled.hotel_id,
            event_type="booking.cancelled",
            aggregate_type="reservation",
            aggregate_id=reservation_id,
            payload=reservation_event_payload(
                cancelled,
                previous_status=reservation.status,
                cancelled_by=cancelled_by,
            ),
            correlation_id=correlation_id,
        )

    logger.info(
        "booking cancelled",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                hotel_id=cancelled.hotel_id,
                reservation_id=reservation_id,
                previous_status=reservation.status,
                enforce_cutoff=enforce_cutoff,
            )
        },
    )
    on_booking_cancelled(cancelled, correlation_id=correlation_id)
    return cancelled
