"""Reservation lifecycle transitions (staff operations).

Allowed status transitions:
    pending    -> confirmed | cancelled | no_show
    confirmed  -> checked_in | cancelled | no_show
    checked_in -> checked_out
Terminal statuses (checked_out, cancelled, no_show) release the rooms.
"""

from __future__ import annotations

from roomledger.domain.errors import (
    InvalidStateError,
    ReservationNotFoundError,
    ValidationError,
)
from roomledger.domain.reservations import PAYMENT_STATUSES, RESERVATION_STATUSES, Reservation
from roomledger.domain.side_effects import (
    on_booking_cancelled,
    on_booking_status_changed,
    on_payment_status_changed,
)
from roomledger.infra.db import txn
from roomledger.infra.repositories import reservations_repository
from roomledger.infra.repositories.outbox_repository import (
    emit_event,
    reservation_event_payload,
)
from roomledger.observability.logging import get_logger
from roomledger.observability.redaction import safe_log_context

logger = get_logger(__name__)

ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    "pending": ("confirmed", "cancelled", "no_show"),
    "confirmed": ("checked_in", "cancelled", "no_show"),
    "checked_in": ("checked_out",),
    "checked_out": (),
    "cancelled": (),
    "no_show": (),
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, ())


def update_booking_status(
    reservation_id: str,
    new_status: str,
    *,
    changed_by: str,
    hotel_id: str | None = None,
    reason: str | None = None,
    correlation_id: str | None = None,
) -> Reservation:
    """Move a reservation to new_status if the transition is allowed.

    Same-status updates are a no-op. checked_in stamps check_in_time,
    checked_out stamps check_out_time.

    Raises:
        ValidationError: Unknown status.
        ReservationNotFoundError: Reservation does not exist.
        InvalidStateError: Transition not allowed from the current status.
    """
    if new_status not in RESERVATION_STATUSES:
        raise ValidationError(
            f"Invalid status '{new_status}'", allowed=list(RESERVATION_STATUSES)
        )

    with txn() as cur:
        current = reservations_repository.get_reservation(
            cur, reservation_id, hotel_id=hotel_id, lock=True
        )
        if current is None:
            raise ReservationNotFoundError(
                "Reservation not found", reservation_id=reservation_id
            )

        if current.status == new_status:
            return current

        if not can_transition(current.status, new_status):
            raise InvalidStateError(
                f"Cannot change status from '{current.status}' to '{new_status}'",
                reservation_id=reservation_id,
                status=current.status,
            )

        updated = reservations_repository.update_status(
            cur,
            reservation_id,
            status=new_status,
            cancellation_reason=reason if new_status == "cancelled" else None,
            stamp_check_in=new_status == "checked_in",
            stamp_check_out=new_status == "checked_out",
        )

        emit_event(
            cur,
            hotel_id=updated.hotel_id,
            event_type=f"booking.{new_status}",
            aggregate_type="reservation",
            aggregate_id=reservation_id,
            payload=reservation_event_payload(
                updated, previous_status=current.status, changed_by=changed_by
            ),
            correlation_id=correlation_id,
        )

    logger.info(
        "booking status changed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                hotel_id=updated.hotel_id,
                reservation_id=reservation_id,
                previous_status=current.status,
                status=new_status,
            )
        },
    )
    if new_status == "cancelled":
        on_booking_cancelled(updated, correlation_id=correlation_id)
    else:
        on_booking_status_changed(updated, correlation_id=correlation_id)
    return updated


def update_payment_status(
    reservation_id: str,
    payment_status: str,
    *,
    changed_by: str,
    hotel_id: str | None = None,
    correlation_id: str | None = None,
) -> Reservation:
    """Record a payment status reported by the payment collaborator or staff.

    Raises:
        ValidationError: Unknown payment status.
        ReservationNotFoundError: Reservation does not exist.
    """
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(
            f"Invalid payment status '{payment_status}'", allowed=list(PAYMENT_STATUSES)
        )

    with txn() as cur:
        current = reservations_repository.get_reservation(
            cur, reservation_id, hotel_id=hotel_id, lock=True
        )
        if current is None:
            raise ReservationNotFoundError(
                "Reservation not found", reservation_id=reservation_id
            )
        if current.payment_status == payment_status:
            return current

        updated = reservations_repository.update_payment_status(
            cur, reservation_id, payment_status=payment_status
        )
        emit_event(
            cur,
            hotel_id=updated.hotel_id,
            event_type="booking.payment_status_changed",
            aggregate_type="reservation",
            aggregate_id=reservation_id,
            payload=reservation_event_payload(
                updated,
                previous_payment_status=current.payment_status,
                changed_by=changed_by,
            ),
            correlation_id=correlation_id,
        )

    logger.info(
        "booking payment status changed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                hotel_id=updated.hotel_id,
                reservation_id=reservation_id,
                payment_status=payment_status,
            )
        },
    )
    on_payment_status_changed(updated, correlation_id=correlation_id)
    return updated
