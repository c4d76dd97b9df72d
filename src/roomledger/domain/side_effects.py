"""Post-commit side effects for reservation changes.

Downstream collaborators (invoicing, guest notifications, dashboard
refresh, payment notices) are reached through worker tasks enqueued only
after the business transaction has committed. Enqueue failures are logged
and swallowed: a committed booking is never reported as failed because a
notification could not be scheduled. The outbox row written inside the
transaction remains the durable record.

Task ids are deterministic so re-enqueueing the same effect dedupes in the
tasks backend.
"""

from __future__ import annotations

from google.api_core.exceptions import GoogleAPICallError
from google.auth.exceptions import GoogleAuthError
from requests import RequestException

from roomledger.domain.reservations import Reservation
from roomledger.observability.logging import get_logger
from roomledger.observability.redaction import safe_log_context
from roomledger.tasks.client import TasksClient, get_tasks_client

logger = get_logger(__name__)

# (task suffix, worker path) per effect
BOOKING_CREATED_TASKS = (
    ("invoice", "/tasks/bookings/create-invoice"),
    ("confirmation", "/tasks/bookings/send-confirmation"),
    ("dashboard", "/tasks/dashboard/refresh"),
)
BOOKING_CANCELLED_TASKS = (
    ("notification", "/tasks/bookings/send-cancellation"),
    ("dashboard", "/tasks/dashboard/refresh"),
)
BOOKING_STATUS_TASKS = (("dashboard", "/tasks/dashboard/refresh"),)
PAYMENT_STATUS_TASKS = (("notification", "/tasks/payments/send-notification"),)

# Missing credentials surface as GoogleAuthError (e.g. DefaultCredentialsError)
_ENQUEUE_ERRORS = (
    GoogleAPICallError,
    GoogleAuthError,
    RequestException,
    RuntimeError,
    ValueError,
)


def _task_payload(reservation: Reservation) -> dict:
    return {
        "hotel_id": reservation.hotel_id,
        "reservation_id": reservation.id,
        "guest_id": reservation.guest_id,
        "status": reservation.status,
        "payment_status": reservation.payment_status,
    }


def _enqueue_all(
    event: str,
    reservation: Reservation,
    tasks: tuple[tuple[str, str], ...],
    *,
    correlation_id: str | None,
    client: TasksClient | None,
    discriminator: str | None = None,
) -> list[str]:
    """Enqueue each task, logging failures. Returns the task ids accepted."""
    client = client or get_tasks_client()
    payload = _task_payload(reservation)
    prefix = f"{event}:{reservation.id}"
    if discriminator:
        prefix = f"{prefix}:{discriminator}"

    accepted: list[str] = []
    for suffix, url_path in tasks:
        task_id = f"{prefix}:{suffix}"
        try:
            if client.enqueue_http(
                task_id=task_id,
                url_path=url_path,
                payload=payload,
                correlation_id=correlation_id,
            ):
                accepted.append(task_id)
        except _ENQUEUE_ERRORS as e:
            logger.error(
                "post-commit task enqueue failed",
                extra={
                    "extra_fields": safe_log_context(
                        correlationId=correlation_id,
                        hotel_id=reservation.hotel_id,
                        reservation_id=reservation.id,
                        task_id=task_id,
                        error_type=type(e).__name__,
                    )
                },
            )
    return accepted


def on_booking_created(
    reservation: Reservation,
    *,
    correlation_id: str | None = None,
    client: TasksClient | None = None,
) -> list[str]:
    """Invoice creation, guest confirmation and dashboard refresh."""
    return _enqueue_all(
        "booking-created",
        reservation,
        BOOKING_CREATED_TASKS,
        correlation_id=correlation_id,
        client=client,
    )


def on_booking_cancelled(
    reservation: Reservation,
    *,
    correlation_id: str | None = None,
    client: TasksClient | None = None,
) -> list[str]:
    return _enqueue_all(
        "booking-cancelled",
        reservation,
        BOOKING_CANCELLED_TASKS,
        correlation_id=correlation_id,
        client=client,
    )


def on_booking_status_changed(
    reservation: Reservation,
    *,
    correlation_id: str | None = None,
    client: TasksClient | None = None,
) -> list[str]:
    return _enqueue_all(
        "booking-status",
        reservation,
        BOOKING_STATUS_TASKS,
        correlation_id=correlation_id,
        client=client,
        discriminator=reservation.status,
    )


def on_payment_status_changed(
    reservation: Reservation,
    *,
    correlation_id: str | None = None,
    client: TasksClient | None = None,
) -> list[str]:
    return _enqueue_all(
        "payment-status",
        reservation,
        PAYMENT_STATUS_TASKS,
        correlation_id=correlation_id,
        client=client,
        discriminator=reservation.payment_status,
    )
