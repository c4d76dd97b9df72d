"""Domain error taxonomy for the booking core.

Each error carries the HTTP status it maps to so the API layer can render
it with a single exception handler. Only the booking coordinator retries;
everything here is raised as a final outcome.
"""

from __future__ import annotations


class BookingError(Exception):
    """Base class for booking-core errors."""

    status_code = 500
    code = "booking_error"

    def __init__(self, message: str, **details: object) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body: dict = {"code": self.code, "detail": self.message}
        if self.details:
            body["context"] = {k: v for k, v in self.details.items() if v is not None}
        return body


class ValidationError(BookingError):
    """Malformed input. Never retried."""

    status_code = 422
    code = "validation_error"


class NotFoundError(BookingError):
    """Referenced room, hotel or reservation does not exist (or is inactive)."""

    status_code = 404
    code = "not_found"


class RoomNotFoundError(NotFoundError):
    code = "room_not_found"


class ReservationNotFoundError(NotFoundError):
    code = "reservation_not_found"


class ConflictError(BookingError):
    """Concurrent demand for the same inventory or key; client should re-search."""

    status_code = 409
    code = "conflict"


class RoomUnavailableError(ConflictError):
    """One or more rooms are held by an overlapping active reservation.

    The conflicting ids belong to other guests: they are kept on the
    exception for logging and never rendered in the response body.
    """

    code = "rooms_unavailable"

    def __init__(
        self,
        message: str = "One or more rooms are no longer available for the selected dates",
        *,
        conflicting_reservation_ids: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.conflicting_reservation_ids = conflicting_reservation_ids or []


class IdempotencyKeyReusedError(ConflictError):
    """Idempotency key already used by a request with a different payload."""

    code = "idempotency_key_reused"


class InvalidStateError(BookingError):
    """Operation not permitted from the reservation's current state."""

    status_code = 400
    code = "invalid_state"
