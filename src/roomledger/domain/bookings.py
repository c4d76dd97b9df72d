"""Booking transaction coordinator - the only write path that creates reservations.

Each attempt runs in a single transaction:
1. Lock and look up the idempotency key (replay returns the original reservation)
2. Resolve and lock the requested rooms FOR UPDATE (id order)
3. Re-check availability inside the transaction
4. Compute nights and total from the locked room rates
5. Insert the reservation with its room rows
6. Emit a booking.created outbox event
7. Commit

Races the row locks cannot see (a concurrent insert of the same idempotency
key, the exclusion constraint firing, serialization failures, deadlocks,
lock timeouts) abort the attempt; the whole attempt is retried up to
BOOKING_MAX_ATTEMPTS times. Side effects (invoice, confirmation, dashboard)
are enqueued only after commit.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date

from psycopg2 import errors as pg_errors

from roomledger.domain.availability import find_overlapping, validate_interval
from roomledger.domain.errors import (
    IdempotencyKeyReusedError,
    RoomUnavailableError,
    ValidationError,
)
from roomledger.domain.reservations import (
    BOOKING_SOURCES,
    INITIAL_PAYMENT_STATUSES,
    INITIAL_STATUSES,
    GuestDetails,
    Reservation,
    ReservedRoom,
)
from roomledger.domain.rooms import resolve_rooms
from roomledger.domain.side_effects import on_booking_created
from roomledger.infra.db import set_lock_timeout, txn
from roomledger.infra.hashing import hash_request
from roomledger.infra.repositories.outbox_repository import (
    emit_event,
    reservation_event_payload,
)
from roomledger.infra.repositories.reservations_repository import (
    find_by_idempotency_key,
    insert_reservation,
    lock_idempotency_key,
)
from roomledger.observability.logging import get_logger
from roomledger.observability.redaction import safe_log_context

logger = get_logger(__name__)

# Aborted attempts that are safe to retry from the top.
RETRYABLE_ERRORS = (
    pg_errors.UniqueViolation,
    pg_errors.ExclusionViolation,
    pg_errors.SerializationFailure,
    pg_errors.DeadlockDetected,
    pg_errors.LockNotAvailable,
)

MAX_IDEMPOTENCY_KEY_LENGTH = 255


def _max_attempts() -> int:
    return int(os.environ.get("BOOKING_MAX_ATTEMPTS", "3"))


def _lock_timeout_ms() -> int:
    return int(os.environ.get("BOOKING_LOCK_TIMEOUT_MS", "5000"))


def default_currency() -> str:
    return os.environ.get("DEFAULT_CURRENCY", "INR")


@dataclass(frozen=True)
class BookingRequest:
    """Input of create_booking.

    guest_id is the user the booking is for; created_by is the caller
    (they differ when staff books on a guest's behalf).
    """

    hotel_id: str
    room_ids: tuple[str, ...]
    check_in: date
    check_out: date
    guest_id: str
    created_by: str
    idempotency_key: str
    guest_details: GuestDetails = field(default_factory=GuestDetails)
    override_total_cents: int | None = None
    initial_status: str = "pending"
    initial_payment_status: str = "pending"
    currency: str | None = None
    source: str = "direct"

    def fingerprint(self) -> str:
        """Hash of everything that defines the booking (not who sent it or the key)."""
        return hash_request(
            {
                "hotel_id": self.hotel_id,
                "room_ids": list(self.room_ids),
                "check_in": self.check_in,
                "check_out": self.check_out,
                "guest_id": self.guest_id,
                "guest_details": self.guest_details.to_dict(),
                "override_total_cents": self.override_total_cents,
                "initial_status": self.initial_status,
                "initial_payment_status": self.initial_payment_status,
                "currency": self.currency,
                "source": self.source,
            }
        )


@dataclass(frozen=True)
class BookingResult:
    reservation: Reservation
    created: bool


def compute_nights(check_in: date, check_out: date) -> int:
    """Whole-day difference between check-out and check-in.

    Raises:
        ValidationError: If check_out is not after check_in.
    """
    validate_interval(check_in, check_out)
    return (check_out - check_in).days


def compute_total_cents(
    rates_cents: list[int],
    nights: int,
    override_total_cents: int | None = None,
) -> int:
    """Sum of nightly rate x nights over all rooms, unless an override is given."""
    if override_total_cents is not None:
        return override_total_cents
    return sum(rate * nights for rate in rates_cents)


def validate_request(request: BookingRequest) -> None:
    """Reject malformed booking requests before any transaction is opened.

    Raises:
        ValidationError: On the first problem found.
    """
    if not request.room_ids:
        raise ValidationError("At least one room is required")
    if len(set(request.room_ids)) != len(request.room_ids):
        raise ValidationError("Duplicate room ids in request")

    compute_nights(request.check_in, request.check_out)

    key = (request.idempotency_key or "").strip()
    if not key:
        raise ValidationError("Idempotency key is required")
    if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError("Idempotency key is too long")

    if request.initial_status not in INITIAL_STATUSES:
        raise ValidationError(
            f"Invalid initial status '{request.initial_status}'",
            allowed=list(INITIAL_STATUSES),
        )
    if request.initial_payment_status not in INITIAL_PAYMENT_STATUSES:
        raise ValidationError(
            f"Invalid initial payment status '{request.initial_payment_status}'",
            allowed=list(INITIAL_PAYMENT_STATUSES),
        )
    if request.override_total_cents is not None and request.override_total_cents < 0:
        raise ValidationError("Override total must be >= 0")
    if request.source not in BOOKING_SOURCES:
        raise ValidationError(
            f"Invalid booking source '{request.source}'", allowed=list(BOOKING_SOURCES)
        )
    if request.currency is not None and (
        len(request.currency) != 3 or not request.currency.isalpha()
    ):
        raise ValidationError("Currency must be a 3-letter code")

    details = request.guest_details
    if details.adults < 1:
        raise ValidationError("At least one adult is required")
    if details.children < 0:
        raise ValidationError("Children must be >= 0")


def _replay(existing: Reservation, request: BookingRequest, request_hash: str) -> BookingResult:
    """Return the stored reservation, or reject a key reused with another payload."""
    if existing.request_hash != request_hash:
        logger.warning(
            "idempotency key reused with a different request",
            extra={
                "extra_fields": safe_log_context(
                    hotel_id=request.hotel_id,
                    reservation_id=existing.id,
                )
            },
        )
        raise IdempotencyKeyReusedError(
            "Idempotency key was already used with a different request"
        )
    return BookingResult(reservation=existing, created=False)


def _attempt(
    request: BookingRequest,
    request_hash: str,
    correlation_id: str | None,
) -> BookingResult:
    """One transactional attempt. Constraint races propagate to the caller."""
    with txn() as cur:
        set_lock_timeout(cur, _lock_timeout_ms())

        lock_idempotency_key(cur, request.idempotency_key)
        existing = find_by_idempotency_key(cur, request.idempotency_key)
        if existing is not None:
            return _replay(existing, request, request_hash)

        rooms = resolve_rooms(
            cur,
            hotel_id=request.hotel_id,
            room_ids=list(request.room_ids),
            lock=True,
        )

        conflicting = find_overlapping(
            cur,
            room_ids=list(request.room_ids),
            check_in=request.check_in,
            check_out=request.check_out,
            hotel_id=request.hotel_id,
        )
        if conflicting:
            # A same-key request may have committed while we waited on the room locks
            existing = find_by_idempotency_key(cur, request.idempotency_key)
            if existing is not None:
                return _replay(existing, request, request_hash)
            raise RoomUnavailableError(conflicting_reservation_ids=conflicting)

        nights = compute_nights(request.check_in, request.check_out)
        rates = [room.current_rate_cents for room in rooms]
        total_cents = compute_total_cents(rates, nights, request.override_total_cents)

        reservation = insert_reservation(
            cur,
            hotel_id=request.hotel_id,
            guest_id=request.guest_id,
            created_by=request.created_by,
            idempotency_key=request.idempotency_key,
            request_hash=request_hash,
            rooms=[
                ReservedRoom(room_id=room.id, rate_cents=room.current_rate_cents)
                for room in rooms
            ],
            check_in=request.check_in,
            check_out=request.check_out,
            nights=nights,
            status=request.initial_status,
            payment_status=request.initial_payment_status,
            total_cents=total_cents,
            currency=request.currency or default_currency(),
            source=request.source,
            guest_details=request.guest_details,
        )

        emit_event(
            cur,
            hotel_id=request.hotel_id,
            event_type="booking.created",
            aggregate_type="reservation",
            aggregate_id=reservation.id,
            payload=reservation_event_payload(
                reservation, total_overridden=request.override_total_cents is not None
            ),
            correlation_id=correlation_id,
        )

    return BookingResult(reservation=reservation, created=True)


def create_booking(
    request: BookingRequest,
    *,
    correlation_id: str | None = None,
    max_attempts: int | None = None,
) -> BookingResult:
    """Create a reservation atomically, or replay the one stored under the same key.

    Args:
        request: Booking input.
        correlation_id: Optional correlation ID for tracing.
        max_attempts: Override BOOKING_MAX_ATTEMPTS (default 3).

    Returns:
        BookingResult with created=False on idempotent replay.

    Raises:
        ValidationError: Malformed request (never retried).
        RoomNotFoundError: A room is unknown, inactive or in another hotel.
        RoomUnavailableError: Rooms taken, or attempts exhausted on conflicts.
        IdempotencyKeyReusedError: Key already used with a different payload.
    """
    validate_request(request)
    attempts = max_attempts if max_attempts is not None else _max_attempts()
    if attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    request_hash = request.fingerprint()

    result: BookingResult | None = None
    for attempt in range(1, attempts + 1):
        try:
            result = _attempt(request, request_hash, correlation_id)
            break
        except RETRYABLE_ERRORS as e:
            logger.warning(
                "booking attempt aborted, retrying",
                extra={
                    "extra_fields": safe_log_context(
                        correlationId=correlation_id,
                        hotel_id=request.hotel_id,
                        attempt=attempt,
                        max_attempts=attempts,
                        error_type=type(e).__name__,
                    )
                },
            )

    if result is None:
        logger.warning(
            "booking attempts exhausted",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    hotel_id=request.hotel_id,
                    max_attempts=attempts,
                )
            },
        )
        raise RoomUnavailableError(
            "Rooms could not be booked due to concurrent demand, please search again"
        )

    reservation = result.reservation
    log_context = safe_log_context(
        correlationId=correlation_id,
        hotel_id=reservation.hotel_id,
        reservation_id=reservation.id,
        room_count=len(reservation.rooms),
        nights=reservation.nights,
        status=reservation.status,
    )
    if not result.created:
        logger.info("booking replayed", extra={"extra_fields": log_context})
        return result

    logger.info("booking created", extra={"extra_fields": log_context})
    on_booking_created(reservation, correlation_id=correlation_id)
    return result
