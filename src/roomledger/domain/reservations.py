"""Reservation domain types and lifecycle vocabulary."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

RESERVATION_STATUSES = (
    "pending",
    "confirmed",
    "checked_in",
    "checked_out",
    "cancelled",
    "no_show",
)
PAYMENT_STATUSES = ("pending", "paid", "refunded", "failed")
BOOKING_SOURCES = ("direct", "booking_com", "expedia", "airbnb")

# Statuses that hold inventory: subject to the no-overlap invariant.
ACTIVE_STATUSES = ("pending", "confirmed", "checked_in")

# Statuses that mean the guest is (or should be) in the room.
OCCUPYING_STATUSES = ("confirmed", "checked_in")

TERMINAL_STATUSES = ("checked_out", "cancelled", "no_show")

CANCELLABLE_STATUSES = ("pending", "confirmed")

# Statuses a booking may be created in (admin manual entry may skip pending).
INITIAL_STATUSES = ("pending", "confirmed", "checked_in")
INITIAL_PAYMENT_STATUSES = ("pending", "paid")


@dataclass(frozen=True)
class ReservedRoom:
    """A room on a reservation with its nightly rate snapshot at booking time."""

    room_id: str
    rate_cents: int


@dataclass(frozen=True)
class GuestDetails:
    adults: int = 1
    children: int = 0
    special_requests: str | None = None

    def to_dict(self) -> dict:
        return {
            "adults": self.adults,
            "children": self.children,
            "special_requests": self.special_requests,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "GuestDetails":
        data = data or {}
        return cls(
            adults=data.get("adults", 1),
            children=data.get("children", 0),
            special_requests=data.get("special_requests"),
        )


@dataclass(frozen=True)
class Reservation:
    """A booking: one guest, one date range, one or more rooms."""

    id: str
    hotel_id: str
    guest_id: str
    created_by: str
    idempotency_key: str
    request_hash: str | None
    check_in: date
    check_out: date
    nights: int
    status: str
    payment_status: str
    total_cents: int
    currency: str
    source: str = "direct"
    rooms: tuple[ReservedRoom, ...] = ()
    guest_details: GuestDetails = field(default_factory=GuestDetails)
    cancellation_reason: str | None = None
    check_in_time: datetime | None = None
    check_out_time: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def room_ids(self) -> list[str]:
        return [room.room_id for room in self.rooms]

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def to_dict(self) -> dict:
        """Serialise for API responses. guest_details is included; never log this dict."""

        def _iso(value: date | datetime | None) -> str | None:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "hotel_id": self.hotel_id,
            "guest_id": self.guest_id,
            "created_by": self.created_by,
            "idempotency_key": self.idempotency_key,
            "rooms": [
                {"room_id": room.room_id, "rate_cents": room.rate_cents}
                for room in self.rooms
            ],
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "nights": self.nights,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_cents": self.total_cents,
            "currency": self.currency,
            "source": self.source,
            "guest_details": self.guest_details.to_dict(),
            "cancellation_reason": self.cancellation_reason,
            "check_in_time": _iso(self.check_in_time),
            "check_out_time": _iso(self.check_out_time),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
