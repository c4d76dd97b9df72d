"""Booking endpoints.

- POST /bookings: create (idempotent on Idempotency-Key)
- GET /bookings, GET /bookings/{id}: read
- POST /bookings/{id}/actions/cancel: cancel
- PATCH /bookings/{id}/status, PATCH /bookings/{id}/payment-status: staff updates

Domain errors (roomledger.domain.errors) are rendered by the handler
registered in the app factory.
"""

from __future__ import annotations

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query, Response
from pydantic import BaseModel, Field

from roomledger.api.rbac import HotelRoleContext, require_hotel_role
from roomledger.domain.bookings import BookingRequest, create_booking
from roomledger.domain.cancellation import cancel_booking
from roomledger.domain.errors import ReservationNotFoundError, ValidationError
from roomledger.domain.lifecycle import update_booking_status, update_payment_status
from roomledger.domain.reservations import (
    PAYMENT_STATUSES,
    RESERVATION_STATUSES,
    GuestDetails,
    Reservation,
)
from roomledger.infra.db import txn
from roomledger.infra.repositories import reservations_repository
from roomledger.observability.correlation import get_correlation_id

router = APIRouter(prefix="/bookings", tags=["bookings"])

BookingSource = Literal["direct", "booking_com", "expedia", "airbnb"]


class GuestDetailsIn(BaseModel):
    adults: int = Field(1, ge=1)
    children: int = Field(0, ge=0)
    special_requests: str | None = Field(None, max_length=1000)


class CreateBookingRequest(BaseModel):
    """Request body for POST /bookings.

    guest_id, override_total_cents, status, payment_status and a
    non-direct source are staff-only.
    """

    room_ids: list[str] = Field(..., min_length=1)
    check_in: date
    check_out: date
    guest_id: str | None = None
    guest_details: GuestDetailsIn = Field(default_factory=GuestDetailsIn)
    override_total_cents: int | None = Field(None, ge=0)
    status: Literal["pending", "confirmed", "checked_in"] | None = None
    payment_status: Literal["pending", "paid"] | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)
    source: BookingSource = "direct"
    idempotency_key: str | None = None


class CancelBookingRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class UpdateStatusRequest(BaseModel):
    status: str
    reason: str | None = Field(None, max_length=500)


class UpdatePaymentStatusRequest(BaseModel):
    payment_status: str


def _resolve_idempotency_key(header_key: str | None, body_key: str | None) -> str:
    if header_key and body_key and header_key != body_key:
        raise ValidationError("Idempotency-Key header and body idempotency_key differ")
    key = header_key or body_key
    if not key:
        raise ValidationError("Idempotency-Key header is required")
    return key


def _check_guest_fields(body: CreateBookingRequest, ctx: HotelRoleContext) -> None:
    if ctx.is_staff:
        return
    if body.guest_id is not None and body.guest_id != ctx.user.id:
        raise HTTPException(status_code=403, detail="Guests can only book for themselves")
    staff_only = (
        body.override_total_cents is not None
        or body.status is not None
        or body.payment_status is not None
        or body.source != "direct"
    )
    if staff_only:
        raise HTTPException(status_code=403, detail="Insufficient role")


def _can_view(reservation: Reservation, ctx: HotelRoleContext) -> bool:
    return ctx.is_staff or ctx.user.id in (reservation.guest_id, reservation.created_by)


def _load_visible(reservation_id: str, ctx: HotelRoleContext) -> Reservation:
    with txn() as cur:
        reservation = reservations_repository.get_reservation(
            cur, reservation_id, hotel_id=ctx.hotel_id
        )
    if reservation is None:
        raise ReservationNotFoundError("Reservation not found", reservation_id=reservation_id)
    if not _can_view(reservation, ctx):
        raise HTTPException(status_code=403, detail="No access to booking")
    return reservation


@router.post("", status_code=201)
def create_booking_endpoint(
    body: CreateBookingRequest,
    response: Response,
    ctx: HotelRoleContext = Depends(require_hotel_role("guest")),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
) -> dict:
    """Create a booking. Returns 201 when created, 200 on idempotent replay."""
    _check_guest_fields(body, ctx)

    request = BookingRequest(
        hotel_id=ctx.hotel_id,
        room_ids=tuple(body.room_ids),
        check_in=body.check_in,
        check_out=body.check_out,
        guest_id=body.guest_id or ctx.user.id,
        created_by=ctx.user.id,
        idempotency_key=_resolve_idempotency_key(idempotency_key, body.idempotency_key),
        guest_details=GuestDetails(
            adults=body.guest_details.adults,
            children=body.guest_details.children,
            special_requests=body.guest_details.special_requests,
        ),
        override_total_cents=body.override_total_cents,
        initial_status=body.status or "pending",
        initial_payment_status=body.payment_status or "pending",
        currency=body.currency.upper() if body.currency else None,
        source=body.source,
    )

    result = create_booking(request, correlation_id=get_correlation_id() or None)
    if not result.created:
        response.status_code = 200
    return result.reservation.to_dict()


@router.get("")
def list_bookings(
    ctx: HotelRoleContext = Depends(require_hotel_role("guest")),
    status: str | None = Query(None),
    room_id: str | None = Query(None),
    check_in_from: date | None = Query(None),
    check_in_to: date | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> dict:
    """List bookings of the hotel. Guests only see their own."""
    if status is not None and status not in RESERVATION_STATUSES:
        raise ValidationError(f"Invalid status '{status}'", allowed=list(RESERVATION_STATUSES))

    with txn() as cur:
        items, total = reservations_repository.list_reservations(
            cur,
            hotel_id=ctx.hotel_id,
            guest_id=None if ctx.is_staff else ctx.user.id,
            status=status,
            room_id=room_id,
            check_in_from=check_in_from,
            check_in_to=check_in_to,
            limit=limit,
            offset=offset,
        )

    return {
        "items": [item.to_dict() for item in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/{reservation_id}")
def get_booking(
    reservation_id: str = Path(..., description="Reservation UUID"),
    ctx: HotelRoleContext = Depends(require_hotel_role("guest")),
) -> dict:
    return _load_visible(reservation_id, ctx).to_dict()


@router.post("/{reservation_id}/actions/cancel")
def cancel_booking_action(
    body: CancelBookingRequest | None = None,
    reservation_id: str = Path(..., description="Reservation UUID"),
    ctx: HotelRoleContext = Depends(require_hotel_role("guest")),
) -> dict:
    """Cancel a booking. The cancellation cutoff applies to guests only."""
    _load_visible(reservation_id, ctx)

    reservation = cancel_booking(
        reservation_id,
        reason=body.reason if body else None,
        cancelled_by=ctx.user.id,
        hotel_id=ctx.hotel_id,
        enforce_cutoff=not ctx.is_staff,
        correlation_id=get_correlation_id() or None,
    )
    return reservation.to_dict()


@router.patch("/{reservation_id}/status")
def update_booking_status_endpoint(
    body: UpdateStatusRequest,
    reservation_id: str = Path(..., description="Reservation UUID"),
    ctx: HotelRoleContext = Depends(require_hotel_role("staff")),
) -> dict:
    reservation = update_booking_status(
        reservation_id,
        body.status,
        changed_by=ctx.user.id,
        hotel_id=ctx.hotel_id,
        reason=body.reason,
        correlation_id=get_correlation_id() or None,
    )
    return reservation.to_dict()


@router.patch("/{reservation_id}/payment-status")
def update_payment_status_endpoint(
    body: UpdatePaymentStatusRequest,
    reservation_id: str = Path(..., description="Reservation UUID"),
    ctx: HotelRoleContext = Depends(require_hotel_role("staff")),
) -> dict:
    if body.payment_status not in PAYMENT_STATUSES:
        raise ValidationError(
            f"Invalid payment status '{body.payment_status}'", allowed=list(PAYMENT_STATUSES)
        )
    reservation = update_payment_status(
        reservation_id,
        body.payment_status,
        changed_by=ctx.user.id,
        hotel_id=ctx.hotel_id,
        correlation_id=get_correlation_id() or None,
    )
    return reservation.to_dict()
