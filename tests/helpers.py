"""Shared test helper functions for roomledger tests.

Regular functions (not fixtures) importable by conftest.py and test modules.
"""

from __future__ import annotations

import base64
import time
from datetime import date
from unittest.mock import MagicMock

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa

from roomledger.domain.reservations import GuestDetails, Reservation, ReservedRoom
from roomledger.domain.rooms import Room

HOTEL_ID = "hotel-1"


def _generate_rsa_keypair():
    """Generate RSA key pair for test JWT signing."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    return private_key, private_key.public_key()


def _create_jwks(public_key, kid: str = "test-key-1") -> dict:
    """Create JWKS from public key."""
    public_numbers = public_key.public_numbers()

    def int_to_base64(n: int) -> str:
        byte_length = (n.bit_length() + 7) // 8
        return (
            base64.urlsafe_b64encode(n.to_bytes(byte_length, "big"))
            .rstrip(b"=")
            .decode()
        )

    return {
        "keys": [
            {
                "kty": "RSA",
                "use": "sig",
                "alg": "RS256",
                "kid": kid,
                "n": int_to_base64(public_numbers.n),
                "e": int_to_base64(public_numbers.e),
            }
        ]
    }


def _create_token(
    private_key,
    kid: str = "test-key-1",
    sub: str = "user-123",
    iss: str = "https://auth.example.com",
    aud: str = "roomledger-api",
    exp: int | None = None,
    azp: str | None = None,
) -> str:
    """Create signed JWT for testing."""
    now = int(time.time())
    payload = {
        "sub": sub,
        "iss": iss,
        "aud": aud,
        "exp": exp if exp is not None else now + 3600,
        "iat": now,
    }
    if azp:
        payload["azp"] = azp

    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": kid})


def make_room(
    room_id: str = "room-101",
    *,
    hotel_id: str = HOTEL_ID,
    room_number: str = "101",
    room_type: str = "double",
    rate_cents: int = 500000,
    status: str = "vacant",
    is_active: bool = True,
    floor: int | None = 1,
) -> Room:
    return Room(
        id=room_id,
        hotel_id=hotel_id,
        room_number=room_number,
        room_type=room_type,
        base_rate_cents=rate_cents,
        current_rate_cents=rate_cents,
        floor=floor,
        capacity=2,
        is_active=is_active,
        status=status,
    )


def room_row(room: Room) -> tuple:
    """Row in rooms_repository.ROOM_COLUMNS order."""
    return (
        room.id,
        room.hotel_id,
        room.room_number,
        room.room_type,
        room.base_rate_cents,
        room.current_rate_cents,
        room.floor,
        room.capacity,
        room.is_active,
        room.status,
        room.maintenance_notes,
        room.created_at,
        room.updated_at,
    )


def make_reservation(
    reservation_id: str = "res-1",
    *,
    hotel_id: str = HOTEL_ID,
    guest_id: str = "guest-1",
    created_by: str | None = None,
    room_ids: tuple[str, ...] = ("room-101",),
    rate_cents: int = 500000,
    check_in: date = date(2024, 1, 10),
    check_out: date = date(2024, 1, 13),
    status: str = "pending",
    payment_status: str = "pending",
    idempotency_key: str = "key-1",
    request_hash: str | None = "hash-1",
) -> Reservation:
    nights = (check_out - check_in).days
    return Reservation(
        id=reservation_id,
        hotel_id=hotel_id,
        guest_id=guest_id,
        created_by=created_by or guest_id,
        idempotency_key=idempotency_key,
        request_hash=request_hash,
        check_in=check_in,
        check_out=check_out,
        nights=nights,
        status=status,
        payment_status=payment_status,
        total_cents=rate_cents * nights * len(room_ids),
        currency="INR",
        rooms=tuple(ReservedRoom(room_id=r, rate_cents=rate_cents) for r in room_ids),
        guest_details=GuestDetails(adults=2),
    )


def reservation_row(reservation: Reservation) -> tuple:
    """Row in reservations_repository.RESERVATION_COLUMNS order."""
    return (
        reservation.id,
        reservation.hotel_id,
        reservation.guest_id,
        reservation.created_by,
        reservation.idempotency_key,
        reservation.request_hash,
        reservation.check_in,
        reservation.check_out,
        reservation.nights,
        reservation.status,
        reservation.payment_status,
        reservation.total_cents,
        reservation.currency,
        reservation.source,
        reservation.guest_details.to_dict(),
        reservation.cancellation_reason,
        reservation.check_in_time,
        reservation.check_out_time,
        reservation.created_at,
        reservation.updated_at,
    )

def mock_txn(cursor: MagicMock | None = None) -> tuple[MagicMock, MagicMock]:
    """Build a txn() replacement yielding cursor. Returns (txn_mock, cursor)."""
    cursor = cursor or MagicMock()
    txn_mock = MagicMock()
    txn_mock.return_value.__enter__ = MagicMock(return_value=cursor)
    txn_mock.return_value.__exit__ = MagicMock(return_value=False)
    return txn_mock, cursor
