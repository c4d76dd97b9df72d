"""Redaction tests: prove guest data never reaches the logs or task payloads.

Tests verify:
1. Booking logs contain no guest details (special requests, emails, phones)
2. Post-commit task payloads carry ids only
3. The log redaction gate passes on src/ and catches violations
"""

import importlib.util
import logging
from dataclasses import replace
from pathlib import Path
from unittest.mock import patch

from roomledger.domain.bookings import BookingRequest, create_booking
from roomledger.domain.reservations import GuestDetails

from .helpers import HOTEL_ID, make_reservation, make_room, mock_txn

ROOT = Path(__file__).resolve().parent.parent
SPECIAL_REQUEST = "Allergic to nuts, call +91 98765 43210 or guest@example.com"


def _load_gate():
    spec = importlib.util.spec_from_file_location(
        "check_log_redaction", ROOT / "scripts" / "check_log_redaction.py"
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class _Capture(logging.Handler):
    def __init__(self):
        super().__init__()
        self.lines: list[str] = []

    def emit(self, record):
        self.lines.append(self.format(record))


def test_booking_logs_have_no_guest_details(tasks_client):
    from roomledger.observability.logging import JsonFormatter

    reservation = replace(
        make_reservation(status="confirmed"),
        guest_details=GuestDetails(adults=2, special_requests=SPECIAL_REQUEST),
    )
    txn_mock, _ = mock_txn()
    capture = _Capture()
    capture.setFormatter(JsonFormatter())
    bookings_logger = logging.getLogger("roomledger.domain.bookings")
    bookings_logger.addHandler(capture)

    module = "roomledger.domain.bookings"
    try:
        with patch(f"{module}.txn", txn_mock), patch(f"{module}.set_lock_timeout"), patch(
            f"{module}.find_by_idempotency_key", return_value=None
        ), patch(f"{module}.resolve_rooms", return_value=[make_room()]), patch(
            f"{module}.find_overlapping", return_value=[]
        ), patch(f"{module}.insert_reservation", return_value=reservation), patch(
            f"{module}.emit_event"
        ):
            create_booking(
                BookingRequest(
                    hotel_id=HOTEL_ID,
                    room_ids=("room-101",),
                    check_in=reservation.check_in,
                    check_out=reservation.check_out,
                    guest_id="guest-1",
                    created_by="guest-1",
                    idempotency_key="key-1",
                    guest_details=reservation.guest_details,
                )
            )
    finally:
        bookings_logger.removeHandler(capture)

    output = "\n".join(capture.lines)
    assert "booking created" in output
    assert "Allergic" not in output
    assert "98765" not in output
    assert "guest@example.com" not in output

    tasks = tasks_client.get_scheduled_tasks()
    assert tasks
    for task in tasks:
        assert "special_requests" not in str(task["payload"])
        assert "Allergic" not in str(task["payload"])


def test_gate_passes_on_src():
    gate = _load_gate()
    errors = []
    for pyfile in sorted((ROOT / "src").rglob("*.py")):
        errors.extend(gate.check_file(pyfile))
    assert errors == []


def test_gate_flags_unredacted_guest_data():
    gate = _load_gate()
    errors = gate.check_source(
        'logger.info("created", extra={"extra_fields": {"d": guest_details}})\n'
    )
    assert len(errors) == 1
    assert "guest_details" in errors[0]


def test_gate_allows_redacted_guest_data():
    gate = _load_gate()
    errors = gate.check_source(
        'logger.info("created", extra={"extra_fields": safe_log_context(d=guest_details)})\n'
    )
    assert errors == []


def test_gate_flags_print():
    gate = _load_gate()
    errors = gate.check_source('print(request.body)\n')
    assert len(errors) == 1
    assert "print()" in errors[0]
