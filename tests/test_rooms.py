"""Tests for /rooms endpoints."""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import patch

import pytest
from psycopg2 import errors as pg_errors

from roomledger.domain.occupancy import OccupyingReservation, RoomStatus

from .helpers import HOTEL_ID, make_room, mock_txn, room_row

MODULE = "roomledger.api.routes.rooms"
REPO = f"{MODULE}.rooms_repository"


@pytest.fixture
def cur():
    txn_mock, cur = mock_txn()
    with patch(f"{MODULE}.txn", txn_mock):
        yield cur


class TestListRooms:
    def test_guest_can_list(self, api_client, cur):
        with patch(f"{REPO}.list_rooms", return_value=[make_room()]) as mock_list:
            response = api_client().get("/rooms", params={"hotel_id": HOTEL_ID, "floor": 1})

        assert response.status_code == 200
        assert response.json()[0]["room_number"] == "101"
        assert mock_list.call_args.kwargs["floor"] == 1

    def test_get_room(self, api_client, cur):
        with patch(f"{REPO}.get_room", return_value=make_room()):
            response = api_client().get("/rooms/room-101", params={"hotel_id": HOTEL_ID})

        assert response.status_code == 200
        assert response.json()["current_rate_cents"] == 500000

    def test_inactive_room_hidden(self, api_client, cur):
        with patch(f"{REPO}.get_room", return_value=make_room(is_active=False)):
            response = api_client().get("/rooms/room-101", params={"hotel_id": HOTEL_ID})

        assert response.status_code == 404
        assert response.json()["code"] == "room_not_found"


class TestAvailability:
    def test_available_rooms(self, api_client, cur):
        cur.fetchall.return_value = [room_row(make_room())]

        response = api_client().get(
            "/rooms/availability",
            params={"hotel_id": HOTEL_ID, "check_in": "2024-01-10", "check_out": "2024-01-13"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["nights"] == 3
        assert [r["id"] for r in data["rooms"]] == ["room-101"]

    def test_room_ids_filter(self, api_client, cur):
        cur.fetchall.return_value = []

        api_client().get(
            "/rooms/availability",
            params={
                "hotel_id": HOTEL_ID,
                "check_in": "2024-01-10",
                "check_out": "2024-01-13",
                "room_ids": ["room-101", "room-102"],
            },
        )

        params = cur.execute.call_args[0][1]
        assert ["room-101", "room-102"] in params

    def test_inverted_dates_422(self, api_client, cur):
        response = api_client().get(
            "/rooms/availability",
            params={"hotel_id": HOTEL_ID, "check_in": "2024-01-13", "check_out": "2024-01-10"},
        )

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"
        cur.execute.assert_not_called()


class TestStatusAndMetrics:
    def _statuses(self):
        occupant = OccupyingReservation(
            reservation_id="res-1",
            guest_id="guest-1",
            check_in=date(2024, 1, 10),
            check_out=date(2024, 1, 13),
            status="checked_in",
        )
        return [
            RoomStatus(make_room("room-101"), "occupied", occupant),
            RoomStatus(make_room("room-102", room_number="102"), "vacant"),
        ]

    def test_guest_forbidden(self, api_client):
        response = api_client().get("/rooms/status", params={"hotel_id": HOTEL_ID})
        assert response.status_code == 403

    def test_staff_gets_statuses(self, api_client):
        with patch(f"{MODULE}.resolve_statuses", return_value=self._statuses()) as mock_resolve:
            response = api_client(role="staff").get(
                "/rooms/status",
                params={"hotel_id": HOTEL_ID, "at": "2024-01-11T12:00:00+00:00"},
            )

        assert response.status_code == 200
        data = response.json()
        assert [r["computed_status"] for r in data] == ["occupied", "vacant"]
        assert data[0]["occupying_reservation"]["reservation_id"] == "res-1"
        assert mock_resolve.call_args.args[1] == datetime(2024, 1, 11, 12, tzinfo=timezone.utc)

    def test_single_room_status(self, api_client):
        with patch(
            f"{MODULE}.resolve_status", return_value=self._statuses()[0]
        ) as mock_resolve:
            response = api_client(role="staff").get(
                "/rooms/status", params={"hotel_id": HOTEL_ID, "room_id": "room-101"}
            )

        assert response.status_code == 200
        assert len(response.json()) == 1
        assert mock_resolve.call_args.kwargs["hotel_id"] == HOTEL_ID

    def test_metrics(self, api_client):
        with patch(f"{MODULE}.resolve_statuses", return_value=self._statuses()):
            response = api_client(role="staff").get(
                "/rooms/metrics", params={"hotel_id": HOTEL_ID}
            )

        assert response.status_code == 200
        data = response.json()
        assert data["total_rooms"] == 2
        assert data["occupancy_rate"] == 50.0


class TestRoomAdmin:
    NEW_ROOM = {"room_number": "201", "room_type": "suite", "base_rate_cents": 900000}

    def test_staff_cannot_create(self, api_client):
        response = api_client(role="staff").post(
            "/rooms", params={"hotel_id": HOTEL_ID}, json=self.NEW_ROOM
        )
        assert response.status_code == 403

    def test_manager_creates(self, api_client, cur):
        room = make_room("room-201", room_number="201", room_type="suite", rate_cents=900000)
        with patch(f"{REPO}.insert_room", return_value=room) as mock_insert:
            response = api_client(role="manager").post(
                "/rooms", params={"hotel_id": HOTEL_ID}, json=self.NEW_ROOM
            )

        assert response.status_code == 201
        assert response.json()["id"] == "room-201"
        kwargs = mock_insert.call_args.kwargs
        assert kwargs["hotel_id"] == HOTEL_ID
        assert kwargs["current_rate_cents"] is None
        assert kwargs["status"] == "vacant"

    def test_duplicate_room_number_409(self, api_client, cur):
        with patch(f"{REPO}.insert_room", side_effect=pg_errors.UniqueViolation("dup")):
            response = api_client(role="manager").post(
                "/rooms", params={"hotel_id": HOTEL_ID}, json=self.NEW_ROOM
            )
        assert response.status_code == 409

    def test_occupied_cannot_be_set(self, api_client, cur):
        response = api_client(role="manager").post(
            "/rooms", params={"hotel_id": HOTEL_ID}, json={**self.NEW_ROOM, "status": "occupied"}
        )
        assert response.status_code == 422

    def test_update_status_emits_event(self, api_client, cur):
        room = make_room(status="maintenance")
        with patch(f"{REPO}.update_room", return_value=room) as mock_update, patch(
            f"{MODULE}.emit_event"
        ) as mock_emit:
            response = api_client(role="manager", user_id="mgr-1").patch(
                "/rooms/room-101",
                params={"hotel_id": HOTEL_ID},
                json={"status": "maintenance", "maintenance_notes": "leak"},
            )

        assert response.status_code == 200
        assert mock_update.call_args.kwargs["fields"] == {
            "status": "maintenance",
            "maintenance_notes": "leak",
        }
        kwargs = mock_emit.call_args.kwargs
        assert kwargs["event_type"] == "room.status_changed"
        assert kwargs["payload"]["changed_by"] == "mgr-1"

    def test_update_rate_no_event(self, api_client, cur):
        with patch(f"{REPO}.update_room", return_value=make_room()), patch(
            f"{MODULE}.emit_event"
        ) as mock_emit:
            response = api_client(role="manager").patch(
                "/rooms/room-101",
                params={"hotel_id": HOTEL_ID},
                json={"current_rate_cents": 450000},
            )

        assert response.status_code == 200
        mock_emit.assert_not_called()

    def test_update_empty_body_400(self, api_client, cur):
        response = api_client(role="manager").patch(
            "/rooms/room-101", params={"hotel_id": HOTEL_ID}, json={}
        )
        assert response.status_code == 400

    def test_update_missing_room_404(self, api_client, cur):
        with patch(f"{REPO}.update_room", return_value=None):
            response = api_client(role="manager").patch(
                "/rooms/missing", params={"hotel_id": HOTEL_ID}, json={"floor": 2}
            )
        assert response.status_code == 404

    def test_delete_is_soft(self, api_client, cur):
        with patch(f"{REPO}.deactivate_room", return_value=True) as mock_deactivate:
            response = api_client(role="manager").delete(
                "/rooms/room-101", params={"hotel_id": HOTEL_ID}
            )

        assert response.status_code == 204
        mock_deactivate.assert_called_once_with(cur, hotel_id=HOTEL_ID, room_id="room-101")

    def test_delete_missing_404(self, api_client, cur):
        with patch(f"{REPO}.deactivate_room", return_value=False):
            response = api_client(role="admin").delete(
                "/rooms/missing", params={"hotel_id": HOTEL_ID}
            )
        assert response.status_code == 404
