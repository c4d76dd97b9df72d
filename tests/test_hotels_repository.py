"""Tests for hotels_repository.get_timezone (mock cursor)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from roomledger.infra.repositories.hotels_repository import get_timezone

from .helpers import HOTEL_ID


class TestGetTimezone:
    def test_by_hotel(self):
        cur = MagicMock()
        cur.fetchone.return_value = ("Asia/Kolkata",)

        assert get_timezone(cur, hotel_id=HOTEL_ID) == "Asia/Kolkata"
        sql, params = cur.execute.call_args.args
        assert "FROM hotels" in sql
        assert params == (HOTEL_ID,)

    def test_by_room(self):
        cur = MagicMock()
        cur.fetchone.return_value = ("Europe/Lisbon",)

        assert get_timezone(cur, room_id="room-101") == "Europe/Lisbon"
        sql, params = cur.execute.call_args.args
        assert "JOIN hotels" in sql
        assert params == ("room-101",)

    def test_hotel_without_timezone(self):
        cur = MagicMock()
        cur.fetchone.return_value = (None,)
        assert get_timezone(cur, hotel_id=HOTEL_ID) is None

    def test_unknown_hotel(self):
        cur = MagicMock()
        cur.fetchone.return_value = None
        assert get_timezone(cur, hotel_id="missing") is None

    def test_requires_hotel_or_room(self):
        with pytest.raises(ValueError):
            get_timezone(MagicMock())
