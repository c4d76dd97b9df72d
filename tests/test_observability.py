"""Tests for observability utilities."""

import json
import logging
from datetime import date
from uuid import UUID

from roomledger.observability.correlation import (
    correlation_scope,
    get_correlation_id,
    set_correlation_id,
    reset_correlation_id,
)
from roomledger.observability.logging import JsonFormatter, get_logger
from roomledger.observability.redaction import (
    redact_string,
    redact_value,
    safe_log_context,
)


class TestRedaction:
    """Tests for redaction helpers."""

    def test_redact_phone_number(self):
        result = redact_string("Call me at +91 98765 43210")
        assert "98765" not in result
        assert "[REDACTED]" in result

    def test_redact_email(self):
        result = redact_string("Email: guest@example.com")
        assert "guest@example.com" not in result
        assert "[REDACTED]" in result

    def test_redact_value_dict_only_keys(self):
        result = redact_value({"special_requests": "ground floor", "adults": 2})
        assert "ground floor" not in result
        assert "special_requests" in result

    def test_redact_value_list_only_len(self):
        result = redact_value(["room-101", "room-102"])
        assert "room-101" not in result
        assert "len=2" in result

    def test_dates_and_ids_stay_readable(self):
        assert redact_value(date(2024, 1, 10)) == "2024-01-10"
        uid = UUID("12345678-1234-5678-1234-567812345678")
        assert redact_value(uid) == str(uid)

    def test_scalars(self):
        assert redact_value(None) == "null"
        assert redact_value(True) == "true"
        assert redact_value(3) == "3"

    def test_unknown_type_only_name(self):
        class Secret:
            pass

        assert redact_value(Secret()) == "<Secret>"

    def test_safe_log_context(self):
        ctx = safe_log_context(phone="+919876543210", room_count=2)
        assert "[REDACTED]" in ctx["phone"]
        assert ctx["room_count"] == "2"


class TestCorrelation:
    def test_scope_binds_and_restores(self):
        assert get_correlation_id() == ""
        with correlation_scope("cid-1") as cid:
            assert cid == "cid-1"
            assert get_correlation_id() == "cid-1"
        assert get_correlation_id() == ""

    def test_scope_generates_id(self):
        with correlation_scope() as cid:
            assert UUID(cid)

    def test_set_and_reset(self):
        token = set_correlation_id("cid-2")
        assert get_correlation_id() == "cid-2"
        reset_correlation_id(token)
        assert get_correlation_id() == ""


class TestJsonLogging:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("roomledger.test", logging.INFO, __file__, 1, "booking created", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_format_includes_service_and_extra_fields(self):
        output = json.loads(
            JsonFormatter().format(self._record(extra_fields={"hotel_id": "hotel-1"}))
        )
        assert output["service"] == "roomledger"
        assert output["message"] == "booking created"
        assert output["hotel_id"] == "hotel-1"
        assert "correlationId" not in output

    def test_format_includes_correlation_id(self):
        with correlation_scope("cid-3"):
            output = json.loads(JsonFormatter().format(self._record()))
        assert output["correlationId"] == "cid-3"

    def test_get_logger_single_handler(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        logger = get_logger("roomledger.test.handlers")
        get_logger("roomledger.test.handlers")
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_unknown_log_level_falls_back_to_info(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        logger = get_logger("roomledger.test.unknown_level")
        assert logger.level == logging.INFO
