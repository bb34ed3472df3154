"""Tests for the structured logging system (invoice_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from invoice_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite config."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "invoice_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("finalized", extra={"item_count": 3, "currency": "EUR"})

        record = _parse_log(stream)
        assert record["item_count"] == 3
        assert record["currency"] == "EUR"

    def test_decimal_and_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("amounts", extra={"total": Decimal("22.60"), "item_id": uid})

        record = _parse_log(stream)
        assert record["total"] == "22.60"
        assert record["item_id"] == str(uid)

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(session_id="sess-1", invoice_number="1001")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["session_id"] == "sess-1"
        assert record["invoice_number"] == "1001"

    def test_kernel_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from invoice_kernel.exceptions import UnknownCurrencyError

        try:
            raise UnknownCurrencyError("GBP", ("USD", "EUR"))
        except UnknownCurrencyError:
            get_logger("test").error("currency_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "UNKNOWN_CURRENCY"
        assert record["exc_type"] == "UnknownCurrencyError"
        assert record["exc_currency"] == "GBP"
        assert "traceback" in record

    def test_debug_filtered_at_info(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second")
        logger.debug("third")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first", "second"]

    def test_configure_is_idempotent(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        configure_logging(handler=handler)
        get_logger("test").info("once")

        assert len(_parse_all_logs(stream)) == 1


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(session_id="x", fingerprint="abc")
        assert LogContext.get_all() == {"session_id": "x", "fingerprint": "abc"}

    def test_clear(self):
        LogContext.set(session_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous(self):
        LogContext.set(invoice_number="1001")
        with LogContext.bind(invoice_number="1002"):
            assert LogContext.get_all()["invoice_number"] == "1002"
        assert LogContext.get_all()["invoice_number"] == "1001"

    def test_bind_restores_none(self):
        with LogContext.bind(session_id="temp"):
            assert LogContext.get_all()["session_id"] == "temp"
        assert "session_id" not in LogContext.get_all()
