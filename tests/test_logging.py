"""Tests for the structured logging system (shopfloor_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from shopfloor_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


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
    """Parse all JSON log lines from a stream."""
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


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
        assert record["logger"] == "shopfloor.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("receipt_posted", extra={"movement_count": 2, "to_state": "PARTIAL"})

        record = _parse_log(stream)
        assert record["movement_count"] == 2
        assert record["to_state"] == "PARTIAL"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", document_code="SC-2025-0001")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["document_code"] == "SC-2025-0001"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_shopfloor_exception_code_extracted(self):
        """Shopfloor exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from shopfloor_kernel.exceptions import OverReceiptError

        try:
            raise OverReceiptError("BOLT-M8", Decimal("5"), Decimal("3"))
        except OverReceiptError:
            logger.error("receipt_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "OVER_RECEIPT"
        assert record["exc_type"] == "OverReceiptError"
        assert record["exc_product_sku"] == "BOLT-M8"
        assert record["exc_pending"] == "3"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "operation" not in record

    def test_uuid_and_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("with_values", extra={"order_id": uid, "total": Decimal("20.00")})

        record = _parse_log(stream)
        assert record["order_id"] == str(uid)
        assert record["total"] == "20.00"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # Default level is INFO, so the debug line is dropped.
        assert len(logs) == 2
        for record in logs:
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", operation="receive_order")
        ctx = LogContext.get_all()
        assert ctx == {"correlation_id": "x", "operation": "receive_order"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "operation" not in LogContext.get_all()
        with LogContext.bind(operation="create_order"):
            assert LogContext.get_all()["operation"] == "create_order"
        assert "operation" not in LogContext.get_all()

    def test_bind_ignores_none_values(self):
        with LogContext.bind(actor_id=None, operation="x"):
            assert "actor_id" not in LogContext.get_all()

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            operation="o",
            document_code="d",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 4
        assert ctx["document_code"] == "d"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("shopfloor")
        assert h1 in root.handlers
        assert h2 not in root.handlers

    def test_get_logger_returns_child(self):
        logger = get_logger("modules.purchasing.service")
        assert logger.name == "shopfloor.modules.purchasing.service"

    def test_logger_hierarchy(self):
        """Child loggers inherit the shopfloor root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "shopfloor.deep.nested.module"

    def test_engine_trace_emitted(self):
        """Traced engines log under the shopfloor namespace."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from shopfloor_engines.costing import CostSample, weighted_average_cost

        weighted_average_cost(history=[CostSample(Decimal("1"), Decimal("2"))])

        traces = [
            r for r in _parse_all_logs(stream)
            if r["message"] == "SHOPFLOOR_ENGINE_TRACE"
        ]
        assert traces
        assert traces[0]["engine_name"] == "moving_average_cost"
        assert len(traces[0]["input_fingerprint"]) == 16
