"""Tests for the structured logging system (ledger_kernel/logging_config.py)."""

import json
import logging
from datetime import datetime, timezone
from io import StringIO
from uuid import uuid4

import pytest

from ledger_kernel.logging_config import (
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
        assert record["logger"] == "ledger_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("epoch_closed", extra={"payee_count": 3, "status": "closed"})

        record = _parse_log(stream)
        assert record["payee_count"] == 3
        assert record["status"] == "closed"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", epoch_id=42)
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["epoch_id"] == "42"

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

    def test_ledger_exception_code_extracted(self):
        """Ledger errors carry .code and their context as attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from ledger_kernel.exceptions import PoolComponentMissingError

        try:
            raise PoolComponentMissingError(7, "base_issuance")
        except PoolComponentMissingError:
            logger.error("close_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "POOL_COMPONENT_MISSING"
        assert record["exc_type"] == "PoolComponentMissingError"
        assert record["exc_epoch_id"] == 7
        assert record["exc_component_id"] == "base_issuance"
        assert record["exc_retryable"] is True

    def test_context_wins_over_extra(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        with LogContext.bind(epoch_id=5):
            get_logger("test").info("shadowed", extra={"epoch_id": 6})

        assert _parse_log(stream)["epoch_id"] == "5"

    def test_plain_exception_has_no_code(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise KeyError("signing")
        except KeyError:
            get_logger("test").exception("config_broken")

        record = _parse_log(stream)
        assert record["level"] == "ERROR"
        assert "exc_code" not in record

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "epoch_id" not in record

    def test_uuid_and_datetime_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        ts = datetime(2026, 1, 1, tzinfo=timezone.utc)
        logger.info("with_uuid", extra={"statement_id": uid, "signed_at": ts})

        record = _parse_log(stream)
        assert record["statement_id"] == str(uid)
        assert record["signed_at"] == "2026-01-01T00:00:00+00:00"

    def test_big_int_survives_as_exact_integer(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("big", extra={"amount": 2**200})

        record = _parse_log(stream)
        assert record["amount"] == 2**200

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # Default level is INFO, so the debug record is dropped
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= set(record)


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", scope_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "scope_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(epoch_id=1)
        with LogContext.bind(epoch_id=2):
            assert LogContext.get_all()["epoch_id"] == "2"
        assert LogContext.get_all()["epoch_id"] == "1"

    def test_bind_restores_none(self):
        assert "statement_id" not in LogContext.get_all()
        with LogContext.bind(statement_id="temp"):
            assert LogContext.get_all()["statement_id"] == "temp"
        assert "statement_id" not in LogContext.get_all()

    def test_unknown_fields_rejected(self):
        with pytest.raises(TypeError, match="not_a_field"):
            with LogContext.bind(not_a_field="x", epoch_id=3):
                pass
        with pytest.raises(TypeError):
            LogContext.set(tenant="x")
        assert LogContext.get_all() == {}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(epoch_id=9):
                raise RuntimeError("close failed")
        assert LogContext.get_all() == {}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            scope_id="s",
            epoch_id="e",
            actor_id="a",
            statement_id="st",
            trace_id="t",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 6
        assert ctx["scope_id"] == "s"
        assert ctx["trace_id"] == "t"


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
        root = logging.getLogger("ledger_kernel")
        assert len(root.handlers) == 1

    def test_get_logger_returns_child(self):
        logger = get_logger("services.epoch_close")
        assert logger.name == "ledger_kernel.services.epoch_close"

    def test_logger_hierarchy(self):
        """Child loggers inherit the ledger_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "ledger_kernel.deep.nested.module"

    def test_engine_tracer_logger_is_in_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from ledger_engines.payouts import compute_payouts
        from ledger_kernel.domain.model import ApprovedReceipt

        compute_payouts([ApprovedReceipt("a", 1)], 10)

        traces = [r for r in _parse_all_logs(stream) if r["message"] == "LEDGER_ENGINE_TRACE"]
        assert traces
        assert traces[0]["logger"] == "ledger_kernel.engines.tracer"
        assert traces[0]["engine_name"] == "payouts"
