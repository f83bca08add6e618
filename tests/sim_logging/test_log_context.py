"""Tests for logging context managers, formatters and setup."""

import json
import logging

import pytest

from roadside_tracking.sim_logging import (
    LogContext,
    log_context,
    log_session_context,
    setup_logging,
)
from roadside_tracking.sim_logging.context import ContextFilter
from roadside_tracking.sim_logging.filters import PIIFilter
from roadside_tracking.sim_logging.formatters import DevFormatter, JSONFormatter


@pytest.fixture
def logger():
    logger = logging.getLogger("test.tracking.context")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture
def captured_records(logger):
    records: list[logging.LogRecord] = []

    class RecordCapture(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            records.append(record)

    handler = RecordCapture()
    handler.addFilter(ContextFilter())
    logger.addHandler(handler)
    yield records
    logger.removeHandler(handler)
    LogContext.clear()


@pytest.mark.unit
class TestLogContext:
    def test_adds_extra_fields(self, logger, captured_records):
        with log_context(driver_id="driver-7", order_id="order-1"):
            logger.info("Test message")

        record = captured_records[0]
        assert record.driver_id == "driver-7"
        assert record.order_id == "order-1"

    def test_cleared_on_exit(self, logger, captured_records):
        with log_context(driver_id="driver-7"):
            pass
        logger.info("After context")

        assert not hasattr(captured_records[0], "driver_id")
        assert LogContext.get() == {}

    def test_cleared_on_exception(self):
        with pytest.raises(RuntimeError), log_context(order_id="order-1"):
            raise RuntimeError("boom")
        assert LogContext.get() == {}

    def test_explicit_extra_wins(self, logger, captured_records):
        with log_context(order_id="from-context"):
            logger.info("msg", extra={"order_id": "explicit"})

        assert captured_records[0].order_id == "explicit"

    def test_session_context_sets_correlation(self, logger, captured_records):
        with log_session_context("session-9", order_id="order-9"):
            logger.info("Tracking")

        record = captured_records[0]
        assert record.session_id == "session-9"
        assert record.correlation_id == "session-9"
        assert record.order_id == "order-9"

    def test_session_context_custom_correlation(self, logger, captured_records):
        with log_session_context("session-9", correlation_id="req-1"):
            logger.info("Tracking")

        assert captured_records[0].correlation_id == "req-1"

    def test_nested_block_restores_outer_fields(self, logger, captured_records):
        with log_session_context("session-a", order_id="order-a"):
            with log_session_context("session-b", order_id="order-b"):
                logger.info("Inner")
            logger.info("Outer again")

        inner, outer = captured_records
        assert inner.session_id == "session-b"
        assert outer.session_id == "session-a"
        assert outer.order_id == "order-a"
        assert outer.correlation_id == "session-a"
        assert LogContext.get() == {}

    def test_nested_block_drops_inner_only_fields(self):
        with log_context(session_id="session-a"):
            with log_context(driver_id="driver-7"):
                assert LogContext.get() == {"session_id": "session-a", "driver_id": "driver-7"}
            assert LogContext.get() == {"session_id": "session-a"}

    def test_get_returns_copy(self):
        with log_context(order_id="order-1"):
            LogContext.get()["order_id"] = "mutated"
            assert LogContext.get() == {"order_id": "order-1"}


@pytest.mark.unit
class TestFormatters:
    def make_record(self) -> logging.LogRecord:
        record = logging.LogRecord(
            name="roadside_tracking.tracking.session",
            level=logging.INFO,
            pathname="session.py",
            lineno=1,
            msg="Tracking session %s cancelled",
            args=("order-1",),
            exc_info=None,
        )
        record.session_id = "order-1"
        return record

    def test_json_formatter(self):
        output = json.loads(JSONFormatter(environment="test").format(self.make_record()))

        assert output["level"] == "INFO"
        assert output["logger"] == "roadside_tracking.tracking.session"
        assert output["message"] == "Tracking session order-1 cancelled"
        assert output["env"] == "test"
        assert output["session_id"] == "order-1"
        assert "driver_id" not in output

    def test_dev_formatter(self):
        output = DevFormatter().format(self.make_record())
        assert "[    INFO] roadside_tracking.tracking.session: Tracking session order-1" in output


@pytest.mark.unit
class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_installs_single_handler_with_filters(self):
        setup_logging(level="DEBUG", json_output=True, environment="test")
        root = logging.getLogger()

        assert len(root.handlers) == 1
        handler = root.handlers[0]
        assert isinstance(handler.formatter, JSONFormatter)
        assert any(isinstance(f, PIIFilter) for f in handler.filters)
        assert any(isinstance(f, ContextFilter) for f in handler.filters)
        assert root.level == logging.DEBUG

    def test_dev_output_and_quiet_http(self):
        setup_logging(level="info")

        assert isinstance(logging.getLogger().handlers[0].formatter, DevFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
