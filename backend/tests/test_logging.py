"""
Unit tests for structured logging configuration.

Tests verify:
- Logging configuration works correctly
- Context variables (trace_id, request_id) are set and retrieved
- Log output carries the service name and trace context
- Trace ID generation works
"""
import json
import logging
from io import StringIO

import pytest

from crypto_auditor.core import logging as logging_module
from crypto_auditor.core.logging import (
    configure_logging,
    get_logger,
    get_trace_id,
    get_request_id,
    set_trace_id,
    set_request_id,
    generate_trace_id,
    generate_request_id,
)


@pytest.fixture
def captured_output():
    """Route root logger output to a buffer for the duration of a test."""
    output = StringIO()
    root_logger = logging.getLogger()
    previous_handlers = list(root_logger.handlers)
    root_logger.handlers.clear()
    handler = logging.StreamHandler(output)
    handler.setLevel(logging.INFO)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)
    yield output
    root_logger.removeHandler(handler)
    root_logger.handlers.extend(previous_handlers)


class TestLoggingConfiguration:
    """Test logging configuration and setup."""

    def test_configure_logging_json_output(self, captured_output):
        """JSON output contains the event, custom fields and service name."""
        configure_logging(log_level="INFO", json_output=True)
        logger = get_logger("test_json_output")

        logger.info("test_message", test_field="test_value")

        lines = [line for line in captured_output.getvalue().splitlines() if "test_message" in line]
        assert lines, "No log output captured"
        entry = json.loads(lines[-1])
        assert entry["event"] == "test_message"
        assert entry["test_field"] == "test_value"
        assert entry["service"] == "crypto_auditor_agent"
        assert entry["level"] == "info"
        assert "timestamp" in entry

    def test_log_entry_carries_trace_context(self, captured_output):
        configure_logging(log_level="INFO", json_output=True)
        logger = get_logger("test_trace_context")

        set_trace_id("test-trace-123")
        set_request_id("test-request-456")
        try:
            logger.info("context_event")
        finally:
            set_trace_id(None)
            set_request_id(None)

        lines = [line for line in captured_output.getvalue().splitlines() if "context_event" in line]
        entry = json.loads(lines[-1])
        assert entry["trace_id"] == "test-trace-123"
        assert entry["request_id"] == "test-request-456"

    def test_configure_logging_console_output(self):
        """Console output can be configured and used."""
        configure_logging(log_level="INFO", json_output=False)
        logger = get_logger(__name__)

        logger.info("test_message", test_field="test_value")

    def test_service_name_default(self):
        assert logging_module.SERVICE_NAME == "crypto_auditor_agent"


class TestContextVariables:
    """Test trace ID and request ID context variables."""

    def test_set_and_get_trace_id(self):
        set_trace_id("test-trace-123")
        assert get_trace_id() == "test-trace-123"

        set_trace_id(None)
        assert get_trace_id() is None

    def test_set_and_get_request_id(self):
        set_request_id("test-request-456")
        assert get_request_id() == "test-request-456"

        set_request_id(None)
        assert get_request_id() is None

    def test_generate_trace_id(self):
        """Generated trace IDs are UUID-formatted and unique."""
        trace_id = generate_trace_id()

        assert isinstance(trace_id, str)
        assert len(trace_id) == 36
        assert trace_id.count("-") == 4
        assert generate_trace_id() != trace_id

    def test_generate_request_id(self):
        request_id = generate_request_id()

        assert len(request_id) == 36
        assert generate_request_id() != request_id


class TestLogLevels:
    """Test different log levels."""

    def test_exception_logging(self):
        """Test exception logging with exc_info."""
        configure_logging(log_level="ERROR", json_output=False)
        logger = get_logger(__name__)

        try:
            raise ValueError("Test exception")
        except ValueError:
            logger.error("exception_occurred", exc_info=True)
