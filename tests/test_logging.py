"""Tests for logging setup and redaction."""

import io
import json
import logging

import pytest

from stepwise.utils.logging import get_logger, redact, setup_logging


@pytest.fixture
def captured():
    stream = io.StringIO()
    setup_logging("INFO", json_output=True, stream=stream)
    yield stream
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


class TestRedact:
    @pytest.mark.parametrize("text, leaked", [
        ("api_key=abc123", "abc123"),
        ('{"password": "hunter2"}', "hunter2"),
        ("Authorization: Bearer eyJhbGciOi.J9", "eyJhbGciOi"),
        ("401 for key sk-ant-api03-abcdefghijkl", "abcdefghijkl"),
    ])
    def test_masks_credentials(self, text, leaked):
        masked = redact(text)
        assert leaked not in masked
        assert "***REDACTED***" in masked

    def test_leaves_plain_text(self):
        assert redact("input_tokens: 12, step tool:search") == "input_tokens: 12, step tool:search"


class TestSetupLogging:
    def test_json_lines_with_component(self, captured):
        get_logger("stepwise.tests.logging").info("tool_failed", tool="search", error="token=xyz")
        record = json.loads(captured.getvalue().strip().splitlines()[-1])
        assert record["event"] == "tool_failed"
        assert record["component"] == "tests.logging"
        assert record["level"] == "info"
        assert record["error"] == "token=***REDACTED***"
        assert "logger" not in record

    def test_level_filters(self):
        stream = io.StringIO()
        setup_logging("WARNING", json_output=True, stream=stream)
        try:
            log = get_logger("stepwise.tests.levels")
            log.info("hidden")
            log.warning("shown")
        finally:
            logging.getLogger().handlers.clear()
        assert "hidden" not in stream.getvalue()
        assert "shown" in stream.getvalue()

    def test_noisy_libraries_quieted(self, captured):
        assert logging.getLogger("httpx").level == logging.WARNING
