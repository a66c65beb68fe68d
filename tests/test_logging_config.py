"""Tests for structured logging helpers."""

import pytest
from structlog.testing import capture_logs

from prisma_engine.logging_config import (
    _add_process_info,
    _add_session_id,
    _get_processors,
    get_logger,
    log_performance,
    log_simulation_run,
)


class TestProcessors:
    """Test custom structlog processors."""

    def test_session_id_defaults_to_none(self):
        assert _add_session_id(None, "info", {})["session_id"] is None

    def test_session_id_is_kept(self):
        assert _add_session_id(None, "info", {"session_id": "abc"})["session_id"] == "abc"

    def test_process_info(self):
        event = _add_process_info(None, "info", {})
        assert "process_id" in event
        assert "thread_id" in event

    def test_json_chain_ends_with_renderer(self):
        processors = _get_processors("json", enable_colors=False)
        assert type(processors[-1]).__name__ == "JSONRenderer"

    def test_console_chain_ends_with_renderer(self):
        processors = _get_processors("console", enable_colors=False)
        assert type(processors[-1]).__name__ == "ConsoleRenderer"


class TestHelpers:
    """Test logging helper functions."""

    def test_log_simulation_run(self):
        with capture_logs() as logs:
            log_simulation_run(
                get_logger(__name__),
                scenario_id="hire",
                iterations=100,
                summary={"median": 4200.0, "percentPositive": 88.0},
                duration_ms=12.345,
            )
        assert logs[0]["event"] == "simulation_run_complete"
        assert logs[0]["median"] == 4200.0
        assert logs[0]["percent_positive"] == 88.0
        assert logs[0]["duration_ms"] == 12.35

    def test_get_logger_binds_context(self):
        with capture_logs() as logs:
            get_logger(__name__, component="test").info("hello")
        assert logs[0]["component"] == "test"

    def test_log_performance_success(self):
        @log_performance()
        def add(a, b):
            return a + b

        with capture_logs() as logs:
            assert add(2, 3) == 5
        assert logs[0]["event"] == "function_executed"
        assert logs[0]["function"] == "add"

    def test_log_performance_failure_reraises(self):
        @log_performance()
        def explode():
            raise ValueError("boom")

        with capture_logs() as logs:
            with pytest.raises(ValueError):
                explode()
        assert logs[0]["event"] == "function_failed"
        assert logs[0]["error_type"] == "ValueError"
