"""
Tests for the logging module.
"""

import json
import logging
import threading

import pytest
import structlog


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_development_mode(self):
        """Test that development mode uses console renderer."""
        from core.logging import configure_logging

        # Should not raise
        configure_logging(json_logs=False, log_level="DEBUG")

    def test_configure_log_level(self):
        """Test that log level is correctly set."""
        from core.logging import configure_logging

        configure_logging(log_level="WARNING")

        assert logging.getLogger().level == logging.WARNING

    def test_driver_logs_quieted(self):
        """Test that psycopg logs stay at WARNING."""
        from core.logging import configure_logging

        configure_logging(log_level="DEBUG")

        assert logging.getLogger("psycopg").level == logging.WARNING


class TestJSONOutput:
    """Tests for JSON logging output."""

    def test_json_output_is_valid_json(self, capsys):
        """Test that JSON output is valid JSON."""
        from core.logging import configure_logging, get_logger

        configure_logging(json_logs=True, log_level="INFO")
        logger = get_logger("json_test")

        logger.info("Search batch completed", requests=2)

        lines = [line for line in capsys.readouterr().out.splitlines() if line]
        data = json.loads(lines[-1])
        assert data["event"] == "Search batch completed"
        assert data["requests"] == 2
        assert data["logger"] == "json_test"

    def test_long_sql_truncated(self, capsys):
        """Test that long SQL in log events is truncated and flagged."""
        from core.logging import MAX_SQL_LOG_CHARS, configure_logging, get_logger

        configure_logging(json_logs=True, log_level="DEBUG")
        get_logger("sql_test").debug("Executing statement", sql="x" * (MAX_SQL_LOG_CHARS + 50))

        lines = [line for line in capsys.readouterr().out.splitlines() if line]
        data = json.loads(lines[-1])
        assert len(data["sql"]) == MAX_SQL_LOG_CHARS + 3
        assert data["sql_truncated"] is True


class TestContextBinding:
    """Tests for context binding functions."""

    def test_bind_and_clear_context(self):
        """Test that bound context values can be read and cleared."""
        from core.logging import bind_context, clear_context

        clear_context()
        bind_context(request_id="abc", index="products")

        ctx = structlog.contextvars.get_contextvars()
        assert ctx.get("request_id") == "abc"
        assert ctx.get("index") == "products"

        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_context_reaches_worker_threads(self):
        """Wrapped callables see the caller's bound values in another thread."""
        from core.logging import bind_context, clear_context, in_current_context

        clear_context()
        bind_context(request_id="abc")
        seen = {}

        def read_context():
            seen.update(structlog.contextvars.get_contextvars())

        plain = threading.Thread(target=read_context)
        plain.start()
        plain.join()
        assert "request_id" not in seen

        wrapped = threading.Thread(target=in_current_context(read_context))
        wrapped.start()
        wrapped.join()
        assert seen["request_id"] == "abc"

        clear_context()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
