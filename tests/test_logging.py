"""Tests for structured logging configuration."""

import json
import logging
from unittest.mock import patch

from bazar.app.core.logging import (
    JSONFormatter,
    ContextFilter,
    get_logger,
    get_logging_config,
    get_log_context,
    setup_logging,
)


def _record(msg="Test message", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_context(self):
        """Credit context fields are promoted to top-level keys."""
        record = _record("Listing funded")
        record.user_id = "user-123"
        record.item_id = "item-9"
        record.credit_source = "community_pot"
        record.duration_ms = 12.5

        data = json.loads(JSONFormatter().format(record))

        assert data["user_id"] == "user-123"
        assert data["item_id"] == "item-9"
        assert data["credit_source"] == "community_pot"
        assert data["duration_ms"] == 12.5
        # Location info is not clobbered by the credit source
        assert data["source"]["file"] == "test.py"

    def test_json_format_with_extra_fields(self):
        record = _record("Partial consumption")
        record.partial = True
        record.pot_decremented = False

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"]["partial"] is True
        assert data["extra"]["pot_decremented"] is False

    def test_json_format_with_exception(self):
        import sys

        try:
            raise ValueError("Test error")
        except ValueError:
            record = _record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text

    def test_json_format_unicode(self):
        data = json.loads(JSONFormatter().format(_record("Annonce créée: vélo 🚲")))
        assert "vélo 🚲" in data["message"]


class TestContextFilter:
    """Test context filter for adding default fields."""

    def test_adds_default_fields(self):
        record = _record()

        assert ContextFilter().filter(record) is True

        for field in ("request_id", "user_id", "item_id", "credit_source", "cache_key", "duration_ms"):
            assert hasattr(record, field)
            assert getattr(record, field) is None

    def test_preserves_existing_values(self):
        record = _record()
        record.user_id = "existing-user"

        ContextFilter().filter(record)

        assert record.user_id == "existing-user"


class TestGetLoggingConfig:
    """Test logging configuration generation."""

    def test_default_text_format(self):
        with patch("bazar.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "text"
            mock_settings.log_level = "INFO"

            config = get_logging_config()

        assert "standard" in config["formatters"]
        assert "structured" in config["formatters"]
        assert "json" not in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "standard"

    def test_structured_format(self):
        with patch("bazar.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "structured"
            mock_settings.log_level = "DEBUG"

            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert config["handlers"]["console"]["level"] == "DEBUG"

    def test_json_format(self):
        with patch("bazar.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "WARNING"

            config = get_logging_config()

        assert "json" in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["handlers"]["console"]["level"] == "WARNING"

    def test_package_logger_configured(self):
        config = get_logging_config()

        assert "context" in config["handlers"]["console"]["filters"]
        assert config["loggers"]["bazar"]["propagate"] is False


class TestGetLogger:
    def test_get_logger_default_name(self):
        assert get_logger().name == "bazar"

    def test_get_logger_custom_name(self):
        assert get_logger("bazar.app.services.ledger").name == "bazar.app.services.ledger"


class TestGetLogContext:
    """Test get_log_context helper function."""

    def test_basic_context(self):
        context = get_log_context(user_id="user-1", item_id="item-2", source="personal_credits")

        assert context == {
            "user_id": "user-1",
            "item_id": "item-2",
            "credit_source": "personal_credits",
        }

    def test_context_filters_none(self):
        context = get_log_context(user_id="user-1", item_id=None)

        assert "user_id" in context
        assert "item_id" not in context
        assert "credit_source" not in context

    def test_context_with_extra(self):
        context = get_log_context(request_id="req-1", granted_by="admin-7", attempt=2)

        assert context["request_id"] == "req-1"
        assert context["granted_by"] == "admin-7"
        assert context["attempt"] == 2


class TestIntegration:
    """Integration tests for logging system."""

    def test_json_logging_output(self, capsys):
        with patch("bazar.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "INFO"

            setup_logging()
            logger = get_logger("test.integration")
            logger.info(
                "Integration test",
                extra=get_log_context(user_id="user-1", source="community_pot"),
            )

            output = capsys.readouterr().out

        data = json.loads(output.strip())

        assert data["level"] == "INFO"
        assert data["logger"] == "test.integration"
        assert data["message"] == "Integration test"
        assert data["user_id"] == "user-1"
        assert data["credit_source"] == "community_pot"
