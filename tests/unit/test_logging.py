"""Tests for structured logging functionality.

Tests logging configuration, context binding and the custom processors.
"""

import json
import logging
from datetime import datetime, timedelta, timezone

import pytest
import structlog

from installment_reprocessor.logging_config import (
    APP_NAME,
    add_app_context,
    bind_context,
    clear_context,
    configure_logging,
    drop_debug_events,
    get_logger,
    is_debug_mode,
    log_settings_from_env,
    render_temporal_values,
    unbind_context,
)


@pytest.fixture(scope="module")
def setup_logging():
    """Console or JSON logging, as selected by LOG_LEVEL and LOG_FORMAT."""
    log_level, json_format = log_settings_from_env()
    configure_logging(log_level=log_level, json_format=json_format)
    yield


@pytest.fixture(autouse=True)
def cleanup_context():
    """No context leaks between tests."""
    clear_context()
    yield
    clear_context()


class TestProcessors:
    """Test the custom structlog processors."""

    def test_add_app_context(self):
        event_dict = add_app_context(None, "info", {"event": "installment_succeeded"})

        assert event_dict["app"] == APP_NAME

    def test_drop_debug_events_outside_debug_mode(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INFO")

        with pytest.raises(structlog.DropEvent):
            drop_debug_events(None, "debug", {"event": "reprocessing_budget_checked"})

    def test_keep_debug_events_in_debug_mode(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")

        assert is_debug_mode()
        assert drop_debug_events(None, "debug", {"event": "x"}) == {"event": "x"}

    def test_other_levels_pass_through(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INFO")

        assert drop_debug_events(None, "info", {"event": "x"}) == {"event": "x"}


class TestTemporalRendering:
    """Durations and timestamps are logged as ISO 8601 strings."""

    def test_interval_rendered_as_duration(self):
        event_dict = render_temporal_values(
            None, "info", {"event": "reprocessor_initialized", "reprocessing_interval": timedelta(days=2)}
        )

        assert event_dict["reprocessing_interval"] == "P2D"

    def test_sub_minute_duration_falls_back_to_str(self):
        event_dict = render_temporal_values(None, "info", {"event": "x", "elapsed": timedelta(seconds=5)})

        assert event_dict["elapsed"] == "0:00:05"

    def test_datetime_rendered_as_isoformat(self):
        when = datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)

        event_dict = render_temporal_values(None, "info", {"event": "x", "actionable_date": when})

        assert event_dict["actionable_date"] == "2024-01-02T09:30:00+00:00"

    def test_timestamp_and_other_values_untouched(self):
        event_dict = render_temporal_values(
            None, "info", {"event": "x", "timestamp": "already-rendered", "attempts": 3}
        )

        assert event_dict == {"event": "x", "timestamp": "already-rendered", "attempts": 3}


class TestLogSettingsFromEnv:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("LOG_FORMAT", raising=False)

        assert log_settings_from_env() == ("INFO", True)

    def test_console_format_and_lowercase_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        monkeypatch.setenv("LOG_FORMAT", "console")

        assert log_settings_from_env() == ("WARNING", False)


class TestContextualLogging:
    """Test logging with bound context."""

    def test_bind_context(self, setup_logging):
        bind_context(request_id="req-12345", installment_id="inst_abc")

        context = structlog.contextvars.get_contextvars()
        assert context == {"request_id": "req-12345", "installment_id": "inst_abc"}

        get_logger("test.context").info("installment_lookup_started")

    def test_unbind_context(self, setup_logging):
        bind_context(request_id="req-1", subscription_id="sub_1")

        unbind_context("subscription_id")

        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}

    def test_clear_context(self, setup_logging):
        bind_context(request_id="req-12345")

        clear_context()

        assert structlog.contextvars.get_contextvars() == {}


class TestRenderedOutput:
    """End to end through the configured processor chain."""

    @pytest.fixture
    def json_logging(self):
        configure_logging(log_level="INFO", json_format=True, include_timestamp=False)
        yield
        configure_logging(log_level="INFO", json_format=False)

    def test_json_line_has_iso_values_and_context(self, json_logging, caplog):
        bind_context(request_id="req-7")

        with caplog.at_level(logging.INFO):
            get_logger("test.rendered").info(
                "installment_rescheduled",
                reprocessing_interval=timedelta(days=1),
                actionable_date=datetime(2024, 3, 11, 12, 34, tzinfo=timezone.utc),
            )

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["event"] == "installment_rescheduled"
        assert payload["app"] == APP_NAME
        assert payload["logger"] == "test.rendered"
        assert payload["level"] == "info"
        assert payload["request_id"] == "req-7"
        assert payload["reprocessing_interval"] == "P1D"
        assert payload["actionable_date"] == "2024-03-11T12:34:00+00:00"

    def test_exception_is_formatted(self, json_logging, caplog):
        with caplog.at_level(logging.INFO):
            try:
                raise ValueError("bad duration")
            except ValueError as e:
                get_logger("test.rendered").error("config_invalid", error=str(e), exc_info=True)

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["error"] == "bad duration"
        assert "ValueError" in payload["exception"]

    def test_debug_events_dropped_at_info(self, json_logging, caplog, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INFO")

        with caplog.at_level(logging.DEBUG):
            get_logger("test.rendered").debug("reprocessing_budget_checked")

        assert caplog.records == []


@pytest.mark.parametrize("json_format", [True, False])
def test_configure_logging_formats(json_format):
    """Both renderers accept the processor output."""
    configure_logging(log_level="INFO", json_format=json_format, include_timestamp=False)
    get_logger("test.formats").info("installment_scheduled", installment_id="inst_1")
