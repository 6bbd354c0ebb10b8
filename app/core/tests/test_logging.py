"""Tests for logging configuration."""

import structlog

from app.core.config import get_settings
from app.core.logging import (
    add_request_id,
    add_service_name,
    configure_logging,
    get_logger,
    request_id_ctx,
)


def test_get_logger_returns_bound_logger():
    """get_logger should return a structlog logger with level methods."""
    configure_logging()
    logger = get_logger("app.features.ingest.service")

    assert hasattr(logger, "info")
    assert hasattr(logger, "warning")


def test_request_id_processor_adds_context_value():
    """add_request_id should copy the current request id into the event."""
    token = request_id_ctx.set("req-42")
    try:
        event = add_request_id(None, "info", {"event": "ingest.run_started"})
    finally:
        request_id_ctx.reset(token)

    assert event["request_id"] == "req-42"


def test_request_id_processor_skips_missing_value():
    """Events outside a request carry no request_id."""
    assert request_id_ctx.get() is None
    event = add_request_id(None, "info", {"event": "app.startup_started"})
    assert "request_id" not in event


def test_service_name_processor():
    """add_service_name should tag events without overriding an explicit value."""
    tagged = add_service_name(None, "info", {"event": "x"})
    explicit = add_service_name(None, "info", {"event": "x", "service": "worker"})

    assert tagged["service"] == get_settings().app_name
    assert explicit["service"] == "worker"


def test_configure_logging_console_format(monkeypatch):
    """The console renderer is used when LOG_FORMAT is not json."""
    monkeypatch.setattr(get_settings(), "log_format", "console")
    configure_logging()

    processors = structlog.get_config()["processors"]
    assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    monkeypatch.undo()
    configure_logging()
    assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)
