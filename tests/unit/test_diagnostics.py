import logging

import pytest
from unittest.mock import MagicMock

from blogapi.config import AppSettings, Environment, LogLevel, Settings
from blogapi.diagnostics import API_LOGGER_NAME, MAX_PAYLOAD_CHARS, DiagnosticSink, configure_logging
from blogapi.host import EventBus, Navigator


@pytest.fixture
def api_records(caplog):
    caplog.set_level(logging.DEBUG, logger=API_LOGGER_NAME)
    return caplog


def test_verbosity_follows_environment():
    assert DiagnosticSink.for_environment(Environment.DEVELOPMENT).verbose is True
    assert DiagnosticSink.for_environment(Environment.TESTING).verbose is True
    assert DiagnosticSink.for_environment(Environment.PRODUCTION).verbose is False


def test_production_emits_only_errors_without_details(api_records):
    sink = DiagnosticSink(verbose=False)

    sink.info("hello")
    sink.api_request("GET", "/api/v1/blogs", {"params": None})
    sink.api_response("GET", "/api/v1/blogs", 200, {"data": []})
    sink.error("Something broke", ValueError("secret detail"), path="/x")

    assert [r.getMessage() for r in api_records.records] == ["Something broke"]
    assert not hasattr(api_records.records[0], "context")


def test_development_emits_traffic_with_context(api_records):
    sink = DiagnosticSink(verbose=True)

    sink.api_request("POST", "/api/v1/auth/login", {"data": {"email": "a@b.c"}})
    sink.api_response("POST", "/api/v1/auth/login", 200, {"success": True})
    sink.api_error("GET", "/api/v1/blogs", ValueError("boom"), status=500)

    messages = [r.getMessage() for r in api_records.records]
    assert messages == [
        "[API Request] POST /api/v1/auth/login",
        "[API Response] POST /api/v1/auth/login - 200",
        "API Error: GET /api/v1/blogs",
    ]
    error_record = api_records.records[-1]
    assert error_record.levelno == logging.ERROR
    assert error_record.context["error"] == "boom"
    assert error_record.context["status"] == 500


def test_large_payloads_are_truncated(api_records):
    sink = DiagnosticSink(verbose=True)

    sink.info("big", payload="x" * (MAX_PAYLOAD_CHARS + 100))

    payload = api_records.records[0].context["payload"]
    assert len(payload) == MAX_PAYLOAD_CHARS + 3
    assert payload.endswith("...")


def test_emission_does_not_mutate_input(api_records):
    sink = DiagnosticSink(verbose=True)
    data = {"params": {"tag": "python"}, "data": None}

    sink.api_request("GET", "/api/v1/blogs", data)

    assert data == {"params": {"tag": "python"}, "data": None}


def test_configure_logging_sets_levels():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    settings = Settings(app=AppSettings(log_level=LogLevel.WARNING))

    try:
        configure_logging(settings)

        assert root.level == logging.WARNING
        assert logging.getLogger(API_LOGGER_NAME).level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
        logging.getLogger(API_LOGGER_NAME).setLevel(logging.NOTSET)


# Host primitives


def test_navigator_records_history_and_notifies():
    navigator = Navigator()
    listener = MagicMock()
    navigator.on_navigate(listener)

    navigator.navigate("/login")

    assert navigator.location == "/login"
    assert navigator.history == ["/", "/login"]
    listener.assert_called_once_with("/login")


def test_event_bus_subscribe_and_unsubscribe():
    bus = EventBus()
    handler = MagicMock()
    unsubscribe = bus.subscribe("api:rateLimit", handler)

    assert bus.dispatch("api:rateLimit", {"retryAfter": 5}) == 1
    handler.assert_called_once_with({"retryAfter": 5})

    unsubscribe()
    unsubscribe()
    assert bus.dispatch("api:rateLimit", {"retryAfter": 5}) == 0
