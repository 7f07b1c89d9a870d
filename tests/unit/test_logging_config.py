import io
import logging

import structlog

from toolhub.logging_config import (
    REDACTED,
    bind_request_context,
    clear_context,
    get_correlation_id,
    redact_secrets,
    setup_logging,
)


def test_redact_secrets_masks_credential_fields():
    event = {
        "event": "token_refreshed",
        "user_id": "U1",
        "access_token": "gho_abc",
        "refresh_token": "r1",
        "api_key": "k1",
    }

    result = redact_secrets(None, "info", event)

    assert result == {
        "event": "token_refreshed",
        "user_id": "U1",
        "access_token": REDACTED,
        "refresh_token": REDACTED,
        "api_key": REDACTED,
    }


def test_redact_secrets_keeps_empty_values():
    assert redact_secrets(None, "info", {"event": "x", "api_key": None}) == {
        "event": "x",
        "api_key": None,
    }


def test_request_context_round_trip():
    bind_request_context("req_1234", user_id="U1")
    try:
        assert get_correlation_id() == "req_1234"
        assert structlog.contextvars.get_contextvars()["user_id"] == "U1"
    finally:
        clear_context()

    assert get_correlation_id() is None


def test_setup_logging_quiets_http_libraries():
    setup_logging(service_name="toolhub-test", log_format="json", log_level="DEBUG")
    try:
        assert logging.getLogger("httpx").level == logging.WARNING
        assert structlog.contextvars.get_contextvars()["service"] == "toolhub-test"
    finally:
        clear_context()


def test_setup_logging_writes_to_given_stream():
    stream = io.StringIO()
    setup_logging(service_name="toolhub-test", log_format="json", stream=stream)
    try:
        structlog.get_logger("toolhub.test").info("server_registered", api_key="k1")
    finally:
        clear_context()

    output = stream.getvalue()
    assert "server_registered" in output
    assert "k1" not in output
