"""Structured logging configuration.

JSON output for deployments, console output for development. Credential
material never reaches a renderer: values under secret-looking keys are
masked by ``redact_secrets`` before rendering.

Usage:
    from toolhub.logging_config import setup_logging
    import structlog

    setup_logging(service_name="toolhub-api")
    logger = structlog.get_logger(__name__)
    logger.info("server_registered", server="github")
"""

import logging
import os
import sys
from typing import Any, Literal, TextIO

import structlog
from structlog.types import EventDict, Processor

REDACTED = "***"

SECRET_KEYS = frozenset(
    {
        "api_key",
        "access_token",
        "refresh_token",
        "client_secret",
        "passphrase",
        "encryption_key",
        "authorization",
        "code",
    }
)

# Libraries that log request URLs, which can carry codes and tokens.
NOISY_LOGGERS = ("httpx", "httpcore", "mcp", "openai")


def redact_secrets(_logger: Any, _method: str, event_dict: EventDict) -> EventDict:
    for key in event_dict.keys() & SECRET_KEYS:
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def setup_logging(
    service_name: str | None = None,
    log_format: Literal["json", "console"] | None = None,
    log_level: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        service_name: Bound as ``service`` on every event.
                     Falls back to SERVICE_NAME env var or "toolhub".
        log_format: "json" or "console".
                   Falls back to LOG_FORMAT env var or "console".
        log_level: DEBUG, INFO, WARNING or ERROR.
                  Falls back to LOG_LEVEL env var or "INFO".
        stream: Log destination, stdout by default. The CLI logs to stderr
                so command output stays machine-readable.
    """
    service_name = service_name or os.getenv("SERVICE_NAME", "toolhub")
    log_format = log_format or os.getenv("LOG_FORMAT", "console")
    log_level = log_level or os.getenv("LOG_LEVEL", "INFO")

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=numeric_level,
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=False),
        # correlation_id, user_id, thread_id
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=False))
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)

    structlog.get_logger(__name__).info(
        "logging_initialized",
        service=service_name,
        log_format=log_format,
        log_level=log_level,
    )


def bind_request_context(correlation_id: str, **fields: Any) -> None:
    """Bind correlation id and request fields for the current context."""
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id, **fields)


def get_correlation_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("correlation_id")


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
