"""Structured logging configuration for the change relay.

This module provides structured logging using structlog to emit
JSON-formatted logs with contextual information.

Every record write is logged with the record and event identifiers bound
through ``structlog.contextvars``, so concurrent events can be told apart:

    - record_id
    - event_id
    - change type and decision
    - status transitions
    - endpoint and template failures

Examples:
    Configure logging::

        from change_relay.observability.logging import configure_logging

        configure_logging(level="INFO", json_output=True)

    Use the logger::

        from change_relay.observability.logging import get_logger

        logger = get_logger(__name__)
        logger.info(
            "record.status_changed",
            status="pending",
        )

    Output (JSON)::

        {
            "event": "record.status_changed",
            "status": "pending",
            "record_id": "requests/abc",
            "event_id": "evt-1",
            "timestamp": "2024-01-01T00:00:00.000000Z",
            "level": "info"
        }
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """Set up the structlog pipeline for the relay process.

    Call once before the first event is handled, normally with
    ``RelayConfig.log_level`` and ``RelayConfig.json_logs``.

    Args:
        level: Log level name, case-insensitive
        json_output: JSON lines for log collectors if True, colored console
            output for local runs if False

    Examples:
        >>> config = RelayConfig.from_env()
        >>> configure_logging(level=config.log_level, json_output=config.json_logs)
    """
    numeric_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)

    processors: list[object] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,  # type: ignore[arg-type]
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ from the calling module)

    Returns:
        A structlog logger instance
    """
    return structlog.get_logger(name)


@contextmanager
def bind_event_context(record_id: str, event_id: str | None = None) -> Iterator[None]:
    """Bind record and event identifiers to every log line in the block.

    Args:
        record_id: Path or identifier of the record being processed.
        event_id: Delivery identifier from the trigger source, if any.

    Examples:
        >>> with bind_event_context("requests/abc", "evt-1"):
        ...     logger.info("relay.started")
    """
    context: dict[str, Any] = {"record_id": record_id}
    if event_id is not None:
        context["event_id"] = event_id
    with structlog.contextvars.bound_contextvars(**context):
        yield

