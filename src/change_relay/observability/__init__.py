"""Observability utilities for the change relay.

This package provides monitoring and debugging capabilities:
- Prometheus metrics for event outcomes, endpoint latency and template version
- Structured logging with per-event context

These tools are the only place failures surface: a record that fails stays
``pending`` and the reason is in the logs.
"""

from change_relay.observability.logging import bind_event_context, configure_logging, get_logger
from change_relay.observability.metrics import (
    record_endpoint_latency,
    record_outcome,
    record_template_version,
)

__all__ = [
    "bind_event_context",
    "configure_logging",
    "get_logger",
    "record_outcome",
    "record_endpoint_latency",
    "record_template_version",
]
