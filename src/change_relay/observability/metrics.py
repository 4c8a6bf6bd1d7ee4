"""Prometheus metrics for the change relay.

This module provides Prometheus metrics to monitor relay behaviour:

- Event counter by outcome (processed, skipped, already_handled, failed, ...)
- External endpoint latency histogram
- Template version gauge

Examples:
    Recording an event outcome::

        from change_relay.observability.metrics import record_outcome

        record_outcome("processed")

    Recording endpoint latency::

        from change_relay.observability.metrics import record_endpoint_latency

        record_endpoint_latency(latency_ms=150)
"""

from prometheus_client import Counter, Gauge, Histogram

# Labels: outcome (see core.state_machine.Outcome)
events_total = Counter(
    "relay_events_total",
    "Total number of record write events handled by the relay",
    ["outcome"],
)

# Only successful and failed calls, not skipped events
endpoint_latency_seconds = Histogram(
    "relay_endpoint_latency_seconds",
    "External endpoint call latency in seconds",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

template_version = Gauge(
    "relay_template_version",
    "Version of the template currently cached by the relay",
)


def record_outcome(outcome: str) -> None:
    """Record the outcome of one event.

    Args:
        outcome: The outcome value (processed, skipped, failed, ...)

    Examples:
        >>> record_outcome("processed")
    """
    events_total.labels(outcome=outcome).inc()


def record_endpoint_latency(latency_ms: int) -> None:
    """Record how long one external call took.

    Args:
        latency_ms: Call latency in milliseconds

    Examples:
        >>> record_endpoint_latency(150)
    """
    endpoint_latency_seconds.observe(latency_ms / 1000.0)


def record_template_version(version: int) -> None:
    """Record the template version now cached.

    Args:
        version: Template version number
    """
    template_version.set(version)
