"""Prometheus metrics for publish and dispatch."""

from __future__ import annotations

from prometheus_client import Counter, Histogram, Info, start_http_server

SYSTEM_INFO = Info("event_propagation", "Event propagation service information")

PUBLISHED_TOTAL = Counter(
    "event_propagation_published_total",
    "Domain events handed to the broker transport",
    ["domain_event", "schema"],
)

PUBLISH_FAILURES_TOTAL = Counter(
    "event_propagation_publish_failures_total",
    "Publish calls that raised",
    ["domain_event", "error_type"],
)

HANDLED_TOTAL = Counter(
    "event_propagation_handled_total",
    "Inbound domain events by dispatch outcome",
    ["domain_event", "outcome"],
)

HANDLE_LATENCY = Histogram(
    "event_propagation_handle_seconds",
    "Time spent dispatching one inbound domain event",
    ["domain_event"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)


def start_metrics_server(port: int = 9090, service: str = "unknown") -> None:
    """Start Prometheus metrics HTTP server in a background thread."""
    SYSTEM_INFO.info({
        "version": "0.1.0",
        "service": service,
    })
    start_http_server(port)


# ---------------------------------------------------------------------------
# Convenience helpers for emitting metrics from the pipelines
# ---------------------------------------------------------------------------


def record_published(domain_event: str, schema: str, count: int) -> None:
    PUBLISHED_TOTAL.labels(domain_event=domain_event, schema=schema).inc(count)


def record_publish_failure(domain_event: str, error_type: str) -> None:
    PUBLISH_FAILURES_TOTAL.labels(
        domain_event=domain_event, error_type=error_type,
    ).inc()


def record_handled(domain_event: str, outcome: str, seconds: float) -> None:
    HANDLED_TOTAL.labels(domain_event=domain_event, outcome=outcome).inc()
    HANDLE_LATENCY.labels(domain_event=domain_event).observe(seconds)
