"""Prometheus metrics for checkout conversion, validation friction and settlement performance"""

from prometheus_client import Counter, Histogram

# Checkout metrics
session_counter = Counter(
    "bdn_checkout_sessions_total",
    "Checkout sessions started",
    ["flow"],
)

outcome_counter = Counter(
    "bdn_checkout_outcomes_total",
    "Checkout sessions reaching a terminal state",
    ["flow", "outcome"],  # success | error
)

validation_failure_counter = Counter(
    "bdn_checkout_validation_failures_total",
    "Rejected advance() calls by step",
    ["flow", "step"],
)

# Settlement metrics
settlement_latency_histogram = Histogram(
    "settlement_latency_seconds",
    "Settlement submission response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

settlement_failure_counter = Counter(
    "settlement_failures_total",
    "Failed settlement submissions",
    ["reason"],
)

# Catalog metrics
catalog_fetch_failures_counter = Counter(
    "catalog_fetch_failures_total",
    "Failed catalog API calls",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_session_started(flow: str) -> None:
    session_counter.labels(flow=flow).inc()


def record_validation_failure(flow: str, step: str) -> None:
    validation_failure_counter.labels(flow=flow, step=step).inc()


def record_outcome(flow: str, outcome: str, reason: str | None = None) -> None:
    """Record terminal outcome; failures are also bucketed by reason"""
    outcome_counter.labels(flow=flow, outcome=outcome).inc()
    if reason is not None:
        settlement_failure_counter.labels(reason=reason).inc()
