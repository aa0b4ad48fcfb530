"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Booking metrics
booking_attempts = Counter(
    "booking_attempts_total",
    "Total booking attempts",
    ["outcome"],  # success, unavailable, conflict, invalid, gateway_error, error
)

booking_latency = Histogram(
    "booking_latency_seconds",
    "Booking creation latency",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

booking_transitions = Counter(
    "booking_transitions_total",
    "Booking status transitions",
    ["from_status", "to_status", "trigger"],  # trigger: guest, payment, sweeper
)

# Listing lock metrics
lock_wait = Histogram(
    "listing_lock_wait_seconds",
    "Time spent waiting for a per-listing booking lock",
    ["backend"],
    buckets=[0.0001, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0],
)

lock_backend_errors = Counter(
    "listing_lock_backend_errors_total",
    "Distributed lock failures that fell back to the local lock",
)

# Payment gateway metrics
gateway_requests = Counter(
    "payment_gateway_requests_total",
    "Payment gateway calls",
    ["operation", "result"],  # create/cancel, ok/error
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


def record_booking_attempt(outcome: str):
    """Record booking attempt outcome."""
    booking_attempts.labels(outcome=outcome).inc()


def record_transition(from_status: str, to_status: str, trigger: str):
    booking_transitions.labels(
        from_status=from_status, to_status=to_status, trigger=trigger
    ).inc()


def record_gateway_call(operation: str, ok: bool):
    gateway_requests.labels(operation=operation, result="ok" if ok else "error").inc()
