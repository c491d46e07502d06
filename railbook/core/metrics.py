"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Saga metrics
saga_steps = Counter(
    'booking_saga_steps_total',
    'Booking saga step outcomes',
    ['operation', 'step', 'result']  # create/confirm/cancel, hold/charge/..., ok/error
)

saga_latency = Histogram(
    'booking_saga_latency_seconds',
    'End-to-end latency of a saga operation',
    ['operation'],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

saga_compensations = Counter(
    'booking_saga_compensations_total',
    'Compensating actions run after a partial failure',
    ['action', 'result']  # release_hold/release_reserved/refund/cancel_booking, ok/error
)

# Seat ledger metrics
ledger_operations = Counter(
    'seat_ledger_operations_total',
    'Seat ledger operations',
    ['operation', 'result']  # hold/confirm/release/release_reserved, ok/rejected
)

seats_held = Counter(
    'seat_ledger_seats_held_total',
    'Seats moved from AVAILABLE to HELD'
)

# Sweeper metrics
sweeper_runs = Counter(
    'hold_sweeper_runs_total',
    'Hold sweeper cycles',
    ['result']  # ok, error
)

sweeper_released = Counter(
    'hold_sweeper_released_total',
    'Expired holds reclaimed by the sweeper'
)

sweeper_failures = Counter(
    'hold_sweeper_failures_total',
    'Expired holds the sweeper failed to reclaim'
)

sweeper_last_run = Gauge(
    'hold_sweeper_last_run_timestamp_seconds',
    'Unix time of the last completed sweep'
)

# Collaborator metrics
collaborator_latency = Histogram(
    'collaborator_request_latency_seconds',
    'Latency of calls to collaborator services',
    ['collaborator', 'operation'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

collaborator_errors = Counter(
    'collaborator_errors_total',
    'Failed calls to collaborator services',
    ['collaborator', 'kind']  # timeout, unreachable, remote
)

# Payment metrics
payments_processed = Counter(
    'payments_processed_total',
    'Payment attempts by outcome',
    ['operation', 'status']  # charge/refund, PAID/FAILED/REFUNDED
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


# Convenience functions for instrumentation
def record_saga_step(operation: str, step: str, ok: bool):
    """Record the outcome of one saga step."""
    saga_steps.labels(operation=operation, step=step, result="ok" if ok else "error").inc()


def record_compensation(action: str, ok: bool):
    """Record a compensating action."""
    saga_compensations.labels(action=action, result="ok" if ok else "error").inc()


def record_ledger_operation(operation: str, ok: bool):
    """Record a seat ledger operation. Rejected means a domain error was raised."""
    ledger_operations.labels(operation=operation, result="ok" if ok else "rejected").inc()


def record_collaborator_error(collaborator: str, kind: str):
    """Record a failed collaborator call. Kind: timeout, unreachable, remote"""
    collaborator_errors.labels(collaborator=collaborator, kind=kind).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
