"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation engine metrics
borrow_attempts = Counter(
    'borrow_attempts_total',
    'Total borrow attempts',
    ['outcome']  # success or the failure reason
)

return_attempts = Counter(
    'return_attempts_total',
    'Total return attempts',
    ['outcome']
)

compensations = Counter(
    'copy_compensations_total',
    'Compensating releases of reserved copies',
    ['result']  # applied, retry, failed
)

integrity_warnings = Counter(
    'ledger_integrity_warnings_total',
    'Non-fatal ledger/catalog inconsistencies detected',
    ['kind']
)

operation_latency = Histogram(
    'reservation_operation_latency_seconds',
    'Borrow/return latency',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

# HTTP metrics
request_latency = Histogram(
    'http_request_latency_seconds',
    'HTTP request latency',
    ['method', 'status_code'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_borrow_attempt(outcome: str):
    """Record borrow attempt. Outcome: success or an error reason."""
    borrow_attempts.labels(outcome=outcome).inc()


def record_return_attempt(outcome: str):
    return_attempts.labels(outcome=outcome).inc()


def record_compensation(result: str):
    """Result: applied, retry, failed"""
    compensations.labels(result=result).inc()


def record_integrity_warning(kind: str):
    integrity_warnings.labels(kind=kind).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
