"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Admission ledger metrics
admission_outcomes = Counter(
    'admission_outcomes_total',
    'Admission ledger outcomes',
    ['operation', 'outcome']  # claim_code/join_waitlist, claimed/already_claimed_or_invalid/...
)

admission_latency = Histogram(
    'admission_operation_latency_seconds',
    'Admission ledger operation latency, retries included',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Data access metrics
db_retries = Counter(
    'db_retry_attempts_total',
    'Data access retries after transient failures',
    ['operation']
)

db_terminal_failures = Counter(
    'db_terminal_failures_total',
    'Data access operations that ended in a failure outcome',
    ['operation', 'classification']  # transient, permanent
)

# Sign-up metrics
sign_up_attempts = Counter(
    'sign_up_attempts_total',
    'Sign-up attempts by admission mode and result',
    ['mode', 'result']  # created, rejected, conflict, error
)

rate_limited_requests = Counter(
    'rate_limited_requests_total',
    'Requests refused by the attempt limiter',
    ['scope']
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


def record_admission(operation: str, outcome: str):
    """Record a ledger outcome. Outcome is the outcome kind value."""
    admission_outcomes.labels(operation=operation, outcome=outcome).inc()


def record_retry(operation: str):
    db_retries.labels(operation=operation).inc()


def record_terminal_failure(operation: str, transient: bool):
    classification = "transient" if transient else "permanent"
    db_terminal_failures.labels(operation=operation, classification=classification).inc()


def record_sign_up(mode: str, result: str):
    """Record sign-up attempt. Result: created, rejected, conflict, error"""
    sign_up_attempts.labels(mode=mode, result=result).inc()


def record_rate_limited(scope: str):
    rate_limited_requests.labels(scope=scope).inc()
