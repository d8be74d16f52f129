"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Session lifecycle metrics
sessions_completed = Counter(
    'sessions_completed_total',
    'Sessions transitioned to completed',
    ['trigger']  # auto, manual
)

session_completion_errors = Counter(
    'session_completion_errors_total',
    'Sessions that failed to complete during a batch run'
)

completion_run_duration = Histogram(
    'session_completion_run_seconds',
    'Duration of an auto-completion batch run',
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# Review solicitation metrics
review_requests = Counter(
    'review_requests_total',
    'Review request notifications dispatched',
    ['result']  # sent, error
)

review_reminders = Counter(
    'review_reminders_total',
    'Review reminder notifications dispatched'
)

# Review submission metrics
review_submissions = Counter(
    'review_submissions_total',
    'Review submission attempts',
    ['result']  # created, duplicate
)

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, conflict, error
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_session_completed(trigger: str):
    """Record a completed session. Trigger: auto, manual"""
    sessions_completed.labels(trigger=trigger).inc()


def record_review_request(sent: bool):
    result = "sent" if sent else "error"
    review_requests.labels(result=result).inc()


def record_review_submission(created: bool):
    result = "created" if created else "duplicate"
    review_submissions.labels(result=result).inc()


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, error"""
    booking_attempts.labels(status=status).inc()
