"""Prometheus metrics for monitoring the Screenshot Analyzer service."""

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# Define metrics
SUBMISSIONS_RECEIVED = Counter(
    "screenshot_analyzer_submissions_total",
    "Number of screenshot submissions received",
    ["source"],
)

SUBMISSION_FAILURES = Counter(
    "screenshot_analyzer_submission_failures_total",
    "Number of submissions that failed, by pipeline stage",
    ["stage"],
)

NOTIFICATIONS = Counter(
    "screenshot_analyzer_notifications_total",
    "Notification delivery attempts by outcome",
    ["outcome"],
)

WATCHER_FILES = Counter(
    "screenshot_analyzer_watcher_files_total",
    "Files handled by the desktop watcher, by outcome",
    ["outcome"],
)

UPSTREAM_REQUEST_DURATION = Histogram(
    "screenshot_analyzer_upstream_request_duration_seconds",
    "Duration of AI service requests in seconds",
    ["call"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 30.0, 60.0],
)


def record_submission(source: str) -> None:
    SUBMISSIONS_RECEIVED.labels(source=source).inc()


def record_failure(stage: str) -> None:
    SUBMISSION_FAILURES.labels(stage=stage).inc()


def record_notification(outcome: str) -> None:
    NOTIFICATIONS.labels(outcome=outcome).inc()


def record_watcher_outcome(outcome: str) -> None:
    WATCHER_FILES.labels(outcome=outcome).inc()
