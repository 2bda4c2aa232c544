"""Prometheus collectors for the HTTP surface and the call pipeline."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

_HTTP_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
# Whisper uploads and LLM calls take seconds, not milliseconds.
_STAGE_BUCKETS = (0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0)

REQUEST_COUNT = Counter(
    "http_requests_total",
    "HTTP requests by route template and status",
    ("method", "route", "status"),
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=_HTTP_BUCKETS,
)
ERROR_COUNTER = Counter(
    "http_server_errors_total",
    "Requests answered with a 5xx status",
    ("method", "route"),
)

PIPELINE_RUNS = Counter(
    "call_pipeline_runs_total",
    "Call pipeline runs by outcome (completed, failed, skipped)",
    ("outcome",),
)
PIPELINE_STAGE_LATENCY = Histogram(
    "call_pipeline_stage_duration_seconds",
    "Duration of each call pipeline stage in seconds",
    ("stage",),
    buckets=_STAGE_BUCKETS,
)
RETRY_ATTEMPTS = Counter(
    "call_pipeline_failed_attempts_total",
    "Failed attempts of retried external operations",
    ("operation", "final"),
)


def observe_request(method: str, route: str, status_code: int, duration_seconds: float) -> None:
    labels = {"method": method or "UNKNOWN", "route": route or "unknown"}
    REQUEST_COUNT.labels(status=str(status_code), **labels).inc()
    REQUEST_LATENCY.labels(**labels).observe(max(duration_seconds, 0.0))
    if status_code >= 500:
        ERROR_COUNTER.labels(**labels).inc()


def observe_pipeline_run(outcome: str) -> None:
    PIPELINE_RUNS.labels(outcome=outcome).inc()


def observe_stage(stage: str, duration_seconds: float) -> None:
    """Record how long one pipeline stage took."""

    PIPELINE_STAGE_LATENCY.labels(stage=stage).observe(max(duration_seconds, 0.0))


def observe_retry(operation: str, *, final: bool) -> None:
    """Count a failed attempt; ``final`` marks the one that exhausted the policy."""

    RETRY_ATTEMPTS.labels(operation=operation, final=str(final).lower()).inc()
