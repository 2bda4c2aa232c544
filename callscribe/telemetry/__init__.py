"""Telemetry helpers and metrics."""

from .metrics import (
    ERROR_COUNTER,
    PIPELINE_RUNS,
    PIPELINE_STAGE_LATENCY,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    RETRY_ATTEMPTS,
    observe_pipeline_run,
    observe_request,
    observe_retry,
    observe_stage,
)

__all__ = [
    "ERROR_COUNTER",
    "PIPELINE_RUNS",
    "PIPELINE_STAGE_LATENCY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "RETRY_ATTEMPTS",
    "observe_pipeline_run",
    "observe_request",
    "observe_retry",
    "observe_stage",
]
