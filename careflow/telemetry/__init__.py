"""Telemetry helpers and metrics."""

from .metrics import (
    ERROR_COUNTER,
    LOGIN_COUNTER,
    PIPELINE_ACTIVE_JOBS,
    PIPELINE_DEGRADED,
    PIPELINE_RUNS,
    PIPELINE_STAGE_LATENCY,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    increment_login,
    observe_pipeline_stage,
    observe_request,
    record_pipeline_degraded,
    record_pipeline_outcome,
)

__all__ = [
    "ERROR_COUNTER",
    "LOGIN_COUNTER",
    "PIPELINE_ACTIVE_JOBS",
    "PIPELINE_DEGRADED",
    "PIPELINE_RUNS",
    "PIPELINE_STAGE_LATENCY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "increment_login",
    "observe_pipeline_stage",
    "observe_request",
    "record_pipeline_degraded",
    "record_pipeline_outcome",
]
