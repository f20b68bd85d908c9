"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(
        0.005,
        0.01,
        0.025,
        0.05,
        0.1,
        0.25,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
    ),
)

LOGIN_COUNTER = Counter(
    "app_logins_total",
    "Number of successful user login events",
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    status_label = str(status_code)
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=status_label,
    ).inc()
    REQUEST_LATENCY.labels(
        method=safe_method,
        route=safe_route,
    ).observe(observed_duration)

    if status_code >= 500:
        ERROR_COUNTER.labels(
            method=safe_method,
            route=safe_route,
        ).inc()


def increment_login() -> None:
    """Increment the successful login counter."""

    LOGIN_COUNTER.inc()


PIPELINE_RUNS = Counter(
    "pipeline_runs_total",
    "Recording pipeline runs by final outcome",
    ("outcome",),
)

PIPELINE_STAGE_LATENCY = Histogram(
    "pipeline_stage_duration_seconds",
    "Recording pipeline stage duration in seconds",
    ("stage",),
    buckets=(
        0.1,
        0.5,
        1.0,
        2.5,
        5.0,
        10.0,
        30.0,
        60.0,
        120.0,
        300.0,
        600.0,
    ),
)

PIPELINE_DEGRADED = Counter(
    "pipeline_degraded_total",
    "Pipeline stages that completed through a fallback path",
    ("stage",),
)

PIPELINE_ACTIVE_JOBS = Gauge(
    "pipeline_active_jobs",
    "Recording pipeline runs currently in flight",
)


def observe_pipeline_stage(stage: str, duration_seconds: float) -> None:
    """Record how long one pipeline stage took."""

    PIPELINE_STAGE_LATENCY.labels(stage=stage).observe(max(duration_seconds, 0))


def record_pipeline_degraded(stage: str) -> None:
    PIPELINE_DEGRADED.labels(stage=stage).inc()


def record_pipeline_outcome(outcome: str) -> None:
    PIPELINE_RUNS.labels(outcome=outcome).inc()
