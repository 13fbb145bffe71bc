"""
Prometheus metrics for TrendReel observability.

Usage:
    from trendreel.monitoring.metrics import track_stage_execution

    with track_stage_execution("render"):
        asset = await stage.execute(prompt_output)
"""

import time
from contextlib import contextmanager
from typing import Generator

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.applications import Starlette
from starlette.responses import Response
from starlette.routing import Route


# =============================================================================
# Metric Definitions
# =============================================================================

# Render jobs poll for minutes, so the upper buckets are wide
STAGE_EXECUTION_DURATION = Histogram(
    "trendreel_stage_execution_duration_seconds",
    "Duration of pipeline stage execution in seconds",
    ["stage"],
    buckets=[0.01, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 120.0, 300.0, 600.0],
)

STAGE_EXECUTION_TOTAL = Counter(
    "trendreel_stage_execution_total",
    "Total number of pipeline stage executions",
    ["stage", "status"],
)

PIPELINE_RUNS_TOTAL = Counter(
    "trendreel_pipeline_runs_total",
    "Total number of full pipeline runs",
    ["outcome"],
)

TREND_FALLBACK_TOTAL = Counter(
    "trendreel_trend_fallback_total",
    "Times trend acquisition substituted the mock dataset",
    ["reason"],
)

CIRCUIT_BREAKER_STATE = Gauge(
    "trendreel_circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=half_open, 2=open)",
    ["service"],
)

CIRCUIT_BREAKER_FAILURES = Counter(
    "trendreel_circuit_breaker_failures_total",
    "Total failures recorded by circuit breakers",
    ["service"],
)


# =============================================================================
# Tracking Helpers
# =============================================================================


@contextmanager
def track_stage_execution(stage: str) -> Generator[None, None, None]:
    """
    Context manager to track stage execution duration and status.

    Usage:
        with track_stage_execution("weighting"):
            scored = await stage.execute(weighting_input)
    """
    start_time = time.perf_counter()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.perf_counter() - start_time
        STAGE_EXECUTION_DURATION.labels(stage=stage).observe(duration)
        STAGE_EXECUTION_TOTAL.labels(stage=stage, status=status).inc()


def record_pipeline_run(success: bool) -> None:
    PIPELINE_RUNS_TOTAL.labels(outcome="success" if success else "failure").inc()


def record_trend_fallback(reason: str) -> None:
    TREND_FALLBACK_TOTAL.labels(reason=reason).inc()


def update_circuit_breaker_state(service: str, state: str) -> None:
    """
    Update circuit breaker state gauge.

    Args:
        service: Service name
        state: Circuit state ("closed", "half_open", "open")
    """
    state_map = {"closed": 0, "half_open": 1, "open": 2}
    CIRCUIT_BREAKER_STATE.labels(service=service).set(state_map.get(state, 0))


def record_circuit_breaker_failure(service: str) -> None:
    CIRCUIT_BREAKER_FAILURES.labels(service=service).inc()


# =============================================================================
# Metrics Endpoint
# =============================================================================


async def metrics_endpoint(request) -> Response:
    """Prometheus metrics endpoint handler."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


def get_metrics_app() -> Starlette:
    """Starlette app serving metrics, mounted at /metrics by the API."""
    return Starlette(
        routes=[
            Route("/", metrics_endpoint),
        ]
    )
