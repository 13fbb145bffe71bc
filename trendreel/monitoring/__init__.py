"""
Monitoring and observability for TrendReel.

Prometheus counters and histograms for stage execution, full runs, trend
fallbacks and circuit breakers, plus the /metrics ASGI app.
"""

from trendreel.monitoring.metrics import (
    CIRCUIT_BREAKER_FAILURES,
    CIRCUIT_BREAKER_STATE,
    PIPELINE_RUNS_TOTAL,
    STAGE_EXECUTION_DURATION,
    STAGE_EXECUTION_TOTAL,
    TREND_FALLBACK_TOTAL,
    get_metrics_app,
    record_circuit_breaker_failure,
    record_pipeline_run,
    record_trend_fallback,
    track_stage_execution,
    update_circuit_breaker_state,
)

__all__ = [
    "CIRCUIT_BREAKER_FAILURES",
    "CIRCUIT_BREAKER_STATE",
    "PIPELINE_RUNS_TOTAL",
    "STAGE_EXECUTION_DURATION",
    "STAGE_EXECUTION_TOTAL",
    "TREND_FALLBACK_TOTAL",
    "get_metrics_app",
    "record_circuit_breaker_failure",
    "record_pipeline_run",
    "record_trend_fallback",
    "track_stage_execution",
    "update_circuit_breaker_state",
]
