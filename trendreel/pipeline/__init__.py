"""
Pipeline orchestration: run state, fallback table, graph wiring and the
orchestrator that drives the six stages.
"""

from trendreel.pipeline.fallback import (
    FALLBACK_POLICIES,
    TREND_ACQUISITION,
    FallbackPolicy,
    fallback_policy,
    may_substitute_mock,
)
from trendreel.pipeline.orchestrator import PipelineOrchestrator, PipelineResult
from trendreel.pipeline.state import RunPhase, RunState, create_run_state

__all__ = [
    "FALLBACK_POLICIES",
    "TREND_ACQUISITION",
    "FallbackPolicy",
    "PipelineOrchestrator",
    "PipelineResult",
    "RunPhase",
    "RunState",
    "create_run_state",
    "fallback_policy",
    "may_substitute_mock",
]
