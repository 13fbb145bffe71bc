"""Fallback policy table.

The single place that decides which pipeline step may substitute mock data
when its live dependency is unavailable. Only trend acquisition may; every
stage fails outright and halts the run.
"""

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from trendreel.models.schemas import PIPELINE_STAGES, StageName

TREND_ACQUISITION = "trend_acquisition"


class FallbackPolicy(str, Enum):
    NONE = "none"
    SUBSTITUTE_MOCK = "substitute_mock"


FALLBACK_POLICIES: Mapping[str, FallbackPolicy] = MappingProxyType({
    TREND_ACQUISITION: FallbackPolicy.SUBSTITUTE_MOCK,
    **{stage.value: FallbackPolicy.NONE for stage in PIPELINE_STAGES},
})


def fallback_policy(step: str | StageName) -> FallbackPolicy:
    """Policy for a step; unknown steps never fall back."""
    key = step.value if isinstance(step, StageName) else step
    return FALLBACK_POLICIES.get(key, FallbackPolicy.NONE)


def may_substitute_mock(step: str | StageName) -> bool:
    return fallback_policy(step) == FallbackPolicy.SUBSTITUTE_MOCK
