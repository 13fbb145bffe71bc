"""
Pipeline stages, in execution order.

    TrendSignalStage          SourceItem[]        -> TrendSignals
    CandidateGenerationStage  TrendSignals        -> CandidateTheme[3]
    WeightingStage            WeightingInput      -> CandidateTheme[] (one selected)
    CompositionStage          CandidateTheme      -> PromptOutput
    RenderStage               PromptOutput        -> VideoAsset
    PublishStage              PublishInput        -> UploadResult
"""

from trendreel.stages.base import Stage, require
from trendreel.stages.candidates import CANDIDATE_COUNT, CandidateGenerationStage
from trendreel.stages.composition import CompositionStage
from trendreel.stages.publish import PublishInput, PublishStage
from trendreel.stages.render import RenderStage
from trendreel.stages.trend_signals import TrendSignalStage
from trendreel.stages.weighting import (
    ScoringWeights,
    WeightingInput,
    WeightingStage,
    heuristic_scorer,
    select_winner,
)

__all__ = [
    "CANDIDATE_COUNT",
    "CandidateGenerationStage",
    "CompositionStage",
    "PublishInput",
    "PublishStage",
    "RenderStage",
    "ScoringWeights",
    "Stage",
    "TrendSignalStage",
    "WeightingInput",
    "WeightingStage",
    "heuristic_scorer",
    "require",
    "select_winner",
]
