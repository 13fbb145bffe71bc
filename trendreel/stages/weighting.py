"""Candidate weighting and winner selection.

Each candidate is scored on three 0-10 dimensions against the channel, the
dimensions are combined into a weighted total, and the single highest total
is marked selected. Ties go to the candidate that appears first.

The default scorer is a deterministic heuristic:
    virality         signal breadth plus a bonus for high-engagement formats
    feasibility      easy-to-film formats score high, wordy concepts lose points
    trend_alignment  overlap between the concept and the channel's niche/audience
"""

import math
import re
from dataclasses import dataclass
from typing import Callable, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from trendreel.core.exceptions import StageExecutionError
from trendreel.models.schemas import CandidateTheme, ChannelState, ScoreBreakdown, StageName
from trendreel.stages.base import require

logger = structlog.get_logger(__name__)

MAX_DIMENSION_SCORE = 10.0

HIGH_ENGAGEMENT_STRUCTURES = frozenset({
    "challenge", "experiment", "reaction", "transformation", "prank", "countdown", "vs",
})

EASY_STRUCTURES = frozenset({
    "tutorial", "explainer", "analysis", "tips", "review", "comparison", "recipe",
    "experiment", "howto", "unboxing",
})

_WORD_RE = re.compile(r"[^\W_]+", re.UNICODE)

Scorer = Callable[[CandidateTheme, ChannelState], ScoreBreakdown]


class WeightingInput(BaseModel):
    """Candidates from the generation stage plus the channel they compete for."""

    model_config = ConfigDict(frozen=True)

    candidates: tuple[CandidateTheme, ...]
    channel_state: ChannelState


@dataclass(frozen=True)
class ScoringWeights:
    virality: float = 1.0
    feasibility: float = 1.0
    trend_alignment: float = 1.0

    def total(self, breakdown: ScoreBreakdown) -> float:
        return (
            breakdown.virality * self.virality
            + breakdown.feasibility * self.feasibility
            + breakdown.trend_alignment * self.trend_alignment
        )


def _words(text: str) -> set[str]:
    return set(_WORD_RE.findall(text.lower().replace("#", " ")))


def _clamp(value: float) -> float:
    return max(0.0, min(MAX_DIMENSION_SCORE, value))


def heuristic_scorer(candidate: CandidateTheme, channel: ChannelState) -> ScoreBreakdown:
    """Default deterministic scorer."""
    structure = candidate.structure_type.lower().strip()

    virality = 4.0 + 1.5 * min(len(candidate.algorithm_signals), 4)
    if structure in HIGH_ENGAGEMENT_STRUCTURES:
        virality += 1.0
    # Small channels gain more from breakout formats than established ones
    if channel.avg_views and channel.avg_views < 10_000:
        virality += 0.5

    concept_words = len(_words(f"{candidate.subject_type} {candidate.object_type}"))
    feasibility = 8.0 - max(0, concept_words - 2)
    if structure in EASY_STRUCTURES:
        feasibility += 2.0

    channel_words = _words(f"{channel.niche} {channel.target_audience}")
    if channel_words:
        concept = _words(
            " ".join([
                candidate.subject_type,
                candidate.action_verb,
                candidate.object_type,
                candidate.structure_type,
                *candidate.algorithm_signals,
                candidate.rationale or "",
            ])
        )
        overlap = len(channel_words & concept) / len(channel_words)
        trend_alignment = 3.0 + 7.0 * overlap
    else:
        trend_alignment = 5.0

    return ScoreBreakdown(
        virality=_clamp(virality),
        feasibility=_clamp(feasibility),
        trend_alignment=_clamp(trend_alignment),
    )


def _valid_dimension(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
        and 0.0 <= value <= MAX_DIMENSION_SCORE
    )


def select_winner(totals: list[float]) -> Optional[int]:
    """Index of the maximum total; the first occurrence wins ties."""
    winner: Optional[int] = None
    for index, total in enumerate(totals):
        if not math.isfinite(total):
            continue
        if winner is None or total > totals[winner]:
            winner = index
    return winner


class WeightingStage:
    """Stage 3: score candidates and mark exactly one as selected."""

    name = StageName.WEIGHTING
    description = "Score candidates against the channel and select the winner"

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        scorer: Optional[Scorer] = None,
    ):
        self.weights = weights or ScoringWeights()
        self.scorer = scorer or heuristic_scorer

    def _score(self, candidate: CandidateTheme, channel: ChannelState) -> ScoreBreakdown:
        breakdown = self.scorer(candidate, channel)
        for dimension, value in breakdown.as_dict().items():
            if not _valid_dimension(value):
                raise StageExecutionError(
                    self.name.value,
                    f"invalid {dimension} score {value!r} for candidate '{candidate.id}'",
                    {"candidate_id": candidate.id, "dimension": dimension},
                )
        return breakdown

    async def execute(self, input: WeightingInput) -> list[CandidateTheme]:
        candidates = list(input.candidates)
        require(candidates, self.name, "candidate list is empty")
        require(
            not any(c.selected for c in candidates),
            self.name,
            "candidates must be unscored (none may already be selected)",
        )

        breakdowns = [self._score(c, input.channel_state) for c in candidates]
        totals = [round(self.weights.total(b), 4) for b in breakdowns]

        winner = select_winner(totals)
        if winner is None:
            raise StageExecutionError(
                self.name.value,
                "no candidate could be selected",
                {"totals": totals},
            )

        scored = [
            candidate.model_copy(
                update={
                    "scoring_breakdown": breakdown,
                    "total_score": total,
                    "selected": index == winner,
                }
            )
            for index, (candidate, breakdown, total) in enumerate(zip(candidates, breakdowns, totals))
        ]

        logger.info(
            "candidates_weighted",
            totals=totals,
            selected_id=scored[winner].id,
        )
        return scored
