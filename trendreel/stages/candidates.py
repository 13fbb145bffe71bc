"""Candidate theme generation.

Asks the structured generator for three Shorts concepts built from the trend
signals, then holds the reply to the CandidateTheme contract. The model's
own score and selection flags are discarded: every candidate leaves this
stage unscored and unselected.
"""

import json
from typing import Any

import structlog
from pydantic import ValidationError

from trendreel.capabilities.base import StructuredGenerator
from trendreel.core.exceptions import MalformedCapabilityOutputError
from trendreel.models.schemas import (
    CANDIDATE_REQUIRED_FIELDS,
    CandidateTheme,
    StageName,
    TrendSignals,
)
from trendreel.stages.base import require

logger = structlog.get_logger(__name__)

CANDIDATE_COUNT = 3

SYSTEM_INSTRUCTION = """You are a short-form video strategist who designs viral YouTube Shorts concepts.
Each concept combines a subject, an action verb, an object and a content structure
(experiment, tutorial, challenge, reaction, ...) that the current trend data shows
audiences are responding to. Concepts must be filmable as a single short clip."""

PROMPT_TEMPLATE = """Using the following trend signals:
{signals}

Generate exactly {count} potential viral Shorts concepts.

Requirements:
1. 'id' must be a unique string (e.g., "candidate_1").
2. 'subject_type', 'action_verb', 'object_type' must be derived from or inspired by the signals.
3. 'structure_type' names the content format.
4. 'algorithm_signals' is a list of 3-5 keywords or hashtags.
5. 'total_score' must be 0 and 'selected' must be false.
6. Give a brief 'rationale' for why the combination works."""

CANDIDATE_SCHEMA: dict[str, Any] = {
    "type": "array",
    "minItems": CANDIDATE_COUNT,
    "maxItems": CANDIDATE_COUNT,
    "items": {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "subject_type": {"type": "string"},
            "action_verb": {"type": "string"},
            "object_type": {"type": "string"},
            "structure_type": {"type": "string"},
            "algorithm_signals": {"type": "array", "items": {"type": "string"}},
            "rationale": {"type": "string"},
            "total_score": {"type": "number"},
            "selected": {"type": "boolean"},
        },
        "required": list(CANDIDATE_REQUIRED_FIELDS) + ["total_score", "selected"],
    },
}


class CandidateGenerationStage:
    """Stage 2: trend signals to three unscored candidate themes."""

    name = StageName.CANDIDATE_GENERATION
    description = "Generate three video concepts from trend signals"

    def __init__(self, generator: StructuredGenerator):
        self.generator = generator

    def build_prompt(self, signals: TrendSignals) -> str:
        return PROMPT_TEMPLATE.format(
            signals=json.dumps(signals.model_dump(), indent=2, ensure_ascii=False),
            count=CANDIDATE_COUNT,
        )

    def _malformed(self, message: str, **details: Any) -> MalformedCapabilityOutputError:
        return MalformedCapabilityOutputError(
            getattr(self.generator, "name", "structured_generator"),
            f"{self.name.value}: {message}",
            details or None,
        )

    def _to_candidate(self, index: int, raw: Any) -> CandidateTheme:
        if not isinstance(raw, dict):
            raise self._malformed(f"candidate {index} is not an object", index=index)

        for field in CANDIDATE_REQUIRED_FIELDS:
            value = raw.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise self._malformed(
                    f"candidate {index} is missing required field '{field}'",
                    index=index,
                    field=field,
                )
        if not isinstance(raw["algorithm_signals"], list):
            raise self._malformed(
                f"candidate {index} field 'algorithm_signals' must be a list",
                index=index,
                field="algorithm_signals",
            )

        try:
            return CandidateTheme(
                id=str(raw["id"]),
                subject_type=str(raw["subject_type"]),
                action_verb=str(raw["action_verb"]),
                object_type=str(raw["object_type"]),
                structure_type=str(raw["structure_type"]),
                algorithm_signals=tuple(str(s) for s in raw["algorithm_signals"]),
                rationale=raw.get("rationale") or None,
                total_score=0.0,
                selected=False,
            )
        except ValidationError as e:
            raise self._malformed(f"candidate {index} is invalid: {e}", index=index)

    async def execute(self, input: TrendSignals) -> list[CandidateTheme]:
        require(input is not None and not input.is_empty, self.name, "trend signals object is empty")

        raw = await self.generator.generate(
            self.build_prompt(input),
            SYSTEM_INSTRUCTION,
            CANDIDATE_SCHEMA,
        )

        if not isinstance(raw, list):
            raise self._malformed("expected an array of candidates", received=type(raw).__name__)
        if not raw:
            raise self._malformed("model returned an empty candidate array")
        if len(raw) < CANDIDATE_COUNT:
            raise self._malformed(
                f"expected {CANDIDATE_COUNT} candidates, got {len(raw)}",
                received=len(raw),
            )
        if len(raw) > CANDIDATE_COUNT:
            logger.warning("candidate_surplus_truncated", received=len(raw), kept=CANDIDATE_COUNT)
            raw = raw[:CANDIDATE_COUNT]

        candidates = [self._to_candidate(i, item) for i, item in enumerate(raw)]

        ids = [c.id for c in candidates]
        if len(set(ids)) != len(ids):
            raise self._malformed("candidate ids are not unique", ids=ids)

        logger.info("candidates_generated", ids=ids)
        return candidates
