"""Production prompt composition for the selected candidate."""

import json
from typing import Any

import structlog

from trendreel.capabilities.base import StructuredGenerator
from trendreel.core.exceptions import MalformedCapabilityOutputError
from trendreel.models.schemas import CandidateTheme, PromptOutput, StageName
from trendreel.stages.base import require

logger = structlog.get_logger(__name__)

SYSTEM_INSTRUCTION = """You are a YouTube Shorts producer. You turn an approved video concept into
a text-to-video prompt and the metadata it will be published with. Prompts describe one
continuous vertical shot: subject, action, setting, lighting, camera angle and texture."""

PROMPT_TEMPLATE = """Create video production assets for this selected concept:
{candidate}

Requirements:
1. 'prompt': a detailed, highly visual prompt for an AI video generator. Include lighting,
   camera angle and texture details.
2. 'title': a short, attention-grabbing Shorts title.
3. 'description': a short description ending with 3-5 hashtags based on the algorithm signals.
4. 'candidate_id': must match the input id."""

COMPOSITION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "candidate_id": {"type": "string"},
        "prompt": {"type": "string"},
        "title": {"type": "string"},
        "description": {"type": "string"},
    },
    "required": ["candidate_id", "prompt", "title", "description"],
}


class CompositionStage:
    """Stage 4: selected candidate to production prompt and metadata."""

    name = StageName.COMPOSITION
    description = "Compose the video prompt, title and description for the winner"

    def __init__(self, generator: StructuredGenerator):
        self.generator = generator

    def _text_field(self, raw: dict[str, Any], field: str) -> str:
        value = raw.get(field)
        if not isinstance(value, str) or not value.strip():
            raise MalformedCapabilityOutputError(
                getattr(self.generator, "name", "structured_generator"),
                f"{self.name.value}: composition is missing '{field}'",
                {"field": field},
            )
        return value.strip()

    async def execute(self, input: CandidateTheme) -> PromptOutput:
        require(input is not None, self.name, "candidate is missing")
        require(input.selected, self.name, "candidate must be selected (selected=true)")

        raw = await self.generator.generate(
            PROMPT_TEMPLATE.format(
                candidate=json.dumps(input.model_dump(mode="json"), indent=2, ensure_ascii=False)
            ),
            SYSTEM_INSTRUCTION,
            COMPOSITION_SCHEMA,
        )
        if not isinstance(raw, dict):
            raise MalformedCapabilityOutputError(
                getattr(self.generator, "name", "structured_generator"),
                f"{self.name.value}: expected an object, got {type(raw).__name__}",
            )

        prompt = self._text_field(raw, "prompt")
        title = self._text_field(raw, "title")
        description = raw.get("description") if isinstance(raw.get("description"), str) else ""

        echoed = raw.get("candidate_id")
        if echoed is not None and echoed != input.id:
            logger.warning("composition_id_mismatch", expected=input.id, echoed=echoed)

        output = PromptOutput(
            candidate_id=input.id,
            prompt=prompt,
            title=title,
            description=description.strip(),
            candidate_reference=input,
        )
        logger.info("composition_complete", candidate_id=input.id, title=title)
        return output
