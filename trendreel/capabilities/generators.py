"""
Structured generation adapters.

Claude is the default model for candidate themes and production prompts;
Gemini is available for deployments that keep everything on Google GenAI.
Both receive the JSON schema inside the system instruction and must answer
with bare JSON, which is parsed here. Anything unparseable raises instead of
returning None so stages can fail their validation gate loudly.

Standalone usage:
    from trendreel.capabilities.generators import AnthropicStructuredGenerator

    generator = AnthropicStructuredGenerator(api_key="sk-ant-...")
    themes = await generator.generate(prompt, system_instruction, schema)
"""

import asyncio
import json
import re
from typing import Any, Optional

import anthropic
import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from trendreel.capabilities.base import StructuredGenerator
from trendreel.core.circuit_breaker import get_circuit_breaker
from trendreel.core.exceptions import (
    CapabilityAuthError,
    CapabilityRateLimitError,
    CapabilityUnavailableError,
    ConfigurationError,
    ExternalCapabilityError,
    MalformedCapabilityOutputError,
)

logger = structlog.get_logger(__name__)


SCHEMA_INSTRUCTION = """
Respond with JSON only. The value must validate against this JSON schema:
{schema}

Return ONLY the JSON value. No markdown, no explanation."""


def build_system_prompt(system_instruction: str, output_schema: dict[str, Any]) -> str:
    schema_text = json.dumps(output_schema, indent=2, ensure_ascii=False)
    return system_instruction.rstrip() + "\n" + SCHEMA_INSTRUCTION.format(schema=schema_text)


def parse_json_payload(text: Optional[str], capability: str) -> Any:
    """
    Parse the JSON value out of a model reply.

    Strips markdown code fences, then falls back to the outermost array or
    object found in the text.

    Raises:
        MalformedCapabilityOutputError: If the reply is empty or holds no JSON.
    """
    if not text or not text.strip():
        raise MalformedCapabilityOutputError(capability, "Model returned an empty response")

    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        if lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    for pattern in (r"\[[\s\S]*\]", r"\{[\s\S]*\}"):
        match = re.search(pattern, text)
        if match:
            try:
                return json.loads(match.group())
            except json.JSONDecodeError:
                continue

    raise MalformedCapabilityOutputError(
        capability,
        "Could not parse JSON from response",
        {"excerpt": text[:300]},
    )


# =============================================================================
# Anthropic
# =============================================================================


class AnthropicStructuredGenerator(StructuredGenerator):
    """Structured generation backed by Claude's messages API."""

    name = "anthropic_generator"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 2048,
        temperature: float = 0.1,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._api_key = api_key
        self._client = client
        self._breaker = get_circuit_breaker(self.name)

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError(
                    "Anthropic API key is not configured", "anthropic_api_key"
                )
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def generate(
        self,
        prompt: str,
        system_instruction: str,
        output_schema: dict[str, Any],
    ) -> Any:
        client = self.client

        @self._breaker
        async def _call() -> Any:
            try:
                return await client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    system=build_system_prompt(system_instruction, output_schema),
                    messages=[{"role": "user", "content": prompt}],
                )
            except anthropic.RateLimitError as e:
                raise CapabilityRateLimitError(self.name, str(e))
            except anthropic.AuthenticationError as e:
                raise CapabilityAuthError(self.name, str(e))
            except (anthropic.APIConnectionError, anthropic.InternalServerError) as e:
                raise CapabilityUnavailableError(self.name, str(e))
            except anthropic.APIError as e:
                raise ExternalCapabilityError(self.name, str(e))

        response = await _call()
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        logger.debug(
            "structured_generation_complete",
            provider="anthropic",
            model=self.model,
            stop_reason=getattr(response, "stop_reason", None),
        )
        return parse_json_payload(text, self.name)


# =============================================================================
# Gemini
# =============================================================================


class GeminiStructuredGenerator(StructuredGenerator):
    """Structured generation backed by Gemini with JSON response mode."""

    name = "gemini_generator"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-3-flash-preview",
        temperature: float = 0.1,
        client: Optional[genai.Client] = None,
    ):
        self.model = model
        self.temperature = temperature
        self._api_key = api_key
        self._client = client
        self._breaker = get_circuit_breaker(self.name)

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError("Gemini API key is not configured", "gemini_api_key")
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def generate(
        self,
        prompt: str,
        system_instruction: str,
        output_schema: dict[str, Any],
    ) -> Any:
        client = self.client
        config = types.GenerateContentConfig(
            system_instruction=build_system_prompt(system_instruction, output_schema),
            temperature=self.temperature,
            response_mime_type="application/json",
        )

        @self._breaker
        async def _call() -> Any:
            try:
                return await asyncio.to_thread(
                    lambda: client.models.generate_content(
                        model=self.model,
                        contents=prompt,
                        config=config,
                    )
                )
            except genai_errors.ClientError as e:
                if e.code == 429:
                    raise CapabilityRateLimitError(self.name, str(e))
                if e.code in (401, 403):
                    raise CapabilityAuthError(self.name, str(e))
                raise ExternalCapabilityError(self.name, str(e))
            except genai_errors.ServerError as e:
                raise CapabilityUnavailableError(self.name, str(e))

        response = await _call()
        logger.debug("structured_generation_complete", provider="gemini", model=self.model)
        return parse_json_payload(response.text, self.name)
