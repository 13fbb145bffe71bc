"""
Google Veo video renderer.

Submits a text-to-video job through google-genai and reports its state on
each poll. When the job finishes the video bytes are downloaded and returned
as a base64 ``data:`` URL, so the publisher can upload without a second
round-trip to Google storage.
"""

import asyncio
import base64
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from trendreel.capabilities.base import RenderPollResult, VideoRenderer
from trendreel.core.exceptions import (
    CapabilityAuthError,
    CapabilityRateLimitError,
    CapabilityUnavailableError,
    ConfigurationError,
    ExternalCapabilityError,
)

logger = structlog.get_logger(__name__)


@dataclass
class VeoRenderJob:
    """Handle for one Veo operation; ``operation`` is refreshed on each poll."""

    operation: Any
    prompt: str


class VeoVideoRenderer(VideoRenderer):
    """VideoRenderer backed by Veo via the Gemini SDK."""

    name = "veo_renderer"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "veo-3.1-fast-generate-preview",
        client: Optional[genai.Client] = None,
    ):
        self.model = model
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError("Gemini API key is not configured", "gemini_api_key")
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def _translate(self, error: Exception) -> ExternalCapabilityError:
        if isinstance(error, genai_errors.ClientError):
            if error.code == 429:
                return CapabilityRateLimitError(self.name, str(error))
            if error.code in (401, 403):
                return CapabilityAuthError(self.name, str(error))
        if isinstance(error, genai_errors.ServerError):
            return CapabilityUnavailableError(self.name, str(error))
        return ExternalCapabilityError(self.name, str(error))

    async def submit_render(self, prompt: str, aspect_ratio: str, resolution: str) -> VeoRenderJob:
        client = self.client
        config = types.GenerateVideosConfig(
            aspect_ratio=aspect_ratio,
            resolution=resolution,
            number_of_videos=1,
        )
        try:
            operation = await asyncio.to_thread(
                lambda: client.models.generate_videos(
                    model=self.model,
                    prompt=prompt,
                    config=config,
                )
            )
        except genai_errors.APIError as e:
            raise self._translate(e)

        logger.info(
            "veo_render_submitted",
            model=self.model,
            operation=getattr(operation, "name", None),
            aspect_ratio=aspect_ratio,
            resolution=resolution,
        )
        return VeoRenderJob(operation=operation, prompt=prompt)

    async def poll(self, job_handle: VeoRenderJob) -> RenderPollResult:
        client = self.client
        operation = job_handle.operation

        if not operation.done:
            try:
                operation = await asyncio.to_thread(lambda: client.operations.get(operation))
            except genai_errors.APIError as e:
                raise self._translate(e)
            job_handle.operation = operation

        if not operation.done:
            return RenderPollResult(done=False)

        if getattr(operation, "error", None):
            raise ExternalCapabilityError(
                self.name,
                f"Render job failed: {operation.error}",
                {"operation": getattr(operation, "name", None)},
            )

        response = operation.response
        if not response or not response.generated_videos:
            logger.warning("veo_render_empty", operation=getattr(operation, "name", None))
            return RenderPollResult(done=True, result_locator=None)

        video = response.generated_videos[0]
        try:
            video_bytes = await asyncio.to_thread(lambda: client.files.download(file=video.video))
        except genai_errors.APIError as e:
            raise self._translate(e)

        mime_type = getattr(video.video, "mime_type", None) or "video/mp4"
        encoded = base64.b64encode(video_bytes).decode("ascii")
        logger.info("veo_render_complete", size_bytes=len(video_bytes), mime_type=mime_type)
        return RenderPollResult(
            done=True,
            result_locator=f"data:{mime_type};base64,{encoded}",
            mime_type=mime_type,
        )
