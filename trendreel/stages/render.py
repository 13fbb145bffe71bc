"""Video rendering.

Submits the production prompt to the video renderer and polls at a fixed
interval until the job is done or the poll budget is spent. There is no
fallback: a renderer failure ends the stage with the renderer's own error.
"""

import asyncio
import functools
from typing import Awaitable, Callable

import structlog

from trendreel.capabilities.base import VideoRenderer
from trendreel.core.exceptions import MalformedCapabilityOutputError
from trendreel.core.polling import poll_until_done
from trendreel.models.schemas import PromptOutput, StageName, VideoAsset, VideoStatus
from trendreel.stages.base import require

logger = structlog.get_logger(__name__)


class RenderStage:
    """Stage 5: production prompt to rendered video asset."""

    name = StageName.RENDER
    description = "Render the production prompt into a vertical video"

    def __init__(
        self,
        renderer: VideoRenderer,
        aspect_ratio: str = "9:16",
        resolution: str = "720p",
        poll_interval: float = 10.0,
        max_poll_attempts: int = 40,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.renderer = renderer
        self.aspect_ratio = aspect_ratio
        self.resolution = resolution
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.sleep = sleep

    async def execute(self, input: PromptOutput) -> VideoAsset:
        require(input is not None, self.name, "prompt output is missing")
        require(input.prompt and input.prompt.strip(), self.name, "production prompt text is empty")
        require(input.candidate_id, self.name, "candidate_id is empty")

        job = await self.renderer.submit_render(
            input.prompt,
            self.aspect_ratio,
            self.resolution,
        )
        logger.info(
            "render_submitted",
            candidate_id=input.candidate_id,
            poll_interval=self.poll_interval,
            max_attempts=self.max_poll_attempts,
        )

        status = await poll_until_done(
            functools.partial(self.renderer.poll, job),
            interval=self.poll_interval,
            max_attempts=self.max_poll_attempts,
            sleep=self.sleep,
        )
        if not status.result_locator:
            raise MalformedCapabilityOutputError(
                getattr(self.renderer, "name", "video_renderer"),
                "render finished without a content locator",
                {"candidate_id": input.candidate_id},
            )

        logger.info("render_complete", candidate_id=input.candidate_id)
        return VideoAsset(
            candidate_id=input.candidate_id,
            locator=status.result_locator,
            mime_type=status.mime_type,
            status=VideoStatus.GENERATED,
        )
