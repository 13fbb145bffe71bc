"""Upload and scheduling.

Hands a generated video and its metadata to the publisher in a single call.
The call is not idempotent, so this stage never retries it; re-publishing is
a decision for whoever drives the pipeline.
"""

from datetime import datetime
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from trendreel.capabilities.base import Publisher
from trendreel.models.schemas import (
    PublishMetadata,
    ScheduleConfig,
    StageName,
    UploadResult,
    UploadStatus,
    VideoAsset,
    VideoStatus,
    utc_now,
)
from trendreel.stages.base import require

logger = structlog.get_logger(__name__)


class PublishInput(BaseModel):
    """Everything the publish stage needs for one upload."""

    model_config = ConfigDict(frozen=True)

    video_asset: VideoAsset
    metadata: PublishMetadata
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    credentials: Optional[dict[str, Any]] = Field(default=None, repr=False)


class PublishStage:
    """Stage 6: video asset to upload result."""

    name = StageName.PUBLISH
    description = "Upload the video and schedule its release"

    def __init__(self, publisher: Publisher, clock: Callable[[], datetime] = utc_now):
        self.publisher = publisher
        self.clock = clock

    async def execute(self, input: PublishInput) -> UploadResult:
        video = input.video_asset
        require(
            video.status == VideoStatus.GENERATED and video.locator,
            self.name,
            "video asset is not a successfully generated video",
        )
        require(input.metadata.title.strip(), self.name, "metadata title is empty")

        schedule = input.schedule
        publish_at = schedule.publish_at
        if publish_at is not None and publish_at <= self.clock():
            logger.warning(
                "publish_at_elapsed",
                publish_at=publish_at.isoformat(),
                message="Scheduled time already passed, publishing immediately",
            )
            publish_at = None
            schedule = schedule.model_copy(update={"publish_at": None})

        receipt = await self.publisher.publish(
            video.locator,
            input.metadata,
            schedule,
            input.credentials,
        )

        status = UploadStatus.SCHEDULED if publish_at is not None else UploadStatus.UPLOADED
        result = UploadResult(
            platform=getattr(self.publisher, "platform", "youtube"),
            video_id=receipt.remote_id,
            platform_url=receipt.remote_url,
            status=status,
            scheduled_for=publish_at,
        )
        logger.info(
            "publish_complete",
            video_id=result.video_id,
            status=result.status.value,
            scheduled_for=publish_at.isoformat() if publish_at else None,
        )
        return result
