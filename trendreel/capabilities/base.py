"""
Interfaces for the external capabilities a pipeline run depends on.

Stages only see these abstract types. Concrete adapters (Claude, Gemini, Veo,
YouTube, Supabase) live beside this module and are wired together by the
dependency container; tests substitute in-memory fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from trendreel.models.schemas import (
    ChannelConfig,
    ChannelRecord,
    PublishMetadata,
    ScheduleConfig,
    SourceItem,
    StageStatus,
)


# =============================================================================
# Structured Generation
# =============================================================================


class StructuredGenerator(ABC):
    """Generative text model that answers with JSON matching a schema."""

    name: str = "structured_generator"

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_instruction: str,
        output_schema: dict[str, Any],
    ) -> Any:
        """
        Produce a value conforming to ``output_schema``.

        Raises:
            ExternalCapabilityError: If no conforming output could be produced.
                Implementations never return None in that case.
        """


# =============================================================================
# Video Rendering
# =============================================================================


@dataclass(frozen=True)
class RenderPollResult:
    """Snapshot of a render job."""

    done: bool
    result_locator: Optional[str] = None
    mime_type: str = "video/mp4"


class VideoRenderer(ABC):
    """Asynchronous video generation: submit once, then poll."""

    name: str = "video_renderer"

    @abstractmethod
    async def submit_render(self, prompt: str, aspect_ratio: str, resolution: str) -> Any:
        """Start a render job and return an opaque handle for ``poll``."""

    @abstractmethod
    async def poll(self, job_handle: Any) -> RenderPollResult:
        """Report the current state of a submitted job."""


# =============================================================================
# Publishing
# =============================================================================


@dataclass(frozen=True)
class PublishReceipt:
    remote_id: str
    remote_url: str


class Publisher(ABC):
    """Short-form video platform. ``publish`` is not idempotent."""

    name: str = "publisher"
    platform: str = "youtube"

    @abstractmethod
    async def publish(
        self,
        video_locator: str,
        metadata: PublishMetadata,
        schedule: ScheduleConfig,
        credentials: Optional[dict[str, Any]] = None,
    ) -> PublishReceipt:
        """Upload the video; schedule it when ``schedule.publish_at`` is set."""


# =============================================================================
# Trend Source
# =============================================================================


class TrendSource(ABC):
    """Source of recently trending short-form videos."""

    name: str = "trend_source"

    @abstractmethod
    async def fetch_recent(self, channel: ChannelConfig) -> list[SourceItem]:
        """Fetch recent trending items relevant to the channel."""


# =============================================================================
# Channel Store
# =============================================================================


class ChannelStore(ABC):
    """Persisted per-channel records. Writes are last-writer-wins."""

    @abstractmethod
    async def list_channels(self) -> list[ChannelRecord]:
        ...

    @abstractmethod
    async def get_channel(self, channel_id: str) -> Optional[ChannelRecord]:
        ...

    @abstractmethod
    async def save_channel(self, record: ChannelRecord) -> ChannelRecord:
        ...

    @abstractmethod
    async def update_run_status(
        self,
        channel_id: str,
        status: StageStatus,
        last_log: str,
        last_run_at: Optional[datetime] = None,
    ) -> None:
        """Write the outcome fields of a run back to the channel record."""
