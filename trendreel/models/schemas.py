"""Pydantic models for TrendReel pipeline entities.

Every entity is frozen: a stage creates it, the next stage reads it, and
nothing downstream may change it in place.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# Enums
# =============================================================================


class StageName(str, Enum):
    """The six pipeline stages, in execution order."""
    TREND_SIGNALS = "trend_signals"
    CANDIDATE_GENERATION = "candidate_generation"
    WEIGHTING = "weighting"
    COMPOSITION = "composition"
    RENDER = "render"
    PUBLISH = "publish"


PIPELINE_STAGES: tuple[StageName, ...] = tuple(StageName)


class StageStatus(str, Enum):
    """Status of one stage slot, also used for a channel's last run."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class VideoStatus(str, Enum):
    GENERATED = "generated"
    FAILED = "failed"


class UploadStatus(str, Enum):
    UPLOADED = "uploaded"
    SCHEDULED = "scheduled"
    FAILED = "failed"


class PrivacyStatus(str, Enum):
    PRIVATE = "private"
    UNLISTED = "unlisted"
    PUBLIC = "public"


class LogLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# =============================================================================
# Base Model
# =============================================================================


class FrozenModel(BaseModel):
    """Base model for immutable pipeline entities."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, from_attributes=True)

    def to_db_row(self) -> dict[str, Any]:
        """Convert model to a JSON-safe row (e.g., for Supabase/PostgreSQL)."""
        return self.model_dump(mode="json")

    @classmethod
    def from_db_row(cls, row: dict[str, Any]):
        return cls.model_validate(row)


# =============================================================================
# Trend Data
# =============================================================================


class SourceItem(FrozenModel):
    """One short-form video observed on the trend source."""

    id: str = Field(..., min_length=1)
    title: str = Field(default="")
    hashtags: tuple[str, ...] = Field(default=(), description="Tags as published, may be empty")
    view_count: int = Field(default=0, ge=0)
    region: Optional[str] = None
    view_growth_rate: float = Field(default=0.0)
    published_at: Optional[datetime] = None


class TrendSignals(FrozenModel):
    """Frequency tables extracted from a batch of source items.

    Each mapping goes from a normalized token to the number of source items
    that contributed it.
    """

    action_verb_frequency: dict[str, int] = Field(default_factory=dict)
    subject_type_frequency: dict[str, int] = Field(default_factory=dict)
    object_type_frequency: dict[str, int] = Field(default_factory=dict)
    structure_type_frequency: dict[str, int] = Field(default_factory=dict)
    algorithm_signal_frequency: dict[str, int] = Field(default_factory=dict)

    @field_validator(
        "action_verb_frequency",
        "subject_type_frequency",
        "object_type_frequency",
        "structure_type_frequency",
        "algorithm_signal_frequency",
    )
    @classmethod
    def counts_are_positive(cls, value: dict[str, int]) -> dict[str, int]:
        for key, count in value.items():
            if count < 1:
                raise ValueError(f"count for '{key}' must be >= 1, got {count}")
        return value

    def buckets(self) -> dict[str, dict[str, int]]:
        return {
            "action_verb": self.action_verb_frequency,
            "subject_type": self.subject_type_frequency,
            "object_type": self.object_type_frequency,
            "structure_type": self.structure_type_frequency,
            "algorithm_signal": self.algorithm_signal_frequency,
        }

    @property
    def is_empty(self) -> bool:
        return not any(self.buckets().values())


# =============================================================================
# Candidates
# =============================================================================


class ScoreBreakdown(FrozenModel):
    """Per-dimension scores, each on a 0-10 scale."""

    virality: float = Field(..., ge=0, le=10)
    feasibility: float = Field(..., ge=0, le=10)
    trend_alignment: float = Field(..., ge=0, le=10)

    def as_dict(self) -> dict[str, float]:
        return {
            "virality": self.virality,
            "feasibility": self.feasibility,
            "trend_alignment": self.trend_alignment,
        }


class CandidateTheme(FrozenModel):
    """A proposed video concept."""

    id: str = Field(..., min_length=1)
    subject_type: str
    action_verb: str
    object_type: str
    structure_type: str
    algorithm_signals: tuple[str, ...] = Field(default=())
    rationale: Optional[str] = None
    total_score: float = Field(default=0.0, ge=0)
    selected: bool = False
    scoring_breakdown: Optional[ScoreBreakdown] = None


CANDIDATE_REQUIRED_FIELDS: tuple[str, ...] = (
    "id",
    "subject_type",
    "action_verb",
    "object_type",
    "structure_type",
    "algorithm_signals",
)


class ChannelState(FrozenModel):
    """Channel context the weighting stage scores against."""

    niche: str = ""
    avg_views: int = Field(default=0, ge=0)
    target_audience: str = ""


# =============================================================================
# Production
# =============================================================================


class PromptOutput(FrozenModel):
    """Production prompt and publish metadata for the winning candidate."""

    candidate_id: str = Field(..., min_length=1)
    prompt: str
    title: str
    description: str = ""
    candidate_reference: CandidateTheme

    @model_validator(mode="after")
    def reference_matches_id(self) -> "PromptOutput":
        if self.candidate_reference.id != self.candidate_id:
            raise ValueError(
                f"candidate_id '{self.candidate_id}' does not match "
                f"candidate_reference.id '{self.candidate_reference.id}'"
            )
        return self


class VideoAsset(FrozenModel):
    """A rendered video and where to fetch it."""

    candidate_id: str
    locator: str = ""
    mime_type: str = "video/mp4"
    status: VideoStatus
    generated_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def generated_has_locator(self) -> "VideoAsset":
        if self.status == VideoStatus.GENERATED and not self.locator:
            raise ValueError("a generated video must carry a locator")
        return self


# =============================================================================
# Publishing
# =============================================================================


class ScheduleConfig(FrozenModel):
    """How and when a channel's video should go live."""

    privacy_status: PrivacyStatus = PrivacyStatus.PRIVATE
    publish_at: Optional[datetime] = None
    cron: Optional[str] = Field(default=None, description="Human-readable cadence, e.g. 'daily 09:00'")
    enabled: bool = True
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("publish_at", "created_at")
    @classmethod
    def timestamps_are_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(value)

    @model_validator(mode="after")
    def publish_at_in_future(self) -> "ScheduleConfig":
        if self.publish_at is not None and self.publish_at <= self.created_at:
            raise ValueError("publish_at must be later than the schedule's creation time")
        return self


class PublishMetadata(FrozenModel):
    title: str
    description: str = ""
    tags: tuple[str, ...] = ()


class UploadResult(FrozenModel):
    """Outcome of handing a video to the publishing platform."""

    platform: str = "youtube"
    video_id: str = ""
    platform_url: str = ""
    status: UploadStatus
    scheduled_for: Optional[datetime] = None
    uploaded_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def status_consistency(self) -> "UploadResult":
        if self.status == UploadStatus.SCHEDULED and self.scheduled_for is None:
            raise ValueError("a scheduled upload requires scheduled_for")
        if self.status == UploadStatus.FAILED and (self.video_id or self.platform_url):
            raise ValueError("a failed upload cannot carry a video id or url")
        return self


# =============================================================================
# Channels
# =============================================================================


class ChannelConfig(FrozenModel):
    """What a run needs to know about the channel it produces for."""

    id: str = Field(..., min_length=1)
    name: str = ""
    niche: str = ""
    search_keywords: tuple[str, ...] = ()
    region_code: Optional[str] = None
    language: str = "en"
    target_audience: str = ""
    avg_views: int = Field(default=0, ge=0)

    def channel_state(self) -> ChannelState:
        return ChannelState(
            niche=self.niche,
            avg_views=self.avg_views,
            target_audience=self.target_audience,
        )


class AutoPilotWindow(FrozenModel):
    """Weekdays (0=Monday) and local HH:MM at which the time trigger fires."""

    active_days: tuple[int, ...] = ()
    time: str = Field(default="09:00", pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    timezone: Optional[str] = None

    @field_validator("active_days")
    @classmethod
    def days_in_range(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        for day in value:
            if not 0 <= day <= 6:
                raise ValueError(f"weekday must be 0-6, got {day}")
        return value


class ChannelRecord(ChannelConfig):
    """Persisted per-channel record: configuration plus last-run status."""

    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    autopilot: AutoPilotWindow = Field(default_factory=AutoPilotWindow)
    status: StageStatus = StageStatus.IDLE
    last_log: str = ""
    last_run_at: Optional[datetime] = None
    auth_credentials: Optional[dict[str, Any]] = Field(default=None, repr=False)

    @field_validator("last_run_at")
    @classmethod
    def last_run_is_aware(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(value)


# =============================================================================
# Run Log
# =============================================================================


class LogEntry(FrozenModel):
    """One line of the user-visible run log."""

    timestamp: datetime = Field(default_factory=utc_now)
    level: LogLevel = LogLevel.INFO
    stage: str = "system"
    message: str

    def format(self) -> str:
        return f"[{self.timestamp:%H:%M:%S}] [{self.stage.upper()}] {self.message}"
