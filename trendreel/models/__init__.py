"""
Data models for TrendReel.

Entity flow through one run:
    SourceItem[] -> TrendSignals -> CandidateTheme[] -> CandidateTheme (selected)
    -> PromptOutput -> VideoAsset -> UploadResult

Example:
    from trendreel.models import CandidateTheme, TrendSignals
"""

from trendreel.models.schemas import (
    CANDIDATE_REQUIRED_FIELDS,
    PIPELINE_STAGES,
    AutoPilotWindow,
    CandidateTheme,
    ChannelConfig,
    ChannelRecord,
    ChannelState,
    LogEntry,
    LogLevel,
    PrivacyStatus,
    PromptOutput,
    PublishMetadata,
    ScheduleConfig,
    ScoreBreakdown,
    SourceItem,
    StageName,
    StageStatus,
    TrendSignals,
    UploadResult,
    UploadStatus,
    VideoAsset,
    VideoStatus,
    utc_now,
)

__all__ = [
    "CANDIDATE_REQUIRED_FIELDS",
    "PIPELINE_STAGES",
    "AutoPilotWindow",
    "CandidateTheme",
    "ChannelConfig",
    "ChannelRecord",
    "ChannelState",
    "LogEntry",
    "LogLevel",
    "PrivacyStatus",
    "PromptOutput",
    "PublishMetadata",
    "ScheduleConfig",
    "ScoreBreakdown",
    "SourceItem",
    "StageName",
    "StageStatus",
    "TrendSignals",
    "UploadResult",
    "UploadStatus",
    "VideoAsset",
    "VideoStatus",
    "utc_now",
]
