"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from trendreel.models.schemas import ChannelConfig, ChannelRecord, ScheduleConfig, StageName, utc_now


# =============================================================================
# Pipeline Models
# =============================================================================


class RunRequest(BaseModel):
    """Request model for an ad-hoc pipeline run."""

    channel: ChannelConfig = Field(..., description="Channel to produce a video for")
    schedule: Optional[ScheduleConfig] = Field(
        None,
        description="Publish schedule; omitted means publish immediately as private",
    )
    force_mock: bool = Field(
        default=False,
        description="Skip live trend acquisition and use the mock dataset",
    )


class RunResponse(BaseModel):
    """Outcome of a pipeline run. Returned with HTTP 200 even on failure."""

    success: bool
    logs: list[str] = Field(default_factory=list)
    video_url: Optional[str] = None
    upload_id: Optional[str] = None
    error: Optional[str] = None
    failed_stage: Optional[StageName] = None
    used_mock_data: bool = False
    run: Optional[dict[str, Any]] = Field(None, description="Run state summary")


# =============================================================================
# Channel Models
# =============================================================================


class ChannelListResponse(BaseModel):
    channels: list[ChannelRecord]
    total: int


class CronTickResponse(BaseModel):
    """Response for a manual auto-pilot scan."""

    ran: list[str] = Field(default_factory=list, description="Ids of the channels that were run")
    timestamp: datetime = Field(default_factory=utc_now)


# =============================================================================
# Health Check Models
# =============================================================================


class HealthStatus(BaseModel):
    """Individual service health status."""

    status: Literal["healthy", "unhealthy", "degraded"] = Field(
        ..., description="Service status"
    )
    latency_ms: Optional[float] = Field(None, description="Response latency in milliseconds")
    message: Optional[str] = Field(None, description="Additional status message")


class HealthCheckResponse(BaseModel):
    """Response model for health check endpoint."""

    status: Literal["healthy", "unhealthy", "degraded"] = Field(
        ..., description="Overall system status"
    )
    version: str = Field(..., description="API version")
    timestamp: datetime = Field(..., description="Check timestamp")
    services: dict[str, HealthStatus] = Field(
        default_factory=dict,
        description="Individual service statuses",
    )
    uptime_seconds: Optional[float] = Field(None, description="Server uptime in seconds")


# =============================================================================
# Error Models
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    path: Optional[str] = Field(None, description="Request path that caused the error")
    timestamp: datetime = Field(default_factory=utc_now, description="Error timestamp")


class ValidationErrorDetail(BaseModel):
    field: str = Field(..., description="Field that failed validation")
    message: str = Field(..., description="Validation error message")
    value: Optional[Any] = Field(None, description="Invalid value provided")


class ValidationErrorResponse(BaseModel):
    error: str = Field(default="validation_error", description="Error type")
    message: str = Field(default="Request validation failed", description="Error message")
    errors: list[ValidationErrorDetail] = Field(..., description="List of validation errors")
    timestamp: datetime = Field(default_factory=utc_now, description="Error timestamp")
