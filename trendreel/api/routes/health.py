"""Health check endpoints for the TrendReel API.

Reports channel store connectivity, scheduler status and which external
capabilities are configured.
"""

import time
from typing import Optional

import structlog
from fastapi import APIRouter, Depends

from trendreel.api.dependencies import get_channel_store, get_scheduler
from trendreel.api.models import HealthCheckResponse, HealthStatus
from trendreel.capabilities.base import ChannelStore
from trendreel.config.settings import Settings, get_settings
from trendreel.models.schemas import utc_now

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Health"])

API_VERSION = "1.0.0"

_server_start_time: Optional[float] = None


def set_server_start_time() -> None:
    global _server_start_time
    _server_start_time = time.time()


def get_uptime_seconds() -> Optional[float]:
    if _server_start_time is None:
        return None
    return time.time() - _server_start_time


async def check_channel_store_health(store: ChannelStore) -> HealthStatus:
    """Check the channel store answers a list query."""
    start_time = time.time()
    try:
        channels = await store.list_channels()
        latency = (time.time() - start_time) * 1000
        return HealthStatus(
            status="healthy",
            latency_ms=round(latency, 2),
            message=f"{len(channels)} channels",
        )
    except Exception as e:
        latency = (time.time() - start_time) * 1000
        logger.error("channel_store_health_check_failed", error=str(e))
        return HealthStatus(
            status="unhealthy",
            latency_ms=round(latency, 2),
            message=f"Channel store failed: {str(e)[:100]}",
        )


async def check_scheduler_health(settings: Settings) -> HealthStatus:
    try:
        scheduler = get_scheduler()
        if scheduler.is_running:
            return HealthStatus(status="healthy", message="Auto-pilot is running")
        if not settings.autopilot_enabled:
            return HealthStatus(status="healthy", message="Auto-pilot is disabled")
        return HealthStatus(status="degraded", message="Auto-pilot is not running")
    except Exception as e:
        logger.error("scheduler_health_check_failed", error=str(e))
        return HealthStatus(
            status="unhealthy",
            message=f"Scheduler check failed: {str(e)[:100]}",
        )


def check_capabilities(settings: Settings) -> HealthStatus:
    """Degraded when a capability key is missing; runs then fail at that stage."""
    missing = []
    if settings.generation_provider == "anthropic" and not settings.anthropic_api_key:
        missing.append("anthropic_api_key")
    if not settings.gemini_api_key:
        missing.append("gemini_api_key")
    if not settings.youtube_api_key:
        missing.append("youtube_api_key (mock trends)")

    if missing:
        return HealthStatus(status="degraded", message="Missing: " + ", ".join(missing))
    return HealthStatus(status="healthy", message="All capabilities configured")


@router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health Check",
    description="Check the health status of the API and its dependencies.",
)
async def health_check(
    settings: Settings = Depends(get_settings),
    store: ChannelStore = Depends(get_channel_store),
) -> HealthCheckResponse:
    services = {
        "channel_store": await check_channel_store_health(store),
        "scheduler": await check_scheduler_health(settings),
        "capabilities": check_capabilities(settings),
    }

    statuses = [s.status for s in services.values()]
    if all(s == "healthy" for s in statuses):
        overall_status = "healthy"
    elif any(s == "unhealthy" for s in statuses):
        overall_status = "unhealthy"
    else:
        overall_status = "degraded"

    return HealthCheckResponse(
        status=overall_status,
        version=API_VERSION,
        timestamp=utc_now(),
        services=services,
        uptime_seconds=get_uptime_seconds(),
    )


@router.get(
    "/health/live",
    summary="Liveness Check",
    description="Simple liveness check for container orchestration.",
)
async def liveness() -> dict:
    return {"status": "alive", "timestamp": utc_now().isoformat()}
