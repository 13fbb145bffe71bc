"""External cron trigger for the auto-pilot scan.

Protected by ``Authorization: Bearer <CRON_SECRET>`` whenever a cron secret
is configured; production settings refuse to start without one.
"""

import secrets
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException

from trendreel.api.dependencies import get_scheduler
from trendreel.api.models import CronTickResponse, ErrorResponse
from trendreel.config.settings import Settings, get_settings
from trendreel.scheduler.scheduler import AutoPilotScheduler

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])


def verify_cron_secret(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Raises:
        HTTPException: 401 when the bearer token is missing or wrong.
    """
    if settings.cron_secret is None:
        if settings.is_production:
            raise HTTPException(status_code=401, detail="Cron secret not configured")
        return

    expected = f"Bearer {settings.cron_secret.get_secret_value()}"
    if not authorization or not secrets.compare_digest(authorization, expected):
        logger.warning("invalid_cron_secret_attempt")
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post(
    "/tick",
    response_model=CronTickResponse,
    summary="Run one auto-pilot scan",
    dependencies=[Depends(verify_cron_secret)],
    responses={401: {"model": ErrorResponse, "description": "Missing or invalid cron secret"}},
)
async def cron_tick(scheduler: AutoPilotScheduler = Depends(get_scheduler)) -> CronTickResponse:
    ran = await scheduler.tick()
    return CronTickResponse(ran=ran)
