"""Pipeline run endpoint.

A failed run is still a successful request: the response carries
``success=false`` with the error, the failing stage and the logs.
"""

import asyncio

import structlog
from fastapi import APIRouter, Depends, HTTPException

from trendreel.api.dependencies import get_orchestrator
from trendreel.api.models import ErrorResponse, RunRequest, RunResponse
from trendreel.config.settings import Settings, get_settings
from trendreel.pipeline.orchestrator import PipelineOrchestrator

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/pipeline", tags=["Pipeline"])


@router.post(
    "/run",
    response_model=RunResponse,
    summary="Run the pipeline",
    description="Run trend acquisition and all six stages for a channel.",
    responses={
        504: {"model": ErrorResponse, "description": "Run exceeded the pipeline timeout"},
    },
)
async def run_pipeline(
    request: RunRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
) -> RunResponse:
    logger.info("pipeline_run_requested", channel_id=request.channel.id, force_mock=request.force_mock)

    try:
        async with asyncio.timeout(settings.pipeline_timeout_seconds):
            result = await orchestrator.run(
                request.channel,
                schedule=request.schedule,
                force_mock=request.force_mock,
            )
    except TimeoutError:
        logger.error("pipeline_run_timeout", channel_id=request.channel.id)
        raise HTTPException(
            status_code=504,
            detail=f"Pipeline run exceeded {settings.pipeline_timeout_seconds}s",
        )

    return RunResponse(**result.to_dict())
