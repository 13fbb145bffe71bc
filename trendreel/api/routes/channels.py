"""Channel record endpoints: list, read, upsert and run a stored channel."""

import structlog
from fastapi import APIRouter, Depends, HTTPException

from trendreel.api.dependencies import get_channel_store, get_scheduler
from trendreel.api.models import ChannelListResponse, ErrorResponse, RunResponse
from trendreel.capabilities.base import ChannelStore
from trendreel.models.schemas import ChannelRecord
from trendreel.scheduler.scheduler import AutoPilotScheduler

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/channels", tags=["Channels"])


async def _get_channel_or_404(channel_id: str, store: ChannelStore) -> ChannelRecord:
    record = await store.get_channel(channel_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Channel {channel_id} not found")
    return record


@router.get(
    "",
    response_model=ChannelListResponse,
    response_model_exclude={"channels": {"__all__": {"auth_credentials"}}},
    summary="List channels",
)
async def list_channels(store: ChannelStore = Depends(get_channel_store)) -> ChannelListResponse:
    channels = await store.list_channels()
    return ChannelListResponse(channels=channels, total=len(channels))


@router.get(
    "/{channel_id}",
    response_model=ChannelRecord,
    response_model_exclude={"auth_credentials"},
    summary="Get channel",
    responses={404: {"model": ErrorResponse, "description": "Channel not found"}},
)
async def get_channel(
    channel_id: str,
    store: ChannelStore = Depends(get_channel_store),
) -> ChannelRecord:
    return await _get_channel_or_404(channel_id, store)


@router.put(
    "/{channel_id}",
    response_model=ChannelRecord,
    response_model_exclude={"auth_credentials"},
    summary="Create or replace channel",
    responses={400: {"model": ErrorResponse, "description": "Body id does not match path"}},
)
async def put_channel(
    channel_id: str,
    record: ChannelRecord,
    store: ChannelStore = Depends(get_channel_store),
) -> ChannelRecord:
    if record.id != channel_id:
        raise HTTPException(
            status_code=400,
            detail=f"Body id {record.id!r} does not match path id {channel_id!r}",
        )
    saved = await store.save_channel(record)
    logger.info("channel_saved", channel_id=channel_id)
    return saved


@router.post(
    "/{channel_id}/run",
    response_model=RunResponse,
    summary="Run a stored channel now",
    description="Run the pipeline for a stored channel, ignoring schedule and cooldown.",
    responses={
        404: {"model": ErrorResponse, "description": "Channel not found"},
        504: {"model": ErrorResponse, "description": "Run timed out or raised"},
    },
)
async def run_channel(
    channel_id: str,
    store: ChannelStore = Depends(get_channel_store),
    scheduler: AutoPilotScheduler = Depends(get_scheduler),
) -> RunResponse:
    record = await _get_channel_or_404(channel_id, store)
    result = await scheduler.run_channel_task(record)
    if result is None:
        refreshed = await store.get_channel(channel_id)
        raise HTTPException(
            status_code=504,
            detail=refreshed.last_log if refreshed else "Run did not complete",
        )
    return RunResponse(**result.to_dict())
