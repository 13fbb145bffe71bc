"""Auto-pilot scheduler for unattended pipeline runs.

An APScheduler interval job ("autopilot_tick") scans the channel store once
a minute. A channel runs when:
- its schedule is enabled,
- today (in the channel's timezone) is one of its active weekdays,
- the local wall clock reads exactly its configured HH:MM,
- and it has cooled down since ``last_run_at``.

Before a run the record is written ``running`` with ``last_run_at = now`` so a
failed run still counts toward the cooldown; afterwards it is written
``success`` or ``error`` with the last log line.

Supabase Table Schema (channels): see trendreel.capabilities.channel_store.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from trendreel.capabilities.base import ChannelStore
from trendreel.config.settings import Settings, get_settings
from trendreel.models.schemas import ChannelRecord, StageStatus, utc_now
from trendreel.pipeline.orchestrator import PipelineOrchestrator, PipelineResult

logger = structlog.get_logger(__name__)

TICK_JOB_ID = "autopilot_tick"


# =============================================================================
# Matching
# =============================================================================


def _zone(name: Optional[str], default_tz: str) -> ZoneInfo:
    try:
        return ZoneInfo(name or default_tz)
    except ZoneInfoNotFoundError:
        logger.warning("autopilot_unknown_timezone", timezone=name, fallback=default_tz)
        return ZoneInfo(default_tz)


def is_schedule_match(record: ChannelRecord, now: datetime, default_tz: str = "Asia/Taipei") -> bool:
    """True when ``now`` falls on the record's auto-pilot weekday and minute."""
    if not record.schedule.enabled:
        return False
    window = record.autopilot
    if not window.active_days:
        return False

    local = now.astimezone(_zone(window.timezone, default_tz))
    if local.weekday() not in window.active_days:
        return False
    return local.strftime("%H:%M") == window.time


def is_cooled_down(last_run_at: Optional[datetime], now: datetime, cooldown: timedelta) -> bool:
    if last_run_at is None:
        return True
    return now - last_run_at >= cooldown


# =============================================================================
# Scheduler
# =============================================================================


class AutoPilotScheduler:
    """Drives scheduled runs for every channel in the store.

    Usage:
        scheduler = AutoPilotScheduler(store, orchestrator)
        await scheduler.start()

        # Manual trigger, ignoring schedule and cooldown
        await scheduler.run_now("channel-1")

        await scheduler.stop()
    """

    def __init__(
        self,
        store: ChannelStore,
        orchestrator: PipelineOrchestrator,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._orchestrator = orchestrator
        self._settings = settings or get_settings()
        self._clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None

        logger.info("scheduler_initialized")

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self._settings.autopilot_cooldown_minutes)

    async def start(self) -> None:
        """Start the interval job."""
        if self.is_running:
            logger.warning("scheduler_already_running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self._settings.autopilot_interval_seconds),
            id=TICK_JOB_ID,
            name="TrendReel auto-pilot tick",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "scheduler_started",
            interval_seconds=self._settings.autopilot_interval_seconds,
        )

    async def stop(self) -> None:
        if not self.is_running:
            logger.warning("scheduler_not_running")
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("scheduler_stopped")

    async def due_channels(self, now: datetime) -> list[ChannelRecord]:
        records = await self._store.list_channels()
        return [
            record
            for record in records
            if is_schedule_match(record, now, self._settings.autopilot_timezone)
            and is_cooled_down(record.last_run_at, now, self.cooldown)
        ]

    async def tick(self, now: Optional[datetime] = None) -> list[str]:
        """
        Scan the store once and run every due channel.

        Returns:
            Ids of the channels that were run.
        """
        now = now or self._clock()
        due = await self.due_channels(now)
        if not due:
            logger.debug("autopilot_tick_idle", at=now.isoformat())
            return []

        logger.info("autopilot_tick", at=now.isoformat(), due=[r.id for r in due])
        outcomes = await asyncio.gather(
            *(self.run_channel_task(record, now) for record in due),
            return_exceptions=True,
        )
        for record, outcome in zip(due, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    "channel_task_crashed",
                    channel_id=record.id,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
        return [record.id for record in due]

    async def _write_status(
        self,
        channel_id: str,
        status: StageStatus,
        last_log: str,
        last_run_at: Optional[datetime] = None,
    ) -> bool:
        """Write a run status; store failures are logged and reported as False."""
        try:
            await self._store.update_run_status(channel_id, status, last_log, last_run_at=last_run_at)
        except Exception as e:
            logger.error(
                "channel_status_write_failed",
                channel_id=channel_id,
                status=status.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return True

    async def run_channel_task(
        self,
        record: ChannelRecord,
        now: Optional[datetime] = None,
    ) -> Optional[PipelineResult]:
        """
        Run one channel with timeout protection and write its status back.

        The run is skipped when the ``running`` status cannot be written,
        since the cooldown would not be recorded.

        Returns None when the run was skipped, timed out or raised.
        """
        now = now or self._clock()
        timeout_seconds = self._settings.pipeline_timeout_seconds

        started = await self._write_status(
            record.id,
            StageStatus.RUNNING,
            "Auto-pilot run started",
            last_run_at=now,
        )
        if not started:
            logger.warning("channel_run_skipped", channel_id=record.id)
            return None
        logger.info("channel_run_start", channel_id=record.id, timeout_seconds=timeout_seconds)

        try:
            async with asyncio.timeout(timeout_seconds):
                result = await self._orchestrator.run(record)
        except TimeoutError:
            logger.error("channel_run_timeout", channel_id=record.id, timeout_seconds=timeout_seconds)
            await self._write_status(
                record.id,
                StageStatus.ERROR,
                f"Run timed out after {timeout_seconds}s",
            )
            return None
        except Exception as e:
            logger.error(
                "channel_run_failed",
                channel_id=record.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._write_status(record.id, StageStatus.ERROR, str(e))
            return None

        last_log = result.logs[-1] if result.logs else ""
        await self._write_status(
            record.id,
            StageStatus.SUCCESS if result.success else StageStatus.ERROR,
            last_log,
        )
        logger.info(
            "channel_run_complete",
            channel_id=record.id,
            success=result.success,
            video_url=result.video_url,
        )
        return result

    async def run_now(self, channel_id: str) -> Optional[PipelineResult]:
        """
        Run a stored channel immediately, ignoring schedule and cooldown.

        Raises:
            KeyError: If the channel does not exist.
        """
        record = await self._store.get_channel(channel_id)
        if record is None:
            raise KeyError(channel_id)
        return await self.run_channel_task(record)


# =============================================================================
# CLI
# =============================================================================


async def _tick_once() -> dict[str, Any]:
    from trendreel.core.container import initialize_container, shutdown_container

    container = await initialize_container()
    try:
        scheduler = AutoPilotScheduler(container.channel_store, container.orchestrator, container.settings)
        ran = await scheduler.tick()
    finally:
        await shutdown_container()
    return {"ran": ran}


async def _serve() -> None:
    from trendreel.core.container import initialize_container, shutdown_container

    container = await initialize_container()
    scheduler = AutoPilotScheduler(container.channel_store, container.orchestrator, container.settings)
    await scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()
        await shutdown_container()


if __name__ == "__main__":
    import sys

    if len(sys.argv) > 1 and sys.argv[1] == "tick":
        print(asyncio.run(_tick_once()))
    elif len(sys.argv) > 1 and sys.argv[1] == "serve":
        asyncio.run(_serve())
    else:
        print("Usage: python -m trendreel.scheduler.scheduler [tick|serve]")
