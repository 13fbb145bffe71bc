"""Unit tests for the auto-pilot scheduler."""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from trendreel.capabilities.channel_store import InMemoryChannelStore
from trendreel.core.exceptions import CapabilityUnavailableError
from trendreel.models.schemas import AutoPilotWindow, ChannelRecord, ScheduleConfig, StageStatus
from trendreel.pipeline.orchestrator import PipelineResult
from trendreel.pipeline.state import create_run_state
from trendreel.scheduler.scheduler import AutoPilotScheduler, is_cooled_down, is_schedule_match

# Monday 2026-03-02 09:00 in Asia/Taipei
MONDAY_0900_TAIPEI = datetime(2026, 3, 2, 1, 0, tzinfo=timezone.utc)


def _record(**overrides) -> ChannelRecord:
    values = {
        "id": "ch-1",
        "name": "Lab Shorts",
        "niche": "science",
        "autopilot": AutoPilotWindow(active_days=(0, 3), time="09:00"),
    }
    values.update(overrides)
    return ChannelRecord(**values)


def _result(success: bool = True) -> PipelineResult:
    return PipelineResult(
        success=success,
        logs=["[09:00:01] [SYSTEM] Pipeline started", "[09:01:30] [SYSTEM] Pipeline completed"],
        run_state=create_run_state("ch-1"),
    )


class TestScheduleMatch:
    def test_matches_weekday_and_minute(self):
        assert is_schedule_match(_record(), MONDAY_0900_TAIPEI)

    def test_wrong_minute(self):
        assert not is_schedule_match(_record(), MONDAY_0900_TAIPEI + timedelta(minutes=1))

    def test_inactive_day(self):
        assert not is_schedule_match(_record(), MONDAY_0900_TAIPEI + timedelta(days=1))

    def test_disabled_schedule(self):
        record = _record(schedule=ScheduleConfig(enabled=False))

        assert not is_schedule_match(record, MONDAY_0900_TAIPEI)

    def test_no_active_days(self):
        record = _record(autopilot=AutoPilotWindow(active_days=(), time="09:00"))

        assert not is_schedule_match(record, MONDAY_0900_TAIPEI)

    def test_channel_timezone_overrides_default(self):
        record = _record(autopilot=AutoPilotWindow(active_days=(0,), time="01:00", timezone="UTC"))

        assert is_schedule_match(record, MONDAY_0900_TAIPEI)


class TestCooldown:
    def test_never_run(self):
        assert is_cooled_down(None, MONDAY_0900_TAIPEI, timedelta(minutes=50))

    def test_within_window(self):
        last = MONDAY_0900_TAIPEI - timedelta(minutes=49)

        assert not is_cooled_down(last, MONDAY_0900_TAIPEI, timedelta(minutes=50))

    def test_window_elapsed(self):
        last = MONDAY_0900_TAIPEI - timedelta(minutes=50)

        assert is_cooled_down(last, MONDAY_0900_TAIPEI, timedelta(minutes=50))


class TestAutoPilotScheduler:
    @pytest.fixture
    def store(self):
        return InMemoryChannelStore([_record()])

    @pytest.fixture
    def orchestrator(self):
        orchestrator = AsyncMock()
        orchestrator.run.return_value = _result()
        return orchestrator

    @pytest.fixture
    def scheduler(self, store, orchestrator, settings):
        return AutoPilotScheduler(store, orchestrator, settings, clock=lambda: MONDAY_0900_TAIPEI)

    @pytest.mark.asyncio
    async def test_tick_runs_due_channel(self, scheduler, store, orchestrator):
        ran = await scheduler.tick()

        assert ran == ["ch-1"]
        orchestrator.run.assert_awaited_once()
        record = await store.get_channel("ch-1")
        assert record.status == StageStatus.SUCCESS
        assert record.last_log.endswith("Pipeline completed")
        assert record.last_run_at == MONDAY_0900_TAIPEI

    @pytest.mark.asyncio
    async def test_tick_respects_cooldown(self, scheduler, store, orchestrator):
        await store.update_run_status(
            "ch-1", StageStatus.SUCCESS, "", last_run_at=MONDAY_0900_TAIPEI - timedelta(minutes=10)
        )

        ran = await scheduler.tick()

        assert ran == []
        orchestrator.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tick_outside_window(self, scheduler, orchestrator):
        ran = await scheduler.tick(MONDAY_0900_TAIPEI + timedelta(hours=1))

        assert ran == []
        orchestrator.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_run_written_as_error(self, scheduler, store, orchestrator):
        orchestrator.run.return_value = _result(success=False)

        await scheduler.tick()

        record = await store.get_channel("ch-1")
        assert record.status == StageStatus.ERROR
        assert record.last_run_at == MONDAY_0900_TAIPEI

    @pytest.mark.asyncio
    async def test_raised_error_written_back(self, scheduler, store, orchestrator):
        orchestrator.run.side_effect = RuntimeError("boom")

        result = await scheduler.run_channel_task(await store.get_channel("ch-1"))

        assert result is None
        record = await store.get_channel("ch-1")
        assert record.status == StageStatus.ERROR
        assert record.last_log == "boom"

    @pytest.mark.asyncio
    async def test_timeout_written_back(self, store, settings):
        async def slow_run(record):
            await asyncio.sleep(5)

        orchestrator = AsyncMock()
        orchestrator.run.side_effect = slow_run
        quick = settings.model_copy(update={"pipeline_timeout_seconds": 0})
        scheduler = AutoPilotScheduler(store, orchestrator, quick, clock=lambda: MONDAY_0900_TAIPEI)

        result = await scheduler.run_channel_task(await store.get_channel("ch-1"))

        assert result is None
        record = await store.get_channel("ch-1")
        assert record.status == StageStatus.ERROR
        assert "timed out" in record.last_log

    @pytest.mark.asyncio
    async def test_run_now_ignores_cooldown(self, scheduler, store, orchestrator):
        await store.update_run_status(
            "ch-1", StageStatus.SUCCESS, "", last_run_at=MONDAY_0900_TAIPEI
        )

        result = await scheduler.run_now("ch-1")

        assert result.success is True
        orchestrator.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_now_unknown_channel(self, scheduler):
        with pytest.raises(KeyError):
            await scheduler.run_now("missing")

    @pytest.mark.asyncio
    async def test_start_and_stop(self, scheduler):
        await scheduler.start()
        assert scheduler.is_running

        await scheduler.stop()
        assert not scheduler.is_running


class FlakyStore(InMemoryChannelStore):
    """Status writes fail for the listed channel ids."""

    def __init__(self, records, failing: set[str]):
        super().__init__(records)
        self.failing = failing

    async def update_run_status(self, channel_id, status, last_log, last_run_at=None):
        if channel_id in self.failing:
            raise CapabilityUnavailableError("channel_store", "supabase down")
        await super().update_run_status(channel_id, status, last_log, last_run_at=last_run_at)


class TestStoreFailures:
    @pytest.fixture
    def orchestrator(self):
        orchestrator = AsyncMock()
        orchestrator.run.return_value = _result()
        return orchestrator

    @pytest.mark.asyncio
    async def test_one_failing_record_does_not_abort_tick(self, orchestrator, settings):
        store = FlakyStore([_record(id="bad"), _record(id="good")], failing={"bad"})
        scheduler = AutoPilotScheduler(store, orchestrator, settings, clock=lambda: MONDAY_0900_TAIPEI)

        ran = await scheduler.tick()

        assert ran == ["bad", "good"]
        good = await store.get_channel("good")
        assert good.status == StageStatus.SUCCESS
        assert good.last_run_at == MONDAY_0900_TAIPEI
        # "bad" is skipped since its cooldown cannot be recorded
        orchestrator.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_final_write_failure_still_returns_result(self, orchestrator, settings):
        store = FlakyStore([_record()], failing=set())
        scheduler = AutoPilotScheduler(store, orchestrator, settings, clock=lambda: MONDAY_0900_TAIPEI)
        original = store.update_run_status
        calls = []

        async def fail_after_start(channel_id, status, last_log, last_run_at=None):
            calls.append(status)
            if status != StageStatus.RUNNING:
                raise CapabilityUnavailableError("channel_store", "supabase down")
            await original(channel_id, status, last_log, last_run_at=last_run_at)

        store.update_run_status = fail_after_start

        result = await scheduler.run_channel_task(await store.get_channel("ch-1"))

        assert result.success is True
        assert calls == [StageStatus.RUNNING, StageStatus.SUCCESS]
        record = await store.get_channel("ch-1")
        assert record.status == StageStatus.RUNNING
