"""
End-to-end pipeline test with fake capabilities.

Runs acquisition and all six stages through the compiled graph the way the
API and scheduler do, using the mock trend dataset and the default scorer
replaced by fixed scores so the winner is known.
"""

from datetime import datetime, timezone

import pytest

from tests.conftest import (
    REMOTE_ID,
    REMOTE_URL,
    FakeGenerator,
    FakePublisher,
    FakeRenderer,
    candidates_payload,
    composition_payload,
    no_sleep,
)
from trendreel.capabilities.channel_store import InMemoryChannelStore
from trendreel.models.schemas import (
    PIPELINE_STAGES,
    AutoPilotWindow,
    ChannelRecord,
    ScoreBreakdown,
    StageName,
    StageStatus,
    VideoStatus,
)
from trendreel.pipeline.orchestrator import PipelineOrchestrator
from trendreel.scheduler.scheduler import AutoPilotScheduler

pytestmark = pytest.mark.integration

SCORES = [10.0, 25.0, 25.0]


def scorer(candidate, channel):
    total = SCORES[int(candidate.id.rsplit("_", 1)[1]) - 1]
    return ScoreBreakdown(virality=total / 2, feasibility=total / 4, trend_alignment=total / 4)


@pytest.fixture
def orchestrator(settings):
    generator = FakeGenerator([candidates_payload(), composition_payload("candidate_2")])
    return PipelineOrchestrator(
        generator,
        FakeRenderer(pending_polls=2),
        FakePublisher(),
        settings=settings,
        scorer=scorer,
        sleep=no_sleep,
    )


class TestEndToEndPipeline:
    @pytest.mark.asyncio
    async def test_mock_trends_to_published_short(self, orchestrator, channel):
        result = await orchestrator.run(channel, force_mock=True)

        assert result.success is True
        assert result.used_mock_data is True
        assert result.upload_id == REMOTE_ID
        assert result.video_url == REMOTE_URL

        state = result.run_state
        assert all(state.statuses[stage] == StageStatus.SUCCESS for stage in PIPELINE_STAGES)
        assert state.selected_candidate.id == "candidate_2"
        assert [c.selected for c in state.scored_candidates] == [False, True, False]
        assert state.video_asset.status == VideoStatus.GENERATED
        assert state.publish_attempts == 1

    @pytest.mark.asyncio
    async def test_logs_follow_stage_order(self, orchestrator, channel):
        result = await orchestrator.run(channel, force_mock=True)

        text = "\n".join(result.logs)
        assert "mock trend data" in text
        positions = [text.find(f"[{stage.value.upper()}]") for stage in PIPELINE_STAGES]
        assert all(p >= 0 for p in positions)
        assert positions == sorted(positions)

    @pytest.mark.asyncio
    async def test_result_serializes_for_api(self, orchestrator, channel):
        result = await orchestrator.run(channel, force_mock=True)

        data = result.to_dict()

        assert data["success"] is True
        assert data["failed_stage"] is None
        assert data["run"]["statuses"][StageName.PUBLISH.value] == "success"
        assert "run_state" not in data


class TestScheduledPipeline:
    @pytest.mark.asyncio
    async def test_autopilot_tick_runs_and_records(self, orchestrator, settings):
        # Thursday 2026-03-05 21:30 Asia/Taipei
        now = datetime(2026, 3, 5, 13, 30, tzinfo=timezone.utc)
        record = ChannelRecord(
            id="auto-1",
            name="Auto Lab",
            niche="science experiments",
            autopilot=AutoPilotWindow(active_days=(3,), time="21:30"),
        )
        store = InMemoryChannelStore([record])
        scheduler = AutoPilotScheduler(store, orchestrator, settings, clock=lambda: now)

        ran = await scheduler.tick()

        assert ran == ["auto-1"]
        stored = await store.get_channel("auto-1")
        assert stored.status == StageStatus.SUCCESS
        assert stored.last_run_at == now
        assert await scheduler.tick() == []
