"""Unit tests for the pipeline orchestrator."""

from datetime import timedelta

import pytest

from tests.conftest import (
    REMOTE_ID,
    REMOTE_URL,
    FakeGenerator,
    FakePublisher,
    FakeRenderer,
    FakeTrendSource,
    candidates_payload,
    composition_payload,
    no_sleep,
)
from trendreel.core.exceptions import (
    CapabilityRateLimitError,
    CapabilityUnavailableError,
    SequencingError,
)
from trendreel.models.schemas import (
    PIPELINE_STAGES,
    ChannelRecord,
    ScheduleConfig,
    ScoreBreakdown,
    SourceItem,
    StageName,
    StageStatus,
    UploadStatus,
    utc_now,
)
from trendreel.pipeline.orchestrator import PipelineOrchestrator, PipelineResult
from trendreel.pipeline.state import RunPhase, create_run_state

SCORES = {"candidate_1": 10.0, "candidate_2": 25.0, "candidate_3": 25.0}


def fixed_scorer(candidate, channel):
    third = SCORES[candidate.id] / 3
    return ScoreBreakdown(virality=third, feasibility=third, trend_alignment=third)


@pytest.fixture
def generator():
    return FakeGenerator([candidates_payload(), composition_payload("candidate_2")])


@pytest.fixture
def renderer():
    return FakeRenderer(pending_polls=1)


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def make_orchestrator(settings, generator, renderer, publisher):
    def factory(**overrides):
        kwargs = {
            "generator": generator,
            "renderer": renderer,
            "publisher": publisher,
            "trend_source": None,
            "settings": settings,
            "scorer": fixed_scorer,
            "sleep": no_sleep,
        }
        kwargs.update(overrides)
        return PipelineOrchestrator(**kwargs)

    return factory


class TestFullRun:
    """run(): acquisition plus all six stages."""

    @pytest.mark.asyncio
    async def test_successful_run(self, make_orchestrator, channel, publisher):
        result = await make_orchestrator().run(channel, force_mock=True)

        assert isinstance(result, PipelineResult)
        assert result.success is True
        assert result.error is None
        assert result.upload_id == REMOTE_ID
        assert result.video_url == REMOTE_URL
        assert result.used_mock_data is True
        assert result.logs

        state = result.run_state
        assert all(state.status_of(stage) == StageStatus.SUCCESS for stage in PIPELINE_STAGES)
        assert state.selected_candidate.id == "candidate_2"
        assert state.phase == RunPhase.COMPLETED
        assert len(publisher.calls) == 1

    @pytest.mark.asyncio
    async def test_metadata_from_composition_and_signals(self, make_orchestrator, channel, publisher):
        await make_orchestrator().run(channel, force_mock=True)

        metadata = publisher.calls[0]["metadata"]
        assert metadata.title == "Liquid Metal Meets Ice"
        assert metadata.tags == ("ai", "science", "shorts")

    @pytest.mark.asyncio
    async def test_unconfigured_source_uses_mock(self, make_orchestrator, channel):
        result = await make_orchestrator().run(channel)

        assert result.used_mock_data is True
        assert [item.id for item in result.run_state.source_items] == ["m1", "m2"]

    @pytest.mark.asyncio
    async def test_live_items_used(self, make_orchestrator, channel):
        source = FakeTrendSource(items=[
            SourceItem(id="live1", title="Liquid metal experiment", hashtags=("#science",)),
        ])

        result = await make_orchestrator(trend_source=source).run(channel)

        assert result.success is True
        assert result.used_mock_data is False
        assert source.calls == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "source",
        [
            FakeTrendSource(error=CapabilityRateLimitError("youtube_trends", "quota")),
            FakeTrendSource(items=[]),
        ],
    )
    async def test_source_failure_or_empty_falls_back(self, make_orchestrator, channel, source):
        result = await make_orchestrator(trend_source=source).run(channel)

        assert result.success is True
        assert result.used_mock_data is True
        assert any("mock trend data" in line for line in result.logs)

    @pytest.mark.asyncio
    async def test_stage_failure_halts_run(self, make_orchestrator, channel, renderer, publisher):
        generator = FakeGenerator([CapabilityUnavailableError("fake_generator", "model overloaded")])

        result = await make_orchestrator(generator=generator).run(channel, force_mock=True)

        assert result.success is False
        assert result.failed_stage == StageName.CANDIDATE_GENERATION
        assert "model overloaded" in result.error
        assert any("model overloaded" in line for line in result.logs)

        state = result.run_state
        assert state.status_of(StageName.TREND_SIGNALS) == StageStatus.SUCCESS
        assert state.status_of(StageName.CANDIDATE_GENERATION) == StageStatus.ERROR
        for stage in (StageName.WEIGHTING, StageName.COMPOSITION, StageName.RENDER, StageName.PUBLISH):
            assert state.status_of(stage) == StageStatus.IDLE
        assert state.signals is not None
        assert renderer.submitted == []
        assert publisher.calls == []

    @pytest.mark.asyncio
    async def test_render_timeout_keeps_prompt(self, make_orchestrator, channel, publisher):
        result = await make_orchestrator(renderer=FakeRenderer(pending_polls=100)).run(
            channel, force_mock=True
        )

        assert result.success is False
        assert result.failed_stage == StageName.RENDER
        assert result.run_state.prompt_output is not None
        assert result.run_state.video_asset is None
        assert publisher.calls == []

    @pytest.mark.asyncio
    async def test_publish_failure(self, make_orchestrator, channel):
        publisher = FakePublisher(error=CapabilityUnavailableError("youtube_publisher", "upload failed"))

        result = await make_orchestrator(publisher=publisher).run(channel, force_mock=True)

        assert result.success is False
        assert result.failed_stage == StageName.PUBLISH
        assert result.upload_id is None
        assert result.run_state.video_asset is not None

    @pytest.mark.asyncio
    async def test_stored_schedule_used(self, make_orchestrator, channel):
        record = ChannelRecord(
            **channel.model_dump(),
            schedule=ScheduleConfig(publish_at=utc_now() + timedelta(days=1)),
        )

        result = await make_orchestrator().run(record, force_mock=True)

        assert result.success is True
        assert result.run_state.upload_result.status == UploadStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_to_dict_is_json_ready(self, make_orchestrator, channel):
        result = await make_orchestrator().run(channel, force_mock=True)

        data = result.to_dict()
        assert data["success"] is True
        assert "run_state" not in data
        assert data["run"]["selected_candidate_id"] == "candidate_2"

    @pytest.mark.asyncio
    async def test_unexpected_node_error_keeps_partial_run(self, make_orchestrator, channel):
        orchestrator = make_orchestrator()
        build_stage_input = orchestrator.build_stage_input

        def broken_render_input(stage, *args, **kwargs):
            if stage == StageName.RENDER:
                raise RuntimeError("renderer wiring broken")
            return build_stage_input(stage, *args, **kwargs)

        orchestrator.build_stage_input = broken_render_input

        result = await orchestrator.run(channel, force_mock=True)

        assert result.success is False
        assert result.failed_stage == StageName.RENDER
        assert "renderer wiring broken" in result.error
        state = result.run_state
        assert state.status_of(StageName.COMPOSITION) == StageStatus.SUCCESS
        assert state.prompt_output.title == "Liquid Metal Meets Ice"
        assert any("[COMPOSITION]" in line for line in result.logs)
        assert result.logs[-1].endswith("Pipeline error: renderer wiring broken")


class TestRunStage:
    """Step-by-step execution and sequencing guards."""

    @pytest.mark.asyncio
    async def test_missing_prerequisite(self, make_orchestrator, channel):
        with pytest.raises(SequencingError) as exc_info:
            await make_orchestrator().run_stage(StageName.RENDER, create_run_state(channel.id), channel)

        assert "missing prerequisite" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_signals_need_source_items(self, make_orchestrator, channel):
        with pytest.raises(SequencingError):
            await make_orchestrator().run_stage(
                StageName.TREND_SIGNALS, create_run_state(channel.id), channel
            )

    @pytest.mark.asyncio
    async def test_step_by_step(self, make_orchestrator, channel):
        orchestrator = make_orchestrator()
        state = await orchestrator.acquire_source_items(create_run_state(channel.id), channel, force_mock=True)

        for stage in PIPELINE_STAGES:
            previous = state
            state = await orchestrator.run_stage(stage, state, channel)
            assert state.status_of(stage) == StageStatus.SUCCESS
            assert previous.status_of(stage) == StageStatus.IDLE

        assert state.upload_result.video_id == REMOTE_ID

    @pytest.mark.asyncio
    async def test_failed_stage_can_be_retried(self, make_orchestrator, channel):
        generator = FakeGenerator([
            CapabilityUnavailableError("fake_generator", "overloaded"),
            candidates_payload(),
        ])
        orchestrator = make_orchestrator(generator=generator)
        state = await orchestrator.acquire_source_items(create_run_state(channel.id), channel, force_mock=True)
        state = await orchestrator.run_stage(StageName.TREND_SIGNALS, state, channel)

        failed = await orchestrator.run_stage(StageName.CANDIDATE_GENERATION, state, channel)
        retried = await orchestrator.run_stage(StageName.CANDIDATE_GENERATION, failed, channel)

        assert failed.status_of(StageName.CANDIDATE_GENERATION) == StageStatus.ERROR
        assert retried.status_of(StageName.CANDIDATE_GENERATION) == StageStatus.SUCCESS
        assert retried.error is None

    @pytest.mark.asyncio
    async def test_second_publish_refused(self, make_orchestrator, channel, publisher):
        orchestrator = make_orchestrator()
        result = await orchestrator.run(channel, force_mock=True)

        with pytest.raises(SequencingError):
            await orchestrator.run_stage(StageName.PUBLISH, result.run_state, channel)

        assert len(publisher.calls) == 1

    @pytest.mark.asyncio
    async def test_explicit_republish(self, make_orchestrator, channel, publisher):
        orchestrator = make_orchestrator()
        result = await orchestrator.run(channel, force_mock=True)

        state = await orchestrator.run_stage(
            StageName.PUBLISH, result.run_state, channel, allow_republish=True
        )

        assert state.publish_attempts == 2
        assert len(publisher.calls) == 2

    @pytest.mark.asyncio
    async def test_rerun_earlier_stage_invalidates_later_outputs(self, make_orchestrator, channel):
        fresh = [{**c, "id": f"fresh_{i + 1}"} for i, c in enumerate(candidates_payload())]
        generator = FakeGenerator([candidates_payload(), composition_payload("candidate_2"), fresh])
        orchestrator = make_orchestrator(generator=generator)
        state = await orchestrator.acquire_source_items(create_run_state(channel.id), channel, force_mock=True)
        for stage in PIPELINE_STAGES[:4]:
            state = await orchestrator.run_stage(stage, state, channel)

        state = await orchestrator.run_stage(StageName.CANDIDATE_GENERATION, state, channel)

        assert [c.id for c in state.candidates] == ["fresh_1", "fresh_2", "fresh_3"]
        assert state.status_of(StageName.WEIGHTING) == StageStatus.IDLE
        assert state.scored_candidates is None
        with pytest.raises(SequencingError):
            orchestrator.build_stage_input(StageName.RENDER, state, channel)
