"""Pipeline orchestrator.

Owns the six stages and the rules for moving a run between them:

1. Trend acquisition (live source, or the mock dataset where the fallback
   table allows it)
2. Stages 1-6 strictly in order, each invoked only once the previous stage
   succeeded and produced input satisfying the next stage's precondition
3. Halt on the first failure, keeping every output produced so far

``run`` never raises: it always returns a PipelineResult. ``run_stage``
drives a single stage for step-by-step execution and retries; it raises
SequencingError when asked to run a stage whose prerequisite is missing.
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel, Field

from trendreel.capabilities.base import Publisher, StructuredGenerator, TrendSource, VideoRenderer
from trendreel.capabilities.youtube_trends import mock_source_items
from trendreel.config.settings import Settings, get_settings
from trendreel.core.exceptions import SequencingError
from trendreel.models.schemas import (
    PIPELINE_STAGES,
    ChannelConfig,
    ChannelRecord,
    LogLevel,
    PublishMetadata,
    ScheduleConfig,
    StageName,
    StageStatus,
    VideoStatus,
    utc_now,
)
from trendreel.monitoring.metrics import (
    record_pipeline_run,
    record_trend_fallback,
    track_stage_execution,
)
from trendreel.pipeline.fallback import TREND_ACQUISITION, may_substitute_mock
from trendreel.pipeline.graph import PipelineGraphState, compile_pipeline_graph
from trendreel.pipeline.state import RunPhase, RunState, create_run_state
from trendreel.stages.base import Stage
from trendreel.stages.candidates import CandidateGenerationStage
from trendreel.stages.composition import CompositionStage
from trendreel.stages.publish import PublishInput, PublishStage
from trendreel.stages.render import RenderStage
from trendreel.stages.trend_signals import TrendSignalStage
from trendreel.stages.weighting import Scorer, ScoringWeights, WeightingInput, WeightingStage

logger = structlog.get_logger(__name__)


# =============================================================================
# Pipeline Result
# =============================================================================


class PipelineResult(BaseModel):
    """Structured outcome of a full run, successful or not."""

    success: bool
    logs: list[str] = Field(default_factory=list)
    video_url: Optional[str] = None
    upload_id: Optional[str] = None
    error: Optional[str] = None
    failed_stage: Optional[StageName] = None
    used_mock_data: bool = False
    run_state: RunState = Field(exclude=True)

    @classmethod
    def from_state(cls, state: RunState) -> "PipelineResult":
        upload = state.upload_result
        return cls(
            success=state.succeeded and state.error is None,
            logs=state.log_lines(),
            video_url=upload.platform_url if upload else None,
            upload_id=upload.video_id if upload else None,
            error=state.error,
            failed_stage=state.failed_stage,
            used_mock_data=state.used_mock_data,
            run_state=state,
        )

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["run"] = self.run_state.summary()
        return data


def publish_metadata_for(state: RunState) -> PublishMetadata:
    prompt_output = state.prompt_output
    tags = tuple(
        signal.lstrip("#") for signal in prompt_output.candidate_reference.algorithm_signals if signal.strip("#")
    )
    return PublishMetadata(
        title=prompt_output.title,
        description=prompt_output.description,
        tags=tags,
    )


# =============================================================================
# Orchestrator
# =============================================================================


class PipelineOrchestrator:
    """
    Sequences the six pipeline stages for one channel at a time.

    Args:
        generator: Structured generation capability (candidates, composition).
        renderer: Video rendering capability.
        publisher: Publishing capability.
        trend_source: Live trend source; None means always use mock trends.
        settings: Application settings. Defaults to get_settings().
        scorer: Optional replacement for the weighting heuristic.
        sleep: Sleep used between render polls.
        clock: Time source for publish scheduling decisions.
    """

    def __init__(
        self,
        generator: StructuredGenerator,
        renderer: VideoRenderer,
        publisher: Publisher,
        trend_source: Optional[TrendSource] = None,
        *,
        settings: Optional[Settings] = None,
        scorer: Optional[Scorer] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings or get_settings()
        self.trend_source = trend_source

        weights = ScoringWeights(
            virality=self.settings.weight_virality,
            feasibility=self.settings.weight_feasibility,
            trend_alignment=self.settings.weight_trend_alignment,
        )
        self.stages: dict[StageName, Stage] = {
            StageName.TREND_SIGNALS: TrendSignalStage(),
            StageName.CANDIDATE_GENERATION: CandidateGenerationStage(generator),
            StageName.WEIGHTING: WeightingStage(weights=weights, scorer=scorer),
            StageName.COMPOSITION: CompositionStage(generator),
            StageName.RENDER: RenderStage(
                renderer,
                aspect_ratio=self.settings.render_aspect_ratio,
                resolution=self.settings.render_resolution,
                poll_interval=self.settings.render_poll_interval_seconds,
                max_poll_attempts=self.settings.render_max_poll_attempts,
                sleep=sleep,
            ),
            StageName.PUBLISH: PublishStage(publisher, clock=clock),
        }
        self._graph = compile_pipeline_graph(self)

    # -------------------------------------------------------------------------
    # Trend acquisition
    # -------------------------------------------------------------------------

    async def acquire_source_items(
        self,
        state: RunState,
        channel: ChannelConfig,
        force_mock: bool = False,
    ) -> RunState:
        """
        Fetch live trend data, substituting the mock dataset where allowed.

        Raises:
            Exception: The trend source's error, only if the fallback table
                forbids substitution for trend acquisition.
        """
        reason: Optional[str] = None
        items = []

        if force_mock:
            reason = "forced"
        elif self.trend_source is None:
            reason = "unconfigured"
        else:
            try:
                items = await self.trend_source.fetch_recent(channel)
            except Exception as e:
                if not may_substitute_mock(TREND_ACQUISITION):
                    raise
                logger.warning(
                    "trend_acquisition_failed",
                    channel_id=channel.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                state = state.with_log(f"Trend fetch failed: {e}", LogLevel.WARNING, TREND_ACQUISITION)
                reason = "fetch_failed"
            else:
                if not items:
                    reason = "empty"

        if reason is not None:
            items = mock_source_items()
            record_trend_fallback(reason)
            logger.info("trend_acquisition_fallback", channel_id=channel.id, reason=reason)
            state = state.with_log(
                f"Using mock trend data ({reason})",
                LogLevel.WARNING,
                TREND_ACQUISITION,
            )

        return state.with_source_items(items, used_mock_data=reason is not None).with_log(
            f"Acquired {len(items)} trend items",
            LogLevel.INFO,
            TREND_ACQUISITION,
        )

    # -------------------------------------------------------------------------
    # Prerequisites
    # -------------------------------------------------------------------------

    def _require_success(self, state: RunState, stage: StageName, previous: StageName) -> None:
        if state.status_of(previous) != StageStatus.SUCCESS:
            raise SequencingError(
                stage.value,
                f"missing prerequisite: {previous.value} has not succeeded "
                f"(status {state.status_of(previous).value})",
            )

    def build_stage_input(
        self,
        stage: StageName,
        state: RunState,
        channel: ChannelConfig,
        schedule: Optional[ScheduleConfig] = None,
        credentials: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Assemble a stage's input from the run state.

        Raises:
            SequencingError: If the previous stage hasn't succeeded or its
                output doesn't satisfy this stage's precondition.
        """
        if stage == StageName.TREND_SIGNALS:
            if not state.source_items:
                raise SequencingError(stage.value, "missing prerequisite: no source items acquired")
            return list(state.source_items)

        if stage == StageName.CANDIDATE_GENERATION:
            self._require_success(state, stage, StageName.TREND_SIGNALS)
            if state.signals is None or state.signals.is_empty:
                raise SequencingError(stage.value, "missing prerequisite: trend signals are empty")
            return state.signals

        if stage == StageName.WEIGHTING:
            self._require_success(state, stage, StageName.CANDIDATE_GENERATION)
            if not state.candidates:
                raise SequencingError(stage.value, "missing prerequisite: no candidates generated")
            return WeightingInput(
                candidates=state.candidates,
                channel_state=channel.channel_state(),
            )

        if stage == StageName.COMPOSITION:
            self._require_success(state, stage, StageName.WEIGHTING)
            selected = state.selected_candidate
            if selected is None:
                raise SequencingError(stage.value, "missing prerequisite: no selected candidate")
            return selected

        if stage == StageName.RENDER:
            self._require_success(state, stage, StageName.COMPOSITION)
            if state.prompt_output is None:
                raise SequencingError(stage.value, "missing prerequisite: no production prompt")
            return state.prompt_output

        if stage == StageName.PUBLISH:
            self._require_success(state, stage, StageName.RENDER)
            video = state.video_asset
            if video is None or video.status != VideoStatus.GENERATED:
                raise SequencingError(stage.value, "missing prerequisite: no generated video asset")
            return PublishInput(
                video_asset=video,
                metadata=publish_metadata_for(state),
                schedule=schedule or ScheduleConfig(),
                credentials=credentials,
            )

        raise SequencingError(str(stage), "unknown stage")

    # -------------------------------------------------------------------------
    # Single stage
    # -------------------------------------------------------------------------

    async def run_stage(
        self,
        stage: StageName,
        state: RunState,
        channel: ChannelConfig,
        *,
        schedule: Optional[ScheduleConfig] = None,
        credentials: Optional[dict[str, Any]] = None,
        allow_republish: bool = False,
    ) -> RunState:
        """
        Run one stage against a run state and return the next run state.

        A stage failure is captured in the returned state (slot ``error``,
        ``error``/``failed_stage`` set, an error log line); it is not raised.

        Raises:
            SequencingError: If the stage's prerequisite is missing, or if
                publish already ran in this run and ``allow_republish`` is
                not set.
        """
        stage_input = self.build_stage_input(stage, state, channel, schedule, credentials)

        if stage == StageName.PUBLISH:
            if state.publish_attempts and not allow_republish:
                raise SequencingError(
                    stage.value,
                    "publish already attempted for this run; pass allow_republish=True to upload again",
                )
            state = state.with_publish_attempt()

        implementation = self.stages[stage]
        if state.phase == RunPhase.NOT_STARTED:
            state = state.started()
        state = state.with_stage_status(stage, StageStatus.RUNNING).with_log(
            f"{implementation.description}...", LogLevel.INFO, stage
        )
        state = state.model_copy(update={"error": None, "failed_stage": None})

        logger.info("stage_started", stage=stage.value, run_id=state.run_id, channel_id=channel.id)
        try:
            with track_stage_execution(stage.value):
                output = await implementation.execute(stage_input)
        except Exception as e:
            logger.error(
                "stage_failed",
                stage=stage.value,
                run_id=state.run_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return (
                state.with_stage_status(stage, StageStatus.ERROR)
                .with_failure(stage, str(e))
                .with_log(str(e), LogLevel.ERROR, stage)
            )

        logger.info("stage_succeeded", stage=stage.value, run_id=state.run_id)
        return (
            state.with_output(stage, output)
            .with_stage_status(stage, StageStatus.SUCCESS)
            .with_log(_success_message(stage, output), LogLevel.SUCCESS, stage)
        )

    # -------------------------------------------------------------------------
    # Graph nodes
    # -------------------------------------------------------------------------

    async def acquisition_node(self, graph_state: PipelineGraphState) -> dict[str, Any]:
        state = graph_state["run_state"]
        try:
            state = await self.acquire_source_items(
                state,
                graph_state["channel"],
                graph_state.get("force_mock", False),
            )
        except Exception as e:
            state = _record_refusal(state, StageName.TREND_SIGNALS, f"Trend acquisition failed: {e}")
        return {"run_state": state}

    def stage_node(self, stage: StageName) -> Callable[[PipelineGraphState], Awaitable[dict[str, Any]]]:
        async def node(graph_state: PipelineGraphState) -> dict[str, Any]:
            state = graph_state["run_state"]
            try:
                state = await self.run_stage(
                    stage,
                    state,
                    graph_state["channel"],
                    schedule=graph_state.get("schedule"),
                    credentials=graph_state.get("credentials"),
                )
            except SequencingError as e:
                state = _record_refusal(state, stage, str(e))
            return {"run_state": state}

        node.__name__ = f"run_{stage.value}"
        return node

    # -------------------------------------------------------------------------
    # Full run
    # -------------------------------------------------------------------------

    async def run(
        self,
        channel: ChannelConfig,
        *,
        schedule: Optional[ScheduleConfig] = None,
        force_mock: bool = False,
        credentials: Optional[dict[str, Any]] = None,
    ) -> PipelineResult:
        """
        Run acquisition and all six stages for ``channel``.

        Stops at the first failing stage. Never raises; the returned result
        carries the error and every output produced before it.
        """
        if isinstance(channel, ChannelRecord):
            schedule = schedule or channel.schedule
            credentials = credentials or channel.auth_credentials

        state = create_run_state(channel.id).started().with_log(
            f"Pipeline started for channel {channel.name or channel.id}"
        )
        logger.info("pipeline_start", channel_id=channel.id, run_id=state.run_id, force_mock=force_mock)

        inputs: PipelineGraphState = {
            "run_state": state,
            "channel": channel,
            "schedule": schedule,
            "credentials": credentials,
            "force_mock": force_mock,
        }
        try:
            # One snapshot per node; the last one is kept if a later node raises
            async for snapshot in self._graph.astream(inputs, stream_mode="values"):
                state = snapshot["run_state"]
        except Exception as e:
            logger.error("pipeline_error", channel_id=channel.id, error=str(e), error_type=type(e).__name__)
            stage = state.failed_stage or _first_unfinished_stage(state)
            state = state.with_failure(stage, f"Pipeline error: {e}").with_log(
                f"Pipeline error: {e}", LogLevel.ERROR, stage
            )

        if state.error is None and state.succeeded:
            state = state.with_log("Pipeline completed", LogLevel.SUCCESS)
        state = state.completed()

        result = PipelineResult.from_state(state)
        record_pipeline_run(result.success)
        logger.info(
            "pipeline_complete",
            channel_id=channel.id,
            run_id=state.run_id,
            success=result.success,
            failed_stage=result.failed_stage.value if result.failed_stage else None,
            duration_seconds=(
                (state.completed_at - state.started_at).total_seconds()
                if state.started_at and state.completed_at
                else None
            ),
        )
        return result


def _first_unfinished_stage(state: RunState) -> StageName:
    for stage in PIPELINE_STAGES:
        if state.status_of(stage) != StageStatus.SUCCESS:
            return stage
    return PIPELINE_STAGES[-1]


def _record_refusal(state: RunState, stage: StageName, message: str) -> RunState:
    """Mark a stage that could not even start as failed."""
    if state.status_of(stage) in (StageStatus.IDLE, StageStatus.RUNNING):
        state = state.with_stage_status(stage, StageStatus.ERROR)
    return state.with_failure(stage, message).with_log(message, LogLevel.ERROR, stage)


def _success_message(stage: StageName, output: Any) -> str:
    if stage == StageName.TREND_SIGNALS:
        return f"Extracted signals ({sum(len(b) for b in output.buckets().values())} keys)"
    if stage == StageName.CANDIDATE_GENERATION:
        return f"Generated {len(output)} candidates"
    if stage == StageName.WEIGHTING:
        winner = next(c for c in output if c.selected)
        return f"Selected candidate {winner.id} (score {winner.total_score:g})"
    if stage == StageName.COMPOSITION:
        return f"Composed prompt: {output.title}"
    if stage == StageName.RENDER:
        return "Video rendered"
    if stage == StageName.PUBLISH:
        if output.scheduled_for:
            return f"Scheduled {output.platform_url} for {output.scheduled_for.isoformat()}"
        return f"Uploaded {output.platform_url}"
    return "done"
