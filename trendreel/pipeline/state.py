"""Run state for one pipeline execution.

RunState is a frozen value object. Every transition (a stage starting,
finishing or failing, a log line, an output being recorded) returns a new
RunState; the previous one is left untouched, so earlier snapshots remain
valid for logging, retries and tests.

State Flow:
    phase:  not_started -> running -> completed
    stage:  idle -> running -> success | error
            (a stage entering running resets every later stage to idle)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from trendreel.core.exceptions import SequencingError
from trendreel.models.schemas import (
    PIPELINE_STAGES,
    CandidateTheme,
    LogEntry,
    LogLevel,
    PromptOutput,
    SourceItem,
    StageName,
    StageStatus,
    TrendSignals,
    UploadResult,
    VideoAsset,
    utc_now,
)


class RunPhase(str, Enum):
    """Global phase of a run."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"


# Where each stage's output is kept on the run state
STAGE_OUTPUT_FIELDS: dict[StageName, str] = {
    StageName.TREND_SIGNALS: "signals",
    StageName.CANDIDATE_GENERATION: "candidates",
    StageName.WEIGHTING: "scored_candidates",
    StageName.COMPOSITION: "prompt_output",
    StageName.RENDER: "video_asset",
    StageName.PUBLISH: "upload_result",
}

# Allowed stage slot transitions. idle -> error records a refused invocation;
# running may be re-entered after an error or for an explicit re-run.
_ALLOWED_TRANSITIONS: dict[StageStatus, frozenset[StageStatus]] = {
    StageStatus.IDLE: frozenset({StageStatus.RUNNING, StageStatus.ERROR}),
    StageStatus.RUNNING: frozenset({StageStatus.SUCCESS, StageStatus.ERROR}),
    StageStatus.SUCCESS: frozenset({StageStatus.RUNNING}),
    StageStatus.ERROR: frozenset({StageStatus.RUNNING}),
}


def _idle_statuses() -> dict[StageName, StageStatus]:
    return {stage: StageStatus.IDLE for stage in PIPELINE_STAGES}


class RunState(BaseModel):
    """Immutable snapshot of one pipeline run."""

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(default_factory=lambda: uuid4().hex)
    channel_id: str
    phase: RunPhase = RunPhase.NOT_STARTED
    statuses: dict[StageName, StageStatus] = Field(default_factory=_idle_statuses)
    logs: tuple[LogEntry, ...] = ()

    source_items: Optional[tuple[SourceItem, ...]] = None
    used_mock_data: bool = False
    signals: Optional[TrendSignals] = None
    candidates: Optional[tuple[CandidateTheme, ...]] = None
    scored_candidates: Optional[tuple[CandidateTheme, ...]] = None
    prompt_output: Optional[PromptOutput] = None
    video_asset: Optional[VideoAsset] = None
    upload_result: Optional[UploadResult] = None
    publish_attempts: int = 0

    error: Optional[str] = None
    failed_stage: Optional[StageName] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def status_of(self, stage: StageName) -> StageStatus:
        return self.statuses[stage]

    def output_of(self, stage: StageName) -> Any:
        return getattr(self, STAGE_OUTPUT_FIELDS[stage])

    @property
    def selected_candidate(self) -> Optional[CandidateTheme]:
        for candidate in self.scored_candidates or ():
            if candidate.selected:
                return candidate
        return None

    @property
    def succeeded(self) -> bool:
        return all(status == StageStatus.SUCCESS for status in self.statuses.values())

    @property
    def progress(self) -> int:
        """Percentage of stages finished successfully."""
        done = sum(1 for status in self.statuses.values() if status == StageStatus.SUCCESS)
        return round(100 * done / len(PIPELINE_STAGES))

    def log_lines(self) -> list[str]:
        return [entry.format() for entry in self.logs]

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _replace(self, **update: Any) -> RunState:
        return self.model_copy(update=update)

    def with_log(
        self,
        message: str,
        level: LogLevel = LogLevel.INFO,
        stage: StageName | str = "system",
    ) -> RunState:
        entry = LogEntry(
            level=level,
            stage=stage.value if isinstance(stage, StageName) else stage,
            message=message,
        )
        return self._replace(logs=self.logs + (entry,))

    def with_stage_status(self, stage: StageName, status: StageStatus) -> RunState:
        """
        Move one stage slot to ``status``.

        Entering ``running`` invalidates every later stage: their slots go
        back to idle and their outputs are cleared, so nothing downstream can
        consume artifacts derived from an earlier attempt.
        """
        current = self.statuses[stage]
        if status not in _ALLOWED_TRANSITIONS[current]:
            raise SequencingError(
                stage.value,
                f"illegal status transition {current.value} -> {status.value}",
            )
        statuses = {**self.statuses, stage: status}
        update: dict[str, Any] = {}
        if status == StageStatus.RUNNING:
            for later in PIPELINE_STAGES[PIPELINE_STAGES.index(stage) + 1:]:
                statuses[later] = StageStatus.IDLE
                update[STAGE_OUTPUT_FIELDS[later]] = None
        return self._replace(statuses=statuses, **update)

    def with_output(self, stage: StageName, output: Any) -> RunState:
        if isinstance(output, list):
            output = tuple(output)
        return self._replace(**{STAGE_OUTPUT_FIELDS[stage]: output})

    def with_source_items(self, items: list[SourceItem], used_mock_data: bool) -> RunState:
        return self._replace(source_items=tuple(items), used_mock_data=used_mock_data)

    def with_publish_attempt(self) -> RunState:
        return self._replace(publish_attempts=self.publish_attempts + 1)

    def with_failure(self, stage: StageName, message: str) -> RunState:
        return self._replace(error=message, failed_stage=stage)

    def started(self) -> RunState:
        return self._replace(
            phase=RunPhase.RUNNING,
            started_at=self.started_at or utc_now(),
        )

    def completed(self) -> RunState:
        return self._replace(phase=RunPhase.COMPLETED, completed_at=utc_now())

    def summary(self) -> dict[str, Any]:
        """JSON-safe view of the run without bulky payloads."""
        return {
            "run_id": self.run_id,
            "channel_id": self.channel_id,
            "phase": self.phase.value,
            "statuses": {stage.value: status.value for stage, status in self.statuses.items()},
            "progress": self.progress,
            "used_mock_data": self.used_mock_data,
            "selected_candidate_id": self.selected_candidate.id if self.selected_candidate else None,
            "error": self.error,
            "failed_stage": self.failed_stage.value if self.failed_stage else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


def create_run_state(channel_id: str) -> RunState:
    """Fresh run state: every stage idle, phase not started."""
    return RunState(channel_id=channel_id)
