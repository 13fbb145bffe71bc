"""
Pytest Configuration and Shared Fixtures.

Capability fakes and sample domain objects shared by unit and integration
tests:

- FakeGenerator: scripted structured-generation replies
- FakeRenderer: render job that finishes after N pending polls
- FakePublisher: records uploads, returns a fixed receipt
- FakeTrendSource: returns fixed items or raises
- channel / sample_* fixtures: ready-made domain objects
"""

from typing import Any, Optional

import pytest

from trendreel.capabilities.base import (
    PublishReceipt,
    Publisher,
    RenderPollResult,
    StructuredGenerator,
    TrendSource,
    VideoRenderer,
)
from trendreel.config.settings import Settings
from trendreel.core.circuit_breaker import reset_all_circuit_breakers
from trendreel.models.schemas import (
    CandidateTheme,
    ChannelConfig,
    PromptOutput,
    PublishMetadata,
    ScheduleConfig,
    SourceItem,
    VideoAsset,
    VideoStatus,
)

VIDEO_LOCATOR = "data:video/mp4;base64,AAAAIGZ0eXBpc29t"
REMOTE_ID = "dQw4w9WgXcQ"
REMOTE_URL = f"https://youtube.com/shorts/{REMOTE_ID}"


# =============================================================================
# Capability Fakes
# =============================================================================


class FakeGenerator(StructuredGenerator):
    """Returns queued replies in order; an Exception in the queue is raised."""

    name = "fake_generator"

    def __init__(self, replies: Optional[list[Any]] = None):
        self.replies = list(replies or [])
        self.calls: list[dict[str, Any]] = []

    async def generate(self, prompt, system_instruction, output_schema):
        self.calls.append(
            {"prompt": prompt, "system_instruction": system_instruction, "schema": output_schema}
        )
        if not self.replies:
            raise AssertionError("FakeGenerator has no reply queued")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeRenderer(VideoRenderer):
    """Finishes after ``pending_polls`` not-done polls."""

    name = "fake_renderer"

    def __init__(
        self,
        pending_polls: int = 0,
        locator: Optional[str] = VIDEO_LOCATOR,
        submit_error: Optional[Exception] = None,
        poll_error: Optional[Exception] = None,
    ):
        self.pending_polls = pending_polls
        self.locator = locator
        self.submit_error = submit_error
        self.poll_error = poll_error
        self.submitted: list[tuple[str, str, str]] = []
        self.poll_count = 0

    async def submit_render(self, prompt, aspect_ratio, resolution):
        if self.submit_error:
            raise self.submit_error
        self.submitted.append((prompt, aspect_ratio, resolution))
        return f"job-{len(self.submitted)}"

    async def poll(self, job_handle):
        self.poll_count += 1
        if self.poll_error:
            raise self.poll_error
        if self.poll_count <= self.pending_polls:
            return RenderPollResult(done=False)
        return RenderPollResult(done=True, result_locator=self.locator)


class FakePublisher(Publisher):
    name = "fake_publisher"
    platform = "youtube"

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def publish(self, video_locator, metadata, schedule, credentials=None):
        self.calls.append(
            {
                "video_locator": video_locator,
                "metadata": metadata,
                "schedule": schedule,
                "credentials": credentials,
            }
        )
        if self.error:
            raise self.error
        return PublishReceipt(remote_id=REMOTE_ID, remote_url=REMOTE_URL)


class FakeTrendSource(TrendSource):
    name = "fake_trends"

    def __init__(self, items: Optional[list[SourceItem]] = None, error: Optional[Exception] = None):
        self.items = items or []
        self.error = error
        self.calls = 0

    async def fetch_recent(self, channel):
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.items)


async def no_sleep(_seconds: float) -> None:
    return None


# =============================================================================
# Sample Payloads
# =============================================================================


def candidate_payload(index: int, **overrides: Any) -> dict[str, Any]:
    """One raw candidate as the generator would return it."""
    payload = {
        "id": f"candidate_{index}",
        "subject_type": ["ai", "liquid metal", "robot"][index % 3],
        "action_verb": ["explain", "pour", "build"][index % 3],
        "object_type": ["trend", "mold", "arm"][index % 3],
        "structure_type": ["analysis", "experiment", "tutorial"][index % 3],
        "algorithm_signals": ["#ai", "#science", "#shorts"],
        "rationale": "Combines the top subject with a proven format.",
        "total_score": 0,
        "selected": False,
    }
    payload.update(overrides)
    return payload


def candidates_payload(count: int = 3) -> list[dict[str, Any]]:
    return [candidate_payload(i + 1) for i in range(count)]


def composition_payload(candidate_id: str = "candidate_2", **overrides: Any) -> dict[str, Any]:
    payload = {
        "candidate_id": candidate_id,
        "prompt": "Vertical close-up of liquid metal poured into a mold, studio lighting, macro lens.",
        "title": "Liquid Metal Meets Ice",
        "description": "What happens next? #science #shorts",
    }
    payload.update(overrides)
    return payload


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_circuit_breakers():
    """Circuit breakers are process-global; isolate every test."""
    reset_all_circuit_breakers()
    yield
    reset_all_circuit_breakers()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        app_env="development",
        render_poll_interval_seconds=0.001,
        render_max_poll_attempts=5,
        autopilot_cooldown_minutes=50,
        autopilot_timezone="Asia/Taipei",
    )


@pytest.fixture
def channel() -> ChannelConfig:
    return ChannelConfig(
        id="channel-1",
        name="Lab Shorts",
        niche="science experiments",
        search_keywords=("science", "experiment"),
        region_code="TW",
        target_audience="curious teens",
        avg_views=8_000,
    )


@pytest.fixture
def sample_source_items() -> list[SourceItem]:
    return [
        SourceItem(id="v1", title="Liquid metal experiment", hashtags=("#science", "#shorts"), view_count=900_000),
        SourceItem(id="v2", title="Making ice cream with liquid nitrogen", hashtags=("#shorts", "#food")),
        SourceItem(id="v3", title="AI trend analysis", hashtags=("#ai",), view_count=10_000),
    ]


@pytest.fixture
def sample_candidate() -> CandidateTheme:
    return CandidateTheme(
        id="candidate_2",
        subject_type="liquid metal",
        action_verb="pour",
        object_type="mold",
        structure_type="experiment",
        algorithm_signals=("#science", "#shorts"),
        rationale="High-retention format.",
    )


@pytest.fixture
def selected_candidate(sample_candidate) -> CandidateTheme:
    return sample_candidate.model_copy(update={"selected": True, "total_score": 25.0})


@pytest.fixture
def sample_prompt_output(selected_candidate) -> PromptOutput:
    return PromptOutput(
        candidate_id=selected_candidate.id,
        prompt="Vertical close-up of liquid metal poured into a mold.",
        title="Liquid Metal Meets Ice",
        description="#science #shorts",
        candidate_reference=selected_candidate,
    )


@pytest.fixture
def sample_video_asset() -> VideoAsset:
    return VideoAsset(candidate_id="candidate_2", locator=VIDEO_LOCATOR, status=VideoStatus.GENERATED)


@pytest.fixture
def sample_metadata() -> PublishMetadata:
    return PublishMetadata(title="Liquid Metal Meets Ice", description="#science", tags=("science",))


@pytest.fixture
def immediate_schedule() -> ScheduleConfig:
    return ScheduleConfig()
