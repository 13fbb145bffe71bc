"""Unit tests for candidate theme generation (stage 2)."""

import pytest

from tests.conftest import FakeGenerator, candidate_payload, candidates_payload
from trendreel.core.exceptions import (
    CapabilityRateLimitError,
    InputValidationError,
    MalformedCapabilityOutputError,
)
from trendreel.models.schemas import TrendSignals
from trendreel.stages.candidates import CANDIDATE_COUNT, CANDIDATE_SCHEMA, CandidateGenerationStage


@pytest.fixture
def signals() -> TrendSignals:
    return TrendSignals(
        subject_type_frequency={"ai": 1, "liquid": 1},
        structure_type_frequency={"experiment": 1},
        algorithm_signal_frequency={"#science": 1},
    )


class TestCandidateGenerationStage:
    """Contract checks on the generator reply."""

    @pytest.mark.asyncio
    async def test_returns_three_unscored_candidates(self, signals):
        raw = candidates_payload()
        raw[0]["total_score"] = 9
        raw[0]["selected"] = True
        generator = FakeGenerator([raw])

        candidates = await CandidateGenerationStage(generator).execute(signals)

        assert len(candidates) == CANDIDATE_COUNT
        assert all(c.total_score == 0 for c in candidates)
        assert not any(c.selected for c in candidates)
        assert [c.id for c in candidates] == ["candidate_1", "candidate_2", "candidate_3"]

    @pytest.mark.asyncio
    async def test_prompt_carries_signals_and_schema(self, signals):
        generator = FakeGenerator([candidates_payload()])

        await CandidateGenerationStage(generator).execute(signals)

        call = generator.calls[0]
        assert '"liquid": 1' in call["prompt"]
        assert call["schema"] is CANDIDATE_SCHEMA

    @pytest.mark.asyncio
    async def test_empty_signals_rejected_before_call(self):
        generator = FakeGenerator([candidates_payload()])

        with pytest.raises(InputValidationError) as exc_info:
            await CandidateGenerationStage(generator).execute(TrendSignals())

        assert "trend signals object is empty" in str(exc_info.value)
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_missing_required_field(self, signals):
        raw = candidates_payload()
        del raw[1]["action_verb"]

        with pytest.raises(MalformedCapabilityOutputError) as exc_info:
            await CandidateGenerationStage(FakeGenerator([raw])).execute(signals)

        assert "action_verb" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_blank_required_field(self, signals):
        raw = candidates_payload()
        raw[2]["subject_type"] = "   "

        with pytest.raises(MalformedCapabilityOutputError):
            await CandidateGenerationStage(FakeGenerator([raw])).execute(signals)

    @pytest.mark.asyncio
    async def test_signals_must_be_list(self, signals):
        raw = candidates_payload()
        raw[0]["algorithm_signals"] = "#ai #science"

        with pytest.raises(MalformedCapabilityOutputError):
            await CandidateGenerationStage(FakeGenerator([raw])).execute(signals)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", [None, {"id": "x"}, "not json", []])
    async def test_non_array_or_empty_reply(self, signals, reply):
        with pytest.raises(MalformedCapabilityOutputError):
            await CandidateGenerationStage(FakeGenerator([reply])).execute(signals)

    @pytest.mark.asyncio
    async def test_too_few_candidates(self, signals):
        with pytest.raises(MalformedCapabilityOutputError) as exc_info:
            await CandidateGenerationStage(FakeGenerator([candidates_payload(2)])).execute(signals)

        assert "expected 3 candidates, got 2" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_surplus_truncated(self, signals):
        candidates = await CandidateGenerationStage(
            FakeGenerator([candidates_payload(5)])
        ).execute(signals)

        assert [c.id for c in candidates] == ["candidate_1", "candidate_2", "candidate_3"]

    @pytest.mark.asyncio
    async def test_duplicate_ids_rejected(self, signals):
        raw = [candidate_payload(1), candidate_payload(2), candidate_payload(3, id="candidate_1")]

        with pytest.raises(MalformedCapabilityOutputError) as exc_info:
            await CandidateGenerationStage(FakeGenerator([raw])).execute(signals)

        assert "not unique" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_capability_error_propagates(self, signals):
        error = CapabilityRateLimitError("fake_generator", "quota exceeded")

        with pytest.raises(CapabilityRateLimitError):
            await CandidateGenerationStage(FakeGenerator([error])).execute(signals)
