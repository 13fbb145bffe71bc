"""Unit tests for production prompt composition (stage 4)."""

import pytest

from tests.conftest import FakeGenerator, composition_payload
from trendreel.core.exceptions import InputValidationError, MalformedCapabilityOutputError
from trendreel.stages.composition import CompositionStage


class TestCompositionStage:
    @pytest.mark.asyncio
    async def test_builds_prompt_output(self, selected_candidate):
        generator = FakeGenerator([composition_payload(selected_candidate.id)])

        output = await CompositionStage(generator).execute(selected_candidate)

        assert output.candidate_id == selected_candidate.id
        assert output.candidate_reference == selected_candidate
        assert output.title == "Liquid Metal Meets Ice"
        assert output.prompt.startswith("Vertical close-up")
        assert selected_candidate.id in generator.calls[0]["prompt"]

    @pytest.mark.asyncio
    async def test_unselected_candidate_rejected_before_call(self, sample_candidate):
        generator = FakeGenerator([composition_payload()])

        with pytest.raises(InputValidationError) as exc_info:
            await CompositionStage(generator).execute(sample_candidate)

        assert "selected" in str(exc_info.value)
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_id_taken_from_input_not_model(self, selected_candidate):
        generator = FakeGenerator([composition_payload("some_other_id")])

        output = await CompositionStage(generator).execute(selected_candidate)

        assert output.candidate_id == selected_candidate.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["prompt", "title"])
    async def test_missing_text_field(self, selected_candidate, field):
        reply = composition_payload(selected_candidate.id)
        reply[field] = ""

        with pytest.raises(MalformedCapabilityOutputError) as exc_info:
            await CompositionStage(FakeGenerator([reply])).execute(selected_candidate)

        assert field in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_description_defaults_empty(self, selected_candidate):
        reply = composition_payload(selected_candidate.id)
        del reply["description"]

        output = await CompositionStage(FakeGenerator([reply])).execute(selected_candidate)

        assert output.description == ""

    @pytest.mark.asyncio
    async def test_non_object_reply(self, selected_candidate):
        with pytest.raises(MalformedCapabilityOutputError):
            await CompositionStage(FakeGenerator([["prompt"]])).execute(selected_candidate)
