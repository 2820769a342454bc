"""Tests for plan synthesis and chat modifications through the planner agent."""

import asyncio

import pytest

from agents.planner.generation import (
    FixtureGenerationBackend, GeminiGenerationBackend, GenerationBackend, GenerationRequest,
    classify_backend_failure, strip_code_fences,
)
from agents.planner.models import PlanReply, PlanRequest
from agents.schedule.models import WateringPreference
from conftest import FakeWeatherService
from core.exceptions import (
    AgentConfigError, ExternalAPIError, LocationNotFoundError, NetworkError, SchemaError, StateError,
)


class ScriptedBackend(GenerationBackend):
    """Returns a canned reply for every request."""

    name = "scripted"

    def __init__(self, reply):
        self.reply = reply

    async def generate(self, request):
        return self.reply


class SlowBackend(GenerationBackend):
    name = "slow"

    async def generate(self, request):
        await asyncio.sleep(5)
        return {}


class LaggingBackend(FixtureGenerationBackend):
    """Fixture replies that take so long the wall clock moves on before they arrive."""

    def __init__(self, clock, arrives_at):
        super().__init__()
        self.clock = clock
        self.arrives_at = arrives_at

    async def generate(self, request):
        reply = await super().generate(request)
        self.clock.set_local(self.arrives_at)
        return reply


class UnknownZipWeather(FakeWeatherService):
    async def get_weather(self, zip_code, use_cache=True):
        if zip_code == "00000":
            raise LocationNotFoundError(f"Unknown zip code {zip_code}")
        return await super().get_weather(zip_code, use_cache)


class FailingLLM:
    def __init__(self, error):
        self.error = error

    async def ainvoke(self, messages):
        raise self.error


class StatusError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.code = code


class TestSynthesis:
    @pytest.mark.asyncio
    async def test_generate_commits_plan(self, planner, manager, weather):
        response = await planner.execute(PlanRequest())

        assert response.success
        assert response.revision == 1
        assert response.timezone == "America/Chicago"
        assert response.local_date == "2025-06-10"
        assert [d.day for d in response.plan.schedule][0] == "2025-06-10"
        assert len(response.plan.schedule) == 7
        assert weather.calls == 1
        assert manager.revision == 1

    @pytest.mark.asyncio
    async def test_elapsed_slots_are_dropped_today(self, planner):
        """Should drop 05:00 today because it is already 05:10, but keep 05:25."""
        response = await planner.execute(PlanRequest())

        today = response.plan.schedule[0].events
        assert [(e.zone_id, e.start_time) for e in today] == [(2, "05:25")]
        assert len(response.plan.schedule[2].events) == 2

    @pytest.mark.asyncio
    async def test_usage_is_reported(self, planner):
        response = await planner.execute(PlanRequest())

        # 15 min drip today, then 3 more days of 20 min spray + 15 min drip
        assert response.total_gallons == pytest.approx(5.0 + 3 * (187.5 + 5.0))

    @pytest.mark.asyncio
    async def test_prompt_context_carries_local_time(self, planner, backend):
        await planner.execute(PlanRequest())

        request = backend.calls[0]
        assert request.kind == "plan"
        assert request.context["now_time"] == "05:10"
        assert "2025-06-10" in request.prompt

    @pytest.mark.asyncio
    async def test_invalid_reply_keeps_previous_plan(self, planner, manager):
        await planner.execute(PlanRequest())
        planner.backend = ScriptedBackend({"reasoning": "oops", "schedule": "tomorrow maybe"})

        response = await planner.execute(PlanRequest())
        assert not response.success
        assert response.error_kind == "schema"
        assert response.revision == 1
        assert (await manager.snapshot()).plan.schedule[0].events[0].zone_id == 2

    @pytest.mark.asyncio
    async def test_non_object_reply_is_schema_error(self, planner):
        planner.backend = ScriptedBackend(["not", "an", "object"])
        with pytest.raises(SchemaError):
            await planner.process_request(PlanRequest())

    @pytest.mark.asyncio
    async def test_timeout_is_retryable_network_error(self, planner, settings):
        settings.generation_timeout_seconds = 0.05
        planner.backend = SlowBackend()

        with pytest.raises(NetworkError):
            await planner.process_request(PlanRequest())

        response = await planner.execute(PlanRequest())
        assert response.error_kind == "network"
        assert response.retryable

    @pytest.mark.asyncio
    async def test_slots_elapsed_during_generation_are_dropped(self, planner, clock):
        """Should drop 05:25 today because the reply only arrives at 05:30."""
        planner.backend = LaggingBackend(clock, "05:30")

        response = await planner.execute(PlanRequest())

        assert response.success
        assert response.plan.schedule[0].events == []
        assert len(response.plan.schedule[2].events) == 2

    @pytest.mark.asyncio
    async def test_unknown_zip_keeps_location_and_preference(self, planner, weather):
        planner.weather = UnknownZipWeather(weather.data)

        with pytest.raises(LocationNotFoundError):
            await planner.process_request(PlanRequest(zip_code="00000", preference=WateringPreference.LUSH))

        assert planner.zip_code == "60601"
        assert planner.preference == WateringPreference.STANDARD

    @pytest.mark.asyncio
    async def test_failed_generation_keeps_location_and_timezone(self, planner, manager):
        planner.backend = ScriptedBackend({"reasoning": "oops", "schedule": []})

        response = await planner.execute(PlanRequest(zip_code="10001", preference=WateringPreference.CONSERVE))

        assert not response.success
        assert planner.zip_code == "60601"
        assert planner.preference == WateringPreference.STANDARD
        assert manager.clock.timezone_name == "America/Chicago"

    @pytest.mark.asyncio
    async def test_successful_generation_adopts_location(self, planner, manager):
        response = await planner.execute(PlanRequest(zip_code="10001", preference=WateringPreference.LUSH))

        assert response.success
        assert response.timezone == "America/New_York"
        assert planner.zip_code == "10001"
        assert planner.preference == WateringPreference.LUSH


class TestChat:
    @pytest.mark.asyncio
    async def test_chat_without_plan(self, planner):
        with pytest.raises(StateError):
            await planner.chat("why so early?")

    @pytest.mark.asyncio
    async def test_answer_leaves_plan_alone(self, planner, manager):
        await planner.execute(PlanRequest())

        outcome = await planner.chat("why do you water so early?")
        assert outcome.response_type == "answer"
        assert outcome.answer
        assert outcome.revision == 1
        assert manager.revision == 1

    @pytest.mark.asyncio
    async def test_cancel_modifies_and_offers_compensation(self, planner, manager):
        await planner.execute(PlanRequest())

        outcome = await planner.chat("cancel the next watering")

        assert outcome.response_type == "modification"
        assert outcome.revision == 2
        canceled = outcome.plan.schedule[0].events[0]
        assert canceled.zone_id == 2 and canceled.is_canceled
        assert canceled.adjustment.user == "admin"

        assert outcome.follow_up_question
        make_up = outcome.compensated_plan.schedule[1].events[0]
        assert (make_up.zone_id, make_up.start_time, make_up.duration_minutes) == (2, "06:30", 7)
        assert (await manager.snapshot()).candidate.id == outcome.candidate.id

    @pytest.mark.asyncio
    async def test_modification_without_plan_is_schema_error(self, planner):
        await planner.execute(PlanRequest())
        planner.backend = ScriptedBackend({"responseType": "modification", "confirmationMessage": "done"})

        with pytest.raises(SchemaError):
            await planner.chat("cancel everything")


class TestFixtureBackend:
    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fences('```{"a": 1}```') == '{"a": 1}'
        assert strip_code_fences('{"a": 1}') == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_nothing_to_cancel(self, planner, manager, make_plan):
        planner.backend = FixtureGenerationBackend()
        await manager.replace_plan(make_plan())

        outcome = await planner.chat("cancel it")
        assert outcome.response_type == "answer"
        assert "no upcoming watering" in outcome.answer


class TestBackendFailures:
    def plan_request(self):
        return GenerationRequest(kind="plan", prompt="plan the week", reply_schema=PlanReply)

    def gemini(self, error):
        backend = GeminiGenerationBackend(api_key="test-key")
        backend._llms[0.2] = FailingLLM(error)
        return backend

    @pytest.mark.asyncio
    async def test_connection_failure_is_retryable(self):
        with pytest.raises(NetworkError) as exc_info:
            await self.gemini(ConnectionError("connection reset")).generate(self.plan_request())
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_rejected_request_is_not_retryable(self):
        """Should not tell the user to retry when the backend refused the request itself."""
        with pytest.raises(ExternalAPIError) as exc_info:
            await self.gemini(ValueError("Invalid JSON schema")).generate(self.plan_request())
        assert not isinstance(exc_info.value, NetworkError)
        assert exc_info.value.kind == "external"
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_bad_credentials_are_config_errors(self):
        with pytest.raises(AgentConfigError):
            await self.gemini(StatusError("API key not valid", 403)).generate(self.plan_request())

    def test_status_codes(self):
        assert isinstance(classify_backend_failure(StatusError("overloaded", 503)), NetworkError)
        assert isinstance(classify_backend_failure(StatusError("quota", 429)), NetworkError)
        assert type(classify_backend_failure(StatusError("bad request", 400))) is ExternalAPIError
        assert isinstance(classify_backend_failure(asyncio.TimeoutError()), NetworkError)
