"""Unit tests for FreshnessSession.

Tests focus on:
- End-to-end analysis flows with stub clients
- Transition guards
- Discarding completions that belong to superseded attempts
- Retry policy, listeners and lifecycle
"""

import asyncio
from datetime import datetime
from typing import Any, List, Mapping

import pytest

from foodfresh.application.workflow import (
    DEFAULT_FAILURE_MESSAGE,
    TRANSPORT_FAILURE_MESSAGE,
    Analyzing,
    Failed,
    FreshnessSession,
    Idle,
    ImageReady,
    Result,
)
from foodfresh.domain.freshness.models import (
    AnalysisRequest,
    CapturedImage,
    FoodAnalysisResult,
    FreshnessStatus,
)
from foodfresh.domain.shared.errors import (
    ServiceError,
    TransportError,
    UnsupportedFormatError,
)
from foodfresh.infrastructure.ai.stub_client import StubInferenceClient
from foodfresh.infrastructure.imaging import CameraFrameSource
from foodfresh.metrics import registry


class GatedClient:
    """Inference client that blocks until released, then answers or raises."""

    def __init__(self, response: Any) -> None:
        self.response = response
        self.release = asyncio.Event()
        self.requests: List[AnalysisRequest] = []

    async def analyze(self, request: AnalysisRequest) -> Mapping[str, Any]:
        self.requests.append(request)
        await self.release.wait()
        if isinstance(self.response, BaseException):
            raise self.response
        return dict(self.response)


class ScriptedClient:
    """Inference client that plays back a list of outcomes."""

    def __init__(self, outcomes: List[Any]) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    async def analyze(self, request: AnalysisRequest) -> Mapping[str, Any]:
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class GatedSource:
    """Image source that blocks until released."""

    def __init__(self, image: CapturedImage) -> None:
        self.image = image
        self.release = asyncio.Event()

    async def acquire(self) -> CapturedImage:
        await self.release.wait()
        return self.image


async def _until(predicate, attempts: int = 100) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def _stale(kind: str) -> int:
    return registry.counter_value("freshness_stale_completions_total", kind=kind)


@pytest.fixture
def session(stub_client, fixed_clock) -> FreshnessSession:
    return FreshnessSession(stub_client, clock=fixed_clock, analysis_retries=0, retry_wait_s=0)


# ═══════════════════════════════════════════════════════════
# END-TO-END FLOWS
# ═══════════════════════════════════════════════════════════


class TestAnalysisFlows:
    @pytest.mark.asyncio
    async def test_camera_capture_to_result(self, session, stub_client, sample_image):
        assert isinstance(session.state, Idle)

        await session.acquire_from(CameraFrameSource(sample_image.data_uri))
        assert isinstance(session.state, ImageReady)

        state = await session.analyze()

        assert isinstance(state, Result)
        assert state.result.status is FreshnessStatus.FRESH
        assert state.result.safety_score == 90
        assert state.image == sample_image
        assert session.loading is False

        request = stub_client.requests[0]
        assert request.image == sample_image.data_uri
        assert request.current_time == "2024-05-01 20:30:00"
        assert "refrigerationDuration" not in request.to_payload()
        assert (
            registry.counter_value("freshness_analysis_requests_total", status="completed") == 1
        )

    @pytest.mark.asyncio
    async def test_refrigerated_metadata_reaches_request(self, session, stub_client, sample_image):
        session.acquire_image(sample_image)
        session.set_prep_time("2024-05-01T08:00")
        session.toggle_refrigerated()
        session.set_refrigeration_duration("2 days")

        await session.analyze()

        payload = stub_client.requests[0].to_payload()
        assert payload["prepTime"] == "2024-05-01T08:00"
        assert payload["isRefrigerated"] is True
        assert payload["refrigerationDuration"] == "2 days"

    @pytest.mark.asyncio
    async def test_untoggled_fridge_drops_duration(self, session, stub_client, sample_image):
        session.acquire_image(sample_image)
        session.toggle_refrigerated()
        session.set_refrigeration_duration("2 days")
        session.toggle_refrigerated()

        await session.analyze()

        assert "refrigerationDuration" not in stub_client.requests[0].to_payload()

    @pytest.mark.asyncio
    async def test_transport_failure_then_retry(self, fixed_clock, sample_image, sample_raw_response):
        client = ScriptedClient([TransportError("offline"), sample_raw_response])
        session = FreshnessSession(client, clock=fixed_clock, analysis_retries=0)
        session.acquire_image(sample_image)

        failed = await session.analyze()

        assert isinstance(failed, Failed)
        assert failed.message == TRANSPORT_FAILURE_MESSAGE
        assert failed.reason == "TransportError"
        assert failed.image == sample_image
        assert (
            registry.counter_value("freshness_analysis_failed_total", reason="TransportError")
            == 1
        )

        state = await session.analyze()

        assert isinstance(state, Result)
        assert state.result.safety_score == 92
        assert client.calls == 2

    @pytest.mark.asyncio
    async def test_malformed_response_fails(self, fixed_clock, sample_image):
        client = ScriptedClient(["no json at all"])
        session = FreshnessSession(client, clock=fixed_clock, analysis_retries=0)
        session.acquire_image(sample_image)

        state = await session.analyze()

        assert isinstance(state, Failed)
        assert state.reason == "MalformedResponseError"
        assert state.message == DEFAULT_FAILURE_MESSAGE

    @pytest.mark.asyncio
    async def test_coerced_fields_still_produce_result(self, fixed_clock, sample_image):
        client = ScriptedClient([{"status": "moldy", "safetyScore": 250}])
        session = FreshnessSession(client, clock=fixed_clock, analysis_retries=0)
        session.acquire_image(sample_image)

        state = await session.analyze()

        assert isinstance(state, Result)
        assert state.result.status is FreshnessStatus.UNKNOWN
        assert state.result.safety_score == 100
        assert registry.counter_value("freshness_parse_coerced_total", field="status") == 1
        assert registry.counter_value("freshness_parse_coerced_total", field="safetyScore") == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_fails(self, fixed_clock, sample_image):
        client = ScriptedClient([RuntimeError("bug")])
        session = FreshnessSession(client, clock=fixed_clock, analysis_retries=0)
        session.acquire_image(sample_image)

        state = await session.analyze()

        assert isinstance(state, Failed)
        assert state.reason == "RuntimeError"
        assert state.message == DEFAULT_FAILURE_MESSAGE

    @pytest.mark.asyncio
    async def test_rejected_image_leaves_state(self, session):
        with pytest.raises(UnsupportedFormatError):
            await session.acquire_from(CameraFrameSource(b"not an image"))
        assert isinstance(session.state, Idle)


# ═══════════════════════════════════════════════════════════
# TRANSITION GUARDS
# ═══════════════════════════════════════════════════════════


class TestTransitions:
    @pytest.mark.asyncio
    async def test_analyze_without_image_is_noop(self, session, stub_client):
        state = await session.analyze()
        assert isinstance(state, Idle)
        assert stub_client.requests == []

    def test_start_analysis_guards(self, session, sample_image):
        assert session.start_analysis() is None

        session.acquire_image(sample_image)
        first = session.start_analysis()
        assert first is not None
        assert session.loading is True

        # Already analyzing
        assert session.start_analysis() is None

    def test_attempt_ids_unique(self, session, sample_image):
        session.acquire_image(sample_image)
        first = session.start_analysis()
        session.analysis_failed(first, TransportError("x"))
        second = session.start_analysis()
        assert second != first

    def test_clear_image(self, session, sample_image):
        session.acquire_image(sample_image)
        assert isinstance(session.clear_image(), Idle)

    def test_clear_image_from_failed(self, session, sample_image):
        session.acquire_image(sample_image)
        attempt = session.start_analysis()
        session.analysis_failed(attempt, ServiceError("500"))
        assert isinstance(session.clear_image(), Idle)

    def test_clear_image_ignored_while_analyzing(self, session, sample_image):
        session.acquire_image(sample_image)
        session.start_analysis()
        assert isinstance(session.clear_image(), Analyzing)

    def test_acquire_replaces_result(self, session, sample_image, other_image):
        session.acquire_image(sample_image)
        attempt = session.start_analysis()
        session.analysis_succeeded(attempt, FoodAnalysisResult(status="Fresh"))

        state = session.acquire_image(other_image)

        assert isinstance(state, ImageReady)
        assert state.image == other_image

    def test_failure_message_override(self, session, sample_image):
        session.acquire_image(sample_image)
        attempt = session.start_analysis()
        session.analysis_failed(attempt, "timeout", message="Took too long")

        assert session.state.message == "Took too long"
        assert session.state.reason == "timeout"

    def test_reset_is_idempotent(self, session, sample_image):
        session.acquire_image(sample_image)
        session.set_prep_time("08:00")

        first = session.reset()
        second = session.reset()

        assert isinstance(first, Idle) and isinstance(second, Idle)
        assert first.metadata == second.metadata
        assert second.metadata.prep_time == ""

    def test_metadata_edit_keeps_attempt(self, session, sample_image):
        session.acquire_image(sample_image)
        attempt = session.start_analysis()

        session.set_prep_time("08:00")

        assert session.state.attempt_id == attempt
        assert session.metadata.prep_time == "08:00"

    def test_completion_with_wrong_attempt_discarded(self, session, sample_image):
        session.acquire_image(sample_image)
        attempt = session.start_analysis()

        applied = session.analysis_succeeded(attempt + 1, FoodAnalysisResult())

        assert applied is False
        assert isinstance(session.state, Analyzing)
        assert _stale("analysis") == 1

    def test_completion_outside_analyzing_discarded(self, session):
        assert session.analysis_failed(1, TransportError("x")) is False
        assert isinstance(session.state, Idle)


# ═══════════════════════════════════════════════════════════
# STALE COMPLETIONS
# ═══════════════════════════════════════════════════════════


class TestStaleCompletions:
    @pytest.mark.asyncio
    async def test_result_after_reset_is_discarded(
        self, fixed_clock, sample_image, sample_raw_response
    ):
        client = GatedClient(sample_raw_response)
        session = FreshnessSession(client, clock=fixed_clock, analysis_retries=0)
        session.acquire_image(sample_image)

        task = asyncio.create_task(session.analyze())
        await _until(lambda: client.requests)
        assert isinstance(session.state, Analyzing)

        session.reset()
        client.release.set()
        state = await task

        assert isinstance(state, Idle)
        assert _stale("analysis") == 1
        assert registry.counter_value("freshness_analysis_requests_total", status="completed") == 0

    @pytest.mark.asyncio
    async def test_failure_after_reset_is_not_counted(self, fixed_clock, sample_image):
        client = GatedClient(TransportError("offline"))
        session = FreshnessSession(client, clock=fixed_clock, analysis_retries=0)
        session.acquire_image(sample_image)

        task = asyncio.create_task(session.analyze())
        await _until(lambda: client.requests)

        session.reset()
        client.release.set()
        state = await task

        assert isinstance(state, Idle)
        assert _stale("analysis") == 1
        assert registry.counter_value("freshness_analysis_requests_total", status="failed") == 0
        assert (
            registry.counter_value("freshness_analysis_failed_total", reason="TransportError")
            == 0
        )

    @pytest.mark.asyncio
    async def test_result_after_new_image_is_discarded(
        self, fixed_clock, sample_image, other_image, sample_raw_response
    ):
        client = GatedClient(sample_raw_response)
        session = FreshnessSession(client, clock=fixed_clock, analysis_retries=0)
        session.acquire_image(sample_image)

        task = asyncio.create_task(session.analyze())
        await _until(lambda: client.requests)

        session.acquire_image(other_image)
        client.release.set()
        await task

        assert isinstance(session.state, ImageReady)
        assert session.state.image == other_image

    @pytest.mark.asyncio
    async def test_second_attempt_wins(self, fixed_clock, sample_image, other_image):
        client = GatedClient({"status": "Expired", "safetyScore": 10})
        session = FreshnessSession(client, clock=fixed_clock, analysis_retries=0)
        session.acquire_image(sample_image)
        first = asyncio.create_task(session.analyze())
        await _until(lambda: len(client.requests) == 1)

        session.acquire_image(other_image)
        second = asyncio.create_task(session.analyze())
        await _until(lambda: len(client.requests) == 2)

        client.release.set()
        await asyncio.gather(first, second)

        assert isinstance(session.state, Result)
        assert session.state.image == other_image
        assert _stale("analysis") == 1
        assert registry.counter_value("freshness_analysis_requests_total", status="completed") == 1

    @pytest.mark.asyncio
    async def test_acquisition_after_reset_is_discarded(self, session, sample_image):
        source = GatedSource(sample_image)
        task = asyncio.create_task(session.acquire_from(source))
        await asyncio.sleep(0)

        session.reset()
        source.release.set()
        state = await task

        assert isinstance(state, Idle)
        assert _stale("acquisition") == 1

    @pytest.mark.asyncio
    async def test_later_acquisition_wins(self, session, sample_image, other_image):
        slow = GatedSource(sample_image)
        task = asyncio.create_task(session.acquire_from(slow))
        await asyncio.sleep(0)

        session.acquire_image(other_image)
        slow.release.set()
        await task

        assert session.state.image == other_image


# ═══════════════════════════════════════════════════════════
# RETRIES
# ═══════════════════════════════════════════════════════════


class TestRetries:
    @pytest.mark.asyncio
    async def test_transport_error_retried(self, fixed_clock, sample_image, sample_raw_response):
        client = ScriptedClient([TransportError("blip"), sample_raw_response])
        session = FreshnessSession(
            client, clock=fixed_clock, analysis_retries=1, retry_wait_s=0
        )
        session.acquire_image(sample_image)

        state = await session.analyze()

        assert isinstance(state, Result)
        assert client.calls == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, fixed_clock, sample_image):
        client = ScriptedClient([TransportError("a"), TransportError("b")])
        session = FreshnessSession(
            client, clock=fixed_clock, analysis_retries=1, retry_wait_s=0
        )
        session.acquire_image(sample_image)

        state = await session.analyze()

        assert isinstance(state, Failed)
        assert state.reason == "TransportError"
        assert client.calls == 2

    @pytest.mark.asyncio
    async def test_service_error_not_retried(self, fixed_clock, sample_image):
        client = ScriptedClient([ServiceError("500"), {"status": "Fresh"}])
        session = FreshnessSession(
            client, clock=fixed_clock, analysis_retries=2, retry_wait_s=0
        )
        session.acquire_image(sample_image)

        state = await session.analyze()

        assert isinstance(state, Failed)
        assert state.reason == "ServiceError"
        assert client.calls == 1

    def test_retries_from_env(self, monkeypatch, stub_client):
        monkeypatch.setenv("FOODFRESH_ANALYSIS_RETRIES", "3")
        assert FreshnessSession(stub_client).analysis_retries == 3


# ═══════════════════════════════════════════════════════════
# LISTENERS & LIFECYCLE
# ═══════════════════════════════════════════════════════════


class TestListeners:
    @pytest.mark.asyncio
    async def test_listener_sees_each_state(self, session, sample_image):
        seen: List[str] = []
        session.subscribe(lambda state: seen.append(state.name))

        session.acquire_image(sample_image)
        await session.analyze()

        assert seen == ["image_ready", "analyzing", "result"]

    def test_failing_listener_does_not_block_others(self, session, sample_image):
        seen: List[str] = []

        def broken(state):
            raise RuntimeError("listener bug")

        session.subscribe(broken)
        session.subscribe(lambda state: seen.append(state.name))

        session.acquire_image(sample_image)

        assert seen == ["image_ready"]
        assert isinstance(session.state, ImageReady)

    def test_unsubscribe(self, session, sample_image):
        seen: List[str] = []
        unsubscribe = session.subscribe(lambda state: seen.append(state.name))
        unsubscribe()
        unsubscribe()

        session.acquire_image(sample_image)

        assert seen == []


class TestLifecycle:
    def test_refresh_current_time(self, stub_client, manual_clock):
        session = FreshnessSession(stub_client, clock=manual_clock)
        manual_clock.set(datetime(2024, 5, 1, 20, 31, 0))

        session.refresh_current_time()

        assert session.metadata.current_time == "2024-05-01 20:31:00"

    @pytest.mark.asyncio
    async def test_context_manager_runs_refresher(self, stub_client, manual_clock):
        async with FreshnessSession(
            stub_client, clock=manual_clock, clock_refresh_seconds=60
        ) as session:
            assert session.clock_refresher.running is True

        assert session.clock_refresher.running is False
        assert session.closed is True

    @pytest.mark.asyncio
    async def test_ticks_ignored_after_close(self, stub_client, manual_clock):
        session = FreshnessSession(stub_client, clock=manual_clock, clock_refresh_seconds=60)
        session.start()
        await session.close()

        manual_clock.set(datetime(2024, 5, 2, 0, 0, 0))
        await session.clock_refresher.trigger_now()

        assert session.metadata.current_time == "2024-05-01 20:30:00"

    @pytest.mark.asyncio
    async def test_scheduled_refresh_updates_metadata(self, stub_client, manual_clock):
        session = FreshnessSession(stub_client, clock=manual_clock, clock_refresh_seconds=0.05)
        manual_clock.set(datetime(2024, 5, 1, 20, 45, 0))

        async with session:
            for _ in range(100):
                if session.metadata.current_time.endswith("20:45:00"):
                    break
                await asyncio.sleep(0.02)

        assert session.metadata.current_time == "2024-05-01 20:45:00"

    @pytest.mark.asyncio
    async def test_start_after_close_rejected(self, session):
        await session.close()
        with pytest.raises(RuntimeError, match="closed"):
            session.start()


# ═══════════════════════════════════════════════════════════
# REFERENCE SCENARIOS
# ═══════════════════════════════════════════════════════════


class TestReferenceScenarios:
    @pytest.mark.asyncio
    async def test_fresh_food_result(self, fixed_clock, sample_image):
        client = StubInferenceClient(
            response={
                "status": "Fresh",
                "safetyScore": 92,
                "confidence": 88,
                "observations": ["no discoloration"],
                "recommendation": "Safe to eat",
                "spoilageSigns": [],
            }
        )
        session = FreshnessSession(client, clock=fixed_clock, analysis_retries=0)
        session.acquire_image(sample_image)

        state = await session.analyze()

        assert isinstance(state, Result)
        assert state.result == FoodAnalysisResult(
            status=FreshnessStatus.FRESH,
            safety_score=92,
            confidence=88,
            observations=["no discoloration"],
            recommendation="Safe to eat",
            spoilage_signs=[],
        )
        assert client.requests[0].prep_time == ""
        assert client.requests[0].is_refrigerated is False

    @pytest.mark.asyncio
    async def test_refrigerated_transport_failure(self, fixed_clock, sample_image):
        client = StubInferenceClient(error=TransportError("network unreachable"))
        session = FreshnessSession(client, clock=fixed_clock, analysis_retries=0)
        session.acquire_image(sample_image)
        session.toggle_refrigerated()
        session.set_refrigeration_duration("2 days")

        state = await session.analyze()

        assert isinstance(state, Failed)
        assert state.image == sample_image
        assert state.message
        assert client.requests[0].refrigeration_duration == "2 days"

    @pytest.mark.asyncio
    async def test_start_without_image(self, session, stub_client):
        before = session.state

        assert session.start_analysis() is None
        assert session.state is before

        await session.analyze()
        assert session.state is before
        assert stub_client.requests == []
