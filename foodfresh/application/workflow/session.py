"""
Freshness analysis session.

Owns the session state and is the only place it changes. Coordinates
image acquisition, request building, the inference call and result
interpretation.

Design Pattern: State Machine + Dependency Injection (Ports & Adapters)
"""

from __future__ import annotations

import itertools
from dataclasses import replace
from typing import Callable, List, Optional, Union

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from foodfresh.application.workflow.states import (
    ANALYZABLE_STATES,
    Analyzing,
    Failed,
    Idle,
    ImageReady,
    Result,
    SessionState,
)
from foodfresh.domain.freshness.interpreter import parse_with_stats
from foodfresh.domain.freshness.metadata import DEFAULT_TIME_FORMAT, Clock, MetadataModel
from foodfresh.domain.freshness.models import (
    AnalysisRequest,
    CapturedImage,
    FoodAnalysisResult,
    FoodMetadata,
)
from foodfresh.domain.freshness.ports import ImageSource, InferenceClient
from foodfresh.domain.freshness.request_builder import build_request
from foodfresh.domain.shared.errors import DomainError, TransportError
from foodfresh.infrastructure.config import get_analysis_retries
from foodfresh.infrastructure.scheduler import ClockRefresher
from foodfresh.metrics.freshness import (
    record_failed,
    record_parse_coerced,
    record_request,
    record_stale_completion,
    time_analysis,
)

logger = structlog.get_logger(__name__)

DEFAULT_FAILURE_MESSAGE = "Failed to analyze image. Please try again."
TRANSPORT_FAILURE_MESSAGE = (
    "Could not reach the analysis service. Check your connection and try again."
)

StateListener = Callable[[SessionState], None]


def failure_message_for(error: Union[BaseException, str]) -> str:
    """User-facing message for a failed analysis."""
    if isinstance(error, TransportError):
        return TRANSPORT_FAILURE_MESSAGE
    return DEFAULT_FAILURE_MESSAGE


class FreshnessSession:
    """
    Analysis workflow state machine.

    Transitions:
    - acquire_image: any state -> ImageReady (supersedes in-flight work)
    - clear_image: ImageReady | Failed -> Idle
    - start_analysis: ImageReady | Failed -> Analyzing
    - analysis_succeeded: Analyzing -> Result (matching attempt only)
    - analysis_failed: Analyzing -> Failed (matching attempt only)
    - reset: any state -> Idle with default metadata

    Completions for a superseded attempt are discarded, so a slow call
    cannot overwrite a session that was reset or given a new image.

    Example:
        >>> async with FreshnessSession(inference_client=client) as session:
        ...     await session.acquire_from(UploadImageSource(upload))
        ...     session.toggle_refrigerated()
        ...     session.set_refrigeration_duration("2 days")
        ...     state = await session.analyze()
        >>> state.name
        'result'
    """

    def __init__(
        self,
        inference_client: InferenceClient,
        *,
        clock: Optional[Clock] = None,
        time_format: str = DEFAULT_TIME_FORMAT,
        clock_refresh_seconds: Optional[float] = None,
        analysis_retries: Optional[int] = None,
        retry_wait_s: float = 1.0,
    ):
        """
        Initialize session in the Idle state.

        Args:
            inference_client: Vision service port
            clock: Source of "now" (injectable for tests)
            time_format: strftime format for current_time
            clock_refresh_seconds: Clock refresh interval (default from config)
            analysis_retries: Automatic retries on TransportError (default from config)
            retry_wait_s: Base for exponential backoff between retries
        """
        self.inference_client = inference_client
        self.time_format = time_format
        self.analysis_retries = (
            analysis_retries if analysis_retries is not None else get_analysis_retries()
        )
        self.retry_wait_s = retry_wait_s

        self._metadata = MetadataModel(clock=clock, time_format=time_format)
        self._state: SessionState = Idle(metadata=self._metadata.current)
        self._attempt_ids = itertools.count(1)
        # Bumped by reset/acquire; pending acquisitions compare against it
        self._generation = 0
        self._listeners: List[StateListener] = []
        self._refresher = ClockRefresher(
            self.refresh_current_time, interval_seconds=clock_refresh_seconds
        )
        self._closed = False

    # ─────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────

    async def __aenter__(self) -> FreshnessSession:
        self.start()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    def start(self) -> None:
        """Start the periodic clock refresh. Needs a running event loop."""
        if self._closed:
            raise RuntimeError("Session is closed")
        self._refresher.start()

    async def close(self) -> None:
        """Stop the clock refresh; later ticks are ignored."""
        self._refresher.shutdown()
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def clock_refresher(self) -> ClockRefresher:
        return self._refresher

    # ─────────────────────────────────────────────────────
    # Observation
    # ─────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def metadata(self) -> FoodMetadata:
        return self._state.metadata

    @property
    def loading(self) -> bool:
        return self._state.loading

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a listener called with every new state.

        Returns:
            Function that unsubscribes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, new_state: SessionState) -> None:
        previous = self._state
        self._state = new_state
        if previous.name != new_state.name:
            logger.debug("Session transition", source=previous.name, target=new_state.name)
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                # One failing listener must not block the others
                logger.exception("State listener failed", state=new_state.name)

    def _publish_metadata(self, metadata: FoodMetadata) -> None:
        self._set_state(replace(self._state, metadata=metadata))

    # ─────────────────────────────────────────────────────
    # Metadata
    # ─────────────────────────────────────────────────────

    def set_prep_time(self, prep_time: str) -> FoodMetadata:
        self._publish_metadata(self._metadata.set_prep_time(prep_time))
        return self.metadata

    def toggle_refrigerated(self) -> FoodMetadata:
        self._publish_metadata(self._metadata.toggle_refrigerated())
        return self.metadata

    def set_refrigeration_duration(self, duration: str) -> FoodMetadata:
        self._publish_metadata(self._metadata.set_refrigeration_duration(duration))
        return self.metadata

    def refresh_current_time(self) -> None:
        """Clock tick. Ignored once the session is closed."""
        if self._closed:
            return
        self._publish_metadata(self._metadata.refresh_current_time())

    # ─────────────────────────────────────────────────────
    # Image acquisition
    # ─────────────────────────────────────────────────────

    def acquire_image(self, image: CapturedImage) -> SessionState:
        """Replace any image, result or error with a new image."""
        self._generation += 1
        if isinstance(self._state, Analyzing):
            logger.info("Image replaced during analysis", attempt_id=self._state.attempt_id)
        self._set_state(ImageReady(image=image, metadata=self.metadata))
        return self._state

    async def acquire_from(self, source: ImageSource) -> SessionState:
        """
        Acquire an image from a source and hand it to acquire_image.

        Raises:
            UnsupportedFormatError: If the source rejects its input
                (state is left unchanged)
        """
        generation = self._generation
        image = await source.acquire()
        if generation != self._generation:
            record_stale_completion("acquisition")
            logger.info("Discarding stale image acquisition")
            return self._state
        return self.acquire_image(image)

    def clear_image(self) -> SessionState:
        """Drop the current image. No-op unless ImageReady or Failed."""
        if isinstance(self._state, ANALYZABLE_STATES):
            self._set_state(Idle(metadata=self.metadata))
        else:
            logger.debug("clear_image ignored", state=self._state.name)
        return self._state

    # ─────────────────────────────────────────────────────
    # Analysis transitions
    # ─────────────────────────────────────────────────────

    def start_analysis(self) -> Optional[int]:
        """
        Enter Analyzing.

        Returns:
            attempt_id for the completion calls, or None when there is no
            image or an analysis is already in flight (no-op)
        """
        state = self._state
        if not isinstance(state, ANALYZABLE_STATES):
            logger.debug("start_analysis ignored", state=state.name)
            return None
        attempt_id = next(self._attempt_ids)
        self._set_state(
            Analyzing(image=state.image, metadata=state.metadata, attempt_id=attempt_id)
        )
        return attempt_id

    def _is_current(self, attempt_id: int) -> bool:
        state = self._state
        return isinstance(state, Analyzing) and state.attempt_id == attempt_id

    def analysis_succeeded(self, attempt_id: int, result: FoodAnalysisResult) -> bool:
        """
        Apply a successful result.

        Returns:
            False if the attempt was superseded and the result discarded
        """
        state = self._state
        if not isinstance(state, Analyzing) or state.attempt_id != attempt_id:
            record_stale_completion("analysis")
            logger.info("Discarding stale analysis result", attempt_id=attempt_id)
            return False
        self._set_state(Result(image=state.image, metadata=state.metadata, result=result))
        return True

    def analysis_failed(
        self,
        attempt_id: int,
        error: Union[BaseException, str],
        message: Optional[str] = None,
    ) -> bool:
        """
        Apply a failure; the image stays available for a retry.

        Returns:
            False if the attempt was superseded and the failure discarded
        """
        state = self._state
        if not isinstance(state, Analyzing) or state.attempt_id != attempt_id:
            record_stale_completion("analysis")
            logger.info("Discarding stale analysis failure", attempt_id=attempt_id)
            return False
        reason = type(error).__name__ if isinstance(error, BaseException) else str(error)
        self._set_state(
            Failed(
                image=state.image,
                metadata=state.metadata,
                message=message or failure_message_for(error),
                reason=reason,
            )
        )
        return True

    def reset(self) -> SessionState:
        """Back to Idle; image, result, error and metadata are discarded."""
        self._generation += 1
        self._set_state(Idle(metadata=self._metadata.reset()))
        return self._state

    # ─────────────────────────────────────────────────────
    # Orchestration
    # ─────────────────────────────────────────────────────

    async def _call_inference(self, request: AnalysisRequest, attempt_id: int) -> object:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.analysis_retries + 1),
            wait=wait_exponential(multiplier=self.retry_wait_s, max=10),
            retry=(
                retry_if_exception_type(TransportError)
                & retry_if_exception(lambda _: self._is_current(attempt_id))
            ),
            before_sleep=lambda rs: logger.warning(
                "Retrying inference after transport error",
                attempt_id=attempt_id,
                attempt=rs.attempt_number,
            ),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self.inference_client.analyze(request)
        raise RuntimeError("unreachable")  # pragma: no cover

    async def analyze(self) -> SessionState:
        """
        Run one analysis attempt end to end.

        No-op (returns the current state) without an image or while an
        analysis is in flight. Inference errors end in Failed; nothing
        is raised to the caller.

        Returns:
            The session state after the attempt
        """
        state = self._state
        if not isinstance(state, ANALYZABLE_STATES):
            logger.debug("analyze ignored", state=state.name)
            return state

        request = build_request(
            state.image,
            state.metadata,
            clock=self._metadata.clock,
            time_format=self.time_format,
        )
        attempt_id = self.start_analysis()
        if attempt_id is None:  # pragma: no cover - guarded above
            return self._state

        logger.info(
            "Freshness analysis started",
            attempt_id=attempt_id,
            is_refrigerated=request.is_refrigerated,
            has_prep_time=bool(request.prep_time),
        )
        try:
            with time_analysis():
                raw = await self._call_inference(request, attempt_id)
            result, stats = parse_with_stats(raw)  # type: ignore[arg-type]
        except DomainError as exc:
            if self.analysis_failed(attempt_id, exc):
                self._record_failure(attempt_id, exc)
            return self._state
        except Exception as exc:
            logger.exception("Unexpected error during freshness analysis", attempt_id=attempt_id)
            if self.analysis_failed(attempt_id, exc):
                self._record_failure(attempt_id, exc)
            return self._state

        if not self.analysis_succeeded(attempt_id, result):
            return self._state

        if not stats.clean:
            record_parse_coerced(stats.coerced_fields + stats.clamped_fields)
            logger.info(
                "Inference response normalized",
                coerced=stats.coerced_fields,
                clamped=stats.clamped_fields,
            )
        record_request("completed")
        logger.info(
            "Freshness analysis completed",
            attempt_id=attempt_id,
            status=result.status.value,
            safety_score=result.safety_score,
        )
        return self._state

    @staticmethod
    def _record_failure(attempt_id: int, exc: BaseException) -> None:
        reason = type(exc).__name__
        record_request("failed")
        record_failed(reason)
        logger.warning(
            "Freshness analysis failed",
            attempt_id=attempt_id,
            reason=reason,
            error=str(exc),
        )
