"""
OpenAI inference client for freshness analysis.

Async, single-shot client with structured JSON output. Implements the
InferenceClient port.
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

import httpx
import structlog
from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from foodfresh.domain.freshness.models import AnalysisRequest
from foodfresh.domain.freshness.prompts import build_vision_messages
from foodfresh.domain.shared.errors import (
    MalformedResponseError,
    ServiceError,
    TransportError,
)
from foodfresh.infrastructure.config import (
    get_inference_timeout_s,
    get_openai_api_key,
    get_openai_vision_model,
)

if TYPE_CHECKING:
    from openai.types.chat import ChatCompletion

logger = structlog.get_logger(__name__)


class OpenAIInferenceClient:
    """
    Async OpenAI vision client implementing the InferenceClient port.

    Features:
    - JSON object output mode
    - Image sent inline as a data URI
    - Uniform error mapping (TransportError / ServiceError / MalformedResponseError)
    - No retries: the SDK is created with max_retries=0
    - Context manager for resource cleanup

    Example:
        >>> async with OpenAIInferenceClient() as client:
        ...     raw = await client.analyze(request)
        >>> raw["status"]
        'Fresh'
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        temperature: float = 0.2,
        max_tokens: int = 800,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize OpenAI inference client.

        Args:
            api_key: OpenAI API key (reads OPENAI_API_KEY if None)
            model: Vision model (reads OPENAI_VISION_MODEL if None)
            timeout: Request timeout in seconds
            temperature: Sampling temperature
            max_tokens: Max tokens in response
            client: Optional pre-configured AsyncOpenAI client (for testing)

        Raises:
            ValueError: If API key not found and client not provided
        """
        if client is not None:
            self._client: Optional[AsyncOpenAI] = client
            self.api_key: str = api_key or "test-key"
        else:
            resolved_key = api_key or get_openai_api_key()
            if not resolved_key:
                raise ValueError(
                    "OPENAI_API_KEY not found in environment. "
                    "Set it in .env file or pass as parameter."
                )
            self.api_key = resolved_key
            self._client = None

        self.model = model or get_openai_vision_model()
        self.timeout = timeout if timeout is not None else get_inference_timeout_s()
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _ensure_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    async def __aenter__(self) -> OpenAIInferenceClient:
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Release the underlying HTTP client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def _create_completion(self, request: AnalysisRequest) -> ChatCompletion:
        client = self._ensure_client()
        params: Dict[str, Any] = {
            "model": self.model,
            "messages": build_vision_messages(request),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }
        try:
            return await asyncio.wait_for(
                client.chat.completions.create(**params), timeout=self.timeout
            )
        except (APITimeoutError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Inference request timed out after {self.timeout}s") from exc
        except APIConnectionError as exc:
            raise TransportError(f"Connection error: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransportError(f"Transport error: {exc}") from exc
        except RateLimitError as exc:
            raise ServiceError(f"Rate limited: {exc}") from exc
        except APIStatusError as exc:
            raise ServiceError(f"Inference service error {exc.status_code}: {exc}") from exc
        except APIError as exc:
            raise ServiceError(f"Inference service error: {exc}") from exc

    async def analyze(self, request: AnalysisRequest) -> Mapping[str, Any]:
        """
        Submit the request to the vision model.

        Args:
            request: Analysis request with image and context

        Returns:
            Parsed JSON object from the model

        Raises:
            TransportError: Network failure or timeout
            ServiceError: API error, rate limit, refusal or empty content
            MalformedResponseError: Content is not a JSON object
        """
        start = time.perf_counter()
        try:
            completion = await self._create_completion(request)
        finally:
            logger.info(
                "Freshness inference call",
                model=self.model,
                elapsed_ms=int((time.perf_counter() - start) * 1000),
                is_refrigerated=request.is_refrigerated,
            )

        if not completion.choices:
            raise ServiceError("empty_choices")
        message = completion.choices[0].message
        refusal = getattr(message, "refusal", None)
        if refusal:
            raise ServiceError(f"refused: {refusal}")
        content = message.content
        if not content:
            raise ServiceError("empty_content")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Invalid JSON response: {content[:200]}") from e
        if not isinstance(data, dict):
            raise MalformedResponseError("ROOT_NOT_OBJECT")
        return data
