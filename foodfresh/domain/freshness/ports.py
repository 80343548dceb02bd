"""
Ports (Interfaces) for the freshness analysis workflow.

The session depends on these capabilities, not on the camera widget or a
particular vision provider, so both can be replaced with fakes in tests.

Design Pattern: Ports & Adapters (Hexagonal Architecture)
"""

from typing import Any, Mapping, Protocol, runtime_checkable

from foodfresh.domain.freshness.models import AnalysisRequest, CapturedImage


@runtime_checkable
class ImageSource(Protocol):
    """
    Port for anything that yields one image per acquisition.

    Implementations wrap a camera frame, an uploaded file or a path.
    """

    async def acquire(self) -> CapturedImage:
        """
        Produce the canonical image.

        Returns:
            CapturedImage

        Raises:
            UnsupportedFormatError: If the input is not a recognized image
        """
        ...


@runtime_checkable
class InferenceClient(Protocol):
    """
    Port for the external vision-analysis service.

    Single-shot: implementations must not retry. Retries belong to the
    workflow.
    """

    async def analyze(self, request: AnalysisRequest) -> Mapping[str, Any]:
        """
        Submit a request and return the raw response object.

        Args:
            request: Analysis request

        Returns:
            Raw response mapping (validated later by the interpreter)

        Raises:
            TransportError: On network/connectivity failure
            ServiceError: On a service-reported failure
            MalformedResponseError: If the response is not a JSON object
        """
        ...
