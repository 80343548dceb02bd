"""Stub inference client.

Returns a canned assessment without calling an external service.
Useful for demos and integration tests.
"""

from typing import Any, Dict, List, Mapping, Optional

from foodfresh.domain.freshness.models import AnalysisRequest

DEFAULT_STUB_RESPONSE: Dict[str, Any] = {
    "status": "Fresh",
    "safetyScore": 90,
    "confidence": 75,
    "observations": [
        "Colors look natural with no discoloration",
        "No visible mold or moisture on the surface",
    ],
    "recommendation": "Looks safe to eat. Refrigerate leftovers promptly.",
    "spoilageSigns": [],
}


class StubInferenceClient:
    """
    Stub implementation of the InferenceClient port.

    Returns the configured response, or raises the configured error.
    Records every request it receives.
    """

    def __init__(
        self,
        response: Optional[Mapping[str, Any]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.response: Mapping[str, Any] = response or DEFAULT_STUB_RESPONSE
        self.error = error
        self.requests: List[AnalysisRequest] = []

    async def __aenter__(self) -> "StubInferenceClient":
        """Enter async context (no-op for stub)."""
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        """Exit async context (no-op for stub)."""
        return None

    async def analyze(self, request: AnalysisRequest) -> Mapping[str, Any]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return dict(self.response)
