"""Inference client factory.

Environment-based provider selection:
- FOODFRESH_INFERENCE_PROVIDER=openai: OpenAI vision (requires OPENAI_API_KEY)
- FOODFRESH_INFERENCE_PROVIDER=stub: canned responses (default)
"""

from foodfresh.domain.freshness.ports import InferenceClient
from foodfresh.infrastructure.ai.openai_client import OpenAIInferenceClient
from foodfresh.infrastructure.ai.stub_client import StubInferenceClient
from foodfresh.infrastructure.config import get_inference_provider, get_openai_api_key

SUPPORTED_PROVIDERS = ("stub", "openai")


def create_inference_client() -> InferenceClient:
    """Create inference client based on FOODFRESH_INFERENCE_PROVIDER.

    Returns:
        InferenceClient implementation

    Raises:
        ValueError: If provider is unknown, or openai is selected without a key

    Example:
        # In .env (production):
        FOODFRESH_INFERENCE_PROVIDER=openai
        OPENAI_API_KEY=sk-...
    """
    provider = get_inference_provider()

    if provider == "openai":
        api_key = get_openai_api_key()
        if not api_key:
            raise ValueError(
                "FOODFRESH_INFERENCE_PROVIDER=openai but OPENAI_API_KEY not set. "
                "Set OPENAI_API_KEY in .env or use FOODFRESH_INFERENCE_PROVIDER=stub"
            )
        return OpenAIInferenceClient(api_key=api_key)

    if provider == "stub":
        return StubInferenceClient()

    raise ValueError(
        f"Unknown inference provider {provider!r}. Supported: {', '.join(SUPPORTED_PROVIDERS)}"
    )
