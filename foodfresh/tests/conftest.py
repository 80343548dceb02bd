"""
Shared fixtures for freshness tests.

Images are generated with Pillow so every fixture is a real, decodable file.
"""

import io
from datetime import datetime
from typing import Any, Callable, Dict

import pytest
from PIL import Image

from foodfresh.domain.freshness.models import CapturedImage, FoodMetadata
from foodfresh.infrastructure.ai.stub_client import DEFAULT_STUB_RESPONSE, StubInferenceClient
from foodfresh.metrics.freshness import reset_all

_CONFIG_VARS = (
    "FOODFRESH_INFERENCE_PROVIDER",
    "OPENAI_API_KEY",
    "OPENAI_VISION_MODEL",
    "FOODFRESH_INFERENCE_TIMEOUT_S",
    "FOODFRESH_CLOCK_REFRESH_SECONDS",
    "FOODFRESH_ANALYSIS_RETRIES",
    "FOODFRESH_MAX_IMAGE_BYTES",
    "FOODFRESH_NORMALIZE_JPEG",
    "LOG_LEVEL",
)


def _encode(fmt: str, mode: str = "RGB", size: tuple = (8, 8)) -> bytes:
    color = (200, 40, 40, 255) if mode == "RGBA" else (200, 40, 40)
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


# ═══════════════════════════════════════════════════════════
# ENVIRONMENT / METRICS ISOLATION
# ═══════════════════════════════════════════════════════════


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test against configuration defaults."""
    for name in _CONFIG_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    reset_all()


# ═══════════════════════════════════════════════════════════
# CLOCK FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 5, 1, 20, 30, 0)


@pytest.fixture
def fixed_clock(fixed_now: datetime) -> Callable[[], datetime]:
    return lambda: fixed_now


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture
def manual_clock(fixed_now: datetime) -> ManualClock:
    return ManualClock(fixed_now)


# ═══════════════════════════════════════════════════════════
# IMAGE FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def jpeg_bytes() -> bytes:
    return _encode("JPEG")


@pytest.fixture
def png_bytes() -> bytes:
    return _encode("PNG")


@pytest.fixture
def rgba_png_bytes() -> bytes:
    return _encode("PNG", mode="RGBA")


@pytest.fixture
def bmp_bytes() -> bytes:
    return _encode("BMP")


@pytest.fixture
def mpo_bytes() -> bytes:
    """Two-frame multi-picture JPEG, as written by many phone cameras."""
    first = Image.new("RGB", (8, 8), (200, 40, 40))
    second = Image.new("RGB", (8, 8), (40, 200, 40))
    buffer = io.BytesIO()
    first.save(buffer, format="MPO", save_all=True, append_images=[second])
    return buffer.getvalue()


@pytest.fixture
def sample_image(jpeg_bytes: bytes) -> CapturedImage:
    return CapturedImage(data=jpeg_bytes, mime_type="image/jpeg")


@pytest.fixture
def other_image(png_bytes: bytes) -> CapturedImage:
    return CapturedImage(data=png_bytes, mime_type="image/png")


# ═══════════════════════════════════════════════════════════
# DOMAIN / CLIENT FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def refrigerated_metadata() -> FoodMetadata:
    return FoodMetadata(
        prep_time="2024-05-01T08:00",
        current_time="2024-05-01 20:30:00",
        is_refrigerated=True,
        refrigeration_duration="2 days",
    )


@pytest.fixture
def sample_raw_response() -> Dict[str, Any]:
    return {
        "status": "Fresh",
        "safetyScore": 92,
        "confidence": 88,
        "observations": ["No discoloration", "Firm texture"],
        "recommendation": "Safe to eat today.",
        "spoilageSigns": [],
    }


@pytest.fixture
def stub_client() -> StubInferenceClient:
    return StubInferenceClient(response=DEFAULT_STUB_RESPONSE)
