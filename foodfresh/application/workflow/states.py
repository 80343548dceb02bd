"""
Session states.

One immutable value per state. Which fields exist depends on the state,
so combinations like "loading with a result" cannot be represented.

    Idle -> ImageReady -> Analyzing -> Result | Failed -> (reset) -> Idle
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional, Union

from foodfresh.domain.freshness.models import CapturedImage, FoodAnalysisResult, FoodMetadata


@dataclass(frozen=True, slots=True)
class Idle:
    """No image acquired."""

    metadata: FoodMetadata

    name: ClassVar[str] = "idle"

    @property
    def image(self) -> Optional[CapturedImage]:
        return None

    @property
    def loading(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class ImageReady:
    """Image present, not yet analyzed."""

    image: CapturedImage
    metadata: FoodMetadata

    name: ClassVar[str] = "image_ready"

    @property
    def loading(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class Analyzing:
    """Inference call in flight for attempt_id."""

    image: CapturedImage
    metadata: FoodMetadata
    attempt_id: int

    name: ClassVar[str] = "analyzing"

    @property
    def loading(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Result:
    """Analysis succeeded."""

    image: CapturedImage
    metadata: FoodMetadata
    result: FoodAnalysisResult

    name: ClassVar[str] = "result"

    @property
    def loading(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class Failed:
    """Analysis failed; the image is kept for a retry."""

    image: CapturedImage
    metadata: FoodMetadata
    message: str
    reason: str

    name: ClassVar[str] = "failed"

    @property
    def loading(self) -> bool:
        return False


SessionState = Union[Idle, ImageReady, Analyzing, Result, Failed]

# States from which an analysis may start
ANALYZABLE_STATES = (ImageReady, Failed)
