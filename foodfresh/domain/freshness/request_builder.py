"""Build inference requests from an image and its context."""

from __future__ import annotations

from typing import Optional

from foodfresh.domain.freshness.metadata import Clock, DEFAULT_TIME_FORMAT, format_time, system_clock
from foodfresh.domain.freshness.models import AnalysisRequest, CapturedImage, FoodMetadata
from foodfresh.domain.shared.errors import MissingImageError


def build_request(
    image: Optional[CapturedImage],
    metadata: FoodMetadata,
    *,
    current_time: Optional[str] = None,
    clock: Optional[Clock] = None,
    time_format: str = DEFAULT_TIME_FORMAT,
) -> AnalysisRequest:
    """
    Combine image and metadata into an AnalysisRequest.

    current_time is computed now (from current_time or the clock), never
    taken from metadata.current_time, which may be up to one refresh
    interval old. refrigeration_duration is dropped unless refrigerated,
    even if the caller failed to clear it.

    Args:
        image: Acquired image (required)
        metadata: User context
        current_time: Explicit build time, overrides the clock
        clock: Source of "now" when current_time is not given
        time_format: strftime format for the clock reading

    Returns:
        AnalysisRequest ready for the inference client

    Raises:
        MissingImageError: If image is None

    Example:
        >>> request = build_request(image, FoodMetadata(prep_time=""))
        >>> "refrigerationDuration" in request.to_payload()
        False
    """
    if image is None:
        raise MissingImageError("An image is required before analysis")

    if current_time is None:
        current_time = format_time(clock or system_clock, time_format)

    return AnalysisRequest(
        image=image.data_uri,
        prep_time=metadata.prep_time,
        current_time=current_time,
        is_refrigerated=metadata.is_refrigerated,
        refrigeration_duration=metadata.effective_refrigeration_duration,
    )
