"""Display-ready views of analysis results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from foodfresh.domain.freshness.models import FoodAnalysisResult, FreshnessStatus

HIGH_SAFETY_THRESHOLD = 70.0
MEDIUM_SAFETY_THRESHOLD = 40.0

_TONES: Dict[FreshnessStatus, str] = {
    FreshnessStatus.FRESH: "success",
    FreshnessStatus.CAUTION: "warning",
    FreshnessStatus.EXPIRED: "danger",
    FreshnessStatus.UNKNOWN: "neutral",
}

_HEADLINES: Dict[FreshnessStatus, str] = {
    FreshnessStatus.FRESH: "Looks fresh",
    FreshnessStatus.CAUTION: "Use caution",
    FreshnessStatus.EXPIRED: "Likely spoiled",
    FreshnessStatus.UNKNOWN: "Could not assess",
}


@dataclass(frozen=True, slots=True)
class ResultView:
    status: str
    headline: str
    tone: str
    safety_band: str
    safety_score_text: str
    confidence_text: str
    recommendation: str
    observations: List[str] = field(default_factory=list)
    spoilage_signs: List[str] = field(default_factory=list)


def safety_band(score: float) -> str:
    """Bucket a 0-100 safety score into high / medium / low."""
    if score >= HIGH_SAFETY_THRESHOLD:
        return "high"
    if score >= MEDIUM_SAFETY_THRESHOLD:
        return "medium"
    return "low"


def render_result(result: FoodAnalysisResult) -> ResultView:
    """
    Build the view shown after a successful analysis.

    Example:
        >>> view = render_result(result)
        >>> view.tone, view.safety_score_text
        ('success', '92/100')
    """
    return ResultView(
        status=result.status.value,
        headline=_HEADLINES[result.status],
        tone=_TONES[result.status],
        safety_band=safety_band(result.safety_score),
        safety_score_text=f"{result.safety_score:.0f}/100",
        confidence_text=f"{result.confidence:.0f}%",
        recommendation=result.recommendation,
        observations=list(result.observations),
        spoilage_signs=list(result.spoilage_signs),
    )
