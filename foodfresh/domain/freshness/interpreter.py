"""
Result interpreter.

Turns the raw inference payload into a FoodAnalysisResult. Malformed
fields are coerced to safe defaults; only a payload that is not an
object at all is rejected.
"""

from __future__ import annotations

import json
import math
import sys
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple, Union

from foodfresh.domain.freshness.models import (
    DEFAULT_RECOMMENDATION,
    FoodAnalysisResult,
    FreshnessStatus,
)
from foodfresh.domain.shared.errors import MalformedResponseError

SCORE_MIN = 0.0
SCORE_MAX = 100.0
SCORE_SENTINEL = 0.0

RawResponse = Union[Mapping[str, Any], str, bytes]


@dataclass(slots=True)
class ParseStats:
    """Which fields had to be coerced while parsing."""

    coerced_fields: List[str] = field(default_factory=list)
    clamped_fields: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.coerced_fields and not self.clamped_fields


def _safe_json_extract(text: str) -> Mapping[str, Any]:
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last <= first:
        raise MalformedResponseError("NO_JSON_OBJECT")
    snippet = text[first : last + 1]
    try:
        obj = json.loads(snippet)
    except ValueError as exc:
        raise MalformedResponseError(f"INVALID_JSON: {exc}") from exc
    if not isinstance(obj, dict):
        raise MalformedResponseError("ROOT_NOT_OBJECT")
    return obj


def _as_mapping(raw: Any) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedResponseError("INVALID_ENCODING") from exc
    if isinstance(raw, str):
        return _safe_json_extract(raw)
    raise MalformedResponseError(f"ROOT_NOT_OBJECT: {type(raw).__name__}")


def _to_number(value: Any) -> Optional[float]:
    # bool is an int subclass; "true" is not a score
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            number = float(value)
        except OverflowError:
            # Finite but beyond float range; _clamp pins it to the bound
            return sys.float_info.max if value > 0 else -sys.float_info.max
    elif isinstance(value, float):
        number = value
    elif isinstance(value, str):
        text = value.strip().rstrip("%").strip()
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _clamp(value: float) -> Tuple[float, bool]:
    if value < SCORE_MIN:
        return SCORE_MIN, True
    if value > SCORE_MAX:
        return SCORE_MAX, True
    return value, False


def _parse_score(
    data: Mapping[str, Any], key: str, stats: ParseStats, *, fraction_scale: bool = False
) -> float:
    number = _to_number(data.get(key))
    if number is None:
        stats.coerced_fields.append(key)
        return SCORE_SENTINEL
    if fraction_scale and 0.0 < number <= 1.0:
        # 0-1 confidence reported by some models
        number *= 100.0
    clamped, was_clamped = _clamp(number)
    if was_clamped:
        stats.clamped_fields.append(key)
    return clamped


def _parse_text_list(
    data: Mapping[str, Any], key: str, stats: ParseStats
) -> Tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if isinstance(value, str):
        stats.coerced_fields.append(key)
        value = [value]
    elif not isinstance(value, (list, tuple)):
        stats.coerced_fields.append(key)
        return ()
    items: List[str] = []
    for item in value:
        if item is None:
            continue
        text = item.strip() if isinstance(item, str) else str(item).strip()
        if text:
            items.append(text)
    return tuple(items)


def parse_with_stats(raw: RawResponse) -> Tuple[FoodAnalysisResult, ParseStats]:
    """
    Parse raw inference output and report coercions.

    Args:
        raw: Mapping, or JSON text (prose around the object is tolerated)

    Returns:
        (FoodAnalysisResult, ParseStats)

    Raises:
        MalformedResponseError: If no JSON object can be obtained
    """
    data = _as_mapping(raw)
    stats = ParseStats()

    raw_status = data.get("status")
    status = FreshnessStatus.coerce(raw_status)
    if status is FreshnessStatus.UNKNOWN and raw_status != FreshnessStatus.UNKNOWN.value:
        stats.coerced_fields.append("status")

    recommendation = data.get("recommendation")
    if not isinstance(recommendation, str) or not recommendation.strip():
        stats.coerced_fields.append("recommendation")
        recommendation = DEFAULT_RECOMMENDATION
    else:
        recommendation = recommendation.strip()

    result = FoodAnalysisResult(
        status=status,
        safety_score=_parse_score(data, "safetyScore", stats),
        confidence=_parse_score(data, "confidence", stats, fraction_scale=True),
        observations=_parse_text_list(data, "observations", stats),
        recommendation=recommendation,
        spoilage_signs=_parse_text_list(data, "spoilageSigns", stats),
    )
    return result, stats


def parse(raw: RawResponse) -> FoodAnalysisResult:
    """
    Parse raw inference output into a FoodAnalysisResult.

    Example:
        >>> parse({"status": "rotten", "safetyScore": 150}).status
        <FreshnessStatus.UNKNOWN: 'Unknown'>
        >>> parse({"status": "Fresh", "safetyScore": 150}).safety_score
        100.0
    """
    result, _ = parse_with_stats(raw)
    return result
