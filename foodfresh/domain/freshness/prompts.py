"""
Vision prompts for freshness assessment.

IMPORTANT: System prompts are cacheable by the provider.
Keep static instructions in SYSTEM_PROMPT and per-request context in user messages.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from foodfresh.domain.freshness.models import AnalysisRequest


# ═══════════════════════════════════════════════════════════
# SYSTEM PROMPT (Cacheable - static instructions)
# ═══════════════════════════════════════════════════════════

VISION_SYSTEM_PROMPT = """You are a food safety inspector AI specialized in detecting spoilage from photos.

Your task: Assess whether the pictured food is still safe to eat, using the
photo and the storage context supplied by the user.

Look for:
- Mold (fuzzy spots, white/green/blue/black growth)
- Discoloration, browning, grey or green tints on meat
- Slime, excess liquid, dried-out or cracked surfaces
- Bloating of packaging, separation, curdling
- Texture changes visible in the image

Weigh the context:
- Time elapsed since preparation
- Whether the food was refrigerated and for how long
- Perishable categories (seafood, poultry, dairy, cooked rice) spoil fastest

Status values (use EXACTLY one):
- Fresh: no visible spoilage, within safe storage time
- Caution: borderline, minor signs or storage time near the limit
- Expired: clear spoilage or storage time well beyond safe limits
- Unknown: photo does not show food or cannot be assessed

Output: JSON object with:
- status: "Fresh" | "Caution" | "Expired" | "Unknown"
- safetyScore: 0-100 (100 = certainly safe)
- confidence: 0-100 (how sure you are of the assessment)
- observations: array of short findings, most important first
- recommendation: one actionable sentence for the user
- spoilageSigns: array of detected defects (empty if none)

Return ONLY the JSON object. No markdown, no code fences, no extra text.
"""

FRESHNESS_OUTPUT_SCHEMA: Dict[str, Any] = {
    "status": "Fresh|Caution|Expired|Unknown",
    "safetyScore": "number 0-100",
    "confidence": "number 0-100",
    "observations": ["string"],
    "recommendation": "string",
    "spoilageSigns": ["string"],
}

# Formats tried when computing elapsed time between prep and now
_TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
)


def _parse_timestamp(text: str) -> Optional[datetime]:
    text = text.strip()
    if not text:
        return None
    for fmt in _TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def hours_since_preparation(prep_time: str, current_time: str) -> Optional[float]:
    """
    Hours elapsed between preparation and now.

    Returns:
        Elapsed hours (rounded to 0.1), or None if either timestamp
        cannot be parsed or prep is in the future

    Example:
        >>> hours_since_preparation("2024-05-01T08:00", "2024-05-01 20:30:00")
        12.5
    """
    prep = _parse_timestamp(prep_time)
    now = _parse_timestamp(current_time)
    if prep is None or now is None or now < prep:
        return None
    return round((now - prep).total_seconds() / 3600.0, 1)


def build_context_text(request: AnalysisRequest) -> str:
    """Render the storage context for the user message."""
    lines = [
        f"Time prepared: {request.prep_time or 'unknown'}",
        f"Current time: {request.current_time}",
    ]
    elapsed = hours_since_preparation(request.prep_time, request.current_time)
    if elapsed is not None:
        lines.append(f"Hours since preparation: {elapsed}")
    if request.is_refrigerated:
        duration = request.refrigeration_duration or "unspecified duration"
        lines.append(f"Storage: refrigerated ({duration})")
    else:
        lines.append("Storage: not refrigerated (room temperature)")
    return "\n".join(lines)


def build_vision_messages(request: AnalysisRequest) -> List[Dict[str, Any]]:
    """
    Build chat messages for the vision model.

    Args:
        request: Analysis request with image and context

    Returns:
        [system, user] messages; the user message carries the image

    Example:
        >>> messages = build_vision_messages(request)
        >>> messages[1]["content"][1]["type"]
        'image_url'
    """
    return [
        {"role": "system", "content": VISION_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {
                    "type": "text",
                    "text": "Assess the freshness of this food.\n" + build_context_text(request),
                },
                {"type": "image_url", "image_url": {"url": request.image}},
            ],
        },
    ]
