"""
Domain models for food freshness analysis.

Models for photo-based spoilage assessment: captured images, user-supplied
context, the inference request and the validated assessment.
"""

from __future__ import annotations

import base64
import binascii
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from foodfresh.domain.shared.errors import UnsupportedFormatError

# Image MIME types accepted by the vision service
ALLOWED_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
    }
)

DEFAULT_RECOMMENDATION = "Unable to determine a recommendation. When in doubt, throw it out."


class FreshnessStatus(str, Enum):
    """Closed set of freshness verdicts."""

    FRESH = "Fresh"  # Safe to eat
    CAUTION = "Caution"  # Borderline, inspect before eating
    EXPIRED = "Expired"  # Spoiled, discard
    UNKNOWN = "Unknown"  # Could not be determined

    @classmethod
    def coerce(cls, value: Any) -> FreshnessStatus:
        """
        Map an arbitrary value onto the closed set.

        Matching is case-insensitive and ignores surrounding whitespace.
        Anything unrecognized becomes UNKNOWN.

        Example:
            >>> FreshnessStatus.coerce(" fresh ")
            <FreshnessStatus.FRESH: 'Fresh'>
            >>> FreshnessStatus.coerce("rotten")
            <FreshnessStatus.UNKNOWN: 'Unknown'>
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.UNKNOWN
        wanted = value.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return cls.UNKNOWN


class CapturedImage(BaseModel):
    """
    Canonical in-memory image.

    Camera frames and uploaded files both converge to this shape.

    Attributes:
        data: Raw encoded image bytes
        mime_type: One of ALLOWED_MIME_TYPES

    Example:
        >>> image = CapturedImage(data=b"\\xff\\xd8...", mime_type="image/jpeg")
        >>> image.data_uri.startswith("data:image/jpeg;base64,")
        True
    """

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(..., min_length=1, description="Encoded image bytes")
    mime_type: str = Field(..., description="Image MIME type")

    @field_validator("mime_type")
    @classmethod
    def allowed_mime(cls, v: str) -> str:
        """Ensure MIME type is one the vision service accepts."""
        normalized = v.strip().lower()
        if normalized == "image/jpg":
            normalized = "image/jpeg"
        if normalized not in ALLOWED_MIME_TYPES:
            raise ValueError(f"Unsupported image MIME type: {v}")
        return normalized

    @property
    def size(self) -> int:
        """Size in bytes."""
        return len(self.data)

    @property
    def base64_data(self) -> str:
        """Base64 payload without the data URI prefix."""
        return base64.b64encode(self.data).decode("ascii")

    @property
    def data_uri(self) -> str:
        """RFC 2397 data URI."""
        return f"data:{self.mime_type};base64,{self.base64_data}"

    def __repr__(self) -> str:
        """Debug representation (bytes omitted)."""
        return f"CapturedImage(mime_type='{self.mime_type}', size={self.size})"

    @classmethod
    def parse_data_uri(cls, uri: str) -> tuple[str, bytes]:
        """
        Split a base64 data URI into (declared MIME type, bytes).

        Raises:
            UnsupportedFormatError: If not a base64 data URI
        """
        if not uri.startswith("data:") or "," not in uri:
            raise UnsupportedFormatError("Not a data URI")
        header, payload = uri[5:].split(",", 1)
        parts = header.split(";")
        if "base64" not in parts[1:]:
            raise UnsupportedFormatError("Data URI is not base64 encoded")
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise UnsupportedFormatError("Invalid base64 image payload") from e
        return parts[0].strip().lower(), data

    @classmethod
    def from_data_uri(cls, uri: str) -> CapturedImage:
        """
        Create from a base64 data URI without sniffing the content.

        Raises:
            UnsupportedFormatError: If URI is malformed or MIME not allowed
        """
        mime_type, data = cls.parse_data_uri(uri)
        try:
            return cls(data=data, mime_type=mime_type)
        except ValueError as e:
            raise UnsupportedFormatError(str(e)) from e


class FoodMetadata(BaseModel):
    """
    Contextual inputs captured alongside the photo.

    Attributes:
        prep_time: When the food was prepared (free-form, "" = unknown)
        current_time: Live clock text, refreshed periodically
        is_refrigerated: Whether the food has been kept in a fridge
        refrigeration_duration: How long it was refrigerated (e.g. "2 days")

    refrigeration_duration is void unless is_refrigerated is true.

    Example:
        >>> meta = FoodMetadata(is_refrigerated=True, refrigeration_duration="2 days")
        >>> meta.effective_refrigeration_duration
        '2 days'
    """

    model_config = ConfigDict(frozen=True)

    prep_time: str = Field("", description="Preparation timestamp")
    current_time: str = Field("", description="Current time (derived)")
    is_refrigerated: bool = Field(False, description="Kept refrigerated")
    refrigeration_duration: str = Field("", description="Refrigeration duration")

    @property
    def effective_refrigeration_duration(self) -> Optional[str]:
        """Duration to submit, or None when it does not apply."""
        if not self.is_refrigerated:
            return None
        duration = self.refrigeration_duration.strip()
        return duration or None


class FoodAnalysisResult(BaseModel):
    """
    Validated freshness assessment.

    Only produced by the interpreter from a successful inference call.

    Attributes:
        status: Verdict from the closed set
        safety_score: 0-100, higher is safer
        confidence: 0-100
        observations: Ordered free-text findings
        recommendation: Single actionable statement
        spoilage_signs: Ordered detected defects (may be empty)

    Example:
        >>> result = FoodAnalysisResult(
        ...     status=FreshnessStatus.FRESH,
        ...     safety_score=92,
        ...     confidence=88,
        ...     observations=["no discoloration"],
        ...     recommendation="Safe to eat",
        ... )
        >>> result.spoilage_signs
        ()
    """

    model_config = ConfigDict(frozen=True)

    status: FreshnessStatus = Field(FreshnessStatus.UNKNOWN, description="Freshness verdict")
    safety_score: float = Field(0.0, ge=0.0, le=100.0, description="Safety score")
    confidence: float = Field(0.0, ge=0.0, le=100.0, description="Assessment confidence")
    observations: Tuple[str, ...] = Field(default_factory=tuple, description="Findings")
    recommendation: str = Field(DEFAULT_RECOMMENDATION, description="Recommended action")
    spoilage_signs: Tuple[str, ...] = Field(default_factory=tuple, description="Spoilage signs")

    @field_validator("status", mode="before")
    @classmethod
    def closed_status(cls, v: Any) -> FreshnessStatus:
        """Never let an unknown status through."""
        return FreshnessStatus.coerce(v)


class AnalysisRequest(BaseModel):
    """
    Request sent to the inference service.

    Attributes:
        image: Encoded image (data URI)
        prep_time: Preparation time as entered ("" = unspecified)
        current_time: Time at which the request was built
        is_refrigerated: Refrigeration flag
        refrigeration_duration: Present only when refrigerated
    """

    model_config = ConfigDict(frozen=True)

    image: str = Field(..., min_length=1, description="Image data URI")
    prep_time: str = Field("", description="Preparation time")
    current_time: str = Field(..., min_length=1, description="Build time")
    is_refrigerated: bool = Field(False, description="Refrigeration flag")
    refrigeration_duration: Optional[str] = Field(None, description="Refrigeration duration")

    @model_validator(mode="after")
    def duration_requires_refrigeration(self) -> AnalysisRequest:
        """A duration without refrigeration is a contract violation."""
        if not self.is_refrigerated and self.refrigeration_duration is not None:
            raise ValueError("refrigeration_duration requires is_refrigerated")
        return self

    def to_payload(self) -> Dict[str, Any]:
        """
        Wire representation for the inference boundary.

        refrigerationDuration is omitted entirely when not applicable.
        """
        payload: Dict[str, Any] = {
            "image": self.image,
            "prepTime": self.prep_time,
            "currentTime": self.current_time,
            "isRefrigerated": self.is_refrigerated,
        }
        if self.refrigeration_duration is not None:
            payload["refrigerationDuration"] = self.refrigeration_duration
        return payload
