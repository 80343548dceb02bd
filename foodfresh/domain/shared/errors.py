"""
Domain exceptions.

Typed exceptions for explicit error handling.
Every error here is recoverable: the session always returns to an
interactive state.
"""

from __future__ import annotations


# ═══════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════


class DomainError(Exception):
    """
    Base exception for all domain errors.

    All domain-specific exceptions inherit from this.
    Allows catching all domain errors with single except clause.
    """

    pass


# ═══════════════════════════════════════════════════════════
# FRESHNESS DOMAIN EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class FreshnessDomainError(DomainError):
    """Base exception for freshness analysis domain."""

    pass


class MissingImageError(FreshnessDomainError):
    """
    Analysis requested without an image.

    Raised when:
    - build_request() is called before any image was acquired
    - The image was cleared before building the request

    Example:
        >>> raise MissingImageError("An image is required before analysis")
    """

    pass


class UnsupportedFormatError(FreshnessDomainError):
    """
    Input is not a recognized image type.

    Raised when:
    - Declared content type is not an allowed image MIME type
    - Bytes cannot be decoded as an image
    - Decoded format is outside the allowed set (e.g. TIFF, BMP)

    Example:
        >>> raise UnsupportedFormatError("Unsupported image type: image/tiff")
    """

    pass


class ImageTooLargeError(UnsupportedFormatError):
    """
    Image exceeds the configured size limit.

    Example:
        >>> raise ImageTooLargeError("Image too large: 7340032 bytes (max 5242880)")
    """

    pass


class MalformedResponseError(FreshnessDomainError):
    """
    Inference payload is structurally unparsable.

    Raised when:
    - Response text contains no JSON object
    - JSON root is not an object

    Malformed-but-present fields never raise; they are coerced.

    Example:
        >>> raise MalformedResponseError("ROOT_NOT_OBJECT")
    """

    pass


# ═══════════════════════════════════════════════════════════
# EXTERNAL SERVICE EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ExternalServiceError(DomainError):
    """
    External service call failed.

    Base class for inference boundary errors.
    """

    pass


class TransportError(ExternalServiceError):
    """
    Network or connectivity failure reaching the inference service.

    Raised when:
    - Connection refused / DNS failure
    - Request timed out

    Example:
        >>> raise TransportError("Connection error: timed out")
    """

    pass


class ServiceError(ExternalServiceError):
    """
    Inference service reported a failure.

    Raised when:
    - Non-2xx status from the service
    - Rate limit exceeded
    - Empty or refused completion

    Example:
        >>> raise ServiceError("Inference service error 500")
    """

    pass
