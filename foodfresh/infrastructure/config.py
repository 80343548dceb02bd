"""Configuration utilities for infrastructure layer."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB


def load_env(env_path: Optional[Path] = None) -> bool:
    """
    Load variables from a .env file into the process environment.

    Existing environment variables win over .env values.

    Args:
        env_path: Explicit .env path (default: search from cwd)

    Returns:
        True if a file was loaded
    """
    if env_path is not None:
        return load_dotenv(env_path)
    return load_dotenv()


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _flag_enabled(raw: Optional[str]) -> bool:
    return (raw or "").strip().lower() in {"1", "true", "yes", "on"}


def get_inference_provider() -> str:
    """
    Inference provider name.

    Returns:
        FOODFRESH_INFERENCE_PROVIDER lowercased, defaults to "stub"
    """
    return os.getenv("FOODFRESH_INFERENCE_PROVIDER", "stub").strip().lower()


def get_openai_api_key() -> Optional[str]:
    """OpenAI API key, or None if unset/blank."""
    key = os.getenv("OPENAI_API_KEY")
    return key.strip() if key and key.strip() else None


def get_openai_vision_model() -> str:
    """Vision model name (OPENAI_VISION_MODEL, default gpt-4o-mini)."""
    return os.getenv("OPENAI_VISION_MODEL", "gpt-4o-mini")


def get_inference_timeout_s() -> float:
    """Inference request timeout in seconds (default 30)."""
    return _get_float("FOODFRESH_INFERENCE_TIMEOUT_S", 30.0)


def get_clock_refresh_seconds() -> float:
    """Interval between current-time refreshes (default 10s)."""
    value = _get_float("FOODFRESH_CLOCK_REFRESH_SECONDS", 10.0)
    if value <= 0:
        raise ValueError("FOODFRESH_CLOCK_REFRESH_SECONDS must be positive")
    return value


def get_analysis_retries() -> int:
    """Automatic retries after a transport failure (default 0)."""
    return max(0, _get_int("FOODFRESH_ANALYSIS_RETRIES", 0))


def get_max_image_bytes() -> int:
    """Upper bound on acquired image size (default 5MB)."""
    return _get_int("FOODFRESH_MAX_IMAGE_BYTES", DEFAULT_MAX_IMAGE_BYTES)


def get_normalize_to_jpeg() -> bool:
    """Whether acquired images are re-encoded as JPEG."""
    return _flag_enabled(os.getenv("FOODFRESH_NORMALIZE_JPEG"))


def get_log_level() -> str:
    """Log level name (LOG_LEVEL, default INFO)."""
    return os.getenv("LOG_LEVEL", "INFO").upper()
