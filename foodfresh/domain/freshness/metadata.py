"""
Metadata model.

Holds the user-supplied context for an analysis and the live clock.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

import structlog

from foodfresh.domain.freshness.models import FoodMetadata

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

DEFAULT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def system_clock() -> datetime:
    """Local wall-clock time."""
    return datetime.now()


def format_time(clock: Clock, time_format: str = DEFAULT_TIME_FORMAT) -> str:
    """Render the clock's current time."""
    return clock().strftime(time_format)


class MetadataModel:
    """
    Mutable holder for the current FoodMetadata.

    FoodMetadata itself is immutable; every update swaps in a new instance,
    so observers never see a half-applied change.

    Example:
        >>> model = MetadataModel()
        >>> model.toggle_refrigerated().refrigeration_duration
        ''
        >>> model.set_refrigeration_duration("2 days").refrigeration_duration
        '2 days'
        >>> model.toggle_refrigerated().refrigeration_duration
        ''
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        time_format: str = DEFAULT_TIME_FORMAT,
    ) -> None:
        """
        Initialize with default metadata.

        Args:
            clock: Source of "now" (injectable for tests)
            time_format: strftime format for current_time
        """
        self.clock: Clock = clock or system_clock
        self.time_format = time_format
        self._current = self._defaults()

    def _defaults(self) -> FoodMetadata:
        return FoodMetadata(current_time=format_time(self.clock, self.time_format))

    @property
    def current(self) -> FoodMetadata:
        """Current metadata snapshot."""
        return self._current

    def set_prep_time(self, prep_time: str) -> FoodMetadata:
        """Set preparation time (stored as entered)."""
        self._current = self._current.model_copy(update={"prep_time": prep_time})
        return self._current

    def toggle_refrigerated(self) -> FoodMetadata:
        """
        Flip the refrigeration flag.

        Turning it off clears refrigeration_duration so a stale value
        can never be submitted.
        """
        refrigerated = not self._current.is_refrigerated
        update: dict[str, object] = {"is_refrigerated": refrigerated}
        if not refrigerated:
            update["refrigeration_duration"] = ""
        self._current = self._current.model_copy(update=update)
        logger.debug("Refrigeration toggled", is_refrigerated=refrigerated)
        return self._current

    def set_refrigeration_duration(self, duration: str) -> FoodMetadata:
        """Set refrigeration duration; ignored while not refrigerated."""
        if not self._current.is_refrigerated:
            logger.debug("Ignoring refrigeration duration while not refrigerated")
            return self._current
        self._current = self._current.model_copy(update={"refrigeration_duration": duration})
        return self._current

    def refresh_current_time(self) -> FoodMetadata:
        """Update current_time from the clock."""
        self._current = self._current.model_copy(
            update={"current_time": format_time(self.clock, self.time_format)}
        )
        return self._current

    def reset(self) -> FoodMetadata:
        """Restore defaults with a fresh clock reading."""
        self._current = self._defaults()
        return self._current
