"""Display-ready snapshot of a session state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from foodfresh.application.workflow.states import (
    ANALYZABLE_STATES,
    Failed,
    Result,
    SessionState,
)
from foodfresh.domain.freshness.models import FoodMetadata
from foodfresh.domain.freshness.presentation import ResultView, render_result


@dataclass(frozen=True, slots=True)
class StateView:
    name: str
    loading: bool
    can_analyze: bool
    has_image: bool
    metadata: FoodMetadata
    image_data_uri: Optional[str] = None
    error_message: Optional[str] = None
    result_view: Optional[ResultView] = None


def render_state(state: SessionState) -> StateView:
    """
    Flatten a session state for display.

    Example:
        >>> view = render_state(session.state)
        >>> view.name, view.can_analyze
        ('image_ready', True)
    """
    image = state.image
    return StateView(
        name=state.name,
        loading=state.loading,
        can_analyze=isinstance(state, ANALYZABLE_STATES),
        has_image=image is not None,
        metadata=state.metadata,
        image_data_uri=image.data_uri if image is not None else None,
        error_message=state.message if isinstance(state, Failed) else None,
        result_view=render_result(state.result) if isinstance(state, Result) else None,
    )
