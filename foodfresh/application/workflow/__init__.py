from .session import (
    DEFAULT_FAILURE_MESSAGE,
    TRANSPORT_FAILURE_MESSAGE,
    FreshnessSession,
    failure_message_for,
)
from .states import ANALYZABLE_STATES, Analyzing, Failed, Idle, ImageReady, Result, SessionState
from .view import StateView, render_state

__all__ = [
    "DEFAULT_FAILURE_MESSAGE",
    "TRANSPORT_FAILURE_MESSAGE",
    "FreshnessSession",
    "failure_message_for",
    "ANALYZABLE_STATES",
    "Analyzing",
    "Failed",
    "Idle",
    "ImageReady",
    "Result",
    "SessionState",
    "StateView",
    "render_state",
]
