"""Timer package."""

from .engine import (
    SessionTimer,
    SessionStatus,
    Cue,
    CuePlan,
    DEFAULT_SESSION_LENGTH,
    START_CUE_OFFSET,
    END_CUE_REPEAT,
    CUE_GAP_SECONDS,
    TRIGGER_COOLDOWN,
    MESSAGE_SECONDS,
)

__all__ = [
    "SessionTimer",
    "SessionStatus",
    "Cue",
    "CuePlan",
    "DEFAULT_SESSION_LENGTH",
    "START_CUE_OFFSET",
    "END_CUE_REPEAT",
    "CUE_GAP_SECONDS",
    "TRIGGER_COOLDOWN",
    "MESSAGE_SECONDS",
]
