"""Application settings with JSON persistence.

Settings are stored at:
    ~/Library/Application Support/ZenBell/settings.json

Only preferences live here.  Session state is never saved; every launch
starts IDLE.

Usage::

    settings = load_settings()
    settings.session_length = 20 * 60
    save_settings(settings)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path

from .timer.engine import (
    CuePlan,
    CUE_GAP_SECONDS,
    DEFAULT_SESSION_LENGTH,
    END_CUE_REPEAT,
    MESSAGE_SECONDS,
    START_CUE_OFFSET,
    TRIGGER_COOLDOWN,
)
from .triggers.sources import DETECTION_PROBABILITY, POLL_INTERVAL, TriggerKind


logger = logging.getLogger(__name__)

APP_SUPPORT_DIR = Path.home() / "Library" / "Application Support" / "ZenBell"
SETTINGS_PATH = APP_SUPPORT_DIR / "settings.json"


@dataclass
class Settings:
    """All user-configurable preferences."""

    # ── session ───────────────────────────────────────────────────────
    session_length: int = DEFAULT_SESSION_LENGTH   # seconds
    start_cue_offset: int = START_CUE_OFFSET
    end_cue_repeat: int = END_CUE_REPEAT
    cue_gap: float = CUE_GAP_SECONDS

    # ── triggers ──────────────────────────────────────────────────────
    clap_trigger_enabled: bool = False
    hand_trigger_enabled: bool = False
    trigger_cooldown: float = TRIGGER_COOLDOWN
    message_seconds: float = MESSAGE_SECONDS
    detection_probability: float = DETECTION_PROBABILITY
    poll_interval: float = POLL_INTERVAL

    # ── audio ─────────────────────────────────────────────────────────
    sound_enabled: bool = True
    sound_volume: int = 70                          # 0-100
    stop_on_first_failure: bool = True

    def validate(self) -> None:
        """Raise ValueError/TypeError for values the timer would reject."""
        if isinstance(self.session_length, bool) or not isinstance(self.session_length, int):
            raise TypeError(f"session_length must be an int, got {self.session_length!r}")
        if self.session_length <= 0:
            raise ValueError(f"session_length must be positive, got {self.session_length}")
        self.cue_plan()
        if self.cue_gap < 0:
            raise ValueError(f"cue_gap must be >= 0, got {self.cue_gap}")
        for name in ("trigger_cooldown", "message_seconds", "poll_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if not 0.0 <= self.detection_probability <= 1.0:
            raise ValueError(
                f"detection_probability must be within [0, 1], got {self.detection_probability}"
            )

    def cue_plan(self) -> CuePlan:
        return CuePlan.standard(
            self.session_length,
            start_offset=self.start_cue_offset,
            end_repeat=self.end_cue_repeat,
        )

    def enabled_triggers(self) -> set[TriggerKind]:
        kinds = {TriggerKind.MANUAL}
        if self.clap_trigger_enabled:
            kinds.add(TriggerKind.CLAP)
        if self.hand_trigger_enabled:
            kinds.add(TriggerKind.HAND)
        return kinds

    def set_trigger_enabled(self, kind: TriggerKind, enabled: bool) -> None:
        if kind == TriggerKind.CLAP:
            self.clap_trigger_enabled = enabled
        elif kind == TriggerKind.HAND:
            self.hand_trigger_enabled = enabled


def load_settings() -> Settings:
    """Load settings from disk, falling back to defaults."""
    try:
        if SETTINGS_PATH.exists():
            data = json.loads(SETTINGS_PATH.read_text(encoding="utf-8"))
            # Only use keys that exist in the dataclass
            valid_keys = {f.name for f in fields(Settings)}
            filtered = {k: v for k, v in data.items() if k in valid_keys}
            settings = Settings(**filtered)
            settings.validate()
            return settings
    except (OSError, ValueError, TypeError, AttributeError) as exc:
        logger.warning("Ignoring unreadable settings at %s: %s", SETTINGS_PATH, exc)
    return Settings()


def save_settings(settings: Settings) -> None:
    """Write settings to disk as JSON."""
    APP_SUPPORT_DIR.mkdir(parents=True, exist_ok=True)
    SETTINGS_PATH.write_text(
        json.dumps(asdict(settings), indent=2) + "\n",
        encoding="utf-8",
    )
