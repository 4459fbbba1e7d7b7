"""Bell synthesis and playback using numpy + QSoundEffect.

The bell is generated programmatically as a WAV file (sine partials
shaped by an ADSR envelope) and cached to disk, so no audio assets ship
with the app.

Playback contract
-----------------
``SoundPlayer.play_once(on_done)`` starts one cue without blocking.  An
immediate failure (missing asset, no permission) raises
``PlaybackError``; a failure discovered while loading is reported
through ``on_done(error)``.  ``on_done(None)`` means the cue finished.

``SoundPlayer.play_repeated(count, gap)`` chains ``play_once`` calls
with a gap between them and returns a ``CancelToken`` for the rest of
the sequence.
"""

from __future__ import annotations

import io
import logging
import wave
from pathlib import Path
from typing import Callable

import numpy as np

from PyQt6.QtCore import QObject, QUrl
from PyQt6.QtMultimedia import QSoundEffect

from ..scheduler import CancelToken, Scheduler


logger = logging.getLogger(__name__)


# ── paths ────────────────────────────────────────────────────────────────

APP_SUPPORT_DIR = Path.home() / "Library" / "Application Support" / "ZenBell"
SOUNDS_DIR = APP_SUPPORT_DIR / "sounds"
BELL_FILENAME = "bell.wav"

SAMPLE_RATE = 44100

# Singing-bowl partials: (frequency Hz, amplitude)
BELL_PARTIALS = (
    (528.0, 0.40),
    (1056.0, 0.12),
    (1584.0, 0.06),
    (2640.0, 0.03),
)
BELL_DURATION = 2.5  # seconds


# ── errors ───────────────────────────────────────────────────────────────


class PlaybackError(Exception):
    """A cue could not be played.  Never fatal to a session."""

    MISSING = "missing"
    DECODE = "decode"
    PERMISSION = "permission"

    def __init__(self, message: str, reason: str = DECODE) -> None:
        super().__init__(message)
        self.reason = reason


DoneCallback = Callable[[PlaybackError | None], None]


# ═══════════════════════════════════════════════════════════════════════════
#  WAV SYNTHESIS HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def _make_envelope(
    length: int,
    attack: int = 200,
    decay: int = 400,
    sustain_level: float = 0.7,
    release: int = 800,
) -> np.ndarray:
    """ADSR envelope (all durations in samples)."""
    env = np.ones(length, dtype=np.float64)
    a = min(attack, length)
    if a > 0:
        env[:a] = np.linspace(0.0, 1.0, a)
    d_end = min(a + decay, length)
    if decay > 0 and d_end > a:
        env[a:d_end] = np.linspace(1.0, sustain_level, d_end - a)
    s_end = max(length - release, d_end)
    if s_end > d_end:
        env[d_end:s_end] = sustain_level
    if release > 0 and s_end < length:
        env[s_end:] = np.linspace(sustain_level, 0.0, length - s_end)
    return env


def _sine(freq: float, duration_s: float) -> np.ndarray:
    t = np.linspace(0, duration_s, int(SAMPLE_RATE * duration_s), endpoint=False)
    return np.sin(2 * np.pi * freq * t)


def _to_wav_bytes(samples: np.ndarray) -> bytes:
    """Convert a float64 numpy array (-1..1) to 16-bit PCM WAV bytes."""
    samples = np.clip(samples, -1.0, 1.0)
    int_samples = (samples * 32767).astype(np.int16)

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(SAMPLE_RATE)
        wf.writeframes(int_samples.tobytes())
    return buf.getvalue()


def generate_bell() -> bytes:
    """Meditation bell: quick strike, long exponential ring-out.

    Higher partials die away faster than the fundamental, which is what
    makes it sound like a struck bowl rather than an organ tone.
    """
    n = int(SAMPLE_RATE * BELL_DURATION)
    t = np.arange(n) / SAMPLE_RATE
    combined = np.zeros(n, dtype=np.float64)
    for i, (freq, amp) in enumerate(BELL_PARTIALS):
        damping = 1.2 + i * 1.5
        combined += _sine(freq, BELL_DURATION)[:n] * amp * np.exp(-damping * t)
    env = _make_envelope(
        n,
        attack=int(SAMPLE_RATE * 0.005),
        decay=int(SAMPLE_RATE * 0.2),
        sustain_level=0.8,
        release=int(SAMPLE_RATE * 0.4),
    )
    return _to_wav_bytes(combined * env)


def ensure_bell_file(sounds_dir: Path | None = None) -> Path:
    """Write the bell WAV to *sounds_dir* if missing and return its path."""
    sounds_dir = sounds_dir or SOUNDS_DIR
    sounds_dir.mkdir(parents=True, exist_ok=True)
    path = sounds_dir / BELL_FILENAME
    if not path.exists():
        path.write_bytes(generate_bell())
        logger.debug("Generated bell sound at %s", path)
    return path


# ═══════════════════════════════════════════════════════════════════════════
#  PLAYERS
# ═══════════════════════════════════════════════════════════════════════════


class SoundPlayer:
    """Base class for cue players.

    Subclasses implement ``play_once``; ``play_repeated`` is built on
    top of it using the scheduler for the gaps.
    """

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler

    def play_once(self, on_done: DoneCallback | None = None) -> None:
        raise NotImplementedError

    def play_repeated(
        self,
        count: int,
        gap_seconds: float,
        *,
        on_done: DoneCallback | None = None,
        stop_on_first_failure: bool = True,
    ) -> CancelToken:
        """Play *count* cues, waiting *gap_seconds* after each one ends.

        Cancelling the returned token stops the remaining plays and
        suppresses ``on_done``.
        """
        if count < 1:
            raise ValueError(f"count must be at least 1, got {count}")

        token = CancelToken()
        last_error: list[PlaybackError] = []

        def complete() -> None:
            if on_done is not None:
                on_done(last_error[-1] if last_error else None)

        def play(index: int) -> None:
            if token.cancelled:
                return
            try:
                self.play_once(on_done=lambda error: finished(index, error))
            except PlaybackError as exc:
                finished(index, exc)

        def finished(index: int, error: PlaybackError | None) -> None:
            if token.cancelled:
                return
            if error is not None:
                logger.warning(
                    "Cue %d/%d failed (%s): %s", index + 1, count, error.reason, error
                )
                last_error.append(error)
                if stop_on_first_failure:
                    complete()
                    return
            if index + 1 >= count:
                complete()
                return
            pending = self._scheduler.call_later(gap_seconds, lambda: play(index + 1))
            token.link(pending.cancel)

        play(0)
        return token


class BellPlayer(SoundPlayer):
    """Plays the synthesized bell through ``QSoundEffect``.

    Each play creates its own effect and releases it as soon as the
    sound ends or fails to load, so nothing accumulates across
    repeated plays.

    Usage::

        player = BellPlayer(scheduler, parent=self)
        player.set_volume(70)
        player.play_repeated(2, 1.0)
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        sounds_dir: Path | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(scheduler)
        self._parent = parent
        self._enabled = True
        self._volume = 0.7  # 0.0–1.0
        self._path = ensure_bell_file(sounds_dir)
        self._active: set[QSoundEffect] = set()

    # ── public API ────────────────────────────────────────────────────

    def set_volume(self, level: int) -> None:
        """Set volume (0-100).  Updates effects that are still playing."""
        self._volume = max(0, min(level, 100)) / 100.0
        for effect in self._active:
            effect.setVolume(self._volume)

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    @property
    def volume(self) -> int:
        return round(self._volume * 100)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def path(self) -> Path:
        return self._path

    @property
    def active_count(self) -> int:
        """Effects currently loaded (playing or loading)."""
        return len(self._active)

    def _create_effect(self) -> QSoundEffect:
        return QSoundEffect(self._parent)

    def play_once(self, on_done: DoneCallback | None = None) -> None:
        if not self._enabled:
            if on_done is not None:
                on_done(None)
            return
        if not self._path.is_file():
            raise PlaybackError(
                f"bell sound missing: {self._path}", PlaybackError.MISSING
            )

        effect = self._create_effect()
        self._active.add(effect)

        def release(error: PlaybackError | None) -> None:
            if effect not in self._active:
                return
            self._active.discard(effect)
            effect.stop()
            effect.deleteLater()
            if on_done is not None:
                on_done(error)

        def on_status() -> None:
            if effect.status() == QSoundEffect.Status.Error:
                release(PlaybackError(
                    f"could not load {self._path.name}", PlaybackError.DECODE
                ))

        def on_playing() -> None:
            if not effect.isPlaying():
                release(None)

        effect.statusChanged.connect(on_status)
        effect.playingChanged.connect(on_playing)
        effect.setVolume(self._volume)
        effect.setSource(QUrl.fromLocalFile(str(self._path)))
        effect.play()
