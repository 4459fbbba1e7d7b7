"""Session timer state machine for ZenBell.

States
------
IDLE      Not running, waiting for the user to start.
RUNNING   Session clock ticking once per second.

Transitions
-----------
IDLE → RUNNING                  (start)
RUNNING → RUNNING               (restart, or start while running)
RUNNING → IDLE                  (stop, or elapsed reaches session length)

Cues
----
A ``CuePlan`` lists when the bell rings, keyed by elapsed seconds.  The
cue at ``session_length`` is the terminal cue; it rings out even though
the session has already returned to IDLE.  Every other cue that is
still in flight when ``stop()`` or ``restart()`` runs is cancelled.

Triggers
--------
``on_trigger_event`` rings the bell once for each accepted event.  An
event is accepted when its kind is enabled and the cooldown for that
kind has passed since the last accepted one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable

from PyQt6.QtCore import QObject, pyqtSignal

from ..audio.sounds import PlaybackError, SoundPlayer
from ..scheduler import CancelToken, QtScheduler, Scheduler
from ..triggers.sources import TriggerEvent, TriggerKind


logger = logging.getLogger(__name__)


# ── enums ─────────────────────────────────────────────────────────────────


class SessionStatus(Enum):
    IDLE = "idle"
    RUNNING = "running"


# ── constants ─────────────────────────────────────────────────────────────

DEFAULT_SESSION_LENGTH = 120    # seconds
START_CUE_OFFSET = 7            # first bell, seconds after start
END_CUE_REPEAT = 2              # bells at session end
CUE_GAP_SECONDS = 1.0           # between repeated bells
TRIGGER_COOLDOWN = 3.0          # per trigger kind
MESSAGE_SECONDS = 3.0           # how long "... detected!" stays up
TICK_INTERVAL = 1.0


# ── cue plan ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Cue:
    offset: int      # elapsed seconds
    repeat: int = 1  # bells in a row

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise ValueError(f"cue offset must be >= 0, got {self.offset}")
        if self.repeat < 1:
            raise ValueError(f"cue repeat must be >= 1, got {self.repeat}")


@dataclass(frozen=True)
class CuePlan:
    """Immutable, offset-ordered bell schedule for one session."""

    cues: tuple[Cue, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.cues, key=lambda c: c.offset))
        offsets = [c.offset for c in ordered]
        if len(offsets) != len(set(offsets)):
            raise ValueError(f"duplicate cue offsets in {offsets}")
        object.__setattr__(self, "cues", ordered)

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[int, int]]) -> CuePlan:
        return cls(tuple(Cue(offset, repeat) for offset, repeat in pairs))

    @classmethod
    def standard(
        cls,
        session_length: int,
        *,
        start_offset: int = START_CUE_OFFSET,
        end_repeat: int = END_CUE_REPEAT,
    ) -> CuePlan:
        """One bell shortly after starting, a double bell at the end."""
        cues = [Cue(session_length, end_repeat)]
        if start_offset < session_length:
            cues.append(Cue(start_offset, 1))
        return cls(tuple(cues))

    def at(self, offset: int) -> Cue | None:
        for cue in self.cues:
            if cue.offset == offset:
                return cue
        return None

    @property
    def offsets(self) -> tuple[int, ...]:
        return tuple(c.offset for c in self.cues)

    def __len__(self) -> int:
        return len(self.cues)


# ── timer ─────────────────────────────────────────────────────────────────


class SessionTimer(QObject):
    """Drives one meditation session and rings the bell on schedule.

    The sound player and scheduler are injected.  Nothing here blocks:
    the player reports back through callbacks, so a slow or broken
    sound never delays ``tick``.

    Signals
    -------
    elapsed_changed(elapsed_seconds: int)
        Emitted on every tick and whenever the clock resets.
    state_changed(new_status: SessionStatus)
        Emitted on every state transition.
    cue_fired(cue: Cue)
        Emitted when a cue from the plan is sent to the player.
    cue_failed(error: PlaybackError)
        A cue or trigger bell could not be played.  Non-fatal.
    trigger_accepted(event: TriggerEvent)
        A trigger event passed the enabled/cooldown checks.
    trigger_message_changed(text: str)
        Short-lived feedback text; ``""`` when it expires.
    session_completed(data: dict)
        Emitted when elapsed reaches the session length.  Keys:
        ``session_length``, ``start_time``, ``end_time``, ``cues_fired``.
    """

    elapsed_changed = pyqtSignal(int)
    state_changed = pyqtSignal(object)
    cue_fired = pyqtSignal(object)
    cue_failed = pyqtSignal(object)
    trigger_accepted = pyqtSignal(object)
    trigger_message_changed = pyqtSignal(str)
    session_completed = pyqtSignal(object)

    def __init__(
        self,
        player: SoundPlayer,
        *,
        scheduler: Scheduler | None = None,
        session_length: int = DEFAULT_SESSION_LENGTH,
        cue_plan: CuePlan | None = None,
        enabled_triggers: Iterable[TriggerKind] = (TriggerKind.MANUAL,),
        cooldown: float = TRIGGER_COOLDOWN,
        message_seconds: float = MESSAGE_SECONDS,
        repeat_gap: float = CUE_GAP_SECONDS,
        stop_on_first_failure: bool = True,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        if session_length <= 0:
            raise ValueError(f"session_length must be positive, got {session_length}")

        # ── collaborators ─────────────────────────────────────────────
        self._player = player
        self._scheduler: Scheduler = scheduler or QtScheduler(self)

        # ── configuration ─────────────────────────────────────────────
        self._session_length = session_length
        # a plan built here follows later session_length changes
        self._default_plan = cue_plan is None
        self._cue_plan = (
            cue_plan if cue_plan is not None else CuePlan.standard(session_length)
        )
        self._enabled: set[TriggerKind] = set(enabled_triggers)
        self._cooldown = cooldown
        self._message_seconds = message_seconds
        self._repeat_gap = repeat_gap
        self._stop_on_first_failure = stop_on_first_failure
        self._warn_unreachable_cues()

        # ── session state ─────────────────────────────────────────────
        self._status = SessionStatus.IDLE
        self._elapsed = 0
        self._start_time: datetime | None = None
        self._fired: set[int] = set()

        # ── scheduled work ────────────────────────────────────────────
        self._ticker: CancelToken | None = None
        self._in_flight: list[CancelToken] = []

        # ── triggers ──────────────────────────────────────────────────
        self._last_accepted: dict[TriggerKind, float] = {}
        self._message = ""
        self._message_clear: CancelToken | None = None

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC PROPERTIES
    # ══════════════════════════════════════════════════════════════════

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._status == SessionStatus.RUNNING

    @property
    def elapsed(self) -> int:
        """Seconds since the session started (0 while IDLE)."""
        return self._elapsed

    @property
    def remaining(self) -> int:
        return max(0, self._session_length - self._elapsed)

    @property
    def session_length(self) -> int:
        return self._session_length

    @session_length.setter
    def session_length(self, seconds: int) -> None:
        """Change the length for the next session.  Ignored while running.

        The default plan is rebuilt for the new length.  An explicit plan
        is kept as given; assign ``cue_plan`` to move its end bell.
        """
        if self.is_running:
            return
        if seconds <= 0:
            raise ValueError(f"session_length must be positive, got {seconds}")
        self._session_length = seconds
        if self._default_plan:
            self._cue_plan = CuePlan.standard(seconds)
        self._warn_unreachable_cues()

    @property
    def cue_plan(self) -> CuePlan:
        return self._cue_plan

    @cue_plan.setter
    def cue_plan(self, plan: CuePlan) -> None:
        """Replace the plan for the next session.  Ignored while running."""
        if self.is_running:
            return
        self._cue_plan = plan
        self._default_plan = False
        self._warn_unreachable_cues()

    @property
    def trigger_message(self) -> str:
        return self._message

    @property
    def enabled_triggers(self) -> frozenset[TriggerKind]:
        return frozenset(self._enabled)

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    # ══════════════════════════════════════════════════════════════════
    #  CONTROLS
    # ══════════════════════════════════════════════════════════════════

    def start(self) -> None:
        """Start a session.  While running this is a restart."""
        if self.is_running:
            self.restart()
            return
        self._begin()

    def restart(self) -> None:
        """Throw away the current run and start a fresh one."""
        self.stop()
        self._begin()

    def stop(self) -> None:
        """Return to IDLE, cancelling the clock and every pending cue."""
        self._cancel_ticker()
        self._cancel_in_flight()
        self._start_time = None
        self._reset_clock()
        self._set_status(SessionStatus.IDLE)

    def tick(self) -> None:
        """Advance the session clock by one second."""
        if not self.is_running:
            return
        self._elapsed += 1
        self.elapsed_changed.emit(self._elapsed)

        if self._elapsed >= self._session_length:
            terminal = self._cue_plan.at(self._session_length)
            if terminal is not None and terminal.offset not in self._fired:
                self._fire(terminal)
            self._finish()
            return

        cue = self._cue_plan.at(self._elapsed)
        if cue is not None and cue.offset not in self._fired:
            self._fire(cue)

    # ── triggers ──────────────────────────────────────────────────────

    def enable(self, kind: TriggerKind) -> None:
        self._enabled.add(kind)

    def disable(self, kind: TriggerKind) -> None:
        self._enabled.discard(kind)

    def is_enabled(self, kind: TriggerKind) -> bool:
        return kind in self._enabled

    def manual_trigger(self) -> bool:
        return self.on_trigger_event(
            TriggerEvent(TriggerKind.MANUAL, self._scheduler.now())
        )

    def on_trigger_event(self, event: TriggerEvent) -> bool:
        """Ring once for *event* unless its kind is off or cooling down.

        Returns True when the event was accepted.
        """
        if event.kind not in self._enabled:
            return False
        last = self._last_accepted.get(event.kind)
        if last is not None and event.timestamp - last < self._cooldown:
            return False

        self._last_accepted[event.kind] = event.timestamp
        logger.info("%s trigger accepted", event.kind.label)
        self.trigger_accepted.emit(event)
        self.show_message(f"{event.kind.label} detected!")
        try:
            self._player.play_once(on_done=self._on_play_done)
        except PlaybackError as exc:
            self._report_failure(exc)
        return True

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL: session mechanics
    # ══════════════════════════════════════════════════════════════════

    def _begin(self) -> None:
        self._cancel_in_flight()
        self._fired = set()
        self._elapsed = 0
        self._start_time = datetime.now()
        self._set_status(SessionStatus.RUNNING)
        self.elapsed_changed.emit(0)
        self._ticker = self._scheduler.call_every(TICK_INTERVAL, self.tick)

        opening = self._cue_plan.at(0)
        if opening is not None:
            self._fire(opening)

    def _finish(self) -> None:
        self._cancel_ticker()
        end_time = datetime.now()
        self.session_completed.emit({
            "session_length": self._session_length,
            "start_time": self._start_time,
            "end_time": end_time,
            "cues_fired": len(self._fired),
        })
        logger.info("Session of %ds complete", self._session_length)
        self._start_time = None
        self._reset_clock()
        self._set_status(SessionStatus.IDLE)

    def _fire(self, cue: Cue) -> None:
        self._fired.add(cue.offset)
        self.cue_fired.emit(cue)
        logger.debug("Cue at %ds (x%d)", cue.offset, cue.repeat)
        try:
            if cue.repeat == 1:
                self._player.play_once(on_done=self._on_play_done)
            else:
                token = self._player.play_repeated(
                    cue.repeat,
                    self._repeat_gap,
                    on_done=self._on_play_done,
                    stop_on_first_failure=self._stop_on_first_failure,
                )
                self._in_flight.append(token)
        except PlaybackError as exc:
            self._report_failure(exc)

    def _on_play_done(self, error: PlaybackError | None) -> None:
        if error is not None:
            self._report_failure(error)

    def _report_failure(self, error: PlaybackError) -> None:
        logger.warning("Bell failed (%s): %s", error.reason, error)
        self.cue_failed.emit(error)

    def _cancel_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _cancel_in_flight(self) -> None:
        for token in self._in_flight:
            token.cancel()
        self._in_flight.clear()

    def _reset_clock(self) -> None:
        if self._elapsed != 0:
            self._elapsed = 0
            self.elapsed_changed.emit(0)

    def _set_status(self, new_status: SessionStatus) -> None:
        if new_status == self._status:
            return
        self._status = new_status
        self.state_changed.emit(new_status)

    def _warn_unreachable_cues(self) -> None:
        late = [o for o in self._cue_plan.offsets if o > self._session_length]
        if late:
            logger.warning(
                "Cues at %s lie beyond the %ds session and will never ring",
                late, self._session_length,
            )

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL: trigger feedback
    # ══════════════════════════════════════════════════════════════════

    def show_message(self, text: str) -> None:
        """Show feedback text for ``message_seconds``, then clear it."""
        if self._message_clear is not None:
            self._message_clear.cancel()
        self._message = text
        self.trigger_message_changed.emit(text)
        self._message_clear = self._scheduler.call_later(
            self._message_seconds, self._clear_message
        )

    def _clear_message(self) -> None:
        self._message_clear = None
        self._message = ""
        self.trigger_message_changed.emit("")
