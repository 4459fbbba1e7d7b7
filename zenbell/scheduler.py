"""Cancellable scheduling for ZenBell.

Every delayed or periodic callback in the app goes through a
``Scheduler`` and hands back a ``CancelToken``.  Cancelling the token
guarantees the callback never runs again, which is what lets
``SessionTimer.stop()`` and ``restart()`` drop stale cues.

Implementations
---------------
QtScheduler       Real clock, runs callbacks on the Qt event loop.
VirtualScheduler  Hand-cranked clock for tests and simulations.
"""

from __future__ import annotations

import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Callable

from PyQt6.QtCore import QElapsedTimer, QObject, QTimer


# ── token ─────────────────────────────────────────────────────────────────


class CancelToken:
    """Handle for a scheduled callback (or any cancellable operation)."""

    __slots__ = ("_cancelled", "_on_cancel")

    def __init__(self) -> None:
        self._cancelled = False
        self._on_cancel: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Cancel once.  Further calls are no-ops."""
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._on_cancel = self._on_cancel, []
        for callback in callbacks:
            callback()

    def link(self, callback: Callable[[], None]) -> None:
        """Run *callback* when this token is cancelled.

        Runs immediately if the token is already cancelled.
        """
        if self._cancelled:
            callback()
        else:
            self._on_cancel.append(callback)


# ── interface ─────────────────────────────────────────────────────────────


class Scheduler(ABC):
    """Single-threaded clock with cancellable timers."""

    @abstractmethod
    def now(self) -> float:
        """Seconds on this scheduler's monotonic clock."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> CancelToken:
        """Run *callback* once after *delay* seconds."""

    @abstractmethod
    def call_every(self, interval: float, callback: Callable[[], None]) -> CancelToken:
        """Run *callback* every *interval* seconds until cancelled."""


# ── Qt implementation ─────────────────────────────────────────────────────


class QtScheduler(Scheduler):
    """Scheduler backed by ``QTimer``.

    Callbacks run on the thread owning the Qt event loop, so anything
    they mutate needs no locking.
    """

    def __init__(self, parent: QObject | None = None) -> None:
        self._parent = parent
        self._clock = QElapsedTimer()
        self._clock.start()
        self._timers: dict[int, QTimer] = {}
        self._ids = itertools.count()

    def now(self) -> float:
        return self._clock.elapsed() / 1000.0

    def call_later(self, delay: float, callback: Callable[[], None]) -> CancelToken:
        return self._arm(delay, callback, single_shot=True)

    def call_every(self, interval: float, callback: Callable[[], None]) -> CancelToken:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        return self._arm(interval, callback, single_shot=False)

    @property
    def active_timers(self) -> int:
        return len(self._timers)

    def _arm(
        self, seconds: float, callback: Callable[[], None], *, single_shot: bool
    ) -> CancelToken:
        key = next(self._ids)
        timer = QTimer(self._parent)
        timer.setSingleShot(single_shot)
        timer.setInterval(max(0, round(seconds * 1000)))
        self._timers[key] = timer

        token = CancelToken()

        def release() -> None:
            t = self._timers.pop(key, None)
            if t is not None:
                t.stop()
                t.deleteLater()

        def fire() -> None:
            if token.cancelled:
                return
            if single_shot:
                release()
            callback()

        token.link(release)
        timer.timeout.connect(fire)
        timer.start()
        return token


# ── virtual implementation ────────────────────────────────────────────────


class VirtualScheduler(Scheduler):
    """Deterministic scheduler whose clock only moves on ``advance()``.

    Callbacks due at the same instant run in the order they were
    scheduled.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, Callable[[], None], float | None, CancelToken]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> CancelToken:
        return self._push(delay, callback, None, CancelToken())

    def call_every(self, interval: float, callback: Callable[[], None]) -> CancelToken:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        return self._push(interval, callback, interval, CancelToken())

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running every callback that falls due."""
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, callback, interval, token = heapq.heappop(self._queue)
            if token.cancelled:
                continue
            self._now = due
            if interval is not None:
                self._push(interval, callback, interval, token)
            callback()
        self._now = target

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that can still run."""
        return sum(1 for entry in self._queue if not entry[4].cancelled)

    def _push(
        self,
        delay: float,
        callback: Callable[[], None],
        interval: float | None,
        token: CancelToken,
    ) -> CancelToken:
        due = self._now + max(0.0, delay)
        heapq.heappush(self._queue, (due, next(self._seq), callback, interval, token))
        return token
