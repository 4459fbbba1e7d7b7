"""Trigger sources: things that report discrete "detected" events.

A source is polled by ``TriggerMonitor`` on its own cadence.  Swapping
the placeholder ``RandomTrigger`` for a real clap or gesture detector
only means writing another ``TriggerSource`` subclass.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import numpy as np


# ── constants ─────────────────────────────────────────────────────────────

DETECTION_PROBABILITY = 0.08  # one poll in ~12 fires
POLL_INTERVAL = 1.0           # seconds
MANUAL_POLL_INTERVAL = 0.1


# ── types ─────────────────────────────────────────────────────────────────


class TriggerKind(Enum):
    MANUAL = "manual"
    CLAP = "clap"
    HAND = "hand"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class TriggerEvent:
    kind: TriggerKind
    timestamp: float  # scheduler clock, seconds


class PermissionDenied(Exception):
    """The capability behind a trigger source (microphone, camera) is unavailable."""

    def __init__(self, kind: TriggerKind) -> None:
        super().__init__(f"{kind.label} trigger permission denied")
        self.kind = kind


# ── sources ───────────────────────────────────────────────────────────────


class TriggerSource:
    """Base class for all trigger sources.

    Subclasses implement ``_detect()``.  While permission is denied,
    ``poll()`` raises ``PermissionDenied`` and never produces events.
    """

    def __init__(
        self,
        kind: TriggerKind,
        clock: Callable[[], float],
        *,
        poll_interval: float = POLL_INTERVAL,
        permission_granted: bool = True,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self.kind = kind
        self.poll_interval = poll_interval
        self._clock = clock
        self._permission_granted = permission_granted

    @property
    def permission_granted(self) -> bool:
        return self._permission_granted

    def grant(self) -> None:
        self._permission_granted = True

    def deny(self) -> None:
        self._permission_granted = False

    def poll(self) -> TriggerEvent | None:
        if not self._permission_granted:
            raise PermissionDenied(self.kind)
        if self._detect():
            return TriggerEvent(self.kind, self._clock())
        return None

    def _detect(self) -> bool:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind.value}>"


class ManualTrigger(TriggerSource):
    """Fires once per ``fire()`` call (e.g. a button press)."""

    def __init__(
        self,
        clock: Callable[[], float],
        *,
        poll_interval: float = MANUAL_POLL_INTERVAL,
    ) -> None:
        super().__init__(TriggerKind.MANUAL, clock, poll_interval=poll_interval)
        self._queued: deque[float] = deque()

    def fire(self) -> None:
        self._queued.append(self._clock())

    @property
    def queued(self) -> int:
        return len(self._queued)

    def poll(self) -> TriggerEvent | None:
        if not self._permission_granted:
            raise PermissionDenied(self.kind)
        if not self._queued:
            return None
        return TriggerEvent(self.kind, self._queued.popleft())


class RandomTrigger(TriggerSource):
    """Placeholder detector: fires at random with a fixed probability.

    This does no signal processing at all.  It stands in for a clap or
    hand detector until a real one exists.
    """

    def __init__(
        self,
        kind: TriggerKind,
        clock: Callable[[], float],
        *,
        probability: float = DETECTION_PROBABILITY,
        poll_interval: float = POLL_INTERVAL,
        rng: np.random.Generator | None = None,
        permission_granted: bool = True,
    ) -> None:
        super().__init__(
            kind,
            clock,
            poll_interval=poll_interval,
            permission_granted=permission_granted,
        )
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"probability must be within [0, 1], got {probability}")
        self.probability = probability
        self._rng = rng if rng is not None else np.random.default_rng()

    def _detect(self) -> bool:
        return bool(self._rng.random() < self.probability)
