"""Poll loop that feeds trigger events into a consumer."""

from __future__ import annotations

import logging
from typing import Callable

from ..scheduler import CancelToken, Scheduler
from .sources import PermissionDenied, TriggerEvent, TriggerKind, TriggerSource


logger = logging.getLogger(__name__)


class TriggerMonitor:
    """Runs one periodic poll per attached source on a shared scheduler.

    Events go to *sink* (normally ``SessionTimer.on_trigger_event``).
    A source that raises ``PermissionDenied`` is reported unavailable
    through *on_availability* and stays silent until a later poll
    succeeds again.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        sink: Callable[[TriggerEvent], object],
        *,
        on_availability: Callable[[TriggerKind, bool], None] | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._sink = sink
        self._on_availability = on_availability
        self._sources: dict[TriggerKind, TriggerSource] = {}
        self._loops: dict[TriggerKind, CancelToken] = {}
        self._unavailable: set[TriggerKind] = set()
        self._running = False

    # ── public API ────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._running

    @property
    def sources(self) -> dict[TriggerKind, TriggerSource]:
        return dict(self._sources)

    def is_available(self, kind: TriggerKind) -> bool:
        return kind in self._sources and kind not in self._unavailable

    def attach(self, source: TriggerSource) -> None:
        """Add (or replace) the source for ``source.kind``."""
        self.detach(source.kind)
        self._sources[source.kind] = source
        if not source.permission_granted:
            self._unavailable.add(source.kind)
        if self._running:
            self._start_loop(source)

    def detach(self, kind: TriggerKind) -> None:
        loop = self._loops.pop(kind, None)
        if loop is not None:
            loop.cancel()
        self._sources.pop(kind, None)
        self._unavailable.discard(kind)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        for source in self._sources.values():
            self._start_loop(source)

    def stop(self) -> None:
        self._running = False
        for loop in self._loops.values():
            loop.cancel()
        self._loops.clear()

    def poll_now(self, kind: TriggerKind) -> TriggerEvent | None:
        """Poll one source immediately, outside its regular cadence."""
        source = self._sources.get(kind)
        if source is None:
            return None
        return self._poll(source)

    # ── internal ──────────────────────────────────────────────────────

    def _start_loop(self, source: TriggerSource) -> None:
        self._loops[source.kind] = self._scheduler.call_every(
            source.poll_interval, lambda: self._poll(source)
        )

    def _poll(self, source: TriggerSource) -> TriggerEvent | None:
        try:
            event = source.poll()
        except PermissionDenied as exc:
            self._set_available(source.kind, False, exc)
            return None
        self._set_available(source.kind, True)
        if event is not None:
            logger.debug("%s trigger detected at %.2fs", event.kind.label, event.timestamp)
            self._sink(event)
        return event

    def _set_available(
        self, kind: TriggerKind, available: bool, error: Exception | None = None
    ) -> None:
        was_available = kind not in self._unavailable
        if available == was_available:
            return
        if available:
            self._unavailable.discard(kind)
            logger.info("%s trigger available again", kind.label)
        else:
            self._unavailable.add(kind)
            logger.warning("%s", error)
        if self._on_availability is not None:
            self._on_availability(kind, available)
