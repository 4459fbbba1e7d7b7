"""Main application window for ZenBell."""

from __future__ import annotations

import logging

from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QLabel, QPushButton, QCheckBox,
)

from .audio.sounds import BellPlayer, SoundPlayer
from .scheduler import QtScheduler, Scheduler
from .settings import Settings, load_settings, save_settings
from .timer.engine import SessionStatus, SessionTimer
from .triggers.monitor import TriggerMonitor
from .triggers.sources import ManualTrigger, RandomTrigger, TriggerKind, TriggerSource


logger = logging.getLogger(__name__)


# ── palette ───────────────────────────────────────────────────────────────

BACKGROUND = "#000000"
BUTTON_BG = "#FFFFFF"
ACCENT = "#8B4513"  # brown
TEXT = "#FFFFFF"

STYLESHEET = f"""
QWidget#central {{
    background-color: {BACKGROUND};
}}
QPushButton {{
    background-color: {BUTTON_BG};
    color: {ACCENT};
    font-size: 18px;
    font-weight: bold;
    padding: 15px;
    border-radius: 5px;
    min-width: 200px;
}}
QPushButton:disabled {{
    color: #BBBBBB;
}}
QCheckBox, QLabel {{
    color: {TEXT};
    font-size: 16px;
}}
QCheckBox:disabled {{
    color: #666666;
}}
QLabel#elapsedLabel {{
    font-size: 48px;
    font-weight: 300;
}}
QLabel#messageLabel {{
    color: {ACCENT};
    font-weight: bold;
}}
"""


# ── helper: format seconds as m:ss ───────────────────────────────────────

def _fmt_time(seconds: int) -> str:
    m, s = divmod(max(0, seconds), 60)
    return f"{m}:{s:02d}"


class ZenBellApp(QMainWindow):
    """Main window: session controls, trigger toggles and feedback.

    Scheduler, player and trigger sources can be injected (tests use a
    ``VirtualScheduler`` and a recording player).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        scheduler: Scheduler | None = None,
        player: SoundPlayer | None = None,
        sources: list[TriggerSource] | None = None,
        persist_settings: bool = True,
    ) -> None:
        super().__init__()
        self.setWindowTitle("ZenBell")
        self.setMinimumSize(360, 520)

        # ── settings ──────────────────────────────────────────────────
        self._settings: Settings = settings or load_settings()
        self._persist_settings = persist_settings

        # ── engines ───────────────────────────────────────────────────
        self._scheduler: Scheduler = scheduler or QtScheduler(self)
        if player is None:
            player = BellPlayer(self._scheduler, parent=self)
            player.set_volume(self._settings.sound_volume)
            player.set_enabled(self._settings.sound_enabled)
        self._player = player

        self._timer = SessionTimer(
            self._player,
            scheduler=self._scheduler,
            session_length=self._settings.session_length,
            cue_plan=self._settings.cue_plan(),
            enabled_triggers=self._settings.enabled_triggers(),
            cooldown=self._settings.trigger_cooldown,
            message_seconds=self._settings.message_seconds,
            repeat_gap=self._settings.cue_gap,
            stop_on_first_failure=self._settings.stop_on_first_failure,
            parent=self,
        )

        # ── triggers ──────────────────────────────────────────────────
        self._manual_source = ManualTrigger(self._scheduler.now)
        self._monitor = TriggerMonitor(
            self._scheduler,
            self._timer.on_trigger_event,
            on_availability=self._on_availability_changed,
        )
        self._monitor.attach(self._manual_source)
        for source in (sources if sources is not None else self._default_sources()):
            self._monitor.attach(source)

        # ── central widget ────────────────────────────────────────────
        central = QWidget(self)
        central.setObjectName("central")
        self.setCentralWidget(central)
        self.setStyleSheet(STYLESHEET)
        self._build_ui(central)

        # ── wire signals ──────────────────────────────────────────────
        self._timer.state_changed.connect(self._on_state_changed)
        self._timer.elapsed_changed.connect(self._on_elapsed_changed)
        self._timer.trigger_message_changed.connect(self._message_label.setText)
        self._timer.cue_failed.connect(self._on_cue_failed)

        self._monitor.start()

    # ══════════════════════════════════════════════════════════════════
    #  BUILD UI
    # ══════════════════════════════════════════════════════════════════

    def _build_ui(self, central: QWidget) -> None:
        root = QVBoxLayout(central)
        root.setContentsMargins(24, 24, 24, 24)
        root.setSpacing(10)
        root.addStretch()

        self._elapsed_label = QLabel(_fmt_time(0), central)
        self._elapsed_label.setObjectName("elapsedLabel")
        self._elapsed_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        root.addWidget(self._elapsed_label)

        self._start_btn = QPushButton("Start", central)
        self._start_btn.clicked.connect(self._timer.start)
        root.addWidget(self._start_btn, alignment=Qt.AlignmentFlag.AlignCenter)

        self._stop_btn = QPushButton("Stop", central)
        self._stop_btn.setEnabled(False)
        self._stop_btn.clicked.connect(self._timer.stop)
        root.addWidget(self._stop_btn, alignment=Qt.AlignmentFlag.AlignCenter)

        self._trigger_boxes: dict[TriggerKind, QCheckBox] = {}
        for kind in (TriggerKind.CLAP, TriggerKind.HAND):
            row = QHBoxLayout()
            row.addStretch()
            box = QCheckBox(f"{kind.label} Trigger", central)
            box.setChecked(self._timer.is_enabled(kind))
            source = self._monitor.sources.get(kind)
            box.setEnabled(source is not None and source.permission_granted)
            box.toggled.connect(
                lambda checked, k=kind: self._on_trigger_toggled(k, checked)
            )
            row.addWidget(box)
            row.addStretch()
            root.addLayout(row)
            self._trigger_boxes[kind] = box

        self._manual_btn = QPushButton("Manual Trigger", central)
        self._manual_btn.clicked.connect(self._on_manual_clicked)
        root.addWidget(self._manual_btn, alignment=Qt.AlignmentFlag.AlignCenter)

        self._message_label = QLabel("", central)
        self._message_label.setObjectName("messageLabel")
        self._message_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        root.addWidget(self._message_label)

        root.addStretch()

    def _default_sources(self) -> list[TriggerSource]:
        """Placeholder clap/hand detectors until real ones exist."""
        return [
            RandomTrigger(
                kind,
                self._scheduler.now,
                probability=self._settings.detection_probability,
                poll_interval=self._settings.poll_interval,
            )
            for kind in (TriggerKind.CLAP, TriggerKind.HAND)
        ]

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ACCESSORS
    # ══════════════════════════════════════════════════════════════════

    @property
    def timer(self) -> SessionTimer:
        return self._timer

    @property
    def monitor(self) -> TriggerMonitor:
        return self._monitor

    @property
    def settings(self) -> Settings:
        return self._settings

    # ══════════════════════════════════════════════════════════════════
    #  SLOTS
    # ══════════════════════════════════════════════════════════════════

    def _on_state_changed(self, status: SessionStatus) -> None:
        running = status == SessionStatus.RUNNING
        self._start_btn.setText("Restart" if running else "Start")
        self._stop_btn.setEnabled(running)

    def _on_elapsed_changed(self, elapsed: int) -> None:
        self._elapsed_label.setText(_fmt_time(elapsed))

    def _on_cue_failed(self, error) -> None:
        self._timer.show_message(f"Bell unavailable: {error}")

    def _on_manual_clicked(self) -> None:
        self._manual_source.fire()
        self._monitor.poll_now(TriggerKind.MANUAL)

    def _on_trigger_toggled(self, kind: TriggerKind, checked: bool) -> None:
        if checked:
            self._timer.enable(kind)
        else:
            self._timer.disable(kind)
        logger.info("%s trigger %s", kind.label, "on" if checked else "off")
        self._settings.set_trigger_enabled(kind, checked)
        if self._persist_settings:
            save_settings(self._settings)

    def _on_availability_changed(self, kind: TriggerKind, available: bool) -> None:
        box = self._trigger_boxes.get(kind)
        if box is None:
            return
        box.setEnabled(available)
        box.setToolTip("" if available else "Permission denied")

    # ══════════════════════════════════════════════════════════════════
    #  EVENTS
    # ══════════════════════════════════════════════════════════════════

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._monitor.stop()
        self._timer.stop()
        super().closeEvent(event)
