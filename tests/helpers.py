"""Shared test helpers for ZenBell."""

from PyQt6.QtCore import QObject, pyqtSignal
from PyQt6.QtMultimedia import QSoundEffect

from zenbell.audio.sounds import BellPlayer, PlaybackError, SoundPlayer


class SignalCollector:
    """Utility to capture pyqtSignal emissions into a list."""

    def __init__(self):
        self.items: list = []

    def slot(self, *args):
        self.items.append(args if len(args) > 1 else args[0] if args else None)

    def __call__(self, *args):
        self.slot(*args)

    def __len__(self):
        return len(self.items)

    def __getitem__(self, idx):
        return self.items[idx]

    @property
    def last(self):
        return self.items[-1] if self.items else None

    def clear(self):
        self.items.clear()


class RecordingPlayer(SoundPlayer):
    """SoundPlayer double that logs calls against the scheduler clock.

    ``fail`` makes ``play_once`` raise; ``fail_async`` makes it report
    a decode error through the completion callback instead.
    """

    def __init__(self, scheduler, *, fail=False, fail_async=False):
        super().__init__(scheduler)
        self.fail = fail
        self.fail_async = fail_async
        self.once_calls: list[float] = []
        self.repeated_calls: list[tuple[int, float, float]] = []

    def play_once(self, on_done=None):
        self.once_calls.append(self._scheduler.now())
        if self.fail:
            raise PlaybackError("simulated missing bell", PlaybackError.MISSING)
        if on_done is not None:
            if self.fail_async:
                on_done(PlaybackError("simulated decode failure", PlaybackError.DECODE))
            else:
                on_done(None)

    def play_repeated(self, count, gap_seconds, *, on_done=None,
                      stop_on_first_failure=True):
        self.repeated_calls.append((count, gap_seconds, self._scheduler.now()))
        return super().play_repeated(
            count,
            gap_seconds,
            on_done=on_done,
            stop_on_first_failure=stop_on_first_failure,
        )



class FakeSoundEffect(QObject):
    """Stand-in for QSoundEffect whose signals the test drives by hand."""

    statusChanged = pyqtSignal()
    playingChanged = pyqtSignal()

    def __init__(self):
        super().__init__()
        self._status = QSoundEffect.Status.Null
        self._playing = False
        self.volume = None
        self.source = None
        self.stopped = False

    def setVolume(self, volume):
        self.volume = volume

    def setSource(self, url):
        self.source = url
        self._status = QSoundEffect.Status.Ready
        self.statusChanged.emit()

    def play(self):
        self._playing = True
        self.playingChanged.emit()

    def stop(self):
        self.stopped = True
        self._playing = False

    def status(self):
        return self._status

    def isPlaying(self):
        return self._playing

    def finish(self):
        self._playing = False
        self.playingChanged.emit()

    def fail(self):
        self._status = QSoundEffect.Status.Error
        self._playing = False
        self.statusChanged.emit()


class FakeBellPlayer(BellPlayer):
    """BellPlayer that hands out ``FakeSoundEffect``s and keeps them."""

    def __init__(self, scheduler, **kwargs):
        super().__init__(scheduler, **kwargs)
        self.effects: list[FakeSoundEffect] = []

    def _create_effect(self):
        effect = FakeSoundEffect()
        self.effects.append(effect)
        return effect
