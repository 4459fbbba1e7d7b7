"""Tests for settings, bell synthesis, and the sound players.

Covers:
- Settings dataclass defaults, derived plan/triggers and JSON round-trip
- Bell WAV generation and caching
- BellPlayer volume/enable API and missing-asset failure
- BellPlayer effect release after each play
- SoundPlayer.play_repeated sequencing and cancellation
"""

from __future__ import annotations

import io
import json
import wave

import pytest

from zenbell.settings import Settings, load_settings, save_settings
from zenbell.audio.sounds import (
    BellPlayer,
    PlaybackError,
    SAMPLE_RATE,
    BELL_FILENAME,
    ensure_bell_file,
    generate_bell,
)
from zenbell.timer.engine import Cue
from zenbell.triggers.sources import TriggerKind

from helpers import FakeBellPlayer, RecordingPlayer


# ═══════════════════════════════════════════════════════════════════════
#  SETTINGS
# ═══════════════════════════════════════════════════════════════════════


class TestSettingsDefaults:
    def test_session_length(self):
        assert Settings().session_length == 120

    def test_cue_defaults(self):
        s = Settings()
        assert s.start_cue_offset == 7
        assert s.end_cue_repeat == 2
        assert s.cue_gap == 1.0

    def test_trigger_defaults(self):
        s = Settings()
        assert s.clap_trigger_enabled is False
        assert s.hand_trigger_enabled is False
        assert s.trigger_cooldown == 3.0
        assert s.message_seconds == 3.0

    def test_audio_defaults(self):
        s = Settings()
        assert s.sound_enabled is True
        assert s.sound_volume == 70
        assert s.stop_on_first_failure is True


class TestSettingsDerived:
    def test_cue_plan(self):
        plan = Settings(session_length=600, start_cue_offset=10).cue_plan()
        assert plan.cues == (Cue(10, 1), Cue(600, 2))

    def test_enabled_triggers_default_manual_only(self):
        assert Settings().enabled_triggers() == {TriggerKind.MANUAL}

    def test_enabled_triggers_follow_checkboxes(self):
        s = Settings()
        s.set_trigger_enabled(TriggerKind.CLAP, True)
        s.set_trigger_enabled(TriggerKind.HAND, True)
        assert s.enabled_triggers() == {
            TriggerKind.MANUAL, TriggerKind.CLAP, TriggerKind.HAND,
        }
        s.set_trigger_enabled(TriggerKind.CLAP, False)
        assert s.clap_trigger_enabled is False


class TestSettingsPersistence:
    def test_round_trip(self, tmp_path, monkeypatch):
        """save → load produces identical settings."""
        path = tmp_path / "settings.json"
        monkeypatch.setattr("zenbell.settings.SETTINGS_PATH", path)
        monkeypatch.setattr("zenbell.settings.APP_SUPPORT_DIR", tmp_path)
        original = Settings(session_length=20 * 60, hand_trigger_enabled=True)
        save_settings(original)
        loaded = load_settings()
        assert loaded == original

    def test_missing_file_returns_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setattr(
            "zenbell.settings.SETTINGS_PATH", tmp_path / "nonexistent.json",
        )
        assert load_settings() == Settings()

    def test_invalid_json_returns_defaults(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.json"
        path.write_text("NOT VALID JSON", encoding="utf-8")
        monkeypatch.setattr("zenbell.settings.SETTINGS_PATH", path)
        assert load_settings() == Settings()

    def test_non_object_json_returns_defaults(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        monkeypatch.setattr("zenbell.settings.SETTINGS_PATH", path)
        assert load_settings() == Settings()

    def test_extra_keys_ignored(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.json"
        data = {"session_length": 1800, "unknown_future_key": True}
        path.write_text(json.dumps(data), encoding="utf-8")
        monkeypatch.setattr("zenbell.settings.SETTINGS_PATH", path)
        s = load_settings()
        assert s.session_length == 1800
        assert not hasattr(s, "unknown_future_key")

    @pytest.mark.parametrize("data", [
        {"session_length": 0},
        {"session_length": -60},
        {"session_length": "120"},
        {"start_cue_offset": -1},
        {"end_cue_repeat": 0},
        {"trigger_cooldown": 0},
        {"poll_interval": -1.0},
        {"detection_probability": 1.5},
    ])
    def test_out_of_range_values_return_defaults(self, tmp_path, monkeypatch, data):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        monkeypatch.setattr("zenbell.settings.SETTINGS_PATH", path)
        assert load_settings() == Settings()

    def test_validate_accepts_defaults(self):
        Settings().validate()


# ═══════════════════════════════════════════════════════════════════════
#  BELL SYNTHESIS
# ═══════════════════════════════════════════════════════════════════════


class TestBellGeneration:
    def test_produces_wav(self):
        data = generate_bell()
        assert isinstance(data, bytes)
        assert data[:4] == b"RIFF"

    def test_wav_is_parseable(self):
        with wave.open(io.BytesIO(generate_bell()), "rb") as wf:
            assert wf.getnchannels() == 1
            assert wf.getsampwidth() == 2
            assert wf.getframerate() == SAMPLE_RATE
            assert wf.getnframes() > SAMPLE_RATE  # rings for over a second

    def test_ensure_writes_once(self, tmp_path):
        path = ensure_bell_file(tmp_path)
        assert path == tmp_path / BELL_FILENAME
        assert path.stat().st_size > 100

        path.write_bytes(b"cached")
        assert ensure_bell_file(tmp_path).read_bytes() == b"cached"


# ═══════════════════════════════════════════════════════════════════════
#  BELL PLAYER
# ═══════════════════════════════════════════════════════════════════════


@pytest.mark.usefixtures("qapp")
class TestBellPlayer:
    def test_create_generates_asset(self, scheduler, tmp_path):
        player = BellPlayer(scheduler, sounds_dir=tmp_path)
        assert player.path.exists()
        assert player.enabled is True
        assert player.active_count == 0

    def test_set_volume(self, scheduler, tmp_path):
        player = BellPlayer(scheduler, sounds_dir=tmp_path)
        player.set_volume(30)
        assert player.volume == 30

    def test_set_volume_clamps(self, scheduler, tmp_path):
        player = BellPlayer(scheduler, sounds_dir=tmp_path)
        player.set_volume(200)
        assert player.volume == 100
        player.set_volume(-10)
        assert player.volume == 0

    def test_disabled_play_completes_silently(self, scheduler, tmp_path):
        player = BellPlayer(scheduler, sounds_dir=tmp_path)
        player.set_enabled(False)
        results = []
        player.play_once(on_done=results.append)
        assert results == [None]
        assert player.active_count == 0

    def test_missing_asset_raises(self, scheduler, tmp_path):
        player = BellPlayer(scheduler, sounds_dir=tmp_path)
        player.path.unlink()
        with pytest.raises(PlaybackError) as info:
            player.play_once()
        assert info.value.reason == PlaybackError.MISSING
        assert player.active_count == 0

    def test_missing_asset_in_sequence_reports_once(self, scheduler, tmp_path):
        player = BellPlayer(scheduler, sounds_dir=tmp_path)
        player.path.unlink()
        results = []
        player.play_repeated(3, 1.0, on_done=results.append)
        scheduler.advance(5)
        assert len(results) == 1
        assert isinstance(results[0], PlaybackError)


@pytest.mark.usefixtures("qapp")
class TestBellPlayerRelease:
    """Each play loads its own effect and gives it up when done."""

    def test_effect_held_until_playback_ends(self, scheduler, tmp_path):
        player = FakeBellPlayer(scheduler, sounds_dir=tmp_path)
        results = []
        player.play_once(on_done=results.append)
        assert player.active_count == 1
        assert results == []

        player.effects[0].finish()
        assert player.active_count == 0
        assert results == [None]
        assert player.effects[0].stopped

    def test_decode_error_releases_effect(self, scheduler, tmp_path):
        player = FakeBellPlayer(scheduler, sounds_dir=tmp_path)
        results = []
        player.play_once(on_done=results.append)
        player.effects[0].fail()

        assert player.active_count == 0
        assert len(results) == 1
        assert results[0].reason == PlaybackError.DECODE

    def test_completion_reported_once(self, scheduler, tmp_path):
        player = FakeBellPlayer(scheduler, sounds_dir=tmp_path)
        results = []
        player.play_once(on_done=results.append)
        player.effects[0].fail()
        player.effects[0].finish()
        assert len(results) == 1

    def test_overlapping_plays_each_release(self, scheduler, tmp_path):
        player = FakeBellPlayer(scheduler, sounds_dir=tmp_path)
        player.play_once()
        player.play_once()
        assert player.active_count == 2
        player.effects[1].finish()
        assert player.active_count == 1
        player.effects[0].finish()
        assert player.active_count == 0

    def test_volume_applies_to_playing_effect(self, scheduler, tmp_path):
        player = FakeBellPlayer(scheduler, sounds_dir=tmp_path)
        player.play_once()
        player.set_volume(40)
        assert player.effects[0].volume == pytest.approx(0.4)


# ═══════════════════════════════════════════════════════════════════════
#  PLAY REPEATED
# ═══════════════════════════════════════════════════════════════════════


class TestPlayRepeated:
    def test_plays_with_gap(self, scheduler):
        player = RecordingPlayer(scheduler)
        results = []
        player.play_repeated(3, 1.0, on_done=results.append)
        assert player.once_calls == [0.0]
        scheduler.advance(2)
        assert player.once_calls == [0.0, 1.0, 2.0]
        assert results == [None]

    def test_single_play_needs_no_scheduler(self, scheduler):
        player = RecordingPlayer(scheduler)
        results = []
        player.play_repeated(1, 1.0, on_done=results.append)
        assert results == [None]
        assert scheduler.pending == 0

    def test_count_must_be_positive(self, scheduler):
        with pytest.raises(ValueError):
            RecordingPlayer(scheduler).play_repeated(0, 1.0)

    def test_cancel_stops_remaining_plays(self, scheduler):
        player = RecordingPlayer(scheduler)
        results = []
        token = player.play_repeated(3, 1.0, on_done=results.append)
        token.cancel()
        scheduler.advance(5)
        assert player.once_calls == [0.0]
        assert results == []
        assert scheduler.pending == 0

    def test_continue_past_failures(self, scheduler):
        player = RecordingPlayer(scheduler, fail_async=True)
        results = []
        player.play_repeated(
            2, 0.5, on_done=results.append, stop_on_first_failure=False,
        )
        scheduler.advance(1)
        assert player.once_calls == [0.0, 0.5]
        assert len(results) == 1
        assert results[0].reason == PlaybackError.DECODE
