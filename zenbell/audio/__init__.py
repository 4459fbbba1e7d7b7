"""Audio package."""

from .sounds import BellPlayer, PlaybackError, SoundPlayer, ensure_bell_file, generate_bell

__all__ = ["BellPlayer", "PlaybackError", "SoundPlayer", "ensure_bell_file", "generate_bell"]
