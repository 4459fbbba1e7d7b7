"""ZenBell: meditation bell timer with clap/hand triggers."""

__version__ = "0.1.0"
