"""Triggers package."""

from .sources import (
    TriggerKind,
    TriggerEvent,
    TriggerSource,
    ManualTrigger,
    RandomTrigger,
    PermissionDenied,
    DETECTION_PROBABILITY,
    POLL_INTERVAL,
)
from .monitor import TriggerMonitor

__all__ = [
    "TriggerKind",
    "TriggerEvent",
    "TriggerSource",
    "ManualTrigger",
    "RandomTrigger",
    "PermissionDenied",
    "DETECTION_PROBABILITY",
    "POLL_INTERVAL",
    "TriggerMonitor",
]
