"""Shared pytest fixtures for ZenBell tests."""

import os
import sys

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt6.QtWidgets import QApplication

from zenbell.scheduler import VirtualScheduler
from zenbell.timer.engine import CuePlan, SessionTimer

from helpers import RecordingPlayer


@pytest.fixture(scope="session")
def qapp():
    """A single QApplication instance shared across the entire test run."""
    app = QApplication.instance() or QApplication(sys.argv)
    yield app


@pytest.fixture
def scheduler():
    """Virtual clock starting at t=0."""
    return VirtualScheduler()


@pytest.fixture
def player(scheduler):
    """Player that records every request and always succeeds."""
    return RecordingPlayer(scheduler)


@pytest.fixture
def timer(qapp, scheduler, player):
    """120 s session with the standard [(7, 1), (120, 2)] plan."""
    return SessionTimer(
        player,
        scheduler=scheduler,
        session_length=120,
        cue_plan=CuePlan.from_pairs([(7, 1), (120, 2)]),
    )
