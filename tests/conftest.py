"""Pytest configuration and fixtures for nudge tests.

Every test gets its own reminders file, PID file and settings cache so
nothing touches the user's real ~/.nudge directory.
"""

from unittest.mock import patch

import pytest
from rich.console import Console

from nudge import messaging
from nudge.settings import clear_settings_cache


@pytest.fixture(autouse=True)
def isolate_nudge_paths(tmp_path_factory, monkeypatch):
    """Point settings and the daemon PID file at a private temp directory."""
    state_dir = tmp_path_factory.mktemp("nudge_state")
    monkeypatch.setenv("NUDGE_REMINDERS_FILE", str(state_dir / "reminders.json"))
    monkeypatch.setenv("NUDGE_TIMEZONE", "UTC")
    clear_settings_cache()

    with patch("nudge.scheduler.daemon.SCHEDULER_PID_FILE", str(state_dir / "scheduler.pid")):
        yield state_dir

    clear_settings_cache()


@pytest.fixture
def recording_console():
    """Capture everything emitted through nudge.messaging."""
    console = Console(record=True, width=200, color_system=None)
    messaging.set_console(console)
    yield console
    messaging.set_console(None)
