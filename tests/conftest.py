"""Pytest configuration and fixtures for ralph-dashboard tests."""

import sys
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def reset_config_singleton():
    """Reset config singleton before and after each test.

    Tests that need configuration load it explicitly.
    """
    from ralph_dashboard.core.config import _reset_config

    _reset_config()
    yield
    _reset_config()


@pytest.fixture
def write_script(tmp_path: Path):
    """Write a Python child script and return the argv that runs it."""

    def _write(name: str, source: str) -> list[str]:
        path = tmp_path / name
        path.write_text(source, encoding="utf-8")
        return [sys.executable, "-u", str(path)]

    return _write


class EventRecorder:
    """Event sink that records every event it receives."""

    def __init__(self) -> None:
        self.events = []

    def __call__(self, event) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list:
        return [e for e in self.events if e.type == event_type]

    def payloads(self, event_type: str) -> list:
        return [e.payload for e in self.of_type(event_type)]


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()
