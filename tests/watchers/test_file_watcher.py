"""Tests for the watchdog bridge."""

import asyncio
import logging
from pathlib import Path

from ralph_dashboard.watchers.file_watcher import ProjectFileWatcher


class _Counter:
    def __init__(self) -> None:
        self.calls = 0
        self.event = asyncio.Event()

    async def __call__(self) -> None:
        self.calls += 1
        self.event.set()


class TestProjectFileWatcher:
    """Tests for ProjectFileWatcher."""

    async def test_initial_notification(self, tmp_path: Path):
        """start() invokes every callback once."""
        log_cb, plan_cb = _Counter(), _Counter()
        watcher = ProjectFileWatcher(tmp_path)
        watcher.add("ralph.log", log_cb)
        watcher.add("IMPLEMENTATION_PLAN.md", plan_cb)

        await watcher.start()
        await watcher.stop()

        assert log_cb.calls == 1
        assert plan_cb.calls == 1

    async def test_no_initial_notification(self, tmp_path: Path):
        """initial=False only starts the observer."""
        callback = _Counter()
        watcher = ProjectFileWatcher(tmp_path)
        watcher.add("ralph.log", callback)

        await watcher.start(initial=False)
        await watcher.stop()

        assert callback.calls == 0

    async def test_change_dispatched_to_loop(self, tmp_path: Path):
        """Writing a watched file schedules its callback on the event loop."""
        callback = _Counter()
        other = _Counter()
        watcher = ProjectFileWatcher(tmp_path)
        watcher.add("ralph.log", callback)
        watcher.add("IMPLEMENTATION_PLAN.md", other)
        await watcher.start(initial=False)

        try:
            (tmp_path / "ralph.log").write_text("line\n")
            await asyncio.wait_for(callback.event.wait(), timeout=10)
        finally:
            await watcher.stop()

        assert callback.calls >= 1
        assert other.calls == 0

    async def test_failing_callback_is_logged(self, tmp_path: Path, caplog):
        """An exception raised by a scheduled callback is logged, not lost."""
        called = asyncio.Event()

        async def failing() -> None:
            called.set()
            raise RuntimeError("parse failed")

        watcher = ProjectFileWatcher(tmp_path)
        watcher.add("IMPLEMENTATION_PLAN.md", failing)
        await watcher.start(initial=False)

        try:
            with caplog.at_level(logging.ERROR, logger="ralph_dashboard.watchers.file_watcher"):
                (tmp_path / "IMPLEMENTATION_PLAN.md").write_text("- [ ] a\n")
                await asyncio.wait_for(called.wait(), timeout=10)
                for _ in range(50):
                    if "File change handler failed" in caplog.text:
                        break
                    await asyncio.sleep(0.02)
        finally:
            await watcher.stop()

        assert "File change handler failed" in caplog.text
        assert "parse failed" in caplog.text

    async def test_missing_directory_is_skipped(self, tmp_path: Path):
        """Files in directories that do not exist are not watched."""
        callback = _Counter()
        watcher = ProjectFileWatcher(tmp_path)
        watcher.add("logs/ralph.log", callback)

        await watcher.start(initial=False)
        await watcher.stop()

        assert callback.calls == 0

    async def test_stop_without_start(self, tmp_path: Path):
        """stop() before start() is a no-op."""
        await ProjectFileWatcher(tmp_path).stop()
