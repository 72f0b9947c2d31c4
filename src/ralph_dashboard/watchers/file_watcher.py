"""Bridge watchdog filesystem notifications onto the asyncio loop.

Observer threads never touch dashboard state: each relevant event schedules
the registered coroutine on the event loop, where the tailer and differ
serialize their own reads.
"""

import asyncio
import concurrent.futures
import logging
import os
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], Coroutine[Any, Any, Any]]

WATCHED_EVENT_TYPES = frozenset({"created", "modified", "moved", "deleted"})


def _log_callback_failure(future: concurrent.futures.Future[Any]) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error("File change handler failed", exc_info=error)


class _ProjectFileHandler(FileSystemEventHandler):
    """Dispatches events for registered file paths to their callbacks."""

    def __init__(self, callbacks: dict[str, ChangeCallback], loop: asyncio.AbstractEventLoop) -> None:
        super().__init__()
        self._callbacks = callbacks
        self._loop = loop

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in WATCHED_EVENT_TYPES:
            return

        paths = {event.src_path, getattr(event, "dest_path", "")}
        for raw in paths:
            if not raw:
                continue
            callback = self._callbacks.get(os.path.realpath(os.fsdecode(raw)))
            if callback is not None:
                future = asyncio.run_coroutine_threadsafe(callback(), self._loop)
                future.add_done_callback(_log_callback_failure)


class ProjectFileWatcher:
    """Watches individual files and invokes a coroutine on every change.

    Attributes:
        root: Directory file names are resolved against.

    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self._callbacks: dict[str, ChangeCallback] = {}
        self._observer: Any = None

    def add(self, filename: str, callback: ChangeCallback) -> Path:
        """Register a callback for a file relative to root."""
        path = self.root / filename
        self._callbacks[os.path.realpath(path)] = callback
        return path

    async def start(self, initial: bool = True) -> None:
        """Start the observer.

        Args:
            initial: Invoke every callback once so current contents are emitted.

        """
        loop = asyncio.get_running_loop()
        handler = _ProjectFileHandler(self._callbacks, loop)
        observer = Observer()

        directories = {os.path.dirname(path) for path in self._callbacks}
        for directory in sorted(directories):
            if not os.path.isdir(directory):
                logger.warning("Not watching %s: directory does not exist", directory)
                continue
            observer.schedule(handler, directory, recursive=False)
            logger.debug("Watching %s", directory)

        observer.start()
        self._observer = observer

        if initial:
            for callback in list(self._callbacks.values()):
                try:
                    await callback()
                except Exception:
                    logger.exception("Initial file notification failed")

    async def stop(self) -> None:
        observer = self._observer
        self._observer = None
        if observer is None:
            return
        observer.stop()
        await asyncio.to_thread(observer.join, 5)
