"""Incremental tailer for the loop log file.

Tracks a byte offset into one append-only file and emits a LogEvent per
newly appended line. Truncation, rotation and deletion reset the offset.
"""

import asyncio
import logging
from pathlib import Path

from ralph_dashboard.hub.events import DashboardEvent, EventSink, LogEvent, Severity, emit_event

logger = logging.getLogger(__name__)

# Keyword groups in priority order (first match wins)
SEVERITY_KEYWORDS: tuple[tuple[Severity, tuple[str, ...]], ...] = (
    (Severity.ERROR, ("error", "fail", "exception")),
    (Severity.WARNING, ("warning", "warn")),
    (Severity.SUCCESS, ("success", "succeed", "complete", "pass")),
)


def classify_line(line: str) -> Severity:
    """Classify a log line by case-insensitive keyword match.

    Example:
        >>> classify_line("Error: connection failed")
        <Severity.ERROR: 'error'>
        >>> classify_line("starting step 3")
        <Severity.INFO: 'info'>

    """
    lower = line.lower()
    for severity, keywords in SEVERITY_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return severity
    return Severity.INFO


def split_lines(text: str) -> list[str]:
    """Split decoded text into non-blank lines without line terminators."""
    lines = []
    for line in text.split("\n"):
        line = line.rstrip("\r")
        if line.strip():
            lines.append(line)
    return lines


class LogTailer:
    """Emits only the newly appended content of a growing file.

    Reads are serialized by a lock so concurrent change notifications never
    race the offset.

    Attributes:
        path: File being tailed.
        offset: Bytes already consumed.
        replay_backlog: If False, existing content is skipped on start().

    """

    def __init__(
        self,
        path: Path,
        on_event: EventSink | None = None,
        replay_backlog: bool = True,
    ) -> None:
        self.path = path
        self.on_event = on_event
        self.replay_backlog = replay_backlog
        self.offset = 0
        self._inode: int | None = None
        self._lock = asyncio.Lock()

    async def start(self) -> list[LogEvent]:
        """Attach to the file and emit the backlog (unless disabled)."""
        if not self.replay_backlog:
            async with self._lock:
                await asyncio.to_thread(self._seek_to_end)
        return await self.on_change()

    def _seek_to_end(self) -> None:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            self.offset = 0
            return
        self.offset = stat.st_size
        self._inode = stat.st_ino
        logger.debug("Skipping %d bytes of backlog in %s", self.offset, self.path)

    async def on_change(self) -> list[LogEvent]:
        """Read and emit lines appended since the last call.

        Returns:
            Emitted log events, in file order.

        """
        async with self._lock:
            text = await asyncio.to_thread(self._read_delta)
            if not text:
                return []

            events = [LogEvent(line, classify_line(line), source="log") for line in split_lines(text)]
            for entry in events:
                await emit_event(self.on_event, DashboardEvent.log(entry))
            return events

    def _read_delta(self) -> str | None:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            self.offset = 0
            self._inode = None
            return None

        if self._inode is not None and stat.st_ino != self._inode:
            logger.info("%s was replaced, reading from start", self.path)
            self.offset = 0
        elif stat.st_size < self.offset:
            logger.info(
                "%s shrank (%d < %d bytes), reading from start",
                self.path,
                stat.st_size,
                self.offset,
            )
            self.offset = 0
        self._inode = stat.st_ino

        if stat.st_size == self.offset:
            return None

        with self.path.open("rb") as f:
            f.seek(self.offset)
            data = f.read(stat.st_size - self.offset)
        self.offset += len(data)
        return data.decode("utf-8", errors="replace")
