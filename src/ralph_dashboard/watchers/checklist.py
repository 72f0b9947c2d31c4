"""Checklist parsing for the implementation plan.

The plan is a markdown file with checkbox items (``- [ ] task``). Every
change notification re-parses the whole file and emits the full snapshot;
identical snapshots are not suppressed.

Item ids are positional (``task-<line index>``): inserting a line above an
item shifts the ids of everything below it.
"""

import asyncio
import logging
import os
import re
import tempfile
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ralph_dashboard.hub.events import TASKS_UPDATE, DashboardEvent, EventSink, emit_event

logger = logging.getLogger(__name__)

CHECKBOX_PATTERN = re.compile(r"^(\s*[-*+]\s*\[)(.)(\]\s*)(\S.*)$")
ITEM_ID_PREFIX = "task-"


@dataclass(frozen=True)
class ChecklistItem:
    """One checkbox line."""

    id: str
    text: str
    done: bool

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "done": self.done}


@dataclass
class ChecklistSnapshot:
    """Full parse result of the checklist file.

    Attributes:
        items: Items in file order.
        last_parsed_at: Time of the parse, None for the default snapshot.

    """

    items: list[ChecklistItem] = field(default_factory=list)
    last_parsed_at: datetime | None = None

    @property
    def done_count(self) -> int:
        return sum(1 for item in self.items if item.done)

    @property
    def total_count(self) -> int:
        return len(self.items)

    def to_payload(self) -> dict[str, Any]:
        return {
            "items": [item.to_payload() for item in self.items],
            "doneCount": self.done_count,
            "totalCount": self.total_count,
            "lastParsedAt": self.last_parsed_at.isoformat() if self.last_parsed_at else None,
        }


def parse_checklist(text: str) -> ChecklistSnapshot:
    """Parse checkbox items from markdown text.

    Lines that are not checkbox items are ignored.

    Example:
        >>> snapshot = parse_checklist("- [ ] write tests\\n- [x] build core\\n")
        >>> (snapshot.done_count, snapshot.total_count)
        (1, 2)

    """
    items = []
    for index, line in enumerate(text.splitlines()):
        match = CHECKBOX_PATTERN.match(line)
        if match is None:
            continue
        items.append(
            ChecklistItem(
                id=f"{ITEM_ID_PREFIX}{index}",
                text=match.group(4).strip(),
                done=match.group(2) in ("x", "X"),
            )
        )
    return ChecklistSnapshot(items=items, last_parsed_at=datetime.now(UTC))


def toggle_checklist_item(text: str, item_id: str, done: bool) -> str:
    """Return text with the checkbox of one item set to done / not done.

    Only the bracket character of the addressed line changes.

    Raises:
        KeyError: If item_id does not address a checkbox line.

    """
    if not item_id.startswith(ITEM_ID_PREFIX) or not item_id[len(ITEM_ID_PREFIX) :].isdigit():
        raise KeyError(item_id)
    index = int(item_id[len(ITEM_ID_PREFIX) :])

    lines = text.splitlines(keepends=True)
    if index >= len(lines):
        raise KeyError(item_id)

    line = lines[index]
    body = line.rstrip("\r\n")
    ending = line[len(body) :]
    match = CHECKBOX_PATTERN.match(body)
    if match is None:
        raise KeyError(item_id)

    mark = "x" if done else " "
    lines[index] = f"{match.group(1)}{mark}{match.group(3)}{match.group(4)}{ending}"
    return "".join(lines)


class ChecklistDiffer:
    """Re-parses the checklist file on every change notification."""

    def __init__(self, path: Path, on_event: EventSink | None = None) -> None:
        self.path = path
        self.on_event = on_event
        self._lock = asyncio.Lock()

    async def on_change(self) -> ChecklistSnapshot:
        """Parse the file and emit the full snapshot.

        A missing or unreadable file yields an empty snapshot. Invalid UTF-8
        is replaced rather than rejected.
        """
        async with self._lock:
            try:
                text = await asyncio.to_thread(self.path.read_text, encoding="utf-8", errors="replace")
            except FileNotFoundError:
                logger.debug("Checklist %s does not exist yet", self.path)
                text = ""
            except OSError as e:
                logger.warning("Cannot read checklist %s: %s", self.path, e)
                text = ""
            snapshot = parse_checklist(text)
            await emit_event(self.on_event, DashboardEvent(TASKS_UPDATE, snapshot.to_payload()))
            return snapshot

    async def toggle(self, item_id: str, done: bool) -> None:
        """Set an item's checkbox in the file.

        The resulting file change flows back through on_change().

        Raises:
            KeyError: If item_id does not address a checkbox line.
            FileNotFoundError: If the checklist does not exist.

        """
        async with self._lock:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            updated = toggle_checklist_item(text, item_id, done)
            await asyncio.to_thread(_atomic_write, self.path, updated)
            logger.info("Marked %s %s in %s", item_id, "done" if done else "open", self.path.name)


def _atomic_write(path: Path, content: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
