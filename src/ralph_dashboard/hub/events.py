"""Event types exchanged between producers, the hub and observers.

Every message on the observer channel is ``{"type": ..., "payload": ...}``.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

# Server -> observer
LOOP_STATUS = "loop:status"
LOOP_LOG = "loop:log"
TASKS_UPDATE = "tasks:update"
GIT_UPDATE = "git:update"
CONFIG_UPDATE = "config:update"
CONFIG_CONTENT = "config:content"
CONFIG_SAVED = "config:saved"
COMMAND_ERROR = "command:error"
PRD_STATUS = "prd:status"
PRD_OUTPUT = "prd:output"
PRD_LOG = "prd:log"
PRD_COMPLETE = "prd:complete"
PRD_ERROR = "prd:error"

# Observer -> server
LOOP_START = "loop:start"
LOOP_STOP = "loop:stop"
CONFIG_READ = "config:read"
CONFIG_WRITE = "config:write"
TASKS_TOGGLE = "tasks:toggle"
PRD_GENERATE = "prd:generate"
PRD_CANCEL = "prd:cancel"


class Severity(StrEnum):
    """Severity of a single log line."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


@dataclass(frozen=True)
class LogEvent:
    """One line of loop output.

    Attributes:
        text: Line content without trailing newline.
        severity: Classified severity.
        source: Producer that emitted the line ("loop" or "log").
        id: Unique event id.
        timestamp: Creation time (UTC).

    """

    text: str
    severity: Severity
    source: str = "loop"
    id: str = field(default="")
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if not self.id:
            object.__setattr__(self, "id", f"{self.source}-{uuid.uuid4().hex[:12]}")

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "text": self.text,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class DashboardEvent:
    """Typed message routed through the hub.

    Attributes:
        type: Message type (see module constants).
        payload: JSON-serializable payload.

    """

    type: str
    payload: Any = None

    def to_message(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def log(cls, entry: LogEvent) -> "DashboardEvent":
        return cls(LOOP_LOG, entry.to_payload())


EventSink = Callable[[DashboardEvent], Awaitable[None] | None]
"""Callback producers use to hand events to the hub."""


async def emit_event(sink: EventSink | None, event: DashboardEvent) -> None:
    """Deliver an event to a sink that may be sync or async."""
    if sink is None:
        return
    result = sink(event)
    if asyncio.iscoroutine(result):
        await result
