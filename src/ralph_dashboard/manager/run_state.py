"""Lifecycle state of the supervised loop process.

Valid transitions:
    IDLE → STARTING (on start)
    STARTING → RUNNING (child handle obtained)
    STARTING → IDLE (spawn failure)
    RUNNING → STOPPING (on stop)
    RUNNING | STOPPING → IDLE (on exit, for any reason)
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum
from typing import Any


class LoopMode(StrEnum):
    """Operating modes of the loop script."""

    PLAN = "plan"
    PLAN_SLC = "plan-slc"
    PLAN_WORK = "plan-work"
    BUILD = "build"


class SupervisorState(StrEnum):
    """Supervisor state machine."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class ProcessRunState:
    """Snapshot of the supervised process, published on every change.

    Attributes:
        is_running: True between spawn and exit.
        mode: Mode of the current or last run.
        iteration_count: Last iteration marker seen on stdout.
        iteration_limit: Requested iteration limit (0 = unbounded).
        scope_label: Free-text work scope for plan-work runs.
        started_at: Time the current or last run was spawned.
        os_process_id: PID while running.

    """

    is_running: bool = False
    mode: LoopMode | None = None
    iteration_count: int = 0
    iteration_limit: int = 0
    scope_label: str | None = None
    started_at: datetime | None = None
    os_process_id: int | None = None

    def copy(self) -> "ProcessRunState":
        return replace(self)

    def to_payload(self) -> dict[str, Any]:
        return {
            "isRunning": self.is_running,
            "mode": self.mode.value if self.mode else None,
            "iterationCount": self.iteration_count,
            "iterationLimit": self.iteration_limit,
            "scopeLabel": self.scope_label,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "osProcessId": self.os_process_id,
        }
