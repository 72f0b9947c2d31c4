"""Loop process management.

Public API:
    LoopSupervisor: Start/stop and monitor the loop process
    ProcessRunState: Published lifecycle snapshot
    LoopMode: Operating modes of the loop script
    SupervisorState: Supervisor state machine
"""

from .command_builder import LoopCommand, build_loop_command
from .markers import parse_iteration_marker
from .process_supervisor import LoopSupervisor
from .run_state import LoopMode, ProcessRunState, SupervisorState

__all__ = [
    "LoopCommand",
    "LoopMode",
    "LoopSupervisor",
    "ProcessRunState",
    "SupervisorState",
    "build_loop_command",
    "parse_iteration_marker",
]
