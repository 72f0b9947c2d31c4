"""Supervisor for the single long-running loop process.

Provides:
- Spawning the loop script for a mode with a deterministic argv
- Incremental stdout/stderr consumption (iteration markers, log events)
- Graceful stop (SIGINT → grace period → SIGKILL)
- Exit detection and status publication

At most one child process exists at a time. The grace timer captures the
process it was armed for and never signals a later run.
"""

import asyncio
import logging
import os
import signal
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path

from ralph_dashboard.core.async_utils import iter_lines
from ralph_dashboard.core.config.models import LoopCommandConfig
from ralph_dashboard.core.exceptions import AlreadyRunningError, SpawnFailureError
from ralph_dashboard.hub.events import (
    LOOP_STATUS,
    DashboardEvent,
    EventSink,
    LogEvent,
    Severity,
    emit_event,
)

from .command_builder import build_loop_command
from .markers import parse_iteration_marker
from .run_state import LoopMode, ProcessRunState, SupervisorState

logger = logging.getLogger(__name__)

# Upper bound for a single output line (asyncio default is 64 KiB)
STREAM_LINE_LIMIT = 1024 * 1024
# Seconds to wait for pipes to drain once the child has exited
READER_DRAIN_TIMEOUT = 2.0


def _describe_exit(returncode: int) -> str:
    if returncode < 0:
        try:
            return f"{returncode} ({signal.Signals(-returncode).name})"
        except ValueError:
            pass
    return str(returncode)


class LoopSupervisor:
    """Owns the lifecycle of the loop process.

    Attributes:
        project_root: Working directory of the loop.
        config: Loop command configuration.
        grace_period: Seconds between SIGINT and SIGKILL.
        state: Current supervisor state.
        last_exit_code: Exit code of the most recent run, if any.

    """

    def __init__(
        self,
        project_root: Path,
        config: LoopCommandConfig | None = None,
        on_event: EventSink | None = None,
    ) -> None:
        """Initialize supervisor.

        Args:
            project_root: Directory the loop script runs in.
            config: Loop command configuration (defaults if None).
            on_event: Sink receiving status and log events.

        """
        self.project_root = project_root
        self.config = config or LoopCommandConfig()
        self.grace_period = self.config.grace_period
        self.on_event = on_event
        self.state = SupervisorState.IDLE
        self.last_exit_code: int | None = None

        self._run_state = ProcessRunState()
        self._process: asyncio.subprocess.Process | None = None
        self._exit_task: asyncio.Task[None] | None = None
        self._grace_task: asyncio.Task[None] | None = None
        self._stop_pending = False

    @property
    def run_state(self) -> ProcessRunState:
        """Copy of the current run state."""
        return self._run_state.copy()

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    async def start(
        self,
        mode: LoopMode | str,
        iteration_limit: int = 0,
        scope_label: str | None = None,
    ) -> ProcessRunState:
        """Start the loop.

        Spawn failures do not raise: they are reported as an error log event
        and the supervisor returns to IDLE.

        Args:
            mode: Operating mode.
            iteration_limit: Maximum iterations, 0 for unbounded.
            scope_label: Free-text work scope.

        Returns:
            Run state after the start attempt.

        Raises:
            AlreadyRunningError: If a run is starting, running or stopping.
            ValueError: If mode or iteration_limit is invalid.

        """
        if self.state is not SupervisorState.IDLE:
            raise AlreadyRunningError(self.state.value)

        mode = LoopMode(mode)
        command = build_loop_command(self.config, mode, iteration_limit, scope_label)

        self.state = SupervisorState.STARTING
        self._stop_pending = False

        suffix = f" (max {iteration_limit} iterations)" if iteration_limit else ""
        logger.info("Spawning loop in %s: %s", self.project_root, " ".join(command.argv))
        try:
            await self._log(f"Starting loop: {mode.value}{suffix}", Severity.INFO)
            process = await self._spawn(command.argv, {**os.environ, **command.env})
        except SpawnFailureError as e:
            logger.error("Failed to spawn loop: %s", e)
            self.state = SupervisorState.IDLE
            self._run_state.is_running = False
            self._run_state.os_process_id = None
            await self._log(f"Loop error: {e}", Severity.ERROR)
            await self._publish_status()
            return self.run_state
        except BaseException:
            # Cancellation or a failing sink must not leave the supervisor STARTING
            self.state = SupervisorState.IDLE
            raise

        self._process = process
        self.state = SupervisorState.RUNNING
        self._run_state = ProcessRunState(
            is_running=True,
            mode=mode,
            iteration_count=0,
            iteration_limit=iteration_limit,
            scope_label=scope_label,
            started_at=datetime.now(UTC),
            os_process_id=process.pid,
        )

        await self._publish_status()

        readers = [
            asyncio.create_task(self._read_stream(process.stdout, self._handle_stdout_line)),
            asyncio.create_task(self._read_stream(process.stderr, self._handle_stderr_line)),
        ]
        self._exit_task = asyncio.create_task(self._watch_exit(process, readers))

        if self._stop_pending:
            self._stop_pending = False
            await self.stop()

        return self.run_state

    async def _spawn(self, argv: list[str], env: dict[str, str]) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *argv,
                cwd=self.project_root,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LINE_LIMIT,
            )
        except (OSError, ValueError) as e:
            # ValueError: embedded null byte in an argument or env value
            raise SpawnFailureError(str(e)) from e

    async def _read_stream(
        self,
        stream: asyncio.StreamReader | None,
        on_line: Callable[[str], Awaitable[None]],
    ) -> None:
        if stream is None:
            return
        try:
            async for line in iter_lines(stream):
                if not line.strip():
                    continue
                await on_line(line)
        except Exception:
            logger.exception("Error reading loop output")

    async def _handle_stdout_line(self, line: str) -> None:
        iteration = parse_iteration_marker(line)
        if iteration is not None:
            self._run_state.iteration_count = iteration
            await self._publish_status()
        await self._log(line, Severity.INFO)

    async def _handle_stderr_line(self, line: str) -> None:
        await self._log(line, Severity.ERROR)

    async def _watch_exit(
        self,
        process: asyncio.subprocess.Process,
        readers: list[asyncio.Task[None]],
    ) -> None:
        returncode = await process.wait()
        _, pending = await asyncio.wait(readers, timeout=READER_DRAIN_TIMEOUT)
        for task in pending:
            task.cancel()
        await self._handle_exit(process, returncode)

    async def _handle_exit(self, process: asyncio.subprocess.Process, returncode: int) -> None:
        if self._process is not process:
            return

        self._disarm_grace_timer()
        self._process = None
        self.state = SupervisorState.IDLE
        self.last_exit_code = returncode
        self._run_state.is_running = False
        self._run_state.os_process_id = None

        logger.info("Loop PID %d exited with code %d", process.pid, returncode)
        severity = Severity.SUCCESS if returncode == 0 else Severity.ERROR
        await self._log(f"Loop exited with code {_describe_exit(returncode)}", severity)
        await self._publish_status()

    async def stop(self) -> bool:
        """Request a graceful stop.

        Sends SIGINT and arms the grace timer; SIGKILL follows if the loop
        has not exited when it fires. Calling stop() while not running emits
        a warning log event and does nothing else.

        Returns:
            True if a stop was initiated (or deferred until spawn completes).

        """
        if self.state is SupervisorState.STARTING:
            self._stop_pending = True
            await self._log("Stop requested, loop will stop once started", Severity.INFO)
            return True

        if self.state is SupervisorState.STOPPING:
            await self._log("Loop is already stopping", Severity.WARNING)
            return False

        process = self._process
        if self.state is not SupervisorState.RUNNING or process is None:
            await self._log("No loop running", Severity.WARNING)
            return False

        self.state = SupervisorState.STOPPING
        logger.info("Sending SIGINT to loop PID %d", process.pid)
        try:
            process.send_signal(signal.SIGINT)
        except ProcessLookupError:
            logger.debug("Loop PID %d already gone", process.pid)
        self._grace_task = asyncio.create_task(self._escalate_after_grace(process))

        await self._log("Stopping loop...", Severity.INFO)
        return True

    async def _escalate_after_grace(self, process: asyncio.subprocess.Process) -> None:
        await asyncio.sleep(self.grace_period)
        if self._process is not process or process.returncode is not None:
            return

        logger.warning(
            "Loop PID %d still running %.1fs after SIGINT, sending SIGKILL",
            process.pid,
            self.grace_period,
        )
        try:
            process.kill()
        except ProcessLookupError:
            logger.debug("Loop PID %d exited before SIGKILL", process.pid)
            return
        await self._log("Force killing loop...", Severity.WARNING)

    def _disarm_grace_timer(self) -> None:
        task = self._grace_task
        self._grace_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def wait(self) -> int | None:
        """Wait for the current (or most recent) run to finish.

        Returns:
            Exit code of the run, or None if nothing was started.

        """
        task = self._exit_task
        if task is not None:
            await asyncio.shield(task)
        return self.last_exit_code

    async def shutdown(self) -> None:
        """Stop the loop if running and wait for it to exit."""
        if self.state in (SupervisorState.STARTING, SupervisorState.RUNNING):
            await self.stop()

        task = self._exit_task
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=self.grace_period + 5)
            except TimeoutError:
                logger.warning("Loop did not exit during shutdown")
        self._disarm_grace_timer()
        logger.info("Loop supervisor shutdown complete")

    async def _publish_status(self) -> None:
        await emit_event(self.on_event, DashboardEvent(LOOP_STATUS, self._run_state.to_payload()))

    async def _log(self, text: str, severity: Severity) -> None:
        await emit_event(self.on_event, DashboardEvent.log(LogEvent(text, severity, source="loop")))
