"""Dispatch of observer commands.

Commands arrive as ``{"type": ..., "payload": ...}`` from one observer.
Their effects flow back through the normal event path; only document
reads, save acknowledgements and errors are unicast to the sender.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ralph_dashboard.core.exceptions import DashboardError
from ralph_dashboard.documents.generator import DocumentGenerator, GenerationRequest
from ralph_dashboard.documents.store import DocumentStore
from ralph_dashboard.manager.process_supervisor import LoopSupervisor
from ralph_dashboard.watchers.checklist import ChecklistDiffer

from .broadcast_hub import BroadcastHub, Subscriber
from .events import (
    COMMAND_ERROR,
    CONFIG_CONTENT,
    CONFIG_READ,
    CONFIG_SAVED,
    CONFIG_UPDATE,
    CONFIG_WRITE,
    LOOP_START,
    LOOP_STOP,
    PRD_CANCEL,
    PRD_GENERATE,
    TASKS_TOGGLE,
    DashboardEvent,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Subscriber, dict[str, Any]], Awaitable[None]]


def parse_iteration_limit(value: Any) -> int:
    """Coerce an optional iteration limit; None and "" mean unbounded.

    Raises:
        ValueError: If the value is not a non-negative integer.

    """
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError("iterationLimit must be an integer")
    limit = int(value)
    if limit < 0:
        raise ValueError("iterationLimit must be >= 0")
    return limit


def document_name(payload: dict[str, Any]) -> str:
    """Document name from a payload (``name``, or legacy ``file``)."""
    name = payload.get("name", payload.get("file"))
    if not isinstance(name, str):
        raise ValueError("Document name is required")
    return name


class CommandDispatcher:
    """Routes observer commands to the supervisor, documents and generator."""

    def __init__(
        self,
        hub: BroadcastHub,
        supervisor: LoopSupervisor,
        documents: DocumentStore,
        checklist: ChecklistDiffer,
        generator: DocumentGenerator | None = None,
    ) -> None:
        self.hub = hub
        self.supervisor = supervisor
        self.documents = documents
        self.checklist = checklist
        self.generator = generator

        self._handlers: dict[str, Handler] = {
            LOOP_START: self._loop_start,
            LOOP_STOP: self._loop_stop,
            CONFIG_READ: self._config_read,
            CONFIG_WRITE: self._config_write,
            TASKS_TOGGLE: self._tasks_toggle,
            PRD_GENERATE: self._prd_generate,
            PRD_CANCEL: self._prd_cancel,
        }

    async def dispatch(self, subscriber: Subscriber, message: Any) -> None:
        """Handle one inbound message.

        Every failure is reported to the sender as ``command:error``;
        nothing is raised to the connection handler.
        """
        command = message.get("type") if isinstance(message, dict) else None
        if not isinstance(command, str):
            self._reply_error(subscriber, None, "bad_message", "Message must be an object with a type")
            return

        handler = self._handlers.get(command)
        if handler is None:
            self._reply_error(subscriber, command, "unknown_command", f"Unknown command: {command}")
            return

        payload = message.get("payload")
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            self._reply_error(subscriber, command, "bad_message", "Payload must be an object")
            return

        try:
            await handler(subscriber, payload)
        except DashboardError as e:
            self._reply_error(subscriber, command, e.code, str(e))
        except KeyError as e:
            self._reply_error(subscriber, command, "not_found", f"Unknown item: {e.args[0]}")
        except (ValueError, TypeError) as e:
            self._reply_error(subscriber, command, "bad_request", str(e))
        except OSError as e:
            logger.error("Command %s failed: %s", command, e)
            self._reply_error(subscriber, command, "io_error", str(e))

    def _reply_error(self, subscriber: Subscriber, command: str | None, code: str, message: str) -> None:
        logger.debug("Command %s rejected: %s", command, message)
        self.hub.unicast(
            subscriber,
            DashboardEvent(COMMAND_ERROR, {"command": command, "code": code, "message": message}),
        )

    async def _loop_start(self, subscriber: Subscriber, payload: dict[str, Any]) -> None:
        scope = payload.get("scopeLabel")
        await self.supervisor.start(
            payload.get("mode", "build"),
            iteration_limit=parse_iteration_limit(payload.get("iterationLimit")),
            scope_label=scope if isinstance(scope, str) and scope else None,
        )

    async def _loop_stop(self, subscriber: Subscriber, payload: dict[str, Any]) -> None:
        await self.supervisor.stop()

    async def _config_read(self, subscriber: Subscriber, payload: dict[str, Any]) -> None:
        name = document_name(payload)
        content = await self.documents.read(name)
        self.hub.unicast(subscriber, DashboardEvent(CONFIG_CONTENT, {"name": name, "content": content}))

    async def _config_write(self, subscriber: Subscriber, payload: dict[str, Any]) -> None:
        name = document_name(payload)
        content = payload.get("content")
        if not isinstance(content, str):
            raise ValueError("content must be a string")
        await self.documents.write(name, content)
        self.hub.unicast(subscriber, DashboardEvent(CONFIG_SAVED, {"name": name}))
        self.hub.publish(DashboardEvent(CONFIG_UPDATE, self.documents.summary()))

    async def _tasks_toggle(self, subscriber: Subscriber, payload: dict[str, Any]) -> None:
        item_id = payload.get("id")
        if not isinstance(item_id, str):
            raise ValueError("id must be a string")
        await self.checklist.toggle(item_id, bool(payload.get("done")))

    async def _prd_generate(self, subscriber: Subscriber, payload: dict[str, Any]) -> None:
        if self.generator is None:
            raise ValueError("Document generation is not available")
        await self.generator.generate(GenerationRequest.from_payload(payload))

    async def _prd_cancel(self, subscriber: Subscriber, payload: dict[str, Any]) -> None:
        if self.generator is not None:
            await self.generator.cancel()
