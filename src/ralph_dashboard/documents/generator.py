"""One-shot product document generator.

Renders a prompt from product fields, pipes it to an external tool that
answers in stream-JSON, relays text as it arrives and splits the final
output into the PRD and audience documents on sentinel markers.

Unlike the loop supervisor there is no graceful stop: cancel() terminates
the tool immediately.
"""

import asyncio
import contextlib
import json
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ralph_dashboard.core.async_utils import iter_lines
from ralph_dashboard.core.config.models import GeneratorConfig
from ralph_dashboard.core.exceptions import GenerationInProgressError
from ralph_dashboard.hub.events import (
    PRD_COMPLETE,
    PRD_ERROR,
    PRD_LOG,
    PRD_OUTPUT,
    PRD_STATUS,
    DashboardEvent,
    EventSink,
    emit_event,
)

logger = logging.getLogger(__name__)

PRD_PATTERN = re.compile(r"===PRD_START===\s*(.*?)\s*===PRD_END===", re.DOTALL)
AUDIENCE_PATTERN = re.compile(r"===AUDIENCE_START===\s*(.*?)\s*===AUDIENCE_END===", re.DOTALL)

STREAM_LINE_LIMIT = 4 * 1024 * 1024

DEFAULT_PROMPT = """\
You are a product requirements document generator for AI-agent-driven development projects.

## Product Information

- **Product Name**: ${PRODUCT_NAME}
- **Problem Statement**: ${PROBLEM_STATEMENT}
- **Target Audience**: ${TARGET_AUDIENCE}
- **Key Capabilities**:
${KEY_CAPABILITIES}

---

Generate two complete markdown documents based on the inputs above.

NOTE: Do NOT include timeline, budget, or deadline constraints - not relevant for AI agent implementation.

## Output Format

===PRD_START===
[Full PRD.md content]
===PRD_END===

===AUDIENCE_START===
[Full AUDIENCE_JTBD.md content]
===AUDIENCE_END==="""


@dataclass(frozen=True)
class GenerationRequest:
    """Product fields substituted into the prompt template."""

    product_name: str
    problem_statement: str
    target_audience: str
    key_capabilities: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Any) -> "GenerationRequest":
        """Build from an observer payload.

        Raises:
            ValueError: If a field is missing or has the wrong type.

        """
        if not isinstance(payload, dict):
            raise ValueError("Generation payload must be an object")

        fields = {}
        for key in ("productName", "problemStatement", "targetAudience"):
            value = payload.get(key, "")
            if not isinstance(value, str):
                raise ValueError(f"{key} must be a string")
            fields[key] = value
        if not fields["productName"].strip():
            raise ValueError("productName is required")

        capabilities = payload.get("keyCapabilities") or []
        if isinstance(capabilities, str):
            capabilities = [capabilities]
        if not isinstance(capabilities, list) or not all(isinstance(c, str) for c in capabilities):
            raise ValueError("keyCapabilities must be a list of strings")

        return cls(
            product_name=fields["productName"],
            problem_statement=fields["problemStatement"],
            target_audience=fields["targetAudience"],
            key_capabilities=tuple(c for c in capabilities if c.strip()),
        )


@dataclass(frozen=True)
class GeneratedDocuments:
    prd: str
    audience: str

    def to_payload(self) -> dict[str, str]:
        return {"prd": self.prd, "audience": self.audience}


@dataclass(frozen=True)
class StreamChunk:
    """Text recovered from one line of tool output.

    Attributes:
        kind: "output" for model text, "log" for non-JSON lines.
        text: The text itself.

    """

    kind: str
    text: str


def render_prompt(template: str, request: GenerationRequest) -> str:
    """Substitute product fields; capabilities become a numbered list.

    Example:
        >>> req = GenerationRequest("Acme", "p", "a", ("fast", "safe"))
        >>> render_prompt("${KEY_CAPABILITIES}", req)
        '1. fast\\n2. safe'

    """
    capabilities = "\n".join(f"{i}. {cap}" for i, cap in enumerate(request.key_capabilities, start=1))
    return (
        template.replace("${PRODUCT_NAME}", request.product_name)
        .replace("${PROBLEM_STATEMENT}", request.problem_statement)
        .replace("${TARGET_AUDIENCE}", request.target_audience)
        .replace("${KEY_CAPABILITIES}", capabilities)
    )


def decode_stream_line(line: str) -> list[StreamChunk]:
    """Extract text from one stream-JSON line.

    Text deltas and assistant message text blocks become output chunks;
    lines that are not JSON become log chunks. Other JSON messages
    (tool use, system, result) yield nothing.
    """
    try:
        message = json.loads(line)
    except json.JSONDecodeError:
        if line.strip():
            return [StreamChunk("log", line)]
        return []

    if not isinstance(message, dict):
        return []

    msg_type = message.get("type")
    if msg_type in ("text", "content_block_delta"):
        delta = message.get("delta")
        text = message.get("text") or (delta.get("text") if isinstance(delta, dict) else None)
        return [StreamChunk("output", text)] if text else []

    if msg_type == "assistant":
        body = message.get("message")
        content = body.get("content") if isinstance(body, dict) else None
        if not isinstance(content, list):
            return []
        return [
            StreamChunk("output", block["text"])
            for block in content
            if isinstance(block, dict) and block.get("type") == "text" and block.get("text")
        ]

    return []


def parse_documents(output: str) -> GeneratedDocuments:
    """Split accumulated output on sentinel markers.

    Without PRD markers the whole output is the PRD; without audience
    markers the audience document is empty.
    """
    prd_match = PRD_PATTERN.search(output)
    audience_match = AUDIENCE_PATTERN.search(output)
    return GeneratedDocuments(
        prd=prd_match.group(1).strip() if prd_match else output,
        audience=audience_match.group(1).strip() if audience_match else "",
    )


class DocumentGenerator:
    """Runs at most one generation at a time.

    Attributes:
        project_root: Working directory of the tool and location of the
            prompt template.
        config: Tool argv and prompt file name.
        started_at: Start time of the active generation, if any.

    """

    def __init__(
        self,
        project_root: Path,
        config: GeneratorConfig | None = None,
        on_event: EventSink | None = None,
    ) -> None:
        self.project_root = project_root
        self.config = config or GeneratorConfig()
        self.on_event = on_event
        self.started_at: datetime | None = None

        self._generating = False
        self._process: asyncio.subprocess.Process | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_generating(self) -> bool:
        return self._generating

    def status_payload(self) -> dict[str, Any]:
        return {
            "generating": self._generating,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
        }

    async def generate(self, request: GenerationRequest) -> None:
        """Start a generation and return once the tool is running.

        Failures to read the prompt template or start the tool are reported
        as prd:error events, not raised.

        Raises:
            GenerationInProgressError: If a generation is already active.

        """
        if self._generating:
            raise GenerationInProgressError()

        self._generating = True
        self.started_at = datetime.now(UTC)
        try:
            await self._publish_status()
            prompt = render_prompt(await self._load_template(), request)
            logger.info("Generating documents for %r", request.product_name)
            process = await asyncio.create_subprocess_exec(
                *self.config.command,
                cwd=self.project_root,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LINE_LIMIT,
            )
        except (OSError, ValueError) as e:
            # ValueError covers an undecodable template and null bytes in argv
            logger.error("Failed to start document generator: %s", e)
            await self._finish(DashboardEvent(PRD_ERROR, {"error": str(e)}))
            return
        except BaseException:
            self._generating = False
            self.started_at = None
            raise

        self._process = process
        self._task = asyncio.create_task(self._run(process, prompt))

    async def _load_template(self) -> str:
        path = self.project_root / self.config.prompt_file
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No %s, using built-in prompt", path.name)
            return DEFAULT_PROMPT

    async def _run(self, process: asyncio.subprocess.Process, prompt: str) -> None:
        output: list[str] = []
        try:
            returncode = await self._communicate(process, prompt, output)
        except Exception as e:
            logger.exception("Document generator output handling failed")
            if self._process is not process:
                return
            self._process = None
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await self._finish(DashboardEvent(PRD_ERROR, {"error": f"Generation failed: {e}"}))
            return

        if self._process is not process:
            return

        self._process = None
        if returncode == 0:
            documents = parse_documents("".join(output))
            await self._finish(DashboardEvent(PRD_COMPLETE, documents.to_payload()))
        else:
            await self._finish(DashboardEvent(PRD_ERROR, {"error": f"Process exited with code {returncode}"}))

    async def _communicate(
        self,
        process: asyncio.subprocess.Process,
        prompt: str,
        output: list[str],
    ) -> int:
        if process.stdin is not None:
            try:
                process.stdin.write(prompt.encode("utf-8"))
                await process.stdin.drain()
                process.stdin.close()
            except (BrokenPipeError, ConnectionResetError):
                logger.warning("Document generator closed stdin early")

        await asyncio.gather(
            self._read_stdout(process.stdout, output),
            self._read_stderr(process.stderr),
        )
        return await process.wait()

    async def _read_stdout(self, stream: asyncio.StreamReader | None, output: list[str]) -> None:
        if stream is None:
            return
        async for line in iter_lines(stream):
            for chunk in decode_stream_line(line):
                if chunk.kind == "output":
                    output.append(chunk.text)
                    await emit_event(self.on_event, DashboardEvent(PRD_OUTPUT, {"text": chunk.text}))
                else:
                    output.append(chunk.text + "\n")
                    await emit_event(self.on_event, DashboardEvent(PRD_LOG, {"text": chunk.text}))

    async def _read_stderr(self, stream: asyncio.StreamReader | None) -> None:
        if stream is None:
            return
        async for line in iter_lines(stream):
            if line.strip():
                await emit_event(self.on_event, DashboardEvent(PRD_LOG, {"text": line, "stream": "stderr"}))

    async def cancel(self) -> bool:
        """Terminate the active generation.

        Returns:
            True if a generation was cancelled.

        """
        process = self._process
        if process is None:
            return False

        self._process = None
        try:
            process.terminate()
        except ProcessLookupError:
            logger.debug("Generator PID %d already gone", process.pid)
        logger.info("Document generation cancelled")
        await self._finish(DashboardEvent(PRD_ERROR, {"error": "PRD generation cancelled"}))
        return True

    async def wait(self) -> None:
        """Wait for the output of the current tool run to be consumed."""
        task = self._task
        if task is not None:
            await asyncio.shield(task)

    async def _finish(self, event: DashboardEvent) -> None:
        self._generating = False
        self.started_at = None
        await emit_event(self.on_event, event)
        await self._publish_status()

    async def _publish_status(self) -> None:
        await emit_event(self.on_event, DashboardEvent(PRD_STATUS, self.status_payload()))
