"""Named project documents readable and writable by observers.

Only names on the configured allow-list are served. Names are validated
before the allow-list check so path escapes are reported as such.
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import Any

from ralph_dashboard.core.config.models import DocumentsConfig
from ralph_dashboard.core.exceptions import (
    DocumentNotFoundError,
    DocumentWriteError,
    InvalidDocumentNameError,
)

logger = logging.getLogger(__name__)

DEFAULT_LOOP_SCRIPT = "loop.sh"


def validate_document_name(name: str) -> str:
    """Reject empty, absolute and parent-escaping names.

    Raises:
        InvalidDocumentNameError: If the name could address a file outside
            the project directory.

    """
    if not name or "\x00" in name:
        raise InvalidDocumentNameError(name)
    path = PurePosixPath(name.replace("\\", "/"))
    if path.is_absolute() or ".." in path.parts or (len(name) > 1 and name[1] == ":"):
        raise InvalidDocumentNameError(name)
    return name


class DocumentStore:
    """Read/write access to the allow-listed documents of one project.

    Attributes:
        project_root: Directory documents are resolved against.
        allowed: Document names that may be read or written.
        loop_script: Script whose presence is reported in the summary.

    """

    def __init__(
        self,
        project_root: Path,
        config: DocumentsConfig | None = None,
        loop_script: str = DEFAULT_LOOP_SCRIPT,
    ) -> None:
        self.project_root = project_root
        self.allowed = frozenset((config or DocumentsConfig()).allowed)
        self.loop_script = loop_script

    def resolve(self, name: str) -> Path:
        """Validate a name and return its path.

        Raises:
            InvalidDocumentNameError: If the name escapes the project.
            DocumentNotFoundError: If the name is not on the allow-list.

        """
        validate_document_name(name)
        if name not in self.allowed:
            raise DocumentNotFoundError(name)
        return self.project_root / name

    async def read(self, name: str) -> str:
        path = self.resolve(name)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (FileNotFoundError, IsADirectoryError) as e:
            raise DocumentNotFoundError(name) from e

    async def write(self, name: str, content: str) -> None:
        """Write a document, creating parent directories as needed.

        Raises:
            InvalidDocumentNameError: If the name escapes the project.
            DocumentNotFoundError: If the name is not on the allow-list.
            DocumentWriteError: If the file cannot be written.

        """
        path = self.resolve(name)
        try:
            await asyncio.to_thread(self._write, path, content)
        except OSError as e:
            logger.error("Failed to write %s: %s", path, e)
            raise DocumentWriteError(name, str(e)) from e
        logger.info("Saved %s (%d chars)", name, len(content))

    @staticmethod
    def _write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def summary(self) -> dict[str, Any]:
        """Presence flags for the project's well-known files."""
        root = self.project_root
        return {
            "projectPath": str(root),
            "hasAgentsMd": (root / "AGENTS.md").is_file(),
            "hasClaudeMd": (root / "CLAUDE.md").is_file(),
            "hasImplementationPlan": (root / "IMPLEMENTATION_PLAN.md").is_file(),
            "hasSpecs": (root / "specs").is_dir(),
            "hasCursorRules": (root / ".cursor" / "rules").is_dir(),
            "hasLoopSh": (root / self.loop_script).is_file(),
        }
