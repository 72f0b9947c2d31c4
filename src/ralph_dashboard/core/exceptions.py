"""Exception hierarchy for the Ralph dashboard.

All dashboard errors derive from DashboardError so route handlers and the
observer command dispatcher can map them to typed payloads.
"""


class DashboardError(Exception):
    """Base class for all dashboard errors."""

    code = "dashboard_error"


class ConfigError(DashboardError):
    """Configuration file is missing required fields or cannot be parsed."""

    code = "config_error"


class AlreadyRunningError(DashboardError):
    """Start requested while a supervised run is active.

    Attributes:
        state: Supervisor state at the time of the request.

    """

    code = "already_running"

    def __init__(self, state: str) -> None:
        super().__init__(f"Loop already {state}")
        self.state = state


class SpawnFailureError(DashboardError):
    """Child process could not be created."""

    code = "spawn_failed"


class DocumentError(DashboardError):
    """Base class for named document failures.

    Attributes:
        name: Document name as requested by the caller.

    """

    code = "document_error"

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name


class InvalidDocumentNameError(DocumentError):
    """Document name is absolute or escapes the project directory."""

    code = "invalid_name"

    def __init__(self, name: str) -> None:
        super().__init__(name, f"Invalid document name: {name}")


class DocumentNotFoundError(DocumentError):
    """Document is not on the allow-list or does not exist on disk."""

    code = "not_found"

    def __init__(self, name: str) -> None:
        super().__init__(name, f"Document not found: {name}")


class DocumentWriteError(DocumentError):
    """Writing a document failed."""

    code = "write_failed"

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(name, f"Failed to save {name}: {reason}")


class GitCommandError(DashboardError):
    """A git query failed (not a repository, git missing, I/O error)."""

    code = "git_failed"


class GenerationInProgressError(DashboardError):
    """Document generation requested while one is already running."""

    code = "generation_in_progress"

    def __init__(self) -> None:
        super().__init__("Document generation already in progress")


__all__ = [
    "AlreadyRunningError",
    "ConfigError",
    "DashboardError",
    "DocumentError",
    "DocumentNotFoundError",
    "DocumentWriteError",
    "GenerationInProgressError",
    "GitCommandError",
    "InvalidDocumentNameError",
    "SpawnFailureError",
]
