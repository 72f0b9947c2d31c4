"""Dashboard configuration models."""

from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_DOCUMENTS = (
    "AGENTS.md",
    "CLAUDE.md",
    "IMPLEMENTATION_PLAN.md",
    "PROMPT_build.md",
    "PROMPT_plan.md",
    "PROMPT_plan_slc.md",
    "PROMPT_plan_work.md",
    "AUDIENCE_JTBD.md",
)


class LoopCommandConfig(BaseModel):
    """How the supervised loop is launched and stopped.

    Attributes:
        command: Base argv; mode arguments are appended to it.
        scope_env_var: Environment variable carrying the free-text scope.
        grace_period: Seconds between SIGINT and SIGKILL on stop.

    """

    model_config = ConfigDict(frozen=True)

    command: list[str] = Field(
        default_factory=lambda: ["bash", "loop.sh"],
        description="Base argv of the loop script",
    )
    scope_env_var: str = Field(
        default="WORK_SCOPE",
        description="Environment variable used to pass the work scope",
    )
    grace_period: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait after SIGINT before SIGKILL",
    )

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("loop.command must contain at least one element")
        return v


class WatchConfig(BaseModel):
    """Files tailed and parsed inside the project directory."""

    model_config = ConfigDict(frozen=True)

    log_file: str = Field(default="ralph.log", description="Append-only loop log")
    checklist_file: str = Field(
        default="IMPLEMENTATION_PLAN.md",
        description="Markdown checklist re-parsed on change",
    )
    replay_backlog: bool = Field(
        default=True,
        description="Emit existing log content on first attach",
    )


class GitConfig(BaseModel):
    """Repository status polling."""

    model_config = ConfigDict(frozen=True)

    poll_interval: float = Field(default=10.0, gt=0, description="Seconds between polls")
    commit_limit: int = Field(default=10, ge=1, le=100, description="Recent commits to report")
    remote: str = Field(default="origin", description="Remote used for the repository identifier")


class DocumentsConfig(BaseModel):
    """Allow-list of named documents readable and writable by observers."""

    model_config = ConfigDict(frozen=True)

    allowed: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DOCUMENTS),
        description="Document names relative to the project root",
    )

    @field_validator("allowed", mode="before")
    @classmethod
    def coerce_none_to_defaults(cls, v: Any) -> list[str]:
        """YAML parses an empty key as None."""
        if v is None:
            return list(DEFAULT_DOCUMENTS)
        return list(v)

    @field_validator("allowed")
    @classmethod
    def validate_relative(cls, v: list[str]) -> list[str]:
        for name in v:
            path = PurePosixPath(name)
            if path.is_absolute() or ".." in path.parts:
                raise ValueError(f"documents.allowed entry escapes project: {name}")
        return v


class GeneratorConfig(BaseModel):
    """External tool used to generate product documents."""

    model_config = ConfigDict(frozen=True)

    command: list[str] = Field(
        default_factory=lambda: [
            "claude",
            "-p",
            "--output-format=stream-json",
            "--model",
            "opus",
            "--verbose",
            "--dangerously-skip-permissions",
        ],
        description="Generator argv; the prompt is written to stdin",
    )
    prompt_file: str = Field(default="PROMPT_prd.md", description="Project prompt template")


class ServerConfig(BaseModel):
    """HTTP/WebSocket server settings."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3001, ge=1, le=65535)
    subscriber_queue_size: int = Field(
        default=1000,
        ge=1,
        description="Per-observer outbound queue; oldest message dropped when full",
    )


class DashboardConfig(BaseModel):
    """Root configuration loaded from ralph-dashboard.yaml.

    Example:
        >>> config = DashboardConfig(loop={"grace_period": 2})
        >>> config.loop.grace_period
        2.0

    """

    model_config = ConfigDict(frozen=True)

    loop: LoopCommandConfig = Field(default_factory=LoopCommandConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    documents: DocumentsConfig = Field(default_factory=DocumentsConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @field_validator("loop", "watch", "git", "documents", "generator", "server", mode="before")
    @classmethod
    def coerce_none_to_section(cls, v: Any) -> Any:
        """Empty YAML sections parse as None; treat them as defaults."""
        if v is None:
            return {}
        return v
