"""Repository status poller.

Queries branch, working-tree change count, recent commits and the remote
repository identifier on a fixed interval. Failures are swallowed: the
previous snapshot stays current and nothing is emitted for that tick.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ralph_dashboard.core.exceptions import GitCommandError
from ralph_dashboard.hub.events import GIT_UPDATE, DashboardEvent, EventSink, emit_event

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0  # seconds
DEFAULT_COMMIT_LIMIT = 10
GIT_COMMAND_TIMEOUT = 10.0  # seconds

# Unit separator keeps commit subjects with arbitrary punctuation intact
_FIELD_SEP = "\x1f"
_LOG_FORMAT = f"%h{_FIELD_SEP}%s{_FIELD_SEP}%an{_FIELD_SEP}%aI"

# git@host:owner/repo.git | ssh://git@host:22/owner/repo.git | https://host/owner/repo
REMOTE_URL_PATTERN = re.compile(
    r"^(?:[a-z][a-z0-9+.-]*://)?(?:[^@/]+@)?[^/:]+(?::\d+)?[:/](?P<path>[^:]+?)(?:\.git)?/?$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class CommitInfo:
    short_hash: str
    message: str
    author: str
    timestamp: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "shortHash": self.short_hash,
            "message": self.message,
            "author": self.author,
            "timestamp": self.timestamp,
        }


@dataclass
class RepositoryStatus:
    """Snapshot of the project repository.

    Attributes:
        branch_name: Current branch ("HEAD" when detached).
        uncommitted_count: Number of changed paths in the working tree.
        commits: Recent commits, newest first.
        remote_url: URL of the configured remote, if any.
        remote_identifier: "owner/repo" parsed from remote_url.
        last_updated: Time of the successful poll.

    """

    branch_name: str = "main"
    uncommitted_count: int = 0
    commits: list[CommitInfo] = field(default_factory=list)
    remote_url: str | None = None
    remote_identifier: str | None = None
    last_updated: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "branchName": self.branch_name,
            "uncommittedCount": self.uncommitted_count,
            "commits": [commit.to_payload() for commit in self.commits],
            "remoteUrl": self.remote_url,
            "remoteIdentifier": self.remote_identifier,
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }


def parse_remote_identifier(url: str | None) -> str | None:
    """Extract "owner/repo" from an SSH- or HTTPS-style remote URL.

    Example:
        >>> parse_remote_identifier("git@github.com:acme/widgets.git")
        'acme/widgets'
        >>> parse_remote_identifier("https://github.com/acme/widgets")
        'acme/widgets'

    """
    if not url:
        return None
    match = REMOTE_URL_PATTERN.match(url.strip())
    if match is None:
        return None
    return match.group("path")


def parse_log_output(output: str) -> list[CommitInfo]:
    commits = []
    for line in output.splitlines():
        parts = line.split(_FIELD_SEP)
        if len(parts) != 4:
            continue
        short_hash, message, author, timestamp = parts
        commits.append(CommitInfo(short_hash, message, author, timestamp))
    return commits


class RepositoryStatusPoller:
    """Polls git for repository status.

    Attributes:
        project_root: Repository working tree.
        interval: Seconds between polls.
        commit_limit: Maximum commits reported.
        remote: Remote whose URL yields the repository identifier.

    """

    def __init__(
        self,
        project_root: Path,
        on_event: EventSink | None = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        commit_limit: int = DEFAULT_COMMIT_LIMIT,
        remote: str = "origin",
    ) -> None:
        self.project_root = project_root
        self.on_event = on_event
        self.interval = interval
        self.commit_limit = commit_limit
        self.remote = remote
        self._task: asyncio.Task[None] | None = None

    async def _run_git(self, *args: str) -> tuple[int, str, str]:
        try:
            process = await asyncio.create_subprocess_exec(
                "git",
                *args,
                cwd=self.project_root,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise GitCommandError(f"git unavailable: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), GIT_COMMAND_TIMEOUT)
        except TimeoutError as e:
            process.kill()
            await process.wait()
            raise GitCommandError(f"git {args[0]} timed out") from e

        return (
            process.returncode or 0,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def _git(self, *args: str) -> str:
        returncode, stdout, stderr = await self._run_git(*args)
        if returncode != 0:
            raise GitCommandError(f"git {' '.join(args)} failed: {stderr.strip()}")
        return stdout

    async def query_status(self) -> RepositoryStatus:
        """Run the git queries and build a snapshot.

        Raises:
            GitCommandError: If the directory is not a repository or git fails.

        """
        branch = (await self._git("branch", "--show-current")).strip() or "HEAD"

        porcelain = await self._git("status", "--porcelain")
        uncommitted = sum(1 for line in porcelain.splitlines() if line.strip())

        commits: list[CommitInfo] = []
        has_head, _, _ = await self._run_git("rev-parse", "--verify", "--quiet", "HEAD")
        if has_head == 0:
            log = await self._git("log", f"--max-count={self.commit_limit}", f"--pretty=format:{_LOG_FORMAT}")
            commits = parse_log_output(log)

        remote_url: str | None = None
        returncode, stdout, _ = await self._run_git("remote", "get-url", self.remote)
        if returncode == 0:
            remote_url = stdout.strip() or None

        return RepositoryStatus(
            branch_name=branch,
            uncommitted_count=uncommitted,
            commits=commits,
            remote_url=remote_url,
            remote_identifier=parse_remote_identifier(remote_url),
            last_updated=datetime.now(UTC),
        )

    async def poll_once(self) -> RepositoryStatus | None:
        """Query status and emit it; returns None (and emits nothing) on failure."""
        try:
            status = await self.query_status()
        except GitCommandError as e:
            logger.debug("Repository status unavailable: %s", e)
            return None

        await emit_event(self.on_event, DashboardEvent(GIT_UPDATE, status.to_payload()))
        return status

    async def _run(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Unexpected error polling repository status")
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        """Start polling; the first poll runs immediately."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
