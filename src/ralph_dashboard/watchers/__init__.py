"""Producers watching project files and the repository.

Public API:
    LogTailer: Emits newly appended log lines
    ChecklistDiffer: Re-parses the implementation plan checklist
    RepositoryStatusPoller: Polls git status on an interval
    ProjectFileWatcher: watchdog observer bridged to asyncio
"""

from .checklist import ChecklistDiffer, ChecklistItem, ChecklistSnapshot, parse_checklist
from .file_watcher import ProjectFileWatcher
from .git_status import CommitInfo, RepositoryStatus, RepositoryStatusPoller, parse_remote_identifier
from .log_tailer import LogTailer, classify_line

__all__ = [
    "ChecklistDiffer",
    "ChecklistItem",
    "ChecklistSnapshot",
    "CommitInfo",
    "LogTailer",
    "ProjectFileWatcher",
    "RepositoryStatus",
    "RepositoryStatusPoller",
    "classify_line",
    "parse_checklist",
    "parse_remote_identifier",
]
