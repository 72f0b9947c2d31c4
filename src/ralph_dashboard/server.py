"""Dashboard server.

Wires the producers (loop supervisor, log tailer, checklist differ,
repository poller, document generator) to the broadcast hub and exposes
them through a Starlette application.
"""

import contextlib
import logging
from collections.abc import AsyncIterator
from pathlib import Path

import uvicorn
from starlette.applications import Starlette

from ralph_dashboard.core.config import DashboardConfig, get_config
from ralph_dashboard.documents.generator import DocumentGenerator
from ralph_dashboard.documents.store import DEFAULT_LOOP_SCRIPT, DocumentStore
from ralph_dashboard.hub.broadcast_hub import BroadcastHub
from ralph_dashboard.hub.commands import CommandDispatcher
from ralph_dashboard.hub.events import CONFIG_UPDATE, DashboardEvent
from ralph_dashboard.manager.process_supervisor import LoopSupervisor
from ralph_dashboard.routes import API_ROUTES
from ralph_dashboard.watchers.checklist import ChecklistDiffer
from ralph_dashboard.watchers.file_watcher import ProjectFileWatcher
from ralph_dashboard.watchers.git_status import RepositoryStatusPoller
from ralph_dashboard.watchers.log_tailer import LogTailer

logger = logging.getLogger(__name__)


def _loop_script(command: list[str]) -> str:
    """Script path reported in the project summary."""
    for arg in command:
        if arg.endswith(".sh"):
            return arg
    return DEFAULT_LOOP_SCRIPT


class DashboardServer:
    """Dashboard for one project directory.

    Attributes:
        project_root: Project the loop runs in.
        config: Active configuration.
        hub: Broadcast hub every producer publishes to.

    """

    def __init__(self, project_root: Path, config: DashboardConfig | None = None) -> None:
        self.project_root = project_root.resolve()
        self.config = config or get_config()
        cfg = self.config

        self.hub = BroadcastHub(cfg.server.subscriber_queue_size)
        sink = self.hub.publish

        self.supervisor = LoopSupervisor(self.project_root, cfg.loop, on_event=sink)
        self.tailer = LogTailer(
            self.project_root / cfg.watch.log_file,
            on_event=sink,
            replay_backlog=cfg.watch.replay_backlog,
        )
        self.checklist = ChecklistDiffer(self.project_root / cfg.watch.checklist_file, on_event=sink)
        self.poller = RepositoryStatusPoller(
            self.project_root,
            on_event=sink,
            interval=cfg.git.poll_interval,
            commit_limit=cfg.git.commit_limit,
            remote=cfg.git.remote,
        )
        self.documents = DocumentStore(self.project_root, cfg.documents, _loop_script(cfg.loop.command))
        self.generator = DocumentGenerator(self.project_root, cfg.generator, on_event=sink)
        self.dispatcher = CommandDispatcher(
            self.hub,
            self.supervisor,
            self.documents,
            self.checklist,
            self.generator,
        )

        self.file_watcher = ProjectFileWatcher(self.project_root)
        self.file_watcher.add(cfg.watch.log_file, self.tailer.on_change)
        self.file_watcher.add(cfg.watch.checklist_file, self.checklist.on_change)

    async def startup(self) -> None:
        """Start watching and publish the initial snapshots."""
        logger.info("Dashboard starting for %s", self.project_root)
        await self.file_watcher.start(initial=False)
        self.hub.publish(DashboardEvent(CONFIG_UPDATE, self.documents.summary()))
        await self.checklist.on_change()
        await self.tailer.start()
        self.poller.start()

    async def shutdown(self) -> None:
        """Stop producers and the loop, then close observer channels."""
        logger.info("Dashboard shutting down")
        await self.poller.stop()
        await self.file_watcher.stop()
        await self.generator.cancel()
        await self.supervisor.shutdown()
        self.hub.close()

    @contextlib.asynccontextmanager
    async def lifespan(self, app: Starlette) -> AsyncIterator[None]:
        await self.startup()
        try:
            yield
        finally:
            await self.shutdown()

    def create_app(self) -> Starlette:
        """Build the Starlette application with components on app.state."""
        app = Starlette(routes=API_ROUTES, lifespan=self.lifespan)
        app.state.server = self
        app.state.hub = self.hub
        app.state.supervisor = self.supervisor
        app.state.documents = self.documents
        app.state.generator = self.generator
        app.state.dispatcher = self.dispatcher
        return app

    def run(self, host: str | None = None, port: int | None = None, log_level: str = "info") -> None:
        """Serve until interrupted."""
        config = uvicorn.Config(
            self.create_app(),
            host=host or self.config.server.host,
            port=port or self.config.server.port,
            log_level=log_level,
        )
        server = uvicorn.Server(config)
        logger.info("Serving dashboard on http://%s:%d", config.host, config.port)
        server.run()
