"""Combined status route handler.

Provides:
- /api/status: Loop status, checklist, repository and project summary
"""

import logging

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ralph_dashboard.hub.broadcast_hub import BroadcastHub
from ralph_dashboard.hub.events import CONFIG_UPDATE, GIT_UPDATE, LOOP_STATUS, TASKS_UPDATE

logger = logging.getLogger(__name__)


async def get_status(request: Request) -> JSONResponse:
    """GET /api/status - Latest snapshot of every state category."""
    hub: BroadcastHub = request.app.state.hub
    return JSONResponse({
        "loop": hub.snapshot(LOOP_STATUS),
        "tasks": hub.snapshot(TASKS_UPDATE),
        "git": hub.snapshot(GIT_UPDATE),
        "config": hub.snapshot(CONFIG_UPDATE),
        "observers": hub.subscriber_count,
    })


routes = [
    Route("/api/status", get_status, methods=["GET"]),
]
