"""Loop control route handlers.

Provides:
- /api/loop/start: Start the loop in a mode
- /api/loop/stop: Request a graceful stop
"""

import json
import logging

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ralph_dashboard.core.exceptions import AlreadyRunningError
from ralph_dashboard.hub.commands import parse_iteration_limit
from ralph_dashboard.manager.process_supervisor import LoopSupervisor

logger = logging.getLogger(__name__)


async def start_loop(request: Request) -> JSONResponse:
    """POST /api/loop/start - Start the loop.

    Body: {"mode": "build", "iterationLimit": 10, "scopeLabel": "..."}

    Returns:
        200: Start attempted; body holds the resulting run state.
        400: Invalid mode or iteration limit.
        409: Loop already starting, running or stopping.

    """
    supervisor: LoopSupervisor = request.app.state.supervisor

    try:
        body = await request.json()
    except json.JSONDecodeError:
        body = {}
    if not isinstance(body, dict):
        return JSONResponse({"error": "Body must be an object"}, status_code=400)

    scope = body.get("scopeLabel")
    try:
        run_state = await supervisor.start(
            body.get("mode", "build"),
            iteration_limit=parse_iteration_limit(body.get("iterationLimit")),
            scope_label=scope if isinstance(scope, str) and scope else None,
        )
    except AlreadyRunningError as e:
        return JSONResponse({"error": str(e), "state": e.state}, status_code=409)
    except (ValueError, TypeError) as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    return JSONResponse({"success": run_state.is_running, "status": run_state.to_payload()})


async def stop_loop(request: Request) -> JSONResponse:
    """POST /api/loop/stop - Stop the loop.

    Stopping an idle loop is not an error; the response reports whether a
    stop was initiated.
    """
    supervisor: LoopSupervisor = request.app.state.supervisor
    stopping = await supervisor.stop()
    return JSONResponse({"success": True, "stopping": stopping})


routes = [
    Route("/api/loop/start", start_loop, methods=["POST"]),
    Route("/api/loop/stop", stop_loop, methods=["POST"]),
]
