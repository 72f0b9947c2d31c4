"""Named document route handlers.

Provides:
- GET /api/config/{name}: Read an allow-listed document
- POST|PUT /api/config/{name}: Write an allow-listed document
"""

import json
import logging

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ralph_dashboard.core.exceptions import (
    DocumentError,
    DocumentNotFoundError,
    DocumentWriteError,
    InvalidDocumentNameError,
)
from ralph_dashboard.documents.store import DocumentStore
from ralph_dashboard.hub.events import CONFIG_UPDATE, DashboardEvent

logger = logging.getLogger(__name__)


def _error_status(error: DocumentError) -> int:
    if isinstance(error, DocumentNotFoundError):
        return 404
    if isinstance(error, InvalidDocumentNameError):
        return 400
    if isinstance(error, DocumentWriteError):
        return 500
    return 400


def _error_response(error: DocumentError) -> JSONResponse:
    return JSONResponse(
        {"error": str(error), "code": error.code, "name": error.name},
        status_code=_error_status(error),
    )


async def get_document(request: Request) -> JSONResponse:
    """GET /api/config/{name} - Read a document.

    Returns:
        200: {name, content}.
        400: Invalid document name.
        404: Not on the allow-list or missing.

    """
    store: DocumentStore = request.app.state.documents
    name = request.path_params["name"]

    try:
        content = await store.read(name)
    except DocumentError as e:
        return _error_response(e)

    return JSONResponse({"name": name, "content": content})


async def put_document(request: Request) -> JSONResponse:
    """POST|PUT /api/config/{name} - Write a document.

    Body: {"content": "..."}

    Returns:
        200: Saved.
        400: Invalid name or body.
        404: Not on the allow-list.
        500: Write failed.

    """
    store: DocumentStore = request.app.state.documents
    name = request.path_params["name"]

    try:
        body = await request.json()
    except json.JSONDecodeError:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=400)

    content = body.get("content") if isinstance(body, dict) else None
    if not isinstance(content, str):
        return JSONResponse({"error": "content must be a string"}, status_code=400)

    try:
        await store.write(name, content)
    except DocumentError as e:
        return _error_response(e)

    request.app.state.hub.publish(DashboardEvent(CONFIG_UPDATE, store.summary()))
    return JSONResponse({"success": True, "name": name})


routes = [
    Route("/api/config/{name:path}", get_document, methods=["GET"]),
    Route("/api/config/{name:path}", put_document, methods=["POST", "PUT"]),
]
