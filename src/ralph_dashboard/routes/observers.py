"""WebSocket endpoint for observers.

Each connection gets a Subscriber: a writer task drains its queue into the
socket while the receive loop feeds inbound commands to the dispatcher.
"""

import asyncio
import json
import logging

from starlette.routing import WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from ralph_dashboard.hub.broadcast_hub import BroadcastHub, Subscriber
from ralph_dashboard.hub.commands import CommandDispatcher

logger = logging.getLogger(__name__)


async def _drain(websocket: WebSocket, subscriber: Subscriber, hub: BroadcastHub) -> None:
    try:
        while True:
            message = await subscriber.receive()
            if message is None:
                break
            await websocket.send_json(message)
    except Exception as e:
        logger.debug("Observer send failed: %s", e)
    finally:
        hub.unsubscribe(subscriber)


async def observer_socket(websocket: WebSocket) -> None:
    """Observer channel at /ws."""
    hub: BroadcastHub = websocket.app.state.hub
    dispatcher: CommandDispatcher = websocket.app.state.dispatcher

    await websocket.accept()
    subscriber = hub.subscribe()
    writer = asyncio.create_task(_drain(websocket, subscriber, hub))

    try:
        while True:
            text = await websocket.receive_text()
            try:
                message = json.loads(text)
            except json.JSONDecodeError:
                message = None
            await dispatcher.dispatch(subscriber, message)
    except WebSocketDisconnect:
        pass
    finally:
        hub.unsubscribe(subscriber)
        await writer


routes = [
    WebSocketRoute("/ws", observer_socket),
]
