"""Tests for the /ws observer channel."""

from pathlib import Path

import pytest
from starlette.testclient import TestClient

from ralph_dashboard.core.config.models import DashboardConfig
from ralph_dashboard.hub.events import (
    COMMAND_ERROR,
    CONFIG_CONTENT,
    CONFIG_SAVED,
    CONFIG_UPDATE,
    GIT_UPDATE,
    LOOP_STATUS,
    TASKS_UPDATE,
)
from ralph_dashboard.server import DashboardServer


@pytest.fixture
def server(tmp_path: Path) -> DashboardServer:
    return DashboardServer(tmp_path, DashboardConfig())


@pytest.fixture
def client(server: DashboardServer) -> TestClient:
    return TestClient(server.create_app())


class TestObserverSocket:
    """Tests for the WebSocket observer protocol."""

    def test_snapshots_on_connect(self, client):
        """Four snapshots arrive before anything else."""
        with client.websocket_connect("/ws") as ws:
            types = [ws.receive_json()["type"] for _ in range(4)]

        assert types == [LOOP_STATUS, TASKS_UPDATE, GIT_UPDATE, CONFIG_UPDATE]

    def test_read_and_write(self, client, server):
        """config:write is acknowledged and config:read returns content."""
        with client.websocket_connect("/ws") as ws:
            for _ in range(4):
                ws.receive_json()

            ws.send_json({"type": "config:write", "payload": {"name": "AGENTS.md", "content": "# A"}})
            saved = ws.receive_json()
            update = ws.receive_json()
            ws.send_json({"type": "config:read", "payload": {"name": "AGENTS.md"}})
            content = ws.receive_json()

        assert saved == {"type": CONFIG_SAVED, "payload": {"name": "AGENTS.md"}}
        assert update["type"] == CONFIG_UPDATE
        assert update["payload"]["hasAgentsMd"] is True
        assert content == {"type": CONFIG_CONTENT, "payload": {"name": "AGENTS.md", "content": "# A"}}

    def test_invalid_json(self, client):
        """Unparseable messages are answered with command:error."""
        with client.websocket_connect("/ws") as ws:
            for _ in range(4):
                ws.receive_json()

            ws.send_text("not json")
            reply = ws.receive_json()

        assert reply["type"] == COMMAND_ERROR
        assert reply["payload"]["code"] == "bad_message"

    def test_disconnect_unsubscribes(self, client, server):
        """Closing the socket removes the observer."""
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            assert server.hub.subscriber_count == 1

        assert server.hub.subscriber_count == 0
