"""Tests for BroadcastHub and Subscriber."""

import asyncio
from datetime import UTC, datetime

import pytest

from ralph_dashboard.hub.broadcast_hub import (
    SNAPSHOT_TYPES,
    BroadcastHub,
    Subscriber,
    SubscriberClosedError,
)
from ralph_dashboard.hub.events import (
    CONFIG_UPDATE,
    GIT_UPDATE,
    LOOP_LOG,
    LOOP_STATUS,
    TASKS_UPDATE,
    DashboardEvent,
    LogEvent,
    Severity,
)
from ralph_dashboard.manager.run_state import LoopMode, ProcessRunState


def _drain(subscriber: Subscriber) -> list[dict]:
    messages = []
    while True:
        try:
            messages.append(subscriber._queue.get_nowait())
        except asyncio.QueueEmpty:
            return messages


class _FailingSubscriber(Subscriber):
    def deliver(self, message):
        raise ConnectionResetError("socket closed")


class TestSubscriber:
    """Tests for per-observer queues."""

    async def test_drop_oldest_when_full(self):
        """A full queue discards its oldest message."""
        subscriber = Subscriber(max_queue_size=2)

        for i in range(3):
            subscriber.deliver({"type": "n", "payload": i})

        assert [m["payload"] for m in _drain(subscriber)] == [1, 2]
        assert subscriber.dropped == 1

    async def test_closed_rejects_delivery(self):
        """Delivery to a closed subscriber raises."""
        subscriber = Subscriber()
        subscriber.close()

        with pytest.raises(SubscriberClosedError):
            subscriber.deliver({"type": "x"})

    async def test_close_ends_stream(self):
        """receive() returns None after close."""
        subscriber = Subscriber()
        subscriber.deliver({"type": "x", "payload": None})
        subscriber.close()

        assert await subscriber.receive() == {"type": "x", "payload": None}
        assert await subscriber.receive() is None


class TestSubscribe:
    """Tests for snapshot replay on connect."""

    async def test_defaults_replayed(self):
        """A new observer receives every snapshot category, defaults included."""
        hub = BroadcastHub()

        subscriber = hub.subscribe()
        messages = _drain(subscriber)

        assert [m["type"] for m in messages] == list(SNAPSHOT_TYPES)
        assert messages[0]["payload"]["isRunning"] is False
        assert messages[1]["payload"]["totalCount"] == 0
        assert messages[2]["payload"]["commits"] == []

    async def test_mid_run_observer_sees_current_state(self):
        """Joining mid-run yields isRunning and the current iteration at once."""
        hub = BroadcastHub()
        state = ProcessRunState(
            is_running=True,
            mode=LoopMode.BUILD,
            iteration_count=4,
            started_at=datetime.now(UTC),
            os_process_id=1234,
        )
        hub.publish(DashboardEvent(LOOP_STATUS, state.to_payload()))

        messages = _drain(hub.subscribe())

        assert messages[0]["type"] == LOOP_STATUS
        assert messages[0]["payload"]["isRunning"] is True
        assert messages[0]["payload"]["iterationCount"] == 4

    async def test_replay_is_unicast(self):
        """Existing observers do not receive another observer's replay."""
        hub = BroadcastHub()
        first = hub.subscribe()
        _drain(first)

        hub.subscribe()

        assert _drain(first) == []

    async def test_snapshots_precede_incremental_events(self):
        """Replay comes before anything published afterwards."""
        hub = BroadcastHub()
        subscriber = hub.subscribe()
        hub.publish(DashboardEvent.log(LogEvent("hello", Severity.INFO)))

        types = [m["type"] for m in _drain(subscriber)]

        assert types == [*SNAPSHOT_TYPES, LOOP_LOG]


class TestPublish:
    """Tests for fan-out."""

    async def test_snapshot_retained(self):
        """Snapshot categories are retained; logs are not."""
        hub = BroadcastHub()

        hub.publish(DashboardEvent(TASKS_UPDATE, {"items": [], "doneCount": 0, "totalCount": 5}))
        hub.publish(DashboardEvent(GIT_UPDATE, {"branchName": "dev"}))
        hub.publish(DashboardEvent(CONFIG_UPDATE, {"hasLoopSh": True}))
        hub.publish(DashboardEvent.log(LogEvent("line", Severity.INFO)))

        assert hub.snapshot(TASKS_UPDATE)["totalCount"] == 5
        assert hub.snapshot(GIT_UPDATE) == {"branchName": "dev"}
        assert hub.snapshot(CONFIG_UPDATE) == {"hasLoopSh": True}

    async def test_fan_out_to_all(self):
        """Every observer receives every event."""
        hub = BroadcastHub()
        subscribers = [hub.subscribe() for _ in range(3)]
        for s in subscribers:
            _drain(s)

        sent = hub.publish(DashboardEvent(GIT_UPDATE, {"branchName": "main"}))

        assert sent == 3
        for s in subscribers:
            assert _drain(s) == [{"type": GIT_UPDATE, "payload": {"branchName": "main"}}]

    async def test_failure_isolated(self):
        """A failing observer is removed; others still receive the event."""
        hub = BroadcastHub()
        healthy_before = hub.subscribe()
        failing = _FailingSubscriber()
        hub._subscribers.add(failing)
        healthy_after = hub.subscribe()
        _drain(healthy_before)
        _drain(healthy_after)

        sent = hub.publish(DashboardEvent(GIT_UPDATE, {"branchName": "main"}))

        assert sent == 2
        assert failing not in hub._subscribers
        assert hub.subscriber_count == 2
        assert len(_drain(healthy_before)) == 1
        assert len(_drain(healthy_after)) == 1

    async def test_unsubscribed_receives_nothing(self):
        """After unsubscribe only the end-of-stream marker remains."""
        hub = BroadcastHub()
        subscriber = hub.subscribe()
        _drain(subscriber)

        hub.unsubscribe(subscriber)
        hub.publish(DashboardEvent(GIT_UPDATE, {}))

        assert _drain(subscriber) == [None]
        assert hub.subscriber_count == 0

    async def test_unicast_only_reaches_target(self):
        """unicast() skips other observers and snapshots."""
        hub = BroadcastHub()
        target, other = hub.subscribe(), hub.subscribe()
        _drain(target)
        _drain(other)

        hub.unicast(target, DashboardEvent(GIT_UPDATE, {"branchName": "private"}))

        assert len(_drain(target)) == 1
        assert _drain(other) == []
        assert hub.snapshot(GIT_UPDATE)["branchName"] == "main"

    async def test_close(self):
        """close() ends every observer stream."""
        hub = BroadcastHub()
        subscriber = hub.subscribe()

        hub.close()

        assert hub.subscriber_count == 0
        assert subscriber.closed is True
