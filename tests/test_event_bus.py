"""Tests for voicecmd.events.event_bus: Async fan-out event bus."""

import asyncio

import pytest

from voicecmd.events.event_bus import EventBus
from voicecmd.events.types import SessionEvent, SessionEventType


def _make_event(event_type: SessionEventType = SessionEventType.PARTIAL) -> SessionEvent:
    """Helper to create a minimal event for testing."""
    return SessionEvent(type=event_type, generation=1, text="hello")


class TestSubscribe:
    """Tests for EventBus.subscribe()."""

    async def test_subscribe_creates_a_new_queue(self, event_bus: EventBus):
        queue = await event_bus.subscribe()
        assert isinstance(queue, asyncio.Queue)

    async def test_subscribe_increments_subscriber_count(self, event_bus: EventBus):
        assert event_bus.subscriber_count == 0
        await event_bus.subscribe()
        assert event_bus.subscriber_count == 1
        await event_bus.subscribe()
        assert event_bus.subscriber_count == 2

    async def test_multiple_subscribes_return_different_queues(
        self, event_bus: EventBus
    ):
        q1 = await event_bus.subscribe()
        q2 = await event_bus.subscribe()
        assert q1 is not q2


class TestEmit:
    """Tests for EventBus.emit_nowait()."""

    async def test_emit_delivers_event_to_subscriber(self, event_bus: EventBus):
        queue = await event_bus.subscribe()
        event = _make_event()
        event_bus.emit_nowait(event)
        assert queue.get_nowait() is event

    async def test_emit_fanout_to_multiple_subscribers(self, event_bus: EventBus):
        q1 = await event_bus.subscribe()
        q2 = await event_bus.subscribe()

        event = _make_event()
        event_bus.emit_nowait(event)

        assert q1.get_nowait() is event
        assert q2.get_nowait() is event

    async def test_emit_to_empty_bus_does_not_error(self, event_bus: EventBus):
        event_bus.emit_nowait(_make_event())
        event_bus.emit_nowait(_make_event())

    async def test_emit_nowait_preserves_order(self, event_bus: EventBus):
        queue = await event_bus.subscribe()
        e1 = _make_event(SessionEventType.PARTIAL)
        e2 = _make_event(SessionEventType.FINAL)
        e3 = _make_event(SessionEventType.KEYWORD_DETECTED)

        event_bus.emit_nowait(e1)
        event_bus.emit_nowait(e2)
        event_bus.emit_nowait(e3)

        assert queue.get_nowait() is e1
        assert queue.get_nowait() is e2
        assert queue.get_nowait() is e3

    async def test_emit_drops_event_when_queue_is_full(self):
        """When a subscriber queue is full, the event is dropped (not raised)."""
        bus = EventBus(maxsize=2)
        queue = await bus.subscribe()

        bus.emit_nowait(_make_event())
        bus.emit_nowait(_make_event())
        assert queue.qsize() == 2
        assert bus.dropped_events == 0

        bus.emit_nowait(_make_event())
        bus.emit_nowait(_make_event())
        assert queue.qsize() == 2
        assert bus.dropped_events == 2

    async def test_subscriber_maxsize_overrides_bus_default(self):
        bus = EventBus(maxsize=1)
        roomy = await bus.subscribe(maxsize=3)
        tight = await bus.subscribe()

        for _ in range(3):
            bus.emit_nowait(_make_event())

        assert roomy.qsize() == 3
        assert tight.qsize() == 1
        assert bus.dropped_events == 2


class TestUnsubscribe:
    """Tests for EventBus.unsubscribe()."""

    async def test_unsubscribe_stops_event_delivery(self, event_bus: EventBus):
        queue = await event_bus.subscribe()
        await event_bus.unsubscribe(queue)

        event_bus.emit_nowait(_make_event())
        assert queue.empty()
        assert event_bus.subscriber_count == 0

    async def test_unsubscribe_unknown_queue_is_noop(self, event_bus: EventBus):
        foreign_queue: asyncio.Queue[SessionEvent] = asyncio.Queue()
        await event_bus.unsubscribe(foreign_queue)

    async def test_double_unsubscribe_is_noop(self, event_bus: EventBus):
        queue = await event_bus.subscribe()
        await event_bus.unsubscribe(queue)
        await event_bus.unsubscribe(queue)
        assert event_bus.subscriber_count == 0
