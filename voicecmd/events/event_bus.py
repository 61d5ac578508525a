"""Fan-out of session events to any number of asyncio consumers."""

import asyncio
import logging
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

_DEFAULT_QUEUE_SIZE = 256

T = TypeVar("T")


class EventBus(Generic[T]):
    """Publishes each event to one bounded asyncio.Queue per subscriber.

    Publishing never blocks: a subscriber whose queue is full loses the
    event, and the loss is counted in :attr:`dropped_events`.  The session
    publishes with :meth:`emit_nowait` from the event loop thread, so every
    subscriber sees events in publication order.
    """

    def __init__(self, maxsize: int = _DEFAULT_QUEUE_SIZE) -> None:
        self._queues: dict[asyncio.Queue[T], int] = {}
        self._lock = asyncio.Lock()
        self._maxsize = maxsize
        self._dropped = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    @property
    def dropped_events(self) -> int:
        """Total number of per-subscriber deliveries lost to full queues."""
        return self._dropped

    async def subscribe(self, maxsize: int | None = None) -> asyncio.Queue[T]:
        """Register and return a new queue (bounded by *maxsize* or the bus default)."""
        queue: asyncio.Queue[T] = asyncio.Queue(
            maxsize=self._maxsize if maxsize is None else maxsize
        )
        async with self._lock:
            self._queues[queue] = 0
        logger.debug("Subscriber added (%d active)", len(self._queues))
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[T]) -> None:
        """Forget *queue*.  Unknown queues are ignored."""
        async with self._lock:
            dropped = self._queues.pop(queue, None)
        if dropped is None:
            logger.debug("unsubscribe() for a queue that is not registered")
        elif dropped:
            logger.info("Subscriber removed after losing %d event(s)", dropped)

    def emit_nowait(self, event: T) -> None:
        """Synchronous publish.  Call only from the event loop thread."""
        self._deliver(list(self._queues), event)

    def _deliver(self, queues: list[asyncio.Queue[T]], event: T) -> None:
        for queue in queues:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                self._dropped += 1
                if queue in self._queues:
                    self._queues[queue] += 1
                logger.warning(
                    "Subscriber queue full (%d), %s event dropped",
                    queue.maxsize,
                    getattr(event, "type", type(event).__name__),
                )
