"""In-memory ASR engine that replays scripted utterances.

Every ``open`` creates a ReplayConnection that records the parameters and
control signals it received.  On BEGIN the next scripted utterance (a list
of EngineEvents) is delivered to the connection's sink, one event per loop
iteration, the way a real engine reports asynchronously.  Callers can also
push events into any connection directly with :meth:`ReplayEngine.push`,
including from another thread.
"""

import asyncio
import itertools
import logging
from collections import deque
from typing import Any, Iterable

from voicecmd.asr.engine import ASREngine, EngineSink
from voicecmd.asr.types import ControlSignal, EngineEvent, EngineEventKind, EngineParams

logger = logging.getLogger(__name__)


class ReplayConnection:
    """One opened connection and everything it was sent."""

    def __init__(self, handle: int, params: EngineParams | None, sink: EngineSink):
        self.handle = handle
        self.params = params
        self.sink = sink
        self.controls: list[ControlSignal] = []
        self.closed: bool = False


class ReplayEngine(ASREngine):
    """Deterministic engine for tests and offline replays.

    *finish_on_end* controls whether an END signal is answered with an
    empty final event (graceful stop) or ignored (simulates an engine
    that never confirms, exercising the stop fallback).
    """

    def __init__(
        self,
        utterances: Iterable[Iterable[EngineEvent | dict]] = (),
        *,
        finish_on_end: bool = True,
    ) -> None:
        self._script: deque[list[EngineEvent]] = deque(
            [EngineEvent.model_validate(e) if isinstance(e, dict) else e for e in u]
            for u in utterances
        )
        self._finish_on_end = finish_on_end
        self._ids = itertools.count(1)
        self.connections: list[ReplayConnection] = []

    @property
    def open_connections(self) -> list[ReplayConnection]:
        return [c for c in self.connections if not c.closed]

    @property
    def remaining_utterances(self) -> int:
        return len(self._script)

    def connection(self, handle: int) -> ReplayConnection:
        for conn in self.connections:
            if conn.handle == handle:
                return conn
        raise KeyError(handle)

    async def open(self, params: EngineParams | None, sink: EngineSink) -> int:
        conn = ReplayConnection(handle=next(self._ids), params=params, sink=sink)
        self.connections.append(conn)
        logger.debug("Replay connection %d opened", conn.handle)
        return conn.handle

    async def send_control(self, handle: int, signal: ControlSignal) -> None:
        conn = self.connection(handle)
        if conn.closed:
            raise RuntimeError(f"Connection {handle} is closed")
        conn.controls.append(signal)

        if signal == ControlSignal.BEGIN and self._script:
            self._play(conn, self._script.popleft())
        elif signal == ControlSignal.END and self._finish_on_end:
            self._play(conn, [EngineEvent(kind=EngineEventKind.FINAL)])

    async def close(self, handle: int) -> None:
        conn = self.connection(handle)
        conn.closed = True
        logger.debug("Replay connection %d closed", handle)

    def push(self, handle: int, kind: EngineEventKind | str, payload: Any = None) -> None:
        """Deliver one event to *handle*'s sink immediately (thread-safe via the sink)."""
        self.connection(handle).sink(EngineEvent(kind=kind, payload=payload))

    def _play(self, conn: ReplayConnection, events: list[EngineEvent]) -> None:
        loop = asyncio.get_running_loop()
        for event in events:
            loop.call_soon(self._deliver, conn, event)

    @staticmethod
    def _deliver(conn: ReplayConnection, event: EngineEvent) -> None:
        if conn.closed:
            return
        conn.sink(event)
