"""Abstract base class for streaming ASR engines.

A RecognitionSession drives an engine only through this interface.  The
engine delivers callbacks by calling the sink it was given at ``open``,
from whatever thread it likes; the session takes care of marshalling them
onto its own event loop.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable

from voicecmd.asr.types import ControlSignal, EngineEvent, EngineParams

EngineSink = Callable[[EngineEvent], None]


class ASREngine(ABC):
    """Abstract streaming ASR engine.

    ``open`` returns an opaque handle identifying one connection.  Engines
    may raise from any method; the session converts failures into
    host-visible error events.
    """

    @abstractmethod
    async def open(self, params: EngineParams | None, sink: EngineSink) -> Any:
        """Open a connection that reports to *sink*.  Returns a handle.

        *params* is None for the idle connection opened by ``initialize``.
        """

    @abstractmethod
    async def send_control(self, handle: Any, signal: ControlSignal) -> None:
        """Send begin/end/abort to the connection identified by *handle*."""

    @abstractmethod
    async def close(self, handle: Any) -> None:
        """Tear down the connection and stop delivering callbacks to its sink."""
