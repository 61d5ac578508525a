"""Host-facing event surface for voicecmd."""

from voicecmd.events.event_bus import EventBus
from voicecmd.events.types import SessionEvent, SessionEventType

__all__ = ["EventBus", "SessionEvent", "SessionEventType"]
