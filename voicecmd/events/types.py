"""Pydantic models for host-visible session events."""

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from voicecmd.keywords.types import MatchResult


class SessionEventType(str, Enum):
    """Notifications a RecognitionSession publishes to the host."""

    READY = "ready"
    PARTIAL = "partial"
    FINAL = "final"
    KEYWORD_DETECTED = "keywordDetected"
    ERROR = "error"


class SessionEvent(BaseModel):
    """A single event flowing from a RecognitionSession to the host.

    Every event has a type, timestamp and the engine generation it came
    from.  Additional fields depend on the type:
      - partial / final: text, keyword_match
      - keywordDetected: keyword_match
      - error: message, error_code
    """

    type: SessionEventType
    timestamp: float = Field(default_factory=time.time)
    generation: int = 0

    # partial / final / keywordDetected
    text: str | None = None
    keyword_match: MatchResult | None = None

    # error
    message: str | None = None
    error_code: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Host bridge payload for this event type."""
        if self.type in (SessionEventType.PARTIAL, SessionEventType.FINAL):
            return {
                "text": self.text,
                "keywordMatch": self.keyword_match.to_payload()
                if self.keyword_match
                else None,
            }
        if self.type == SessionEventType.KEYWORD_DETECTED and self.keyword_match:
            return self.keyword_match.to_payload()
        if self.type == SessionEventType.ERROR:
            return {"message": self.message}
        return {}
