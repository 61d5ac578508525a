"""Pydantic models and enums for the recognition session subsystem."""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from voicecmd.errors import PayloadParseError


class SessionState(str, Enum):
    """Lifecycle state of a RecognitionSession."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    STARTING = "starting"
    LISTENING = "listening"
    STOPPING = "stopping"
    RELEASED = "released"


class EngineEventKind(str, Enum):
    """Kinds of callbacks delivered by a streaming ASR engine."""

    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"


class ControlSignal(str, Enum):
    """Control messages sent to an open engine connection."""

    BEGIN = "begin"
    END = "end"
    ABORT = "abort"


class VadMode(str, Enum):
    DNN = "dnn"  # model-based endpoint detection
    TOUCH = "touch"  # push-to-talk, no automatic endpointing


class EngineEvent(BaseModel):
    """One callback from the engine.  *payload* is a JSON string or a mapping."""

    kind: EngineEventKind
    payload: Any = None


class EngineParams(BaseModel):
    """Parameters handed to the engine when a connection is opened."""

    sample_rate: int = 16000
    channels: int = 1
    language: str
    model_id: int
    vad: VadMode = VadMode.DNN
    endpoint_timeout_ms: int
    punctuation: bool = True
    accept_volume: bool = True
    accept_audio_data: bool = False
    extra: dict[str, Any] = Field(default_factory=dict)


class TranscriptPayload(BaseModel):
    """Loosely-shaped transcript payload.

    Engines report text under one of several keys.  ``best_text`` applies
    the precedence: ``best_result``, then the first of
    ``results_recognition``, then the first of ``result``.  Values are kept
    as sent; a key whose value has an unusable shape is skipped.
    """

    model_config = ConfigDict(extra="ignore")

    best_result: Any = None
    results_recognition: Any = None
    result: Any = None

    @classmethod
    def parse(cls, raw: Any) -> "TranscriptPayload":
        """Build from a JSON string, bytes or mapping.  Empty input yields no text."""
        if raw is None or raw == "" or raw == b"":
            return cls()
        try:
            if isinstance(raw, (str, bytes)):
                raw = json.loads(raw)
            if not isinstance(raw, dict):
                raise PayloadParseError(
                    f"Expected a JSON object, got {type(raw).__name__}"
                )
            return cls.model_validate(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise PayloadParseError(f"Unreadable transcript payload: {exc}") from exc

    def best_text(self) -> str | None:
        if isinstance(self.best_result, str):
            return self.best_result
        for candidates in (self.results_recognition, self.result):
            if isinstance(candidates, list) and candidates and isinstance(candidates[0], str):
                return candidates[0]
        return None
