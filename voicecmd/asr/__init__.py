"""Recognition session subsystem for voicecmd."""

from voicecmd.asr.engine import ASREngine
from voicecmd.asr.replay_engine import ReplayEngine
from voicecmd.asr.session import RecognitionSession
from voicecmd.asr.types import (
    ControlSignal,
    EngineEvent,
    EngineEventKind,
    EngineParams,
    SessionState,
    TranscriptPayload,
)

__all__ = [
    "ASREngine",
    "ControlSignal",
    "EngineEvent",
    "EngineEventKind",
    "EngineParams",
    "RecognitionSession",
    "ReplayEngine",
    "SessionState",
    "TranscriptPayload",
]
