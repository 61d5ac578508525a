"""Shared fixtures for voicecmd tests."""

import pytest

from voicecmd.asr.replay_engine import ReplayEngine
from voicecmd.asr.session import RecognitionSession
from voicecmd.asr.types import SessionState
from voicecmd.events.event_bus import EventBus
from voicecmd.keywords.matcher import KeywordMatcher
from voicecmd.keywords.types import MatcherConfiguration


@pytest.fixture
def stop_grace() -> float:
    """Stop fallback window, shortened so lifecycle tests run in milliseconds."""
    return 0.1


@pytest.fixture
def settle_delay() -> float:
    """Continuous-restart settling delay used by test sessions."""
    return 0.05


@pytest.fixture
def event_bus() -> EventBus:
    """Return a fresh EventBus instance with a small queue for testing."""
    return EventBus(maxsize=16)


@pytest.fixture
def matcher() -> KeywordMatcher:
    """Return a KeywordMatcher with the stock 0.6 threshold."""
    return KeywordMatcher(MatcherConfiguration(confidence_threshold=0.6))


@pytest.fixture
def replay_engine() -> ReplayEngine:
    """An engine with no scripted utterances; tests push callbacks by hand."""
    return ReplayEngine()


@pytest.fixture
async def make_session(event_bus: EventBus, stop_grace: float, settle_delay: float):
    """Factory for sessions over any engine, publishing on ``event_bus``.

    Sessions get the shortened timers unless overridden, and every session
    still alive at teardown is released.
    """
    created: list[RecognitionSession] = []

    def _make(engine, matcher: KeywordMatcher | None = None, **kwargs) -> RecognitionSession:
        kwargs.setdefault("stop_grace", stop_grace)
        kwargs.setdefault("settle_delay", settle_delay)
        kwargs.setdefault("engine_extra", "")
        session = RecognitionSession(engine, event_bus, matcher, **kwargs)
        created.append(session)
        return session

    yield _make

    for session in created:
        if session.state != SessionState.RELEASED:
            await session.release()


@pytest.fixture
def session(make_session, replay_engine: ReplayEngine, matcher: KeywordMatcher):
    """A RecognitionSession over the replay engine with shortened timers."""
    return make_session(replay_engine, matcher)
