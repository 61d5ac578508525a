"""Recognition session: lifecycle of one continuous listening activity.

The RecognitionSession owns the connection to a streaming ASR engine.  It
opens a fresh, generation-tagged connection for every recognition pass,
routes each transcript through the KeywordMatcher, publishes host events on
an EventBus, and (in continuous mode) restarts itself after each utterance.

All state lives on one asyncio event loop.  Engine callbacks may arrive on
any thread; the per-connection sink hops them onto the loop with
``call_soon_threadsafe`` and tags them with the generation they belong to,
so callbacks from a superseded connection are dropped.
"""

import asyncio
import json
import logging
from typing import Any, Iterable, Mapping

from voicecmd.asr.engine import ASREngine, EngineSink
from voicecmd.asr.params import build_engine_params
from voicecmd.asr.types import (
    ControlSignal,
    EngineEvent,
    EngineEventKind,
    EngineParams,
    SessionState,
    TranscriptPayload,
)
from voicecmd.config import DEFAULT_LANGUAGE, SETTLE_DELAY, STOP_GRACE_PERIOD
from voicecmd.errors import (
    AlreadyReleasedError,
    ConfigurationError,
    EngineParamError,
    EngineRuntimeError,
    PayloadParseError,
    VoiceCommandError,
)
from voicecmd.events.event_bus import EventBus
from voicecmd.events.types import SessionEvent, SessionEventType
from voicecmd.keywords.matcher import KeywordMatcher
from voicecmd.keywords.types import KeywordPattern, MatchMode

logger = logging.getLogger(__name__)

_ACTIVE_STATES = (SessionState.STARTING, SessionState.LISTENING, SessionState.STOPPING)


class RecognitionSession:
    """Continuous speech-recognition session with keyword spotting."""

    def __init__(
        self,
        engine: ASREngine,
        event_bus: EventBus,
        matcher: KeywordMatcher | None = None,
        *,
        stop_grace: float = STOP_GRACE_PERIOD,
        settle_delay: float = SETTLE_DELAY,
        engine_extra: str | None = None,
    ) -> None:
        self._engine = engine
        self._event_bus = event_bus
        self._matcher = matcher or KeywordMatcher()
        self._stop_grace = stop_grace
        self._settle_delay = settle_delay
        self._engine_extra = engine_extra

        self._state: SessionState = SessionState.UNINITIALIZED
        self._vad_enabled: bool = True
        self._language: str = DEFAULT_LANGUAGE
        self._continuous: bool = False

        self._generation: int = 0
        self._active_generation: int | None = None
        self._handle: Any = None

        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = asyncio.Lock()
        self._fallback_task: asyncio.Task | None = None
        self._restart_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        """Id of the most recently opened engine connection."""
        return self._generation

    @property
    def is_listening(self) -> bool:
        return self._state in _ACTIVE_STATES

    @property
    def continuous_mode(self) -> bool:
        return self._continuous

    @property
    def vad_enabled(self) -> bool:
        return self._vad_enabled

    @property
    def language(self) -> str:
        return self._language

    @property
    def matcher(self) -> KeywordMatcher:
        return self._matcher

    @property
    def restart_pending(self) -> bool:
        return self._restart_task is not None and not self._restart_task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(
        self, vad_enabled: bool = True, language: str | None = None
    ) -> None:
        """Open the engine connection and store recognition options.

        Raises ConfigurationError while a pass is in progress.
        """
        self._ensure_not_released()
        async with self._lock:
            self._ensure_not_released()
            if self.is_listening:
                raise ConfigurationError("initialize() called while listening")

            self._loop = asyncio.get_running_loop()
            self._cancel_restart()
            self._vad_enabled = vad_enabled
            self._language = language or DEFAULT_LANGUAGE

            await self._teardown()
            try:
                await self._connect(None)
            except Exception as exc:
                logger.warning("Engine connection failed during initialize", exc_info=True)
                self._set_state(SessionState.READY)
                self._emit_error(EngineRuntimeError(f"ASR init failed: {exc}"))
                return

            self._set_state(SessionState.READY)
            logger.info(
                "Recognition session initialized (vad=%s, language=%s)",
                self._vad_enabled,
                self._language,
            )
            self._emit(SessionEvent(type=SessionEventType.READY, generation=self._generation))

    async def start(self, continuous: bool = True) -> None:
        """Begin a recognition pass on a fresh engine connection.

        No-op while a pass is already in progress.  Raises
        ConfigurationError before initialize().
        """
        await self._start(continuous)

    async def _start(self, continuous: bool, restart: bool = False) -> None:
        self._ensure_not_released()
        async with self._lock:
            self._ensure_not_released()
            if self._state == SessionState.UNINITIALIZED:
                raise ConfigurationError("start() called before initialize()")
            if self.is_listening:
                logger.debug("start() ignored, already %s", self._state.value)
                return
            if restart and not self._continuous:
                logger.debug("Continuous restart suppressed by stop/cancel")
                return

            self._cancel_restart()
            self._continuous = continuous
            self._set_state(SessionState.STARTING)

            await self._teardown()

            try:
                params = self._build_params(continuous, self._engine_extra)
            except EngineParamError as exc:
                logger.warning("Starting without extra engine parameters: %s", exc)
                self._emit_error(exc)
                params = self._build_params(continuous, "")

            try:
                generation = await self._connect(params)
                if self._active_generation != generation:
                    # The engine failed the connection while it was opening.
                    if self._state == SessionState.STARTING:
                        self._set_state(SessionState.READY)
                    return
                await self._engine.send_control(self._handle, ControlSignal.BEGIN)
            except Exception as exc:
                logger.warning("Engine failed to start", exc_info=True)
                self._emit_error(EngineRuntimeError(f"ASR start failed: {exc}"))
                await self._teardown()
                if self._state == SessionState.STARTING:
                    self._set_state(SessionState.READY)
                return

            # A callback may already have ended the pass while we awaited.
            if self._state == SessionState.STARTING:
                self._set_state(SessionState.LISTENING)
            logger.info(
                "Listening (generation=%d, continuous=%s)", generation, continuous
            )

    async def stop(self) -> None:
        """Ask the engine to finish the current utterance.

        Clears continuous mode and any pending restart.  If the engine has
        not reported the end of the utterance within the grace period the
        pass is force-cancelled.
        """
        self._ensure_not_released()
        async with self._lock:
            self._ensure_not_released()
            self._continuous = False
            self._cancel_restart()
            if self._state != SessionState.LISTENING:
                return

            self._set_state(SessionState.STOPPING)
            generation = self._active_generation
            try:
                await self._engine.send_control(self._handle, ControlSignal.END)
            except Exception as exc:
                logger.warning("Engine rejected stop, cancelling", exc_info=True)
                self._emit_error(EngineRuntimeError(f"ASR stop failed: {exc}"))
                self._set_state(SessionState.READY)
                await self._abort(self._detach())
                return

            if self._state == SessionState.STOPPING:
                self._fallback_task = asyncio.create_task(
                    self._stop_fallback(generation)
                )
            logger.info("Stopping (generation=%s)", generation)

    async def cancel(self) -> None:
        """Abort the current pass immediately, skipping the grace period."""
        self._ensure_not_released()
        self._continuous = False
        self._cancel_restart()
        async with self._lock:
            self._ensure_not_released()
            if not self.is_listening:
                return
            self._cancel_fallback()
            self._set_state(SessionState.READY)
            logger.info("Cancelled (generation=%s)", self._active_generation)
            await self._abort(self._detach())

    async def release(self) -> None:
        """Cancel any pass, disconnect and make the session unusable."""
        self._ensure_not_released()
        self._continuous = False
        self._cancel_restart()
        self._cancel_fallback()
        async with self._lock:
            self._ensure_not_released()
            was_listening = self.is_listening
            handle = self._detach()
            self._set_state(SessionState.RELEASED)
            if was_listening:
                await self._abort(handle)
            elif handle is not None:
                await self._close(handle)

            if self._background:
                await asyncio.gather(*self._background, return_exceptions=True)
            self._loop = None
            logger.info("Recognition session released")

    # ------------------------------------------------------------------
    # Matcher configuration
    # ------------------------------------------------------------------

    def set_vocabulary(
        self, patterns: Iterable[KeywordPattern | Mapping[str, Any]]
    ) -> None:
        self._ensure_not_released()
        self._matcher.set_vocabulary(patterns)

    def set_filter_enabled(self, enabled: bool) -> None:
        """When enabled, transcripts are published only if they match a keyword."""
        self._ensure_not_released()
        self._matcher.set_filter_enabled(enabled)

    def set_confidence_threshold(self, threshold: float) -> None:
        self._ensure_not_released()
        self._matcher.set_confidence_threshold(threshold)

    def set_default_mode(self, mode: MatchMode | str) -> None:
        self._ensure_not_released()
        self._matcher.set_default_mode(mode)

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    async def _connect(self, params: EngineParams | None) -> int:
        """Open a new connection under a fresh generation id."""
        self._generation += 1
        generation = self._generation
        self._active_generation = generation
        handle = await self._engine.open(params, self._make_sink(generation))
        if self._active_generation == generation:
            self._handle = handle
        else:
            # Torn down while opening.
            await self._close(handle)
        return generation

    def _build_params(self, continuous: bool, extra: str | None) -> EngineParams:
        return build_engine_params(
            language=self._language,
            vad_enabled=self._vad_enabled,
            continuous=continuous,
            extra=extra,
        )

    def _make_sink(self, generation: int) -> EngineSink:
        loop = self._loop

        def sink(event: EngineEvent) -> None:
            try:
                loop.call_soon_threadsafe(self._on_engine_event, generation, event)
            except RuntimeError:
                logger.debug(
                    "Event loop closed, dropping %s callback (generation %d)",
                    getattr(event, "kind", "?"),
                    generation,
                )

        return sink

    def _detach(self) -> Any:
        """Stop accepting callbacks from the current connection and hand back its handle."""
        self._active_generation = None
        handle, self._handle = self._handle, None
        return handle

    async def _teardown(self) -> None:
        handle = self._detach()
        if handle is not None:
            await self._close(handle)

    async def _close(self, handle: Any) -> None:
        try:
            await self._engine.close(handle)
        except Exception as exc:
            logger.warning("Engine close failed", exc_info=True)
            self._emit_error(EngineRuntimeError(f"ASR close failed: {exc}"))

    async def _abort(self, handle: Any) -> None:
        if handle is None:
            return
        try:
            await self._engine.send_control(handle, ControlSignal.ABORT)
        except Exception as exc:
            logger.warning("Engine abort failed", exc_info=True)
            self._emit_error(EngineRuntimeError(f"ASR abort failed: {exc}"))
        await self._close(handle)

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    async def _stop_fallback(self, generation: int | None) -> None:
        await asyncio.sleep(self._stop_grace)
        self._fallback_task = None
        async with self._lock:
            if self._state != SessionState.STOPPING or self._active_generation != generation:
                return
            logger.warning(
                "No end of utterance within %.1fs of stop, force-cancelling (generation=%s)",
                self._stop_grace,
                generation,
            )
            self._set_state(SessionState.READY)
            await self._abort(self._detach())

    def _cancel_fallback(self) -> None:
        if self._fallback_task is not None:
            self._fallback_task.cancel()
            self._fallback_task = None

    def _schedule_restart(self) -> None:
        self._cancel_restart()
        self._restart_task = asyncio.create_task(self._restart_after_settle())

    async def _restart_after_settle(self) -> None:
        await asyncio.sleep(self._settle_delay)
        self._restart_task = None
        if not self._continuous or self._state != SessionState.READY:
            return
        try:
            await self._start(True, restart=True)
        except VoiceCommandError as exc:
            logger.warning("Continuous restart skipped: %s", exc)

    def _cancel_restart(self) -> None:
        if self._restart_task is not None:
            self._restart_task.cancel()
            self._restart_task = None

    # ------------------------------------------------------------------
    # Engine callbacks (event loop thread)
    # ------------------------------------------------------------------

    def _on_engine_event(self, generation: int, event: EngineEvent) -> None:
        if self._state == SessionState.RELEASED or generation != self._active_generation:
            logger.debug(
                "Discarding %s callback from stale generation %d (active=%s)",
                event.kind.value,
                generation,
                self._active_generation,
            )
            return

        if event.kind == EngineEventKind.ERROR:
            self._handle_engine_error(generation, event.payload)
            return

        final = event.kind == EngineEventKind.FINAL
        if final:
            # The utterance is over whether or not its payload is readable.
            self._cancel_fallback()
            self._set_state(SessionState.READY)

        try:
            text = TranscriptPayload.parse(event.payload).best_text()
        except PayloadParseError as exc:
            logger.warning("Transcript callback unreadable (generation %d): %s", generation, exc)
            self._emit_error(exc, generation)
            text = None
        else:
            if final:
                self._publish_transcript(SessionEventType.FINAL, text or "", generation)
            elif text is not None:
                self._publish_transcript(SessionEventType.PARTIAL, text, generation)

        if final and self._continuous:
            self._schedule_restart()

    def _handle_engine_error(self, generation: int, payload: Any) -> None:
        logger.warning("Engine error (generation %d): %s", generation, payload)
        self._cancel_fallback()
        self._emit_error(EngineRuntimeError(_error_message(payload)), generation)
        self._set_state(SessionState.READY)
        handle = self._detach()
        if handle is not None:
            self._spawn(self._abort(handle))

    def _publish_transcript(
        self, event_type: SessionEventType, text: str, generation: int
    ) -> None:
        result = self._matcher.match(text)
        if not self._matcher.config.filter_enabled or result.matched:
            self._emit(
                SessionEvent(
                    type=event_type,
                    generation=generation,
                    text=text,
                    keyword_match=result,
                )
            )
        if result.matched:
            self._emit(
                SessionEvent(
                    type=SessionEventType.KEYWORD_DETECTED,
                    generation=generation,
                    text=text,
                    keyword_match=result,
                )
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _emit(self, event: SessionEvent) -> None:
        self._event_bus.emit_nowait(event)

    def _emit_error(self, exc: Exception, generation: int | None = None) -> None:
        self._emit(
            SessionEvent(
                type=SessionEventType.ERROR,
                generation=self._generation if generation is None else generation,
                message=str(exc),
                error_code=type(exc).__name__,
            )
        )

    def _set_state(self, state: SessionState) -> None:
        if state != self._state:
            logger.debug("Session state %s -> %s", self._state.value, state.value)
            self._state = state

    def _ensure_not_released(self) -> None:
        if self._state == SessionState.RELEASED:
            raise AlreadyReleasedError("Recognition session has been released")


def _error_message(payload: Any) -> str:
    if payload is None or payload == "":
        return "ASR error"
    if isinstance(payload, str):
        return payload
    try:
        return json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(payload)
