"""Engine parameter assembly for a recognition pass."""

import json
import logging

from pydantic import ValidationError

from voicecmd.asr.types import EngineParams, VadMode
from voicecmd.config import (
    CHANNELS,
    CONTINUOUS_ENDPOINT_TIMEOUT_MS,
    ENDPOINT_TIMEOUT_MS,
    ENGINE_EXTRA,
    FALLBACK_MODEL,
    LANGUAGE_MODELS,
    SAMPLE_RATE,
)
from voicecmd.errors import EngineParamError

logger = logging.getLogger(__name__)


def model_for_language(language: str | None) -> int:
    """Return the acoustic model id for *language* (case-insensitive)."""
    if not language:
        return FALLBACK_MODEL
    return LANGUAGE_MODELS.get(language.lower(), FALLBACK_MODEL)


def build_engine_params(
    *,
    language: str,
    vad_enabled: bool,
    continuous: bool,
    extra: str | None = None,
) -> EngineParams:
    """Assemble parameters for one pass.

    Continuous passes use a shorter endpoint-silence timeout so the next
    pass starts sooner.  *extra* is a JSON object merged into the
    parameters (defaults to VOICECMD_ENGINE_EXTRA).  Raises EngineParamError
    if anything cannot be assembled.
    """
    raw_extra = ENGINE_EXTRA if extra is None else extra
    try:
        extra_params = json.loads(raw_extra) if raw_extra else {}
    except json.JSONDecodeError as exc:
        raise EngineParamError(f"ASR params error: bad extra parameters: {exc}") from exc
    if not isinstance(extra_params, dict):
        raise EngineParamError("ASR params error: extra parameters must be a JSON object")

    try:
        params = EngineParams(
            sample_rate=SAMPLE_RATE,
            channels=CHANNELS,
            language=language,
            model_id=model_for_language(language),
            vad=VadMode.DNN if vad_enabled else VadMode.TOUCH,
            endpoint_timeout_ms=CONTINUOUS_ENDPOINT_TIMEOUT_MS
            if continuous
            else ENDPOINT_TIMEOUT_MS,
            extra=extra_params,
        )
    except ValidationError as exc:
        raise EngineParamError(f"ASR params error: {exc}") from exc

    logger.debug(
        "Engine params: model=%d vad=%s endpoint=%dms",
        params.model_id,
        params.vad.value,
        params.endpoint_timeout_ms,
    )
    return params
