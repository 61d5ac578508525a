"""Configuration constants and helpers for voicecmd."""

import os


def get_float(name: str, default: float) -> float:
    """Return env var *name* as a float, or *default* if unset or malformed."""
    raw = os.environ.get(name)
    if raw is not None:
        try:
            return float(raw)
        except ValueError:
            return default
    return default


def get_int(name: str, default: int) -> int:
    """Return env var *name* as an int, or *default* if unset or malformed."""
    raw = os.environ.get(name)
    if raw is not None:
        try:
            return int(raw)
        except ValueError:
            return default
    return default


# --- Keyword matching ---

CONFIDENCE_THRESHOLD: float = get_float("VOICECMD_CONFIDENCE_THRESHOLD", 0.6)
DEFAULT_MATCH_MODE: str = os.environ.get("VOICECMD_DEFAULT_MODE", "fuzzy")


# --- Session lifecycle timing ---

STOP_GRACE_PERIOD: float = get_float("VOICECMD_STOP_GRACE", 2.0)  # Seconds before stop() force-cancels
SETTLE_DELAY: float = get_float("VOICECMD_SETTLE_DELAY", 0.3)  # Pause between continuous passes


# --- Engine parameters ---

SAMPLE_RATE: int = get_int("VOICECMD_SAMPLE_RATE", 16000)
CHANNELS: int = 1

ENDPOINT_TIMEOUT_MS: int = get_int("VOICECMD_ENDPOINT_TIMEOUT_MS", 2000)
CONTINUOUS_ENDPOINT_TIMEOUT_MS: int = get_int(
    "VOICECMD_CONTINUOUS_ENDPOINT_TIMEOUT_MS", 1500
)

DEFAULT_LANGUAGE: str = os.environ.get("VOICECMD_DEFAULT_LANGUAGE", "zh")

# Acoustic model ids per language.  Unknown languages use the Mandarin model.
LANGUAGE_MODELS: dict[str, int] = {
    "zh": 1537,  # Mandarin, input-method model
    "en": 1737,
}
FALLBACK_MODEL: int = LANGUAGE_MODELS["zh"]

# Raw JSON object merged into every engine parameter set (credentials etc.).
ENGINE_EXTRA: str = os.environ.get("VOICECMD_ENGINE_EXTRA", "")
