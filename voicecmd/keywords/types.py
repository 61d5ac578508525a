"""Pydantic models and enums for the keyword matching subsystem."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from voicecmd.config import CONFIDENCE_THRESHOLD, DEFAULT_MATCH_MODE


class MatchMode(str, Enum):
    """Strategy used to compare a transcript against a keyword."""

    EXACT = "exact"
    FUZZY = "fuzzy"
    REGEX = "regex"
    PHONETIC = "phonetic"

    @classmethod
    def parse(cls, value: Any) -> "MatchMode | None":
        """Case-insensitive lookup.  Returns None for missing or unknown modes."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class KeywordPattern(BaseModel):
    """One vocabulary entry.

    ``mode`` is None when the entry did not name a (known) mode; the matcher
    substitutes its configured default mode.  ``action`` defaults to the
    keyword itself.
    """

    model_config = ConfigDict(frozen=True)

    keyword: str = Field(min_length=1)
    action: str
    mode: MatchMode | None = None
    aliases: tuple[str, ...] = ()
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _default_action(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("action") is None:
            data = {**data, "action": data.get("keyword")}
        return data

    @field_validator("keyword")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("keyword must not be blank")
        return value

    @field_validator("mode", mode="before")
    @classmethod
    def _lenient_mode(cls, value: Any) -> MatchMode | None:
        return MatchMode.parse(value)


class MatchResult(BaseModel):
    """Outcome of matching one transcript against the vocabulary."""

    matched: bool = False
    matched_keyword: str | None = None
    action: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    original_text: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Host-facing dict using the bridge's camelCase keys."""
        return {
            "matched": self.matched,
            "matchedKeyword": self.matched_keyword,
            "action": self.action,
            "confidence": self.confidence,
            "originalText": self.original_text,
            "metadata": dict(self.metadata),
        }


class MatcherConfiguration(BaseModel):
    """Mutable matcher settings.  Outlives individual recognition passes."""

    model_config = ConfigDict(validate_assignment=True)

    confidence_threshold: float = CONFIDENCE_THRESHOLD
    filter_enabled: bool = False
    default_mode: MatchMode = MatchMode.parse(DEFAULT_MATCH_MODE) or MatchMode.FUZZY

    @field_validator("confidence_threshold")
    @classmethod
    def _clamp_threshold(cls, value: float) -> float:
        return max(0.0, min(1.0, value))
