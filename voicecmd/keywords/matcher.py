"""Keyword matching engine: owns the vocabulary and scores transcripts against it.

Each vocabulary entry is scored under its own mode (exact, fuzzy, regex or
phonetic) over the keyword and every alias.  The best-scoring entry that
reaches the confidence threshold wins; ties keep the earlier entry.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping, NamedTuple

from pydantic import ValidationError

from voicecmd.errors import InvalidPatternError
from voicecmd.keywords import scoring
from voicecmd.keywords.types import (
    KeywordPattern,
    MatcherConfiguration,
    MatchMode,
    MatchResult,
)

logger = logging.getLogger(__name__)


class _CompiledEntry(NamedTuple):
    """A vocabulary entry with its resolved mode and precomputed operands."""

    pattern: KeywordPattern
    mode: MatchMode
    keyword: str
    aliases: tuple[str, ...]
    regex: re.Pattern[str] | None


class KeywordMatcher:
    """Classifies transcripts against a replaceable keyword vocabulary.

    The vocabulary is held as an immutable tuple and swapped with a single
    assignment, so a reader on the callback path always sees either the old
    or the new vocabulary in full.
    """

    def __init__(self, config: MatcherConfiguration | None = None) -> None:
        self._config = config or MatcherConfiguration()
        self._entries: tuple[_CompiledEntry, ...] = ()
        self._enabled: bool = False

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def config(self) -> MatcherConfiguration:
        return self._config

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def vocabulary(self) -> tuple[KeywordPattern, ...]:
        """The active vocabulary, in priority order."""
        return tuple(entry.pattern for entry in self._entries)

    def set_matching_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    def set_confidence_threshold(self, threshold: float) -> None:
        """Set the threshold, clamped to [0, 1]."""
        self._config.confidence_threshold = threshold
        logger.debug(
            "Confidence threshold set to %.2f", self._config.confidence_threshold
        )

    def set_filter_enabled(self, enabled: bool) -> None:
        self._config.filter_enabled = enabled

    def set_default_mode(self, mode: MatchMode | str) -> None:
        resolved = MatchMode.parse(mode)
        if resolved is None:
            raise ValueError(f"Unknown match mode: {mode!r}")
        self._config.default_mode = resolved

    # ------------------------------------------------------------------
    # Vocabulary
    # ------------------------------------------------------------------

    def set_vocabulary(
        self, patterns: Iterable[KeywordPattern | Mapping[str, Any]]
    ) -> None:
        """Replace the whole vocabulary.

        Raises InvalidPatternError if any entry is malformed; in that case
        the previous vocabulary stays active.
        """
        entries = tuple(
            self._compile(index, raw) for index, raw in enumerate(patterns)
        )
        self._entries = entries
        self._enabled = bool(entries)
        logger.info("Vocabulary replaced (%d entries)", len(entries))

    def _compile(
        self, index: int, raw: KeywordPattern | Mapping[str, Any]
    ) -> _CompiledEntry:
        if isinstance(raw, KeywordPattern):
            pattern = raw
        else:
            try:
                pattern = KeywordPattern.model_validate(dict(raw))
            except (ValidationError, TypeError, ValueError) as exc:
                keyword = raw.get("keyword") if isinstance(raw, Mapping) else None
                raise InvalidPatternError(
                    f"Invalid vocabulary entry #{index}: {exc}",
                    keyword=keyword,
                    index=index,
                ) from exc

        mode = pattern.mode or self._config.default_mode
        regex = None
        if mode == MatchMode.REGEX:
            try:
                regex = re.compile(pattern.keyword)
            except re.error as exc:
                raise InvalidPatternError(
                    f"Invalid regex in vocabulary entry #{index} ({pattern.keyword!r}): {exc}",
                    keyword=pattern.keyword,
                    index=index,
                ) from exc

        return _CompiledEntry(
            pattern=pattern,
            mode=mode,
            keyword=scoring.normalize_text(pattern.keyword),
            aliases=tuple(scoring.normalize_text(alias) for alias in pattern.aliases),
            regex=regex,
        )

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def match(self, text: str | None) -> MatchResult:
        """Return the best match for *text*, or a bare non-match."""
        entries = self._entries
        original = text or ""
        if not entries or not self._enabled or not original:
            return MatchResult(original_text=original)

        threshold = self._config.confidence_threshold
        normalized = scoring.normalize_text(original)

        best_confidence = 0.0
        best: KeywordPattern | None = None
        for entry in entries:
            confidence = scoring.clamp(self._score(entry, original, normalized))
            if confidence > best_confidence and confidence >= threshold:
                best_confidence = confidence
                best = entry.pattern

        if best is None:
            return MatchResult(original_text=original)

        logger.debug(
            "Matched %r -> %s (confidence=%.2f)", original, best.action, best_confidence
        )
        return MatchResult(
            matched=True,
            matched_keyword=best.keyword,
            action=best.action,
            confidence=best_confidence,
            original_text=original,
            metadata=dict(best.metadata),
        )

    @staticmethod
    def _score(entry: _CompiledEntry, original: str, normalized: str) -> float:
        if entry.mode == MatchMode.EXACT:
            return scoring.score_exact(normalized, entry.keyword, entry.aliases)
        if entry.mode == MatchMode.FUZZY:
            return scoring.score_fuzzy(normalized, entry.keyword, entry.aliases)
        if entry.mode == MatchMode.REGEX:
            return scoring.score_regex(entry.regex, original)
        if entry.mode == MatchMode.PHONETIC:
            return scoring.score_phonetic(normalized, entry.keyword, entry.aliases)
        return 0.0
