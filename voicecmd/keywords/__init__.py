"""Keyword matching subsystem for voicecmd."""

from voicecmd.keywords.matcher import KeywordMatcher
from voicecmd.keywords.types import (
    KeywordPattern,
    MatcherConfiguration,
    MatchMode,
    MatchResult,
)

__all__ = [
    "KeywordMatcher",
    "KeywordPattern",
    "MatchMode",
    "MatchResult",
    "MatcherConfiguration",
]
