"""Per-mode confidence scoring for keyword matching.

All functions are pure.  Exact, fuzzy and phonetic scorers expect operands
that were already passed through :func:`normalize_text`; the regex scorer
works on the raw transcript.  Any zero-length operand scores 0.
"""

import re
import string
import unicodedata
from typing import Iterable

# ---------------------------------------------------------------------------
# Scoring constants
# ---------------------------------------------------------------------------

EXACT_KEYWORD_CONFIDENCE = 1.0
EXACT_ALIAS_CONFIDENCE = 0.95

FUZZY_RATIO_WEIGHT = 0.30
FUZZY_KEYWORD_BASE, FUZZY_KEYWORD_CAP = 0.70, 0.95
FUZZY_ALIAS_BASE, FUZZY_ALIAS_CAP = 0.65, 0.90

REGEX_BASE, REGEX_CAP = 0.70, 0.95

PHONETIC_MIN_SIMILARITY = 0.70
PHONETIC_KEYWORD_FACTOR = 0.90
PHONETIC_ALIAS_FACTOR = 0.85

_ASCII_PUNCTUATION = frozenset(string.punctuation)


def normalize_text(text: str | None) -> str:
    """Lower-case *text* and drop whitespace and punctuation."""
    if not text:
        return ""
    return "".join(
        ch
        for ch in text.lower()
        if not (
            ch.isspace()
            or ch in _ASCII_PUNCTUATION
            or unicodedata.category(ch).startswith("P")
        )
    )


def clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def levenshtein(a: str, b: str) -> int:
    """Unit-cost insert/delete/substitute edit distance."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(
                min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """``1 - distance / max(len)``; 0 when either side is empty."""
    if not a or not b:
        return 0.0
    return 1.0 - levenshtein(a, b) / max(len(a), len(b))


# ---------------------------------------------------------------------------
# Per-mode scorers
# ---------------------------------------------------------------------------


def score_exact(text: str, keyword: str, aliases: Iterable[str] = ()) -> float:
    if not text:
        return 0.0
    if keyword and text == keyword:
        return EXACT_KEYWORD_CONFIDENCE
    for alias in aliases:
        if alias and text == alias:
            return EXACT_ALIAS_CONFIDENCE
    return 0.0


def _containment(text: str, needle: str, base: float, cap: float) -> float:
    if not text or not needle or needle not in text:
        return 0.0
    ratio = len(needle) / len(text)
    return min(cap, base + ratio * FUZZY_RATIO_WEIGHT)


def score_fuzzy(text: str, keyword: str, aliases: Iterable[str] = ()) -> float:
    """Substring containment scored by how much of the text the needle covers."""
    best = _containment(text, keyword, FUZZY_KEYWORD_BASE, FUZZY_KEYWORD_CAP)
    for alias in aliases:
        best = max(best, _containment(text, alias, FUZZY_ALIAS_BASE, FUZZY_ALIAS_CAP))
    return best


def score_regex(pattern: re.Pattern[str] | None, text: str) -> float:
    if pattern is None or not text:
        return 0.0
    found = pattern.search(text)
    if found is None:
        return 0.0
    span = found.end() - found.start()
    return min(REGEX_CAP, REGEX_BASE + FUZZY_RATIO_WEIGHT * span / len(text))


def score_phonetic(text: str, keyword: str, aliases: Iterable[str] = ()) -> float:
    """Edit-distance similarity.  Aliases are consulted only if the keyword misses."""
    keyword_similarity = similarity(text, keyword)
    if keyword_similarity >= PHONETIC_MIN_SIMILARITY:
        return keyword_similarity * PHONETIC_KEYWORD_FACTOR

    best = 0.0
    for alias in aliases:
        alias_similarity = similarity(text, alias)
        if alias_similarity >= PHONETIC_MIN_SIMILARITY:
            best = max(best, alias_similarity * PHONETIC_ALIAS_FACTOR)
    return best
