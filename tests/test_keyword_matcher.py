"""Tests for voicecmd.keywords.matcher: KeywordMatcher."""

import pytest

from voicecmd.errors import InvalidPatternError
from voicecmd.keywords.matcher import KeywordMatcher
from voicecmd.keywords.types import KeywordPattern, MatcherConfiguration, MatchMode


_LIGHT = [{"keyword": "turn on the light", "mode": "fuzzy"}]


# ---------------------------------------------------------------------------
# Basic matching
# ---------------------------------------------------------------------------


class TestMatch:
    """End-to-end matching against a vocabulary."""

    def test_fuzzy_containment_matches(self, matcher: KeywordMatcher):
        matcher.set_vocabulary(_LIGHT)
        result = matcher.match("please turn on the light now")
        assert result.matched is True
        assert result.confidence >= 0.6
        assert result.action == "turn on the light"
        assert result.matched_keyword == "turn on the light"
        assert result.original_text == "please turn on the light now"

    def test_full_coverage_capped_above_high_threshold(self):
        matcher = KeywordMatcher(MatcherConfiguration(confidence_threshold=0.8))
        matcher.set_vocabulary(_LIGHT)
        result = matcher.match("turn on the light")
        assert result.matched is True
        assert result.confidence == pytest.approx(0.95)

    def test_below_threshold_is_not_a_match(self):
        matcher = KeywordMatcher(MatcherConfiguration(confidence_threshold=0.9))
        matcher.set_vocabulary(_LIGHT)
        result = matcher.match("please turn on the light now")
        assert result.matched is False
        assert result.confidence == 0.0
        assert result.action is None

    def test_empty_vocabulary(self, matcher: KeywordMatcher):
        result = matcher.match("turn on the light")
        assert result.matched is False
        assert result.original_text == "turn on the light"

    def test_empty_text(self, matcher: KeywordMatcher):
        matcher.set_vocabulary(_LIGHT)
        assert matcher.match("").matched is False
        assert matcher.match(None).matched is False

    def test_disabled_matcher(self, matcher: KeywordMatcher):
        matcher.set_vocabulary(_LIGHT)
        matcher.set_matching_enabled(False)
        assert matcher.match("turn on the light").matched is False
        matcher.set_matching_enabled(True)
        assert matcher.match("turn on the light").matched is True

    def test_punctuation_only_text(self, matcher: KeywordMatcher):
        matcher.set_vocabulary([{"keyword": "stop", "mode": "exact"}])
        assert matcher.match("?!").matched is False

    def test_metadata_and_default_action(self, matcher: KeywordMatcher):
        matcher.set_vocabulary(
            [{"keyword": "kitchen lights", "metadata": {"room": "kitchen"}}]
        )
        result = matcher.match("kitchen lights")
        assert result.action == "kitchen lights"
        assert result.metadata == {"room": "kitchen"}

    def test_accepts_pattern_objects(self, matcher: KeywordMatcher):
        matcher.set_vocabulary(
            [KeywordPattern(keyword="next", action="NEXT", mode=MatchMode.EXACT)]
        )
        result = matcher.match("Next!")
        assert result.matched is True
        assert result.action == "NEXT"
        assert result.confidence == 1.0


# ---------------------------------------------------------------------------
# Per-mode behaviour through the matcher
# ---------------------------------------------------------------------------


class TestModes:
    """Each mode is applied with the right text form."""

    def test_exact_alias(self, matcher: KeywordMatcher):
        matcher.set_vocabulary(
            [{"keyword": "下一步", "mode": "exact", "aliases": ["下一个"]}]
        )
        result = matcher.match("下一个。")
        assert result.matched is True
        assert result.confidence == pytest.approx(0.95)
        assert result.matched_keyword == "下一步"

    def test_regex_uses_raw_text(self, matcher: KeywordMatcher):
        matcher.set_vocabulary(
            [{"keyword": r"Light \d+", "action": "select_light", "mode": "REGEX"}]
        )
        result = matcher.match("Turn on Light 3")
        assert result.matched is True
        assert result.action == "select_light"
        assert result.confidence == pytest.approx(0.70 + 0.30 * 7 / 15)

    def test_phonetic(self, matcher: KeywordMatcher):
        matcher.set_vocabulary([{"keyword": "hello", "mode": "phonetic"}])
        result = matcher.match("Helo!")
        assert result.matched is True
        assert result.confidence == pytest.approx(0.72)

    def test_fuzzy_alias_takes_max(self, matcher: KeywordMatcher):
        matcher.set_vocabulary(
            [{"keyword": "lights on", "aliases": ["illuminate"]}]
        )
        result = matcher.match("illuminate")
        assert result.matched is True
        assert result.confidence == pytest.approx(0.90)


# ---------------------------------------------------------------------------
# Best-match selection
# ---------------------------------------------------------------------------


class TestSelection:
    """Highest confidence wins; ties keep vocabulary order."""

    def test_tie_keeps_first_entry(self, matcher: KeywordMatcher):
        matcher.set_vocabulary(
            [
                {"keyword": "next", "action": "first"},
                {"keyword": "next", "action": "second"},
            ]
        )
        assert matcher.match("next").action == "first"

    def test_higher_confidence_wins(self, matcher: KeywordMatcher):
        matcher.set_vocabulary(
            [
                {"keyword": "light", "action": "short"},
                {"keyword": "the light", "action": "long"},
            ]
        )
        result = matcher.match("the light")
        assert result.action == "long"
        assert result.confidence == pytest.approx(0.95)


# ---------------------------------------------------------------------------
# Vocabulary replacement
# ---------------------------------------------------------------------------


class TestSetVocabulary:
    """Vocabulary replacement is atomic."""

    def test_replaces_rather_than_merges(self, matcher: KeywordMatcher):
        matcher.set_vocabulary([{"keyword": "go"}])
        matcher.set_vocabulary([{"keyword": "halt"}])
        assert [p.keyword for p in matcher.vocabulary] == ["halt"]
        assert matcher.match("go").matched is False

    def test_invalid_regex_keeps_previous_vocabulary(self, matcher: KeywordMatcher):
        matcher.set_vocabulary([{"keyword": "go"}])
        with pytest.raises(InvalidPatternError) as exc_info:
            matcher.set_vocabulary(
                [{"keyword": "ok"}, {"keyword": "([", "mode": "regex"}]
            )
        assert exc_info.value.index == 1
        assert exc_info.value.keyword == "(["
        assert [p.keyword for p in matcher.vocabulary] == ["go"]
        assert matcher.match("go").matched is True

    def test_missing_keyword_is_invalid(self, matcher: KeywordMatcher):
        with pytest.raises(InvalidPatternError):
            matcher.set_vocabulary([{"action": "nothing"}])

    def test_blank_keyword_is_invalid(self, matcher: KeywordMatcher):
        with pytest.raises(InvalidPatternError) as exc_info:
            matcher.set_vocabulary([{"keyword": "ok"}, {"keyword": "   "}])
        assert exc_info.value.index == 1
        assert matcher.vocabulary == ()

    def test_unknown_mode_uses_default(self, matcher: KeywordMatcher):
        matcher.set_vocabulary([{"keyword": "stop", "mode": "bogus"}])
        assert matcher.match("please stop").matched is True

    def test_default_mode_applies_to_unspecified_entries(self, matcher: KeywordMatcher):
        matcher.set_default_mode("exact")
        matcher.set_vocabulary([{"keyword": "stop"}])
        assert matcher.match("please stop").matched is False
        assert matcher.match("Stop.").matched is True

    def test_unknown_default_mode_rejected(self, matcher: KeywordMatcher):
        with pytest.raises(ValueError):
            matcher.set_default_mode("telepathic")

    def test_enabled_tracks_vocabulary(self, matcher: KeywordMatcher):
        assert matcher.is_enabled is False
        matcher.set_vocabulary([{"keyword": "go"}])
        assert matcher.is_enabled is True
        matcher.set_vocabulary([])
        assert matcher.is_enabled is False


class TestConfiguration:
    """Threshold and filter settings."""

    def test_threshold_is_clamped(self, matcher: KeywordMatcher):
        matcher.set_confidence_threshold(1.5)
        assert matcher.config.confidence_threshold == 1.0
        matcher.set_confidence_threshold(-0.3)
        assert matcher.config.confidence_threshold == 0.0

    def test_filter_flag(self, matcher: KeywordMatcher):
        assert matcher.config.filter_enabled is False
        matcher.set_filter_enabled(True)
        assert matcher.config.filter_enabled is True
