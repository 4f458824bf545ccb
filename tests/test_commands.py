"""Tests for TriggerTable and TranscriptMatcher from commands.py."""

from __future__ import annotations

import copy

import pytest

from bommai import commands
from bommai.commands import (
    NO_MATCH,
    Action,
    NoMatch,
    Numeral,
    TranscriptMatcher,
    TriggerTable,
    contains_phrase,
    find_digit,
    normalize,
)
from bommai.config import DEFAULT_CONFIG
from bommai.errors import ConfigError


@pytest.fixture()
def cfg():
    return copy.deepcopy(DEFAULT_CONFIG)


@pytest.fixture()
def table(cfg):
    return TriggerTable.from_config(cfg)


@pytest.fixture()
def matcher(table):
    return TranscriptMatcher(table)


@pytest.fixture()
def loose(table):
    return TranscriptMatcher(table, word_boundaries=False)


class TestNormalize:
    def test_trims_and_collapses_whitespace(self):
        assert normalize("  நடந்து \t  வா \n") == "நடந்து வா"

    def test_casefolds(self):
        assert normalize("Sit DOWN") == "sit down"

    def test_empty(self):
        assert normalize("") == ""
        assert normalize("   ") == ""


class TestTriggerTable:
    def test_actions_longest_first(self, table):
        lengths = [len(e.phrase) for e in table.all_actions()]
        assert lengths == sorted(lengths, reverse=True)

    def test_equal_lengths_keep_declaration_order(self):
        t = TriggerTable({"a": ["xy"], "b": ["zw"]}, {})
        assert [e.action_key for e in t.all_actions()] == ["a", "b"]

    def test_numerals_in_insertion_order(self, table):
        words = list(table.all_numerals())
        assert words[:4] == ["ஒன்று", "ஒண்ணு", "இரண்டு", "ரெண்டு"]
        assert table.all_numerals()["அஞ்சு"] == 5

    def test_all_numerals_is_a_copy(self, table):
        table.all_numerals()["புதிது"] = 3
        assert "புதிது" not in table.all_numerals()

    def test_action_keys(self, table):
        assert sorted(table.action_keys()) == ["dance", "jump", "sit", "walk"]

    def test_repeated_phrase_same_action_is_kept_once(self):
        t = TriggerTable({"sit": ["sit", "SIT", " sit "]}, {})
        assert len(t.all_actions()) == 1

    def test_phrase_for_two_actions_rejected(self):
        with pytest.raises(ConfigError):
            TriggerTable({"sit": ["go"], "walk": ["Go"]}, {})

    def test_empty_phrase_rejected(self):
        with pytest.raises(ConfigError):
            TriggerTable({"sit": ["  "]}, {})

    def test_numeral_out_of_range_rejected(self):
        with pytest.raises(ConfigError):
            TriggerTable({}, {"பதினொன்று": 11})

    def test_numeral_not_an_integer_rejected(self):
        with pytest.raises(ConfigError):
            TriggerTable({}, {"ஏதோ": "many"})

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            TriggerTable({"sit": [""]}, {})

    def test_overlaps_report_embedded_phrases(self, table):
        pairs = [(s.phrase, l.phrase) for s, l in table.overlaps()]
        assert ("நட", "நடனம்") in pairs
        assert ("ஆடு", "டான்ஸ் ஆடு") in pairs
        assert ("sit", "sit down") in pairs


class TestDigits:
    def test_ascii_digit(self):
        assert find_digit("7") == 7
        assert find_digit("ஆடு 10 முறை") == 10

    def test_out_of_range_tokens_ignored(self):
        assert find_digit("0") is None
        assert find_digit("12") is None

    def test_digit_glued_to_letters_ignored(self):
        assert find_digit("abc7") is None

    def test_native_digits(self):
        assert find_digit("௭") == 7
        assert find_digit("௰") == 10

    def test_native_zero_ignored(self):
        assert find_digit("௦") is None

    @pytest.mark.parametrize("text", ["⑦", "²", "½", "Ⅶ"])
    def test_number_symbols_are_not_digits(self, text):
        assert find_digit(text) is None

    def test_number_symbol_does_not_match(self, matcher):
        assert matcher.match("⑦") is NO_MATCH


class TestTranscriptMatcher:
    def test_sit_word(self, matcher):
        assert matcher.match("உக்காரு") == Action("sit")

    def test_numeral_word(self, matcher):
        assert matcher.match("ஐந்து") == Numeral(5)

    def test_spoken_digit(self, matcher):
        assert matcher.match("7") == Numeral(7)

    def test_unknown_word(self, matcher):
        assert matcher.match("கோடு") is NO_MATCH

    @pytest.mark.parametrize("text", ["", "   ", "\t\n", None])
    def test_blank_transcript(self, matcher, text):
        assert isinstance(matcher.match(text), NoMatch)

    def test_digit_beats_trigger(self, matcher):
        assert matcher.match("உக்காரு 3") == Numeral(3)

    def test_numeral_word_beats_trigger(self, matcher):
        assert matcher.match("ரெண்டு தடவை குதி") == Numeral(2)

    def test_longest_phrase_wins(self):
        m = TranscriptMatcher(TriggerTable({"a": ["go"], "b": ["go home"]}, {}))
        assert m.match("please go home now") == Action("b")
        assert m.match("go now") == Action("a")

    def test_longest_phrase_wins_without_boundaries(self, loose):
        # "நட" (walk) sits inside "நடனம்" (dance)
        assert loose.match("நடனம்") == Action("dance")

    def test_multiword_phrase_with_extra_spaces(self, matcher):
        assert matcher.match("  நடந்து    வா ") == Action("walk")

    def test_case_insensitive_latin(self, matcher):
        assert matcher.match("Sit Down please") == Action("sit")

    def test_word_boundaries_reject_embedded_phrase(self, matcher):
        assert matcher.match("situation") is NO_MATCH
        assert matcher.match("நடந்தான்") is NO_MATCH

    def test_substring_mode_accepts_embedded_phrase(self, loose):
        assert loose.match("situation") == Action("sit")
        assert loose.match("நடந்தான்") == Action("walk")

    def test_numeral_ties_resolve_in_insertion_order(self):
        m = TranscriptMatcher(TriggerTable({}, {"x": 1, "y": 2}))
        assert m.match("y x") == Numeral(1)

    def test_result_carries_matched_text(self, matcher):
        result = matcher.match("நாலு")
        assert result == Numeral(4)
        assert result.word == "நாலு"
        assert matcher.match("சின்ன குதி").phrase == "குதி"

    def test_idempotent(self, matcher):
        for text in ["உக்காரு", "ஐந்து", "7", "கோடு", "டான்ஸ் ஆடு"]:
            assert matcher.match(text) == matcher.match(text)

    def test_from_config_reads_boundary_flag(self, cfg):
        cfg["matching"]["word_boundaries"] = False
        m = TranscriptMatcher.from_config(cfg)
        assert m.word_boundaries is False
        assert m.match("situation") == Action("sit")


class TestBoundaryFallback:
    def test_boundary_failure_degrades_to_substring(self, monkeypatch):
        def broken(text, phrase):
            raise ValueError("no boundary support")

        monkeypatch.setattr(commands, "_find_bounded", broken)
        assert contains_phrase("situation", "sit") is True
        assert contains_phrase("walk", "sit") is False

    def test_empty_phrase_never_matches(self):
        assert contains_phrase("anything", "") is False
