#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Bommai — command vocabulary and transcript matching

- Trigger table: action key -> spoken phrase variants (longest first)
- Numeral lexicon: spoken word -> 1..10
- TranscriptMatcher: digits, then numeral words, then trigger phrases
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from bommai.errors import ConfigError

ASCII_NUMBERS = {str(n): n for n in range(1, 11)}
# Script numbers outside the decimal-digit category that still stand for 1..10.
NATIVE_NUMBERS = {"௰": 10}  # Tamil ten


# =========================
# Text helpers
# =========================

def normalize(text: str) -> str:
    """NFC, trim, collapse whitespace, case-fold."""
    if not text:
        return ""
    text = unicodedata.normalize("NFC", text)
    return " ".join(text.split()).casefold()


def _is_letter(ch: str) -> bool:
    # Vowel signs and viramas (M*) belong to the word they attach to.
    return unicodedata.category(ch)[0] in ("L", "M")


def _is_numeric(ch: str) -> bool:
    return unicodedata.category(ch) == "Nd" or ch in NATIVE_NUMBERS


def _find_bounded(text: str, phrase: str) -> int:
    """Index of the first occurrence of phrase bounded by non-letters, or -1."""
    start = text.find(phrase)
    while start >= 0:
        end = start + len(phrase)
        before_ok = start == 0 or not _is_letter(text[start - 1])
        after_ok = end == len(text) or not _is_letter(text[end])
        if before_ok and after_ok:
            return start
        start = text.find(phrase, start + 1)
    return -1


def contains_phrase(text: str, phrase: str, word_boundaries: bool = True) -> bool:
    """
    Whole-word containment, or raw substring when boundaries are disabled.

    A failure inside the boundary scan degrades to the substring test.
    """
    if not phrase:
        return False
    if not word_boundaries:
        return phrase in text
    try:
        return _find_bounded(text, phrase) >= 0
    except (TypeError, ValueError):
        return phrase in text


def _token_value(token: str) -> Optional[int]:
    if token.isascii():
        return ASCII_NUMBERS.get(token)
    if len(token) != 1:
        return None
    if token in NATIVE_NUMBERS:
        return NATIVE_NUMBERS[token]
    value = unicodedata.decimal(token, None)
    if value is None or not 1 <= value <= 9:
        return None
    return value


def find_digit(text: str) -> Optional[int]:
    """First standalone digit token worth 1..10 (ASCII or one native digit)."""
    i, n = 0, len(text)
    while i < n:
        if not _is_numeric(text[i]):
            i += 1
            continue
        j = i
        while j < n and _is_numeric(text[j]):
            j += 1
        bounded = (i == 0 or not _is_letter(text[i - 1])) and (j == n or not _is_letter(text[j]))
        if bounded:
            value = _token_value(text[i:j])
            if value is not None:
                return value
        i = j
    return None


# =========================
# Vocabulary
# =========================

@dataclass(frozen=True)
class TriggerEntry:
    action_key: str
    phrase: str


@dataclass(frozen=True)
class NumeralEntry:
    word: str
    value: int


class TriggerTable:
    """Immutable command vocabulary built once at startup."""

    def __init__(self, commands: Mapping[str, List[str]], numerals: Mapping[str, int]):
        entries: List[TriggerEntry] = []
        owner: Dict[str, str] = {}
        for action_key, phrases in (commands or {}).items():
            if isinstance(phrases, str):
                phrases = [phrases]
            for raw in phrases or []:
                phrase = normalize(str(raw))
                if not phrase:
                    raise ConfigError(f"empty phrase for action '{action_key}'")
                if phrase in owner:
                    if owner[phrase] != action_key:
                        raise ConfigError(
                            f"phrase '{phrase}' configured for both '{owner[phrase]}' and '{action_key}'"
                        )
                    continue
                owner[phrase] = action_key
                entries.append(TriggerEntry(str(action_key), phrase))

        # Stable sort keeps declaration order among equal lengths.
        self._actions: Tuple[TriggerEntry, ...] = tuple(
            sorted(entries, key=lambda e: len(e.phrase), reverse=True)
        )

        lexicon: Dict[str, int] = {}
        for raw, value in (numerals or {}).items():
            word = normalize(str(raw))
            if not word:
                raise ConfigError("empty numeral word")
            try:
                number = int(value)
            except (TypeError, ValueError):
                raise ConfigError(f"numeral '{word}' has non-integer value {value!r}") from None
            if not 1 <= number <= 10:
                raise ConfigError(f"numeral '{word}' must be within 1..10, got {number}")
            lexicon.setdefault(word, number)
        self._numerals = lexicon

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "TriggerTable":
        return cls(cfg.get("commands", {}), cfg.get("numerals", {}))

    def all_actions(self) -> Tuple[TriggerEntry, ...]:
        return self._actions

    def all_numerals(self) -> Dict[str, int]:
        return dict(self._numerals)

    def numeral_entries(self) -> Tuple[NumeralEntry, ...]:
        return tuple(NumeralEntry(w, v) for w, v in self._numerals.items())

    def action_keys(self) -> List[str]:
        keys: List[str] = []
        for entry in self._actions:
            if entry.action_key not in keys:
                keys.append(entry.action_key)
        return keys

    def overlaps(self) -> List[Tuple[TriggerEntry, TriggerEntry]]:
        """(shorter, longer) pairs where one phrase sits inside another."""
        pairs = []
        for i, longer in enumerate(self._actions):
            for shorter in self._actions[i + 1:]:
                if shorter.phrase != longer.phrase and shorter.phrase in longer.phrase:
                    pairs.append((shorter, longer))
        return pairs


# =========================
# Match results
# =========================

@dataclass(frozen=True)
class Action:
    action_key: str
    phrase: str = field(default="", compare=False)


@dataclass(frozen=True)
class Numeral:
    value: int
    word: str = field(default="", compare=False)


@dataclass(frozen=True)
class NoMatch:
    pass


NO_MATCH = NoMatch()

MatchResult = Union[Action, Numeral, NoMatch]


# =========================
# Matcher
# =========================

class TranscriptMatcher:
    """Maps a transcript onto an action, a numeral, or nothing."""

    def __init__(self, table: TriggerTable, word_boundaries: bool = True):
        self.table = table
        self.word_boundaries = word_boundaries
        self._actions = table.all_actions()
        self._numerals = table.all_numerals()

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], table: Optional[TriggerTable] = None) -> "TranscriptMatcher":
        table = table or TriggerTable.from_config(cfg)
        return cls(table, bool(cfg.get("matching", {}).get("word_boundaries", True)))

    def match(self, transcript: str) -> MatchResult:
        text = normalize(transcript or "")
        if not text:
            return NO_MATCH

        # Digits are the least ambiguous input.
        digit = find_digit(text)
        if digit is not None:
            return Numeral(digit, word=str(digit))

        for word, value in self._numerals.items():
            if contains_phrase(text, word, self.word_boundaries):
                return Numeral(value, word=word)

        for entry in self._actions:
            if contains_phrase(text, entry.phrase, self.word_boundaries):
                return Action(entry.action_key, phrase=entry.phrase)

        return NO_MATCH
