"""Spelling-based syllable estimation used when the dictionary has no entry."""

from __future__ import annotations

from typing import Optional


__all__ = ["estimate_syllable_count"]


_VOWELS = frozenset("aeiouy")


def _clean(word: str) -> str:
    lowered = word.lower()
    start, end = 0, len(lowered)
    while start < end and not (lowered[start].isalpha() or lowered[start] == "'"):
        start += 1
    while end > start and not (lowered[end - 1].isalpha() or lowered[end - 1] == "'"):
        end -= 1
    return lowered[start:end].replace("'", "")


def estimate_syllable_count(word: str) -> Optional[int]:
    """Estimate the syllables in ``word`` by counting vowel runs.

    A trailing silent ``e`` is dropped (except in ``-le``), and ``-le`` after a
    consonant adds one, as in "table" or "bottle". Returns ``None`` when no
    vowel letter remains after trimming (digits, "hmm").
    """

    cleaned = _clean(word)
    if not any(char in _VOWELS for char in cleaned):
        return None

    count = 0
    previous_was_vowel = False
    for char in cleaned:
        is_vowel = char in _VOWELS
        if is_vowel and not previous_was_vowel:
            count += 1
        previous_was_vowel = is_vowel

    if cleaned.endswith("e") and not cleaned.endswith("le") and count > 1:
        count -= 1

    if cleaned.endswith("le") and len(cleaned) >= 3 and cleaned[-3] not in _VOWELS:
        count += 1

    return max(1, count)
