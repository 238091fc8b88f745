"""Rhyme keys derived from ARPAbet phoneme sequences and their similarity."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Optional, Sequence, Set

VOWEL_PHONEMES: Set[str] = {
    "AA",
    "AE",
    "AH",
    "AO",
    "AW",
    "AX",
    "AXR",
    "AY",
    "EH",
    "ER",
    "EY",
    "IH",
    "IY",
    "OW",
    "OY",
    "UH",
    "UW",
}

# Coarse vowel classes used for near-rhyme buckets.
VOWEL_GROUPS: Dict[str, str] = {
    "IY": "front_high",
    "IH": "front_high",
    "EY": "front_mid",
    "EH": "front_mid",
    "AE": "front_low",
    "AH": "central",
    "ER": "central",
    "AX": "central",
    "AXR": "central",
    "AA": "back",
    "AO": "back",
    "OW": "back",
    "UH": "back",
    "UW": "back",
    "AY": "diphthong",
    "AW": "diphthong",
    "OY": "diphthong",
}
OTHER_VOWEL_GROUP = "other"

CONSONANT_CLASSES: Dict[str, str] = {
    "M": "nasal",
    "N": "nasal",
    "NG": "nasal",
    "P": "stop",
    "B": "stop",
    "T": "stop",
    "D": "stop",
    "K": "stop",
    "G": "stop",
    "F": "fricative",
    "V": "fricative",
    "TH": "fricative",
    "DH": "fricative",
    "S": "fricative",
    "Z": "fricative",
    "SH": "fricative",
    "ZH": "fricative",
    "HH": "fricative",
    "CH": "affricate",
    "JH": "affricate",
    "L": "liquid",
    "R": "liquid",
    "W": "glide",
    "Y": "glide",
}

NEAR_RHYME_THRESHOLD = 0.78
INTERNAL_NEAR_RHYME_THRESHOLD = 0.86

_VOWEL_WEIGHT = 0.65
_CONSONANT_WEIGHT = 0.35

_STRESS_SUFFIX = re.compile(r"\d$")


def has_stress_digit(phoneme: str) -> bool:
    return bool(phoneme) and phoneme[-1].isdigit()


def strip_stress(phoneme: str) -> str:
    return _STRESS_SUFFIX.sub("", phoneme)


def is_vowel_nucleus(phoneme: str) -> bool:
    return has_stress_digit(phoneme) or strip_stress(phoneme) in VOWEL_PHONEMES


def rhyme_key(phonemes: Sequence[str]) -> Optional[str]:
    """Return the phonemes from the last stress-marked vowel to the end.

    Without any stress digit the last two phonemes are used instead.

    >>> rhyme_key(["T", "AY1", "M"])
    'AY1 M'
    """

    phones = [phone for phone in phonemes if phone]
    if not phones:
        return None

    for index in range(len(phones) - 1, -1, -1):
        if has_stress_digit(phones[index]):
            return " ".join(phones[index:])

    return " ".join(phones[-2:])


def tail_key(phonemes: Sequence[str], vowel_nuclei_count: int = 2) -> Optional[str]:
    """Return the last ``vowel_nuclei_count`` syllable segments of ``phonemes``.

    A segment starts at a vowel nucleus and absorbs the consonants after it;
    consonants before the first nucleus are not part of any segment.
    """

    phones = [phone for phone in phonemes if phone]
    segments: List[List[str]] = []
    for phone in phones:
        if is_vowel_nucleus(phone):
            segments.append([phone])
        elif segments:
            segments[-1].append(phone)

    if not segments:
        return rhyme_key(phones)

    take = min(max(1, vowel_nuclei_count), len(segments))
    return " ".join(phone for segment in segments[-take:] for phone in segment)


@dataclass(frozen=True)
class RhymeKeySignature:
    """Coarse phonetic description of a rhyme key."""

    vowel_base: Optional[str]
    vowel_group: str
    ending_consonant: Optional[str]
    consonant_class: Optional[str]

    @property
    def bucket(self) -> tuple[str, Optional[str]]:
        return (self.vowel_group, self.consonant_class)


@lru_cache(maxsize=8192)
def signature(key: str) -> RhymeKeySignature:
    phones = key.split()

    vowel_base: Optional[str] = None
    for phone in reversed(phones):
        if is_vowel_nucleus(phone):
            vowel_base = strip_stress(phone)
            break

    ending: Optional[str] = None
    for phone in reversed(phones):
        if not is_vowel_nucleus(phone):
            ending = phone
            break

    return RhymeKeySignature(
        vowel_base=vowel_base,
        vowel_group=VOWEL_GROUPS.get(vowel_base or "", OTHER_VOWEL_GROUP),
        ending_consonant=ending,
        consonant_class=CONSONANT_CLASSES.get(ending) if ending else None,
    )


def similarity(first: str, second: str) -> float:
    """Score how closely two rhyme keys rhyme, from 0.0 to 1.0."""

    if first == second:
        return 1.0

    a = signature(first)
    b = signature(second)

    if a.vowel_base is not None and a.vowel_base == b.vowel_base:
        vowel_score = 1.0
    elif a.vowel_group == b.vowel_group and a.vowel_group != OTHER_VOWEL_GROUP:
        vowel_score = 0.70
    else:
        vowel_score = 0.0

    if a.ending_consonant is None and b.ending_consonant is None:
        consonant_score = 0.55
    elif a.ending_consonant is None or b.ending_consonant is None:
        consonant_score = 0.0
    elif a.ending_consonant == b.ending_consonant:
        consonant_score = 1.0
    elif a.consonant_class is not None and a.consonant_class == b.consonant_class:
        consonant_score = 0.70
    else:
        consonant_score = 0.0

    return _VOWEL_WEIGHT * vowel_score + _CONSONANT_WEIGHT * consonant_score


def is_near_rhyme(first: str, second: str, threshold: float = NEAR_RHYME_THRESHOLD) -> bool:
    return similarity(first, second) >= threshold


__all__ = [
    "VOWEL_PHONEMES",
    "VOWEL_GROUPS",
    "CONSONANT_CLASSES",
    "OTHER_VOWEL_GROUP",
    "NEAR_RHYME_THRESHOLD",
    "INTERNAL_NEAR_RHYME_THRESHOLD",
    "RhymeKeySignature",
    "has_stress_digit",
    "strip_stress",
    "is_vowel_nucleus",
    "rhyme_key",
    "tail_key",
    "signature",
    "similarity",
    "is_near_rhyme",
]
