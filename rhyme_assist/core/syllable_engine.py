"""Syllable counts for lyric tokens, dictionary first and heuristic second."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rhyme_assist.utils.syllables import estimate_syllable_count

from .cmudict_loader import PronunciationIndex
from .tokenizer import normalized_candidates

DICTIONARY_CONFIDENCE = 1.0
HEURISTIC_CONFIDENCE = 0.35


@dataclass(frozen=True)
class SyllableCountResult:
    count: int
    # 1.0 means dictionary-backed; anything lower is a spelling estimate.
    confidence: float

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence < 0.99


class SyllableEngine:
    def __init__(self, index: Optional[PronunciationIndex] = None) -> None:
        self.index = index

    def syllable_count(self, token: str) -> Optional[SyllableCountResult]:
        candidates = normalized_candidates(token)
        if self.index is not None:
            for candidate in candidates:
                count = self.index.syllable_count(candidate)
                if count:
                    return SyllableCountResult(count, DICTIONARY_CONFIDENCE)

        if candidates:
            estimate = estimate_syllable_count(candidates[0])
            if estimate:
                return SyllableCountResult(estimate, HEURISTIC_CONFIDENCE)
        return None


__all__ = [
    "SyllableEngine",
    "SyllableCountResult",
    "DICTIONARY_CONFIDENCE",
    "HEURISTIC_CONFIDENCE",
]
