"""Optional topical signal: keywords near the cursor and closeness to them.

The engine never depends on this for correctness. Callers that have some
word-embedding space inject a ``distance_fn(word, keyword)`` (smaller means
closer); without one the score is simply not used.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import Callable, List, Optional, Sequence

from .tokenizer import TextOffsets, line_index_at, line_spans, tokenize

DistanceFn = Callable[[str, str], float]

MAX_KEYWORDS = 12
TOP_SIMILARITIES = 3

STOPWORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "but", "by",
        "for", "from", "had", "has", "have", "he", "her", "his", "i",
        "if", "in", "is", "it", "its", "me", "my", "no", "not", "of",
        "on", "or", "our", "she", "so", "that", "the", "their", "them",
        "then", "there", "they", "this", "to", "up", "us", "was", "we",
        "were", "what", "when", "where", "who", "with", "you", "your",
    }
)


def text_window(text: str, cursor: int, max_lines: int) -> str:
    """The last ``max_lines`` lines up to and including the cursor's line."""

    if max_lines <= 0 or not text:
        return ""
    offsets = TextOffsets(text)
    spans = line_spans(text)
    current = line_index_at(spans, offsets.to_index(cursor))
    if current is None:
        return ""
    first = max(0, current - max_lines + 1)
    return "\n".join(text[start:end] for start, end in spans[first : current + 1])


def normalize_keyword(word: str) -> Optional[str]:
    cleaned = "".join(char for char in word.lower() if char.isalpha())
    if len(cleaned) < 3 or cleaned in STOPWORDS:
        return None
    return cleaned


def keywords(text: str, cursor: int, max_lines: int) -> List[str]:
    """Most frequent content words near the cursor, ties broken alphabetically."""

    window = text_window(text, cursor, max_lines)
    counts: Counter[str] = Counter()
    for token in tokenize(window):
        if not token.normalized_candidates:
            continue
        keyword = normalize_keyword(token.normalized_candidates[0])
        if keyword is not None:
            counts[keyword] += 1

    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [word for word, _ in ranked[:MAX_KEYWORDS]]


def context_score(candidate: str, keywords: Sequence[str], distance_fn: DistanceFn) -> float:
    """Average closeness of ``candidate`` to its three nearest keywords, in [0, 1]."""

    word = normalize_keyword(candidate)
    if word is None or not keywords:
        return 0.0

    similarities = []
    for keyword in keywords:
        distance = float(distance_fn(word, keyword))
        if math.isnan(distance) or math.isinf(distance):
            continue
        similarities.append(1.0 / (1.0 + max(0.0, distance)))

    if not similarities:
        return 0.0
    top = sorted(similarities, reverse=True)[:TOP_SIMILARITIES]
    return min(1.0, max(0.0, sum(top) / len(top)))


__all__ = [
    "DistanceFn",
    "STOPWORDS",
    "context_score",
    "keywords",
    "normalize_keyword",
    "text_window",
]
