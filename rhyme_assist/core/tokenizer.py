"""Word tokenization, lookup normalization and line/offset helpers.

Ranges handed to callers are UTF-16 code-unit offsets, the unit native text
widgets use for selections. Python indexes strings by code point, so
:class:`TextOffsets` converts between the two; for text without astral-plane
characters both are identical and the conversion is skipped.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

TOKEN_PATTERN = re.compile(r"[A-Za-z0-9']+")
_LINE_BREAK_PATTERN = re.compile(r"\r\n|[\n\r\u2028\u2029\x85]")

# Colloquial spellings common in rap writing, mapped to dictionary forms.
COLLOQUIAL_EXPANSIONS: Dict[str, str] = {
    "runnin": "running",
    "nothin": "nothing",
    "gon": "gonna",
    "gonna": "gonna",
    "cause": "because",
}


def normalize_word(word: str) -> str:
    """Lowercase ``word`` and trim non-alphanumeric characters from both ends."""

    lowered = word.lower()
    start, end = 0, len(lowered)
    while start < end and not lowered[start].isalnum():
        start += 1
    while end > start and not lowered[end - 1].isalnum():
        end -= 1
    return lowered[start:end]


def normalized_candidates(raw: str) -> List[str]:
    """Return lookup candidates for ``raw`` in priority order.

    The first entry is the closest to what the user typed; later entries are
    apostrophe-dropped and colloquial-expanded variants.
    """

    trimmed = normalize_word(raw)
    if not trimmed:
        return []

    candidates = [trimmed]
    if trimmed.endswith("'") and trimmed[:-1] != trimmed:
        candidates.append(trimmed[:-1])
    if trimmed.startswith("'") and trimmed[1:] != trimmed:
        candidates.append(trimmed[1:])

    for candidate in list(candidates):
        mapped = COLLOQUIAL_EXPANSIONS.get(candidate)
        if mapped and mapped != candidate:
            candidates.append(mapped)

    seen = set()
    ordered: List[str] = []
    for candidate in candidates:
        if candidate and candidate not in seen:
            seen.add(candidate)
            ordered.append(candidate)
    return ordered


class TextRange(NamedTuple):
    """A UTF-16 ``(location, length)`` range, like a native selection range."""

    location: int
    length: int

    @property
    def end(self) -> int:
        return self.location + self.length


class TextOffsets:
    """Converts between code-point indexes and UTF-16 offsets of ``text``."""

    def __init__(self, text: str) -> None:
        self.text = text
        self._units: Optional[List[int]] = None
        if any(ord(char) > 0xFFFF for char in text):
            units = [0]
            for char in text:
                units.append(units[-1] + (2 if ord(char) > 0xFFFF else 1))
            self._units = units

    @property
    def utf16_length(self) -> int:
        return len(self.text) if self._units is None else self._units[-1]

    def to_utf16(self, index: int) -> int:
        index = max(0, min(index, len(self.text)))
        return index if self._units is None else self._units[index]

    def to_index(self, offset: int) -> int:
        """Map a UTF-16 ``offset`` to a code-point index, clamped to the text.

        Offsets pointing into the middle of a surrogate pair resolve to the
        start of that character.
        """

        offset = max(0, min(offset, self.utf16_length))
        if self._units is None:
            return offset
        return bisect_right(self._units, offset) - 1

    def range_for(self, start: int, end: int) -> TextRange:
        location = self.to_utf16(start)
        return TextRange(location, self.to_utf16(end) - location)


@dataclass(frozen=True)
class Token:
    """A word token with its UTF-16 source range and lookup candidates."""

    raw: str
    range: TextRange
    normalized_candidates: Tuple[str, ...]
    start: int
    end: int


def tokenize(
    text: str,
    start: int = 0,
    end: Optional[int] = None,
    *,
    offsets: Optional[TextOffsets] = None,
) -> List[Token]:
    """Split ``text[start:end]`` into word tokens.

    Hyphens and other punctuation separate words; apostrophes stay inside
    them. ``start``/``end`` are code-point indexes, and the tokens keep the
    code-point span alongside the UTF-16 ``range``.
    """

    if not text:
        return []
    offsets = offsets or TextOffsets(text)
    stop = len(text) if end is None else end

    tokens: List[Token] = []
    for match in TOKEN_PATTERN.finditer(text, start, stop):
        raw = match.group(0)
        tokens.append(
            Token(
                raw=raw,
                range=offsets.range_for(match.start(), match.end()),
                normalized_candidates=tuple(normalized_candidates(raw)),
                start=match.start(),
                end=match.end(),
            )
        )
    return tokens


def line_spans(text: str) -> List[Tuple[int, int]]:
    """Return ``(start, end)`` code-point spans of each line, terminators excluded.

    Blank lines keep their slot; a trailing terminator does not open a new line.
    """

    spans: List[Tuple[int, int]] = []
    position = 0
    for match in _LINE_BREAK_PATTERN.finditer(text):
        spans.append((position, match.start()))
        position = match.end()
    if position < len(text):
        spans.append((position, len(text)))
    return spans


def line_index_at(spans: Sequence[Tuple[int, int]], cursor: int) -> Optional[int]:
    """Index of the last line starting at or before ``cursor`` (code points)."""

    if not spans:
        return None
    starts = [start for start, _ in spans]
    index = bisect_right(starts, max(0, cursor)) - 1
    return max(0, index)


__all__ = [
    "TOKEN_PATTERN",
    "COLLOQUIAL_EXPANSIONS",
    "TextRange",
    "TextOffsets",
    "Token",
    "normalize_word",
    "normalized_candidates",
    "tokenize",
    "line_spans",
    "line_index_at",
]
