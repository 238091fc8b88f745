"""Rhyme scheme analysis over multi-line lyric text."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Set, Tuple

from rhyme_assist.utils.observability import get_logger

from .cmudict_loader import PronunciationIndex
from .rhyme_key import INTERNAL_NEAR_RHYME_THRESHOLD, NEAR_RHYME_THRESHOLD, similarity
from .tokenizer import TextOffsets, TextRange, Token, line_index_at, line_spans, tokenize

# Occurrences at most this many lines apart may join one internal/near group.
RHYME_LINE_WINDOW = 3


class RhymeGroupKind(str, Enum):
    END = "end"
    INTERNAL = "internal"
    NEAR = "near"


@dataclass(frozen=True)
class RhymeOccurrence:
    range: TextRange
    rhyme_key: str
    line_index: int
    is_line_final: bool


@dataclass(frozen=True)
class RhymeGroup:
    kind: RhymeGroupKind
    # Exact key for end/internal groups; the earliest member's key for near groups.
    rhyme_key: str
    # Stable palette index for rendering.
    color_index: int
    occurrences: Tuple[RhymeOccurrence, ...] = field(default_factory=tuple)

    @property
    def id(self) -> str:
        return f"{self.kind.value}:{self.rhyme_key}:{self.color_index}"

    @property
    def first_location(self) -> int:
        return min(occurrence.range.location for occurrence in self.occurrences)


@dataclass(frozen=True)
class RhymeAnalysis:
    groups: Tuple[RhymeGroup, ...] = ()

    def of_kind(self, kind: RhymeGroupKind) -> List[RhymeGroup]:
        return [group for group in self.groups if group.kind is kind]


EMPTY_ANALYSIS = RhymeAnalysis()


class _DisjointSet:
    def __init__(self, size: int) -> None:
        self._parent = list(range(size))

    def find(self, item: int) -> int:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, first: int, second: int) -> None:
        a, b = self.find(first), self.find(second)
        if a != b:
            # Lower index wins so cluster roots follow text order.
            self._parent[max(a, b)] = min(a, b)

    def clusters(self) -> List[List[int]]:
        grouped: Dict[int, List[int]] = defaultdict(list)
        for item in range(len(self._parent)):
            grouped[self.find(item)].append(item)
        return [members for _, members in sorted(grouped.items())]


@dataclass
class _LineContext:
    offsets: TextOffsets
    spans: List[Tuple[int, int]]
    line_index: int
    cursor: int
    tokens: List[Token]


class RhymeAnalyzer:
    """Finds end, internal and near rhyme groups and answers cursor queries.

    Every call works on a fresh scan of the text; the only state is the
    read-only pronunciation index.
    """

    def __init__(
        self,
        index: PronunciationIndex,
        *,
        tail_length: int = 1,
        line_window: int = RHYME_LINE_WINDOW,
    ) -> None:
        self.index = index
        self.tail_length = tail_length
        self.line_window = line_window
        self._logger = get_logger(__name__).bind(component="rhyme_analyzer")

    # Token helpers --------------------------------------------------------
    def token_rhyme_key(self, token: Token, tail_length: Optional[int] = None) -> Optional[str]:
        """First rhyme key of the first lookup candidate that has one."""

        length = tail_length or self.tail_length
        for candidate in token.normalized_candidates:
            keys = self.index.rhyme_keys(candidate, length)
            if keys:
                return keys[0]
        return None

    def _occurrences(self, text: str, tail_length: int) -> List[RhymeOccurrence]:
        offsets = TextOffsets(text)
        occurrences: List[RhymeOccurrence] = []
        for line_index, (start, end) in enumerate(line_spans(text)):
            tokens = tokenize(text, start, end, offsets=offsets)
            for position, token in enumerate(tokens):
                key = self.token_rhyme_key(token, tail_length)
                if key is None:
                    continue
                occurrences.append(
                    RhymeOccurrence(
                        range=token.range,
                        rhyme_key=key,
                        line_index=line_index,
                        is_line_final=position == len(tokens) - 1,
                    )
                )
        return occurrences

    def _link_within_window(
        self,
        occurrences: Sequence[RhymeOccurrence],
        members: Sequence[int],
        near: bool,
    ) -> List[List[int]]:
        """Cluster ``members`` (indexes in text order) by line proximity.

        With ``near`` set, a pair must also meet the similarity threshold for
        its position: the looser one when both are line-final, the stricter
        one otherwise.
        """

        links = _DisjointSet(len(members))
        for a in range(len(members)):
            first = occurrences[members[a]]
            for b in range(a + 1, len(members)):
                second = occurrences[members[b]]
                if second.line_index - first.line_index > self.line_window:
                    break
                if near:
                    both_final = first.is_line_final and second.is_line_final
                    threshold = NEAR_RHYME_THRESHOLD if both_final else INTERNAL_NEAR_RHYME_THRESHOLD
                    if similarity(first.rhyme_key, second.rhyme_key) < threshold:
                        continue
                links.union(a, b)
        return [[members[i] for i in cluster] for cluster in links.clusters()]

    # Analysis -------------------------------------------------------------
    def analyze(self, text: str, tail_length: Optional[int] = None) -> RhymeAnalysis:
        if not text:
            return EMPTY_ANALYSIS

        occurrences = self._occurrences(text, tail_length or self.tail_length)
        if not occurrences:
            return EMPTY_ANALYSIS

        by_key: Dict[str, List[int]] = defaultdict(list)
        for position, occurrence in enumerate(occurrences):
            by_key[occurrence.rhyme_key].append(position)

        claimed: Set[int] = set()
        exact: List[Tuple[RhymeGroupKind, str, List[int]]] = []

        for key, members in by_key.items():
            finals = [i for i in members if occurrences[i].is_line_final]
            if len(finals) >= 2:
                exact.append((RhymeGroupKind.END, key, finals))
                claimed.update(finals)

        for key, members in by_key.items():
            if len(members) < 2 or all(occurrences[i].is_line_final for i in members):
                continue
            for cluster in self._link_within_window(occurrences, members, near=False):
                if len(cluster) < 2 or all(occurrences[i].is_line_final for i in cluster):
                    continue
                exact.append((RhymeGroupKind.INTERNAL, key, cluster))
                claimed.update(cluster)

        # Colors follow the key's first appearance anywhere in the text.
        first_seen = {
            key: min(occurrences[i].range.location for i in by_key[key]) for _, key, _ in exact
        }
        ordinals = {
            key: ordinal
            for ordinal, key in enumerate(sorted(first_seen, key=lambda k: (first_seen[k], k)))
        }

        groups = [
            RhymeGroup(kind, key, ordinals[key], tuple(occurrences[i] for i in members))
            for kind, key, members in exact
        ]

        remaining = [i for i in range(len(occurrences)) if i not in claimed]
        next_ordinal = len(ordinals)
        for cluster in self._link_within_window(occurrences, remaining, near=True):
            if len(cluster) < 2:
                continue
            members = tuple(occurrences[i] for i in cluster)
            groups.append(RhymeGroup(RhymeGroupKind.NEAR, members[0].rhyme_key, next_ordinal, members))
            next_ordinal += 1

        groups.sort(key=lambda group: (group.first_location, group.id))
        self._logger.debug(
            "Rhyme analysis complete",
            context={"occurrences": len(occurrences), "groups": len(groups)},
        )
        return RhymeAnalysis(tuple(groups))

    # Cursor queries -------------------------------------------------------
    def _line_context(self, text: str, cursor: int) -> Optional[_LineContext]:
        if not text:
            return None
        offsets = TextOffsets(text)
        spans = line_spans(text)
        position = offsets.to_index(cursor)
        line_index = line_index_at(spans, position)
        if line_index is None:
            return None
        start, end = spans[line_index]
        return _LineContext(
            offsets=offsets,
            spans=spans,
            line_index=line_index,
            cursor=position,
            tokens=tokenize(text, start, end, offsets=offsets),
        )

    def _ending_key(self, tokens: Sequence[Token], tail_length: Optional[int]) -> Optional[str]:
        if not tokens:
            return None
        return self.token_rhyme_key(tokens[-1], tail_length)

    def current_line_rhyme_key(
        self, text: str, cursor: int, tail_length: Optional[int] = None
    ) -> Optional[str]:
        context = self._line_context(text, cursor)
        if context is None:
            return None
        return self._ending_key(context.tokens, tail_length)

    def last_completed_token_rhyme_key(
        self, text: str, cursor: int, tail_length: Optional[int] = None
    ) -> Optional[str]:
        context = self._line_context(text, cursor)
        if context is None:
            return None
        completed = [token for token in context.tokens if token.end <= context.cursor]
        return self._ending_key(completed, tail_length)

    def is_cursor_mid_line(self, text: str, cursor: int) -> bool:
        context = self._line_context(text, cursor)
        if context is None:
            return False
        return any(token.start >= context.cursor for token in context.tokens)

    def line_ending_keys(
        self, text: str, cursor: int, tail_length: Optional[int] = None
    ) -> List[Optional[str]]:
        """Ending key of every line from the first up to the cursor's line."""

        context = self._line_context(text, cursor)
        if context is None:
            return []
        endings: List[Optional[str]] = []
        for start, end in context.spans[: context.line_index + 1]:
            tokens = tokenize(text, start, end, offsets=context.offsets)
            endings.append(self._ending_key(tokens, tail_length))
        return endings

    def infer_active_rhyme_key(
        self,
        text: str,
        cursor: int,
        lookback_lines: int = 4,
        tail_length: Optional[int] = None,
    ) -> Optional[str]:
        """Most recent ending key repeated within the lookback window.

        Falls back to the cursor line's own ending key when nothing repeats.
        """

        endings = self.line_ending_keys(text, cursor, tail_length)
        if not endings:
            return None

        window = endings[-lookback_lines:] if lookback_lines > 0 else []
        counts = Counter(key for key in window if key is not None)
        for key in reversed(window):
            if key is not None and counts[key] >= 2:
                return key
        return endings[-1]


__all__ = [
    "RHYME_LINE_WINDOW",
    "EMPTY_ANALYSIS",
    "RhymeAnalysis",
    "RhymeAnalyzer",
    "RhymeGroup",
    "RhymeGroupKind",
    "RhymeOccurrence",
]
