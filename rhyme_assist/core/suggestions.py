"""Ranked rhyme suggestions and the caret's position on a 16-step bar grid."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from rhyme_assist.utils.observability import create_histogram, get_logger, observe_duration

from .analyzer import RhymeAnalyzer
from .cmudict_loader import PronunciationIndex
from .context_scorer import DistanceFn, context_score, keywords, text_window
from .lexicon import UserLexiconItem, personal_score
from .rhyme_key import NEAR_RHYME_THRESHOLD, similarity
from .syllable_engine import SyllableEngine
from .tokenizer import TextOffsets, line_index_at, line_spans, normalize_word, tokenize

EXACT_SAMPLE_LIMIT = 600
NEAR_KEY_LIMIT = 28
WORDS_PER_NEAR_KEY = 4
RECENCY_WINDOW_TICKS = 80
RECENT_LINES = 8
USED_IN_TEXT_PENALTY = 0.85
MAX_PER_SOURCE_KEY = 2
DEFAULT_MAX_COUNT = 12
ACTIVE_KEY_LOOKBACK_LINES = 4
BAR_STEPS = 16
DEFAULT_CONTEXT_WEIGHT = 0.10

MODE_INTERNAL = "internal"
MODE_END = "end"

_METRIC_SUGGEST_SECONDS = create_histogram(
    "rhyme_assist_suggestion_seconds",
    "Time spent gathering and ranking rhyme suggestions.",
)


@dataclass(frozen=True)
class BarPosition:
    # 0..15 on the bar grid.
    step: int
    syllables_before_caret: int
    total_syllables: int
    low_confidence_token_count: int


@dataclass(frozen=True)
class SuggestionResult:
    suggestions: Tuple[str, ...] = ()
    bar_position: Optional[BarPosition] = None
    target_key: Optional[str] = None
    mode: Optional[str] = None


def quality_score(display: str) -> float:
    """Prefer short, purely alphabetic display strings."""

    trimmed = display.strip()
    if len(trimmed) < 2:
        return 0.0
    if len(trimmed) > 14:
        return 0.2
    return 1.0 if trimmed.isalpha() else 0.45


def lemma_key(normalized: str) -> str:
    """Crude suffix stripping so "rhymes"/"rhyming"/"rhymed" count as one word."""

    word = normalized
    if word.endswith("'s"):
        word = word[:-2]
    if word.endswith("ing") and len(word) > 5:
        word = word[:-3]
    if word.endswith("ed") and len(word) > 4:
        word = word[:-2]
    if word.endswith("s") and len(word) > 4:
        word = word[:-1]
    return word


def recent_normalized_words(text: str, cursor: int, max_lines: int = RECENT_LINES) -> Set[str]:
    window = text_window(text, cursor, max_lines)
    return {
        token.normalized_candidates[0]
        for token in tokenize(window)
        if token.normalized_candidates
    }


def compute_bar_position(
    text: str, cursor: int, syllable_engine: SyllableEngine
) -> Optional[BarPosition]:
    """Fraction of the cursor line's syllables typed before the caret, as a step."""

    if not text:
        return None
    offsets = TextOffsets(text)
    spans = line_spans(text)
    position = offsets.to_index(cursor)
    line_index = line_index_at(spans, position)
    if line_index is None:
        return None
    start, end = spans[line_index]

    before = total = low_confidence = 0
    for token in tokenize(text, start, end, offsets=offsets):
        result = syllable_engine.syllable_count(token.raw)
        if result is None:
            continue
        total += result.count
        if result.is_low_confidence:
            low_confidence += 1
        if token.end <= position:
            before += result.count

    if total <= 0:
        return None
    step = int(math.floor(before / total * BAR_STEPS + 0.5))
    return BarPosition(
        step=min(BAR_STEPS - 1, max(0, step)),
        syllables_before_caret=before,
        total_syllables=total,
        low_confidence_token_count=low_confidence,
    )


def resolve_target_key(
    analyzer: RhymeAnalyzer, text: str, cursor: int, tail_length: int = 1
) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(key, mode)`` for the rhyme the writer is most likely aiming at.

    Mid-line, the word just completed is the target (internal rhyme); at a
    line end the scheme inferred from recent line endings wins.
    """

    if analyzer.is_cursor_mid_line(text, cursor):
        internal = analyzer.last_completed_token_rhyme_key(text, cursor, tail_length)
        if internal is not None:
            return internal, MODE_INTERNAL
    active = analyzer.infer_active_rhyme_key(
        text, cursor, lookback_lines=ACTIVE_KEY_LOOKBACK_LINES, tail_length=tail_length
    )
    if active is None:
        return None, None
    return active, MODE_END


class RecencyTracker:
    """Remembers the tick at which each word was last suggested.

    The tick advances once per suggestion pass that had a target key. Hold
    :attr:`lock` across a whole pass so the tick read, the penalties and the
    final update see one consistent state.
    """

    def __init__(self, window: int = RECENCY_WINDOW_TICKS) -> None:
        self.window = window
        self.lock = threading.RLock()
        self._tick = 0
        self._last_suggested: Dict[str, int] = {}

    @property
    def tick(self) -> int:
        return self._tick

    def advance(self) -> int:
        with self.lock:
            self._tick += 1
            return self._tick

    def penalty(self, normalized: str, now_tick: int) -> float:
        with self.lock:
            last = self._last_suggested.get(normalized)
        if last is None:
            return 0.0
        delta = max(0, now_tick - last)
        if delta >= self.window:
            return 0.0
        return (self.window - delta) / self.window

    def __len__(self) -> int:
        with self.lock:
            return len(self._last_suggested)

    def mark(self, words: Iterable[str], now_tick: int) -> None:
        """Record ``words`` as suggested at ``now_tick``.

        Entries that have aged out of the window carry no penalty and are
        dropped, so the map never holds more than ``window`` ticks of words.
        """

        with self.lock:
            for word in words:
                normalized = normalize_word(word)
                if normalized:
                    self._last_suggested[normalized] = now_tick
            expired = [
                word
                for word, last in self._last_suggested.items()
                if now_tick - last >= self.window
            ]
            for word in expired:
                del self._last_suggested[word]


@dataclass
class _Candidate:
    normalized: str
    display: str
    key: str
    rhyme_score: float
    personal_score: float
    recency_penalty: float
    used_in_text_penalty: float
    quality_score: float
    context_score: float = 0.0

    def score(self, context_weight: float) -> float:
        return (
            0.70 * self.rhyme_score
            + 0.22 * self.personal_score
            + 0.08 * self.quality_score
            - 0.30 * self.recency_penalty
            - 0.22 * self.used_in_text_penalty
            + context_weight * self.context_score
        )


class SuggestionEngine:
    """Merges exact, near and personal rhymes into a short diverse list.

    ``distance_fn`` is an optional word-to-keyword distance; when supplied,
    candidates close to the keywords around the cursor get a small bonus.
    """

    def __init__(
        self,
        index: PronunciationIndex,
        analyzer: Optional[RhymeAnalyzer] = None,
        *,
        distance_fn: Optional[DistanceFn] = None,
        context_weight: float = DEFAULT_CONTEXT_WEIGHT,
        tracker: Optional[RecencyTracker] = None,
    ) -> None:
        self.index = index
        self.analyzer = analyzer or RhymeAnalyzer(index)
        self.syllables = SyllableEngine(index)
        self.distance_fn = distance_fn
        self.context_weight = context_weight
        self.tracker = tracker if tracker is not None else RecencyTracker()
        self._logger = get_logger(__name__).bind(component="suggestion_engine")

    def suggest(
        self,
        text: str,
        cursor: int,
        user_lexicon: Sequence[UserLexiconItem] = (),
        tail_length: int = 1,
        max_count: int = DEFAULT_MAX_COUNT,
        target_key: Optional[str] = None,
    ) -> SuggestionResult:
        """Suggestions for the rhyme at ``cursor`` plus the caret's bar position.

        Passing ``target_key`` skips target resolution and reports mode
        ``None``.
        """

        mode: Optional[str] = None
        if target_key is None:
            target_key, mode = resolve_target_key(self.analyzer, text, cursor, tail_length)

        suggestions: Tuple[str, ...] = ()
        if target_key is not None:
            with observe_duration(_METRIC_SUGGEST_SECONDS):
                suggestions = tuple(
                    self._rank(target_key, text, cursor, user_lexicon, tail_length, max_count)
                )

        return SuggestionResult(
            suggestions=suggestions,
            bar_position=compute_bar_position(text, cursor, self.syllables),
            target_key=target_key,
            mode=mode,
        )

    def _rank(
        self,
        target_key: str,
        text: str,
        cursor: int,
        user_lexicon: Sequence[UserLexiconItem],
        tail_length: int,
        max_count: int,
    ) -> List[str]:
        recent = recent_normalized_words(text, cursor, RECENT_LINES)

        with self.tracker.lock:
            now_tick = self.tracker.advance()

            def candidate(normalized: str, display: str, key: str, rhyme: float, personal: float) -> _Candidate:
                return _Candidate(
                    normalized=normalized,
                    display=display,
                    key=key,
                    rhyme_score=rhyme,
                    personal_score=personal,
                    recency_penalty=self.tracker.penalty(normalized, now_tick),
                    used_in_text_penalty=USED_IN_TEXT_PENALTY if normalized in recent else 0.0,
                    quality_score=quality_score(display),
                )

            candidates: Dict[str, _Candidate] = {}
            for word in self.index.words(target_key, tail_length)[:EXACT_SAMPLE_LIMIT]:
                candidates[word] = candidate(word, word, target_key, 1.0, 0.0)

            for key in self.index.nearby_keys(target_key, tail_length, limit=NEAR_KEY_LIMIT):
                score = similarity(target_key, key)
                for word in self.index.words(key, tail_length)[:WORDS_PER_NEAR_KEY]:
                    existing = candidates.get(word)
                    if existing is not None and existing.rhyme_score >= score:
                        continue
                    candidates[word] = candidate(word, word, key, score, 0.0)

            for item in user_lexicon:
                best_key, best_score = self._best_lexicon_match(item, target_key, tail_length)
                # Personal words must still rhyme; frequency alone never qualifies.
                if best_key is None or best_score < NEAR_RHYME_THRESHOLD:
                    continue
                personal = personal_score(item.accept_count)
                existing = candidates.get(item.normalized)
                if existing is None:
                    candidates[item.normalized] = candidate(
                        item.normalized, item.display, best_key, best_score, personal
                    )
                    continue
                existing.personal_score = max(existing.personal_score, personal)
                if best_score > existing.rhyme_score:
                    existing.rhyme_score = best_score
                    existing.key = best_key
                existing.display = item.display

            self._apply_context(candidates.values(), text, cursor)

            ranked = sorted(
                candidates.values(),
                key=lambda entry: (
                    -entry.score(self._context_weight),
                    -entry.rhyme_score,
                    -entry.personal_score,
                    entry.display,
                ),
            )
            chosen = self._diversify(ranked, max_count)
            self.tracker.mark(chosen, now_tick)

        self._logger.debug(
            "Suggestions ranked",
            context={
                "target_key": target_key,
                "candidates": len(candidates),
                "returned": len(chosen),
                "tick": now_tick,
            },
        )
        return chosen

    @property
    def _context_weight(self) -> float:
        return self.context_weight if self.distance_fn is not None else 0.0

    def _best_lexicon_match(
        self, item: UserLexiconItem, target_key: str, tail_length: int
    ) -> Tuple[Optional[str], float]:
        best_key: Optional[str] = None
        best_score = 0.0
        for key in self.index.rhyme_keys(item.normalized, tail_length):
            score = 1.0 if key == target_key else similarity(target_key, key)
            if score > best_score:
                best_key, best_score = key, score
        return best_key, best_score

    def _apply_context(self, candidates: Iterable[_Candidate], text: str, cursor: int) -> None:
        if self.distance_fn is None:
            return
        topical = keywords(text, cursor, RECENT_LINES)
        if not topical:
            return
        try:
            for entry in candidates:
                entry.context_score = context_score(entry.normalized, topical, self.distance_fn)
        except Exception as exc:
            self._logger.warning("Context scoring failed", context={"error": str(exc)})
            for entry in candidates:
                entry.context_score = 0.0

    @staticmethod
    def _diversify(ranked: Sequence[_Candidate], max_count: int) -> List[str]:
        chosen: List[str] = []
        used_lemmas: Set[str] = set()
        per_key: Dict[str, int] = {}
        for entry in ranked:
            if len(chosen) >= max_count:
                break
            lemma = lemma_key(entry.normalized)
            if lemma and lemma in used_lemmas:
                continue
            if per_key.get(entry.key, 0) >= MAX_PER_SOURCE_KEY:
                continue
            used_lemmas.add(lemma)
            per_key[entry.key] = per_key.get(entry.key, 0) + 1
            chosen.append(entry.display)
        return chosen


__all__ = [
    "BarPosition",
    "RecencyTracker",
    "SuggestionEngine",
    "SuggestionResult",
    "compute_bar_position",
    "lemma_key",
    "quality_score",
    "recent_normalized_words",
    "resolve_target_key",
]
