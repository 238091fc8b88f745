"""Pronunciation index built from CMU-style dictionary text."""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

import pronouncing

from rhyme_assist.utils.observability import get_logger

from .rhyme_key import (
    NEAR_RHYME_THRESHOLD,
    has_stress_digit,
    rhyme_key,
    signature,
    similarity,
    tail_key,
)
from .tokenizer import normalize_word

INDEX_FORMAT_VERSION = 2

Bucket = Tuple[str, Optional[str]]

_NO_CLASS = "none"

SAMPLE_DICTIONARY_TEXT = """\
;;; Minimal sample dictionary used when no CMU data can be found
TIME  T AY1 M
RHYME  R AY1 M
LINE  L AY1 N
SHINE  SH AY1 N
MIND  M AY1 N D
FIND  F AY1 N D
NIGHT  N AY1 T
FIRE  F AY1 ER0
HIGHER  HH AY1 ER0
"""

_DICTIONARY_FILENAMES = ("cmudict.txt", "cmudict-0.7b", "cmudict.7b", "cmudict.dict")

_logger = get_logger(__name__).bind(component="pronunciation_index")


def iter_dictionary_entries(text: str) -> Iterator[Tuple[str, List[str]]]:
    """Yield ``(normalized_word, phonemes)`` for each usable dictionary line.

    Comment lines (``;;;``), blank lines, lines without phonemes and
    headwords that normalize to nothing are skipped silently.
    """

    for raw_line in text.splitlines():
        if raw_line.startswith(";;;"):
            continue
        parts = raw_line.split()
        if len(parts) < 2:
            continue

        headword, *phonemes = parts
        paren = headword.find("(")
        if paren > 0:
            headword = headword[:paren]
        word = normalize_word(headword)
        if not word:
            continue
        yield word, phonemes


def _sorted_map(source: Mapping[Any, Set[str]]) -> Dict[Any, Tuple[str, ...]]:
    return {key: tuple(sorted(values)) for key, values in source.items() if values}


def _bucket_label(bucket: Bucket) -> str:
    group, consonant_class = bucket
    return f"{group}:{consonant_class or _NO_CLASS}"


def _parse_bucket_label(label: str) -> Bucket:
    group, _, consonant_class = label.partition(":")
    if not group or not consonant_class:
        raise ValueError(f"malformed bucket label {label!r}")
    return group, (None if consonant_class == _NO_CLASS else consonant_class)


class PronunciationIndex:
    """Immutable word/rhyme-key lookup tables.

    Tail-1 keys start at the last stressed vowel; tail-2 keys cover the last
    two vowel nuclei. Values are sorted tuples so snapshots serialize
    reproducibly.
    """

    def __init__(
        self,
        *,
        word_to_keys: Mapping[str, Sequence[str]],
        key_to_words: Mapping[str, Sequence[str]],
        word_to_tail_keys: Mapping[str, Sequence[str]],
        tail_key_to_words: Mapping[str, Sequence[str]],
        vowel_group_to_keys: Mapping[str, Sequence[str]],
        bucket_to_keys: Mapping[Bucket, Sequence[str]],
        word_to_syllables: Mapping[str, int],
    ) -> None:
        self._word_to_keys = {k: tuple(v) for k, v in word_to_keys.items()}
        self._key_to_words = {k: tuple(v) for k, v in key_to_words.items()}
        self._word_to_tail_keys = {k: tuple(v) for k, v in word_to_tail_keys.items()}
        self._tail_key_to_words = {k: tuple(v) for k, v in tail_key_to_words.items()}
        self._vowel_group_to_keys = {k: tuple(v) for k, v in vowel_group_to_keys.items()}
        self._bucket_to_keys = {k: tuple(v) for k, v in bucket_to_keys.items()}
        self._word_to_syllables = dict(word_to_syllables)

    # Construction ---------------------------------------------------------
    @classmethod
    def build(cls, dictionary_text: str) -> "PronunciationIndex":
        word_to_keys: Dict[str, Set[str]] = defaultdict(set)
        key_to_words: Dict[str, Set[str]] = defaultdict(set)
        word_to_tail_keys: Dict[str, Set[str]] = defaultdict(set)
        tail_key_to_words: Dict[str, Set[str]] = defaultdict(set)
        vowel_group_to_keys: Dict[str, Set[str]] = defaultdict(set)
        bucket_to_keys: Dict[Bucket, Set[str]] = defaultdict(set)
        word_to_syllables: Dict[str, int] = {}

        for word, phonemes in iter_dictionary_entries(dictionary_text):
            key = rhyme_key(phonemes)
            if key is None:
                continue
            word_to_keys[word].add(key)
            key_to_words[key].add(word)

            tail = tail_key(phonemes, 2)
            if tail is not None:
                word_to_tail_keys[word].add(tail)
                tail_key_to_words[tail].add(word)

            for variant in {key, tail}:
                if variant is None:
                    continue
                sig = signature(variant)
                vowel_group_to_keys[sig.vowel_group].add(variant)
                bucket_to_keys[sig.bucket].add(variant)

            syllables = sum(1 for phone in phonemes if has_stress_digit(phone))
            if syllables > 0:
                previous = word_to_syllables.get(word)
                word_to_syllables[word] = syllables if previous is None else min(previous, syllables)

        return cls(
            word_to_keys=_sorted_map(word_to_keys),
            key_to_words=_sorted_map(key_to_words),
            word_to_tail_keys=_sorted_map(word_to_tail_keys),
            tail_key_to_words=_sorted_map(tail_key_to_words),
            vowel_group_to_keys=_sorted_map(vowel_group_to_keys),
            bucket_to_keys=_sorted_map(bucket_to_keys),
            word_to_syllables=word_to_syllables,
        )

    # Lookups --------------------------------------------------------------
    def _key_map(self, tail_length: int) -> Dict[str, Tuple[str, ...]]:
        return self._tail_key_to_words if tail_length >= 2 else self._key_to_words

    def rhyme_keys(self, word: str, tail_length: int = 1) -> List[str]:
        table = self._word_to_tail_keys if tail_length >= 2 else self._word_to_keys
        return list(table.get(normalize_word(word), ()))

    def words(self, key: str, tail_length: int = 1) -> List[str]:
        return list(self._key_map(tail_length).get(key, ()))

    def syllable_count(self, word: str) -> Optional[int]:
        return self._word_to_syllables.get(normalize_word(word))

    def nearby_keys(self, key: str, tail_length: int = 1, limit: int = 28) -> List[str]:
        """Return keys that near-rhyme with ``key``, best first.

        Candidates come from the tight (vowel group, consonant class) bucket,
        then the wider vowel-group bucket; only keys of the requested tail
        length scoring in ``[NEAR_RHYME_THRESHOLD, 1.0)`` survive.
        """

        if limit <= 0 or not key:
            return []

        sig = signature(key)
        key_map = self._key_map(tail_length)
        seen: Set[str] = {key}
        ordered: List[str] = []
        for candidate in (
            *self._bucket_to_keys.get(sig.bucket, ()),
            *self._vowel_group_to_keys.get(sig.vowel_group, ()),
        ):
            if candidate in seen or candidate not in key_map:
                continue
            seen.add(candidate)
            ordered.append(candidate)

        scored = []
        for candidate in ordered:
            score = similarity(key, candidate)
            if NEAR_RHYME_THRESHOLD <= score < 1.0:
                scored.append((score, candidate))
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [candidate for _, candidate in scored[:limit]]

    @property
    def word_count(self) -> int:
        return len(self._word_to_keys)

    @property
    def key_count(self) -> int:
        return len(self._key_to_words)

    # Snapshots ------------------------------------------------------------
    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "version": INDEX_FORMAT_VERSION,
            "word_to_keys": {k: list(v) for k, v in self._word_to_keys.items()},
            "key_to_words": {k: list(v) for k, v in self._key_to_words.items()},
            "word_to_tail_keys": {k: list(v) for k, v in self._word_to_tail_keys.items()},
            "tail_key_to_words": {k: list(v) for k, v in self._tail_key_to_words.items()},
            "vowel_group_to_keys": {k: list(v) for k, v in self._vowel_group_to_keys.items()},
            "bucket_to_keys": {
                _bucket_label(k): list(v) for k, v in self._bucket_to_keys.items()
            },
            "word_to_syllables": dict(self._word_to_syllables),
        }

    @classmethod
    def from_snapshot(cls, payload: Any) -> Optional["PronunciationIndex"]:
        """Rebuild an index from :meth:`to_snapshot` output.

        Returns ``None`` for snapshots of another format version or with
        malformed maps, so the caller rebuilds from source text.
        """

        if not isinstance(payload, dict) or payload.get("version") != INDEX_FORMAT_VERSION:
            return None
        try:
            syllables = payload["word_to_syllables"]
            if not isinstance(syllables, dict) or not all(
                isinstance(k, str) and isinstance(v, int) for k, v in syllables.items()
            ):
                raise ValueError("word_to_syllables must map strings to integers")
            return cls(
                word_to_keys=_string_lists(payload, "word_to_keys"),
                key_to_words=_string_lists(payload, "key_to_words"),
                word_to_tail_keys=_string_lists(payload, "word_to_tail_keys"),
                tail_key_to_words=_string_lists(payload, "tail_key_to_words"),
                vowel_group_to_keys=_string_lists(payload, "vowel_group_to_keys"),
                bucket_to_keys={
                    _parse_bucket_label(label): values
                    for label, values in _string_lists(payload, "bucket_to_keys").items()
                },
                word_to_syllables=syllables,
            )
        except (KeyError, TypeError, ValueError) as exc:
            _logger.warning("Discarding malformed index snapshot", context={"error": str(exc)})
            return None


def _string_lists(payload: Mapping[str, Any], name: str) -> Dict[str, List[str]]:
    table = payload[name]
    if not isinstance(table, dict):
        raise ValueError(f"{name} must be a mapping")
    for key, values in table.items():
        if not isinstance(key, str) or not isinstance(values, list) or not values:
            raise ValueError(f"{name} has an invalid entry for {key!r}")
        if not all(isinstance(value, str) for value in values):
            raise ValueError(f"{name} has non-string values for {key!r}")
    return table


class CMUDictLoader:
    """Locates CMU dictionary text for building a :class:`PronunciationIndex`.

    Sources are tried in order: the explicit ``dict_path``, well-known file
    names next to the package and project root, the copy bundled with the
    ``pronouncing`` library, and finally :data:`SAMPLE_DICTIONARY_TEXT`.
    """

    def __init__(self, dict_path: Optional[Path | str] = None) -> None:
        self.dict_path: Optional[Path] = Path(dict_path) if dict_path is not None else None

    def candidate_paths(self) -> List[Path]:
        if self.dict_path is not None:
            return [self.dict_path]
        module_path = Path(__file__).resolve()
        folders = [module_path.parent, module_path.parents[1], module_path.parents[2]]
        return [folder / name for folder in folders for name in _DICTIONARY_FILENAMES]

    def _read_file(self, path: Path) -> Optional[str]:
        try:
            if not path.is_file():
                return None
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            _logger.warning(
                "Dictionary file unreadable",
                context={"path": str(path), "error": str(exc)},
            )
            return None

    def _pronouncing_text(self) -> Optional[str]:
        try:
            pronouncing.init_cmu()
            entries: Iterable[Tuple[str, str]] = pronouncing.pronunciations or []
            lines = [f"{word.upper()}  {phones}" for word, phones in entries]
        except (OSError, ValueError, UnicodeDecodeError) as exc:
            _logger.warning("Bundled CMU data unavailable", context={"error": str(exc)})
            return None
        return "\n".join(lines) if lines else None

    def load_text(self) -> Tuple[str, str]:
        """Return ``(dictionary_text, source_description)``; never raises."""

        for path in self.candidate_paths():
            text = self._read_file(path)
            if text:
                return text, str(path)
        if self.dict_path is not None:
            _logger.warning(
                "Configured dictionary missing, falling back",
                context={"path": str(self.dict_path)},
            )

        text = self._pronouncing_text()
        if text:
            return text, "pronouncing"

        _logger.warning("Using embedded sample dictionary")
        return SAMPLE_DICTIONARY_TEXT, "sample"


__all__ = [
    "INDEX_FORMAT_VERSION",
    "SAMPLE_DICTIONARY_TEXT",
    "CMUDictLoader",
    "PronunciationIndex",
    "iter_dictionary_entries",
]
