"""Core rhyme analysis, suggestion and section utilities for rhyme-assist."""

from .analyzer import (
    EMPTY_ANALYSIS,
    RhymeAnalysis,
    RhymeAnalyzer,
    RhymeGroup,
    RhymeGroupKind,
    RhymeOccurrence,
)
from .cmudict_loader import CMUDictLoader, INDEX_FORMAT_VERSION, PronunciationIndex
from .index_cache import IndexCache, load_index
from .lexicon import UserLexiconItem, record_accepted_word, top_lexicon_items
from .rhyme_key import (
    INTERNAL_NEAR_RHYME_THRESHOLD,
    NEAR_RHYME_THRESHOLD,
    is_near_rhyme,
    rhyme_key,
    signature,
    similarity,
    tail_key,
)
from .sections import (
    SectionBracket,
    SectionOverride,
    apply_override,
    decode_overrides,
    detect_brackets,
    encode_overrides,
)
from .suggestions import BarPosition, RecencyTracker, SuggestionEngine, SuggestionResult
from .syllable_engine import SyllableCountResult, SyllableEngine
from .tokenizer import TextRange, Token, normalized_candidates, tokenize

__all__ = [
    "CMUDictLoader",
    "INDEX_FORMAT_VERSION",
    "PronunciationIndex",
    "IndexCache",
    "load_index",
    "rhyme_key",
    "tail_key",
    "signature",
    "similarity",
    "is_near_rhyme",
    "NEAR_RHYME_THRESHOLD",
    "INTERNAL_NEAR_RHYME_THRESHOLD",
    "TextRange",
    "Token",
    "normalized_candidates",
    "tokenize",
    "SyllableEngine",
    "SyllableCountResult",
    "RhymeAnalyzer",
    "RhymeAnalysis",
    "RhymeGroup",
    "RhymeGroupKind",
    "RhymeOccurrence",
    "EMPTY_ANALYSIS",
    "SectionBracket",
    "SectionOverride",
    "detect_brackets",
    "apply_override",
    "decode_overrides",
    "encode_overrides",
    "UserLexiconItem",
    "record_accepted_word",
    "top_lexicon_items",
    "BarPosition",
    "RecencyTracker",
    "SuggestionEngine",
    "SuggestionResult",
]
