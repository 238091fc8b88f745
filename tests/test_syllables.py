import pytest

from rhyme_assist.core.cmudict_loader import PronunciationIndex
from rhyme_assist.core.syllable_engine import SyllableEngine
from rhyme_assist.utils.syllables import estimate_syllable_count


@pytest.mark.parametrize(
    "word, expected",
    [
        ("flow", 1),
        ("running", 2),
        ("brave", 1),
        ("rhythm", 1),
        ("'til", 1),
        ("bottle", 3),
    ],
)
def test_heuristic_counts_vowel_runs(word, expected):
    assert estimate_syllable_count(word) == expected


def test_heuristic_without_vowels_is_unknown():
    assert estimate_syllable_count("hmm") is None
    assert estimate_syllable_count("808") is None


def test_estimate_syllable_count_module_location():
    assert estimate_syllable_count.__module__ == "rhyme_assist.utils.syllables"


def test_dictionary_count_has_full_confidence():
    engine = SyllableEngine(PronunciationIndex.build("TIMING  T AY1 M IH0 NG\n"))

    result = engine.syllable_count("Timing,")

    assert result is not None
    assert result.count == 2
    assert result.confidence == 1.0
    assert not result.is_low_confidence


def test_colloquial_spelling_resolves_through_candidates():
    engine = SyllableEngine(PronunciationIndex.build("NOTHING  N AH1 TH IH0 NG\n"))

    result = engine.syllable_count("nothin'")

    assert result is not None
    assert (result.count, result.confidence) == (2, 1.0)


def test_unknown_word_uses_low_confidence_heuristic():
    engine = SyllableEngine(PronunciationIndex.build("TIME  T AY1 M\n"))

    result = engine.syllable_count("flowin'")

    assert result is not None
    assert result.count == 2
    assert result.is_low_confidence


def test_no_dictionary_and_no_vowels_is_none():
    assert SyllableEngine().syllable_count("brrr") is None
    assert SyllableEngine().syllable_count("...") is None
