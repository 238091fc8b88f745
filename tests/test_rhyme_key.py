import pytest

from rhyme_assist.core.rhyme_key import (
    INTERNAL_NEAR_RHYME_THRESHOLD,
    NEAR_RHYME_THRESHOLD,
    is_near_rhyme,
    rhyme_key,
    signature,
    similarity,
    tail_key,
)


def test_rhyme_key_starts_at_last_stressed_vowel():
    assert rhyme_key(["T", "AY1", "M"]) == "AY1 M"
    assert rhyme_key(["R", "IH1", "D", "AH0", "M"]) == "AH0 M"


def test_rhyme_key_without_stress_uses_last_two_phonemes():
    assert rhyme_key(["K", "S", "T"]) == "S T"
    assert rhyme_key(["K"]) == "K"
    assert rhyme_key([]) is None


def test_tail_key_covers_two_vowel_nuclei():
    assert tail_key(["R", "IH1", "D", "AH0", "M"], 2) == "IH1 D AH0 M"
    assert tail_key(["T", "AY1", "M"], 2) == "AY1 M"
    assert tail_key(["S", "EH1", "V", "AH0", "N", "TH"], 1) == "AH0 N TH"


def test_tail_key_falls_back_when_no_vowel_nucleus():
    assert tail_key(["K", "S", "T"], 2) == "S T"


def test_signature_classifies_vowel_and_ending_consonant():
    sig = signature("AY1 M")

    assert sig.vowel_base == "AY"
    assert sig.vowel_group == "diphthong"
    assert sig.ending_consonant == "M"
    assert sig.consonant_class == "nasal"
    assert sig.bucket == ("diphthong", "nasal")


def test_signature_of_open_syllable_has_no_consonant():
    sig = signature("UW1")

    assert sig.ending_consonant is None
    assert sig.consonant_class is None


@pytest.mark.parametrize(
    "first, second",
    [("AY1 M", "AY1 N"), ("IY1 N", "IH1 N"), ("UW1", "OW1"), ("AY1 M", "AY1 T")],
)
def test_similarity_is_symmetric_and_reflexive(first, second):
    assert similarity(first, first) == 1.0
    assert similarity(first, second) == pytest.approx(similarity(second, first))


def test_near_rhyme_requires_consonant_class_match():
    assert similarity("AY1 M", "AY1 N") == pytest.approx(0.895)
    assert is_near_rhyme("AY1 M", "AY1 N")
    assert not is_near_rhyme("AY1 M", "AY1 T")


def test_vowel_group_match_sits_between_thresholds():
    score = similarity("IY1 N", "IH1 N")

    assert score == pytest.approx(0.805)
    assert NEAR_RHYME_THRESHOLD <= score < INTERNAL_NEAR_RHYME_THRESHOLD


def test_open_syllables_score_partial_consonant_credit():
    # Same vowel, neither key ends in a consonant.
    assert similarity("UW1", "UW0") == pytest.approx(0.65 + 0.35 * 0.55)


def test_one_sided_ending_consonant_scores_no_consonant_credit():
    assert similarity("AY1", "AY1 M") == pytest.approx(0.65)
