import json

from rhyme_assist.core.cmudict_loader import (
    INDEX_FORMAT_VERSION,
    SAMPLE_DICTIONARY_TEXT,
    CMUDictLoader,
    PronunciationIndex,
    iter_dictionary_entries,
)


def test_build_maps_words_to_rhyme_keys_and_back():
    index = PronunciationIndex.build("TIME  T AY1 M\nRHYME  R AY1 M")

    assert index.rhyme_keys("time") == ["AY1 M"]
    assert index.words("AY1 M") == ["rhyme", "time"]
    assert index.word_count == 2
    assert index.key_count == 1


def test_lookups_normalize_the_word():
    index = PronunciationIndex.build("TIME  T AY1 M")

    assert index.rhyme_keys("Time!") == ["AY1 M"]
    assert index.syllable_count("TIME") == 1


def test_variant_markers_merge_into_one_headword():
    index = PronunciationIndex.build("READ  R IY1 D\nREAD(2)  R EH1 D\n")

    assert index.rhyme_keys("read") == ["EH1 D", "IY1 D"]
    assert index.words("EH1 D") == ["read"]


def test_comment_and_blank_lines_are_skipped():
    text = ";;; header\n\nTIME  T AY1 M\nBROKEN\n"

    assert list(iter_dictionary_entries(text)) == [("time", ["T", "AY1", "M"])]


def test_syllable_count_keeps_minimum_across_variants():
    index = PronunciationIndex.build("FIRE  F AY1 ER0\nFIRE(2)  F AY1 R\n")

    assert index.syllable_count("fire") == 1
    assert index.syllable_count("missing") is None


def test_tail_two_keys_are_indexed_separately():
    index = PronunciationIndex.build("RHYTHM  R IH1 DH AH0 M\n")

    assert index.rhyme_keys("rhythm") == ["AH0 M"]
    assert index.rhyme_keys("rhythm", tail_length=2) == ["IH1 DH AH0 M"]
    assert index.words("IH1 DH AH0 M", tail_length=2) == ["rhythm"]
    assert index.words("IH1 DH AH0 M") == []


def test_nearby_keys_keep_only_near_rhymes():
    index = PronunciationIndex.build(SAMPLE_DICTIONARY_TEXT)

    assert index.nearby_keys("AY1 M") == ["AY1 N"]
    assert index.nearby_keys("AY1 M", limit=0) == []


def test_nearby_keys_sort_by_score_then_key():
    index = PronunciationIndex.build(
        "TIME  T AY1 M\nLINE  L AY1 N\nSONG  S AY1 NG\nSIGN  S AY1 N\n"
    )

    # AY1 N and AY1 NG tie on score; the key breaks the tie.
    assert index.nearby_keys("AY1 M") == ["AY1 N", "AY1 NG"]
    assert index.nearby_keys("AY1 M", limit=1) == ["AY1 N"]


def test_snapshot_round_trip_preserves_lookups():
    index = PronunciationIndex.build(SAMPLE_DICTIONARY_TEXT)

    payload = json.loads(json.dumps(index.to_snapshot()))
    restored = PronunciationIndex.from_snapshot(payload)

    assert payload["version"] == INDEX_FORMAT_VERSION
    assert restored is not None
    assert restored.rhyme_keys("time") == index.rhyme_keys("time")
    assert restored.words("AY1 N D") == ["find", "mind"]
    assert restored.nearby_keys("AY1 M") == index.nearby_keys("AY1 M")
    assert restored.syllable_count("higher") == 2


def test_snapshot_with_other_version_is_rejected():
    payload = PronunciationIndex.build(SAMPLE_DICTIONARY_TEXT).to_snapshot()
    payload["version"] = INDEX_FORMAT_VERSION - 1

    assert PronunciationIndex.from_snapshot(payload) is None


def test_malformed_snapshot_is_rejected():
    payload = PronunciationIndex.build(SAMPLE_DICTIONARY_TEXT).to_snapshot()
    payload["key_to_words"] = {"AY1 M": []}

    assert PronunciationIndex.from_snapshot(payload) is None
    assert PronunciationIndex.from_snapshot(["not", "a", "snapshot"]) is None


def test_loader_reads_configured_dictionary(dictionary_file):
    text, source = CMUDictLoader(dictionary_file).load_text()

    assert source == str(dictionary_file)
    assert "RHYME  R AY1 M" in text
