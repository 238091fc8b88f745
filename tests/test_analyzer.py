from rhyme_assist.core.analyzer import RhymeAnalyzer, RhymeGroupKind
from rhyme_assist.core.cmudict_loader import PronunciationIndex
from rhyme_assist.core.tokenizer import TextRange


def test_end_rhyme_group_reports_exact_ranges(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)

    analysis = analyzer.analyze("It's time\nTo rhyme\n")

    assert len(analysis.groups) == 1
    group = analysis.groups[0]
    assert group.kind is RhymeGroupKind.END
    assert group.rhyme_key == "AY1 M"
    assert group.color_index == 0
    assert group.id == "end:AY1 M:0"
    assert [occurrence.range for occurrence in group.occurrences] == [
        TextRange(5, 4),
        TextRange(13, 5),
    ]


def test_internal_group_spans_lines_within_window(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)
    text = "It's time to shine\nWe rhyme at night\nBack in time\n"

    analysis = analyzer.analyze(text)

    internal = analysis.of_kind(RhymeGroupKind.INTERNAL)
    assert len(internal) == 1
    occurrences = internal[0].occurrences
    assert len(occurrences) == 3
    assert sum(1 for occurrence in occurrences if occurrence.is_line_final) == 1
    assert [occurrence.line_index for occurrence in occurrences] == [0, 1, 2]
    assert analysis.of_kind(RhymeGroupKind.END) == []


def test_internal_occurrences_too_far_apart_do_not_group(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)
    text = "time we\n\n\n\n\nrhyme we\n"

    analysis = analyzer.analyze(text)

    assert analysis.of_kind(RhymeGroupKind.INTERNAL) == []


def test_end_and_internal_groups_share_color_for_a_key(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)
    text = "time we\nit's time\nwe rhyme\n"

    analysis = analyzer.analyze(text)

    end = analysis.of_kind(RhymeGroupKind.END)
    internal = analysis.of_kind(RhymeGroupKind.INTERNAL)
    assert [group.rhyme_key for group in end] == ["AY1 M"]
    assert sorted(group.rhyme_key for group in internal) == ["AY1 M", "IY1"]
    colors = {(group.kind, group.rhyme_key): group.color_index for group in analysis.groups}
    assert colors[(RhymeGroupKind.END, "AY1 M")] == 0
    assert colors[(RhymeGroupKind.INTERNAL, "AY1 M")] == 0
    assert colors[(RhymeGroupKind.INTERNAL, "IY1")] == 1


def test_near_rhyme_threshold_depends_on_position(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)

    line_final = analyzer.analyze("I have seen\nI did sin\n")
    mid_line = analyzer.analyze("seen it all\nsin it all\n")

    near = line_final.of_kind(RhymeGroupKind.NEAR)
    assert len(near) == 1
    assert near[0].rhyme_key == "IY1 N"
    assert len(near[0].occurrences) == 2
    assert mid_line.groups == ()


def test_near_groups_number_after_exact_groups(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)

    analysis = analyzer.analyze("time seen\nrhyme sin\n")

    assert [group.id for group in analysis.groups] == [
        "internal:AY1 M:0",
        "near:IY1 N:1",
    ]


def test_analysis_is_deterministic(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)
    text = "It's time to shine\nWe rhyme at night\nBack in time\nseen\nsin\n"

    assert analyzer.analyze(text) == analyzer.analyze(text)


def test_empty_or_unknown_text_has_no_groups(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)

    assert analyzer.analyze("").groups == ()
    assert analyzer.analyze("zzz qqq\nvvv").groups == ()


def test_ranges_account_for_emoji(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)

    analysis = analyzer.analyze("\U0001F600 time\n\U0001F600 rhyme")

    assert [occurrence.range for occurrence in analysis.groups[0].occurrences] == [
        TextRange(3, 4),
        TextRange(11, 5),
    ]


def test_current_line_key_after_trailing_newline(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)
    text = "It's time\nTo rhyme\n"

    assert analyzer.current_line_rhyme_key(text, len(text)) == "AY1 M"
    assert analyzer.current_line_rhyme_key(text, 2) == "AY1 M"
    assert analyzer.current_line_rhyme_key("", 0) is None


def test_cursor_mid_line_and_last_completed_token(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)
    text = "time to shine"

    assert analyzer.is_cursor_mid_line(text, 4)
    assert not analyzer.is_cursor_mid_line(text, len(text))
    assert analyzer.last_completed_token_rhyme_key(text, 4) == "AY1 M"
    assert analyzer.last_completed_token_rhyme_key(text, 2) is None
    assert analyzer.last_completed_token_rhyme_key(text, len(text)) == "AY1 N"


def test_infer_active_key_prefers_recent_repeat(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)
    text = "time\nnight\nrhyme\nnight\nshine"

    assert analyzer.infer_active_rhyme_key(text, len(text)) == "AY1 T"


def test_infer_active_key_falls_back_to_cursor_line(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)

    assert analyzer.infer_active_rhyme_key("time\nnight", 10) == "AY1 T"
    assert analyzer.infer_active_rhyme_key("time\nzzz", 8) is None


def test_infer_active_key_respects_lookback(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)
    text = "time\nrhyme\nnight\nshine\nseen\nsin"

    assert analyzer.infer_active_rhyme_key(text, len(text), lookback_lines=4) == "IH1 N"
    assert analyzer.infer_active_rhyme_key(text, len(text), lookback_lines=6) == "AY1 M"


def test_near_rhymes_too_far_apart_do_not_group(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)

    analysis = analyzer.analyze("I have seen\n\n\n\n\nI did sin\n")

    assert analysis.groups == ()


def test_colors_follow_first_appearance_of_key_in_text(lyric_index):
    analyzer = RhymeAnalyzer(lyric_index)
    # The opening "time" is too far from the later pair to join their group.
    text = "time to\nseen\nseen\n\n\n\n\nrhyme time\n"

    analysis = analyzer.analyze(text)

    assert [group.id for group in analysis.groups] == [
        "end:IY1 N:1",
        "internal:AY1 M:0",
    ]


def test_tail_length_two_groups_by_two_syllable_key():
    index = PronunciationIndex.build(
        "TIMING  T AY1 M IH0 NG\n"
        "RHYMING  R AY1 M IH0 NG\n"
        "SINGING  S IH1 NG IH0 NG\n"
    )
    analyzer = RhymeAnalyzer(index)
    text = "timing\nsinging\nrhyming\n"

    by_one = analyzer.analyze(text)
    by_two = analyzer.analyze(text, tail_length=2)

    assert [(group.kind, group.rhyme_key) for group in by_one.groups] == [
        (RhymeGroupKind.END, "IH0 NG")
    ]
    assert [(group.kind, group.rhyme_key) for group in by_two.groups] == [
        (RhymeGroupKind.END, "AY1 M IH0 NG")
    ]
    assert [occurrence.line_index for occurrence in by_two.groups[0].occurrences] == [0, 2]
