import json

from scripts.lyric_probe import main


def test_probe_reports_groups_and_suggestions(tmp_path, dictionary_file, capsys):
    lyrics = tmp_path / "verse.txt"
    lyrics.write_text("It's time\nTo rhyme\n", encoding="utf-8")

    exit_code = main([str(lyrics), "--dict-path", str(dictionary_file), "--no-cache"])

    report = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert [group["id"] for group in report["groups"]] == ["end:AY1 M:0"]
    assert report["groups"][0]["occurrences"][1] == {
        "location": 13,
        "length": 5,
        "line": 1,
        "line_final": True,
    }
    assert report["target_key"] == "AY1 M"
    assert report["mode"] == "end"
    assert report["brackets"][0]["bar_count"] == 2


def test_rebuild_cache_writes_snapshot(tmp_path, dictionary_file, capsys):
    lyrics = tmp_path / "verse.txt"
    lyrics.write_text("seen\nsin", encoding="utf-8")
    cache_path = tmp_path / "cache" / "index.json"

    exit_code = main(
        [
            str(lyrics),
            "--dict-path",
            str(dictionary_file),
            "--cache-path",
            str(cache_path),
            "--rebuild-cache",
            "--cursor",
            "4",
        ]
    )

    report = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert cache_path.exists()
    assert report["cursor"] == 4
    assert report["groups"][0]["kind"] == "near"
