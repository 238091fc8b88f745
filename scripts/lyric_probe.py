#!/usr/bin/env python3
"""CLI helper to run the rhyme engine over a lyric file and inspect its output."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from rhyme_assist.app.services.rhyme_service import RhymeService
from rhyme_assist.config import load_settings
from rhyme_assist.core.cmudict_loader import CMUDictLoader
from rhyme_assist.core.index_cache import IndexCache, load_index
from rhyme_assist.core.tokenizer import TextOffsets
from rhyme_assist.utils.logging_config import configure_logging
from rhyme_assist.utils.telemetry import StructuredTelemetry, TelemetryLogger


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Analyze lyric text for end, internal and near rhymes, detect "
            "stanza brackets and print suggestions at a cursor position."
        )
    )
    parser.add_argument(
        "path",
        nargs="?",
        default="-",
        help="Lyric file to analyze ('-' or omitted reads standard input).",
    )
    parser.add_argument(
        "--cursor",
        type=int,
        help="Cursor offset in UTF-16 code units (defaults to the end of the text).",
    )
    parser.add_argument(
        "--tail-length",
        type=int,
        choices=(1, 2),
        default=1,
        help="Rhyme key tail: 1 for the last stressed vowel, 2 for two vowel nuclei.",
    )
    parser.add_argument(
        "--max-count",
        type=int,
        default=12,
        help="Maximum number of suggestions to return.",
    )
    parser.add_argument(
        "--overrides",
        help="Section override blob (JSON list of {anchor, barCount} records).",
    )
    parser.add_argument("--dict-path", help="Pronunciation dictionary file to load.")
    parser.add_argument("--cache-path", help="Where the index cache snapshot lives.")
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Build the index from dictionary text without reading or writing the cache.",
    )
    parser.add_argument(
        "--rebuild-cache",
        action="store_true",
        help="Ignore any cached snapshot, rebuild the index and write a fresh cache.",
    )
    parser.add_argument("--log-level", help="Logging level (defaults to INFO).")
    parser.add_argument(
        "--pretty-json",
        action="store_true",
        help="Indent JSON output for readability.",
    )
    return parser


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _report(service: RhymeService, text: str, cursor: int, args: argparse.Namespace) -> Dict[str, Any]:
    analysis = service.analyze(text)
    assist = service.editor_assist(
        text, cursor, tail_length=args.tail_length, max_count=args.max_count
    )

    groups = [
        {
            "id": group.id,
            "kind": group.kind.value,
            "rhyme_key": group.rhyme_key,
            "color_index": group.color_index,
            "occurrences": [
                {
                    "location": occurrence.range.location,
                    "length": occurrence.range.length,
                    "line": occurrence.line_index,
                    "line_final": occurrence.is_line_final,
                }
                for occurrence in group.occurrences
            ],
        }
        for group in analysis.groups
    ]
    brackets = [
        {
            "anchor": bracket.anchor,
            "lines": [bracket.start_line_index, bracket.end_line_index],
            "bar_count": bracket.bar_count,
            "label": bracket.label_text,
            "locked": bracket.is_locked,
        }
        for bracket in service.detect_brackets(text, args.overrides)
    ]
    bar_position = None
    if assist.bar_position is not None:
        bar_position = {
            "step": assist.bar_position.step,
            "syllables_before_caret": assist.bar_position.syllables_before_caret,
            "total_syllables": assist.bar_position.total_syllables,
            "low_confidence_tokens": assist.bar_position.low_confidence_token_count,
        }

    return {
        "cursor": cursor,
        "groups": groups,
        "brackets": brackets,
        "target_key": assist.target_key,
        "mode": assist.mode,
        "suggestions": list(assist.suggestions),
        "bar_position": bar_position,
        "keywords": service.context_keywords(text, cursor),
    }


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = load_settings()
    if args.dict_path:
        settings = replace(settings, dict_path=Path(args.dict_path).expanduser())
    if args.cache_path:
        settings = replace(settings, cache_path=Path(args.cache_path).expanduser())
    if args.no_cache:
        settings = replace(settings, cache_enabled=False)
    configure_logging(args.log_level or settings.log_level)

    index = None
    if args.rebuild_cache:
        index = load_index(
            loader=CMUDictLoader(settings.dict_path), settings=settings, use_cache=False
        )
        if settings.cache_enabled and not IndexCache(settings.cache_path).save(index):
            print(f"Could not write index cache to {settings.cache_path}", file=sys.stderr)

    text = _read_text(args.path)
    cursor = args.cursor if args.cursor is not None else TextOffsets(text).utf16_length

    telemetry = StructuredTelemetry(listeners=[TelemetryLogger()])
    service = RhymeService(index=index, settings=settings, telemetry=telemetry)
    try:
        report = _report(service, text, cursor, args)
    finally:
        service.close()

    json.dump(report, sys.stdout, indent=2 if args.pretty_json else None, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
