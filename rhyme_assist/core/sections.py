"""Stanza detection with bar counts and user-locked section overrides."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

from rhyme_assist.utils.observability import get_logger

CANONICAL_BAR_COUNTS: Tuple[int, ...] = (4, 8, 12, 16)
ANCHOR_MAX_LENGTH = 42

_NEWLINE_PATTERN = re.compile(r"\r\n|[\n\r\v\f\u2028\u2029\x85]")

_logger = get_logger(__name__).bind(component="section_detector")


@dataclass(frozen=True)
class SectionOverride:
    anchor: str
    bar_count: int


@dataclass(frozen=True)
class SectionBracket:
    id: str
    stanza_index: int
    start_line_index: int
    end_line_index: int
    # Non-empty lines in the stanza.
    bar_count: int
    label_bars: Optional[int]
    is_locked: bool
    anchor: str

    @property
    def label_text(self) -> Optional[str]:
        if self.label_bars is None:
            return None
        return f"{self.label_bars} bars"


OverridesInput = Union[str, Sequence[SectionOverride], None]


def decode_overrides(blob: Optional[str]) -> List[SectionOverride]:
    """Parse a stored override blob; anything unreadable yields ``[]``."""

    if blob is None or not blob.strip():
        return []
    try:
        payload = json.loads(blob)
        if not isinstance(payload, list):
            raise ValueError("override blob must be a JSON list")
        overrides = []
        for entry in payload:
            anchor = entry["anchor"]
            bar_count = entry["barCount"]
            if not isinstance(anchor, str) or isinstance(bar_count, bool) or not isinstance(bar_count, int):
                raise ValueError(f"invalid override entry {entry!r}")
            overrides.append(SectionOverride(anchor, bar_count))
    except (ValueError, TypeError, KeyError) as exc:
        _logger.warning("Ignoring malformed section overrides", context={"error": str(exc)})
        return []
    return overrides


def encode_overrides(overrides: Sequence[SectionOverride]) -> str:
    if not overrides:
        return ""
    return json.dumps(
        [{"anchor": item.anchor, "barCount": item.bar_count} for item in overrides],
        separators=(",", ":"),
        ensure_ascii=False,
    )


def _as_overrides(overrides: OverridesInput) -> List[SectionOverride]:
    if overrides is None or isinstance(overrides, str):
        return decode_overrides(overrides)
    return list(overrides)


def snap_bars(bar_count: int) -> Optional[int]:
    """Nearest canonical bar count within one bar, smaller target on ties."""

    best: Optional[Tuple[int, int]] = None
    for target in CANONICAL_BAR_COUNTS:
        delta = abs(bar_count - target)
        if delta <= 1 and (best is None or (delta, target) < best):
            best = (delta, target)
    return best[1] if best else None


def stanza_anchor(line: str, start_line_index: int) -> str:
    """Normalized prefix of a stanza's first line used to match overrides."""

    cleaned = "".join(
        char if char.isalpha() or char.isdigit() or char.isspace() else " "
        for char in line.lower()
    )
    collapsed = " ".join(cleaned.split())
    if not collapsed:
        return f"stanza-{start_line_index}"
    return collapsed[:ANCHOR_MAX_LENGTH]


def _stanzas(lines: Sequence[str]) -> List[List[int]]:
    stanzas: List[List[int]] = []
    current: List[int] = []
    for index, line in enumerate(lines):
        if not line.strip():
            if current:
                stanzas.append(current)
                current = []
            continue
        current.append(index)
    if current:
        stanzas.append(current)
    return stanzas


def detect_brackets(text: str, overrides: OverridesInput = None) -> List[SectionBracket]:
    """Split ``text`` into blank-line separated stanzas and label their bars.

    A stanza whose anchor has an override is locked to that bar count;
    otherwise its raw count snaps to 4/8/12/16 when within one bar.
    """

    locked: Dict[str, int] = {item.anchor: item.bar_count for item in _as_overrides(overrides)}
    if not text:
        return []
    lines = _NEWLINE_PATTERN.split(text)

    brackets: List[SectionBracket] = []
    for stanza_index, members in enumerate(_stanzas(lines)):
        start, end = members[0], members[-1]
        anchor = stanza_anchor(lines[start], start)
        bar_count = len(members)
        if anchor in locked:
            label_bars: Optional[int] = locked[anchor]
            is_locked = True
        else:
            label_bars = snap_bars(bar_count)
            is_locked = False
        brackets.append(
            SectionBracket(
                id=f"{anchor}|{start}|{end}",
                stanza_index=stanza_index,
                start_line_index=start,
                end_line_index=end,
                bar_count=bar_count,
                label_bars=label_bars,
                is_locked=is_locked,
                anchor=anchor,
            )
        )
    return brackets


def apply_override_list(
    overrides: Sequence[SectionOverride], anchor: str, bar_count: Optional[int]
) -> List[SectionOverride]:
    updated = [item for item in overrides if item.anchor != anchor]
    if bar_count is not None:
        updated.append(SectionOverride(anchor, bar_count))
    updated.sort(key=lambda item: (item.anchor, item.bar_count))
    return updated


def apply_override(blob: Optional[str], anchor: str, bar_count: Optional[int]) -> str:
    """Set (or with ``bar_count=None`` clear) the lock for ``anchor`` in ``blob``."""

    return encode_overrides(apply_override_list(decode_overrides(blob), anchor, bar_count))


__all__ = [
    "CANONICAL_BAR_COUNTS",
    "SectionBracket",
    "SectionOverride",
    "apply_override",
    "apply_override_list",
    "decode_overrides",
    "detect_brackets",
    "encode_overrides",
    "snap_bars",
    "stanza_anchor",
]
