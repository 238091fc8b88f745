"""Read-only snapshots of a user's accepted-word history."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from .tokenizer import normalize_word

PERSONAL_ACCEPT_CAP = 40


@dataclass(frozen=True)
class UserLexiconItem:
    normalized: str
    # Preferred casing, e.g. "LA"; defaults to the normalized form.
    display: str
    accept_count: int = 0
    last_accepted_at: Optional[datetime] = None


def personal_score(accept_count: int) -> float:
    """Log-scaled preference in [0, 1]; saturates at 40 accepts."""

    if accept_count <= 0:
        return 0.0
    capped = min(accept_count, PERSONAL_ACCEPT_CAP)
    return min(1.0, max(0.0, math.log(1 + capped) / math.log(1 + PERSONAL_ACCEPT_CAP)))


def record_accepted_word(
    items: Iterable[UserLexiconItem],
    word: str,
    now: Optional[datetime] = None,
) -> List[UserLexiconItem]:
    """Return a new snapshot with one more acceptance of ``word``.

    The display casing is only replaced when the accepted spelling carries
    uppercase letters; plain lowercase acceptances keep the stored casing.
    """

    snapshot = list(items)
    normalized = normalize_word(word)
    if not normalized:
        return snapshot

    accepted_at = now or datetime.now(timezone.utc)
    cased = word.strip() if word != word.lower() else None

    for position, item in enumerate(snapshot):
        if item.normalized == normalized:
            snapshot[position] = replace(
                item,
                accept_count=item.accept_count + 1,
                last_accepted_at=accepted_at,
                display=cased or item.display,
            )
            return snapshot

    snapshot.append(
        UserLexiconItem(
            normalized=normalized,
            display=cased or normalized,
            accept_count=1,
            last_accepted_at=accepted_at,
        )
    )
    return snapshot


def top_lexicon_items(items: Iterable[UserLexiconItem], limit: int = 512) -> List[UserLexiconItem]:
    """Most-accepted items first, most recently accepted breaking ties."""

    def recency(item: UserLexiconItem) -> float:
        if item.last_accepted_at is None:
            return float("-inf")
        return item.last_accepted_at.timestamp()

    ranked = sorted(items, key=lambda item: (-item.accept_count, -recency(item), item.normalized))
    return ranked[: max(0, limit)]


__all__ = [
    "UserLexiconItem",
    "personal_score",
    "record_accepted_word",
    "top_lexicon_items",
]
