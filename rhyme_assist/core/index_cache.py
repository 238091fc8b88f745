"""Versioned on-disk cache for :class:`PronunciationIndex` snapshots."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from rhyme_assist.config import EngineSettings, load_settings
from rhyme_assist.utils.observability import (
    create_counter,
    create_histogram,
    get_logger,
    observe_duration,
    start_span,
)

from .cmudict_loader import CMUDictLoader, PronunciationIndex

_logger = get_logger(__name__).bind(component="index_cache")

_METRIC_CACHE_LOOKUPS = create_counter(
    "rhyme_assist_index_cache_lookups_total",
    "Pronunciation index cache lookups by outcome.",
    label_names=("outcome",),
)
_METRIC_BUILD_SECONDS = create_histogram(
    "rhyme_assist_index_build_seconds",
    "Time spent building the pronunciation index from dictionary text.",
)


class IndexCache:
    """Reads and writes index snapshots as JSON at ``path``.

    Every failure is logged and reported as a miss (``load``) or ``False``
    (``save``); the cache never stops the index from becoming available.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> Optional[PronunciationIndex]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            _METRIC_CACHE_LOOKUPS.labels(outcome="missing").inc()
            return None
        except (OSError, UnicodeDecodeError) as exc:
            _logger.warning(
                "Index cache unreadable",
                context={"path": str(self.path), "error": str(exc)},
            )
            _METRIC_CACHE_LOOKUPS.labels(outcome="unreadable").inc()
            return None

        try:
            payload = json.loads(raw)
        except ValueError as exc:
            _logger.warning(
                "Index cache corrupt",
                context={"path": str(self.path), "error": str(exc)},
            )
            _METRIC_CACHE_LOOKUPS.labels(outcome="corrupt").inc()
            return None

        index = PronunciationIndex.from_snapshot(payload)
        if index is None:
            _logger.info(
                "Index cache rejected",
                context={
                    "path": str(self.path),
                    "version": payload.get("version") if isinstance(payload, dict) else None,
                },
            )
            _METRIC_CACHE_LOOKUPS.labels(outcome="stale").inc()
            return None

        _METRIC_CACHE_LOOKUPS.labels(outcome="hit").inc()
        return index

    def save(self, index: PronunciationIndex) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handle, temp_name = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=self.path.name, suffix=".tmp"
            )
            try:
                with os.fdopen(handle, "w", encoding="utf-8") as stream:
                    json.dump(index.to_snapshot(), stream, separators=(",", ":"), sort_keys=True)
                os.replace(temp_name, self.path)
            except BaseException:
                Path(temp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as exc:
            _logger.warning(
                "Index cache write failed",
                context={"path": str(self.path), "error": str(exc)},
            )
            return False
        return True


def load_index(
    *,
    loader: Optional[CMUDictLoader] = None,
    cache: Optional[IndexCache] = None,
    settings: Optional[EngineSettings] = None,
    use_cache: Optional[bool] = None,
) -> PronunciationIndex:
    """Return the pronunciation index, preferring a valid cached snapshot.

    On a cache miss the index is built from the loader's dictionary text and
    written back to the cache on a best-effort basis.
    """

    settings = settings or load_settings()
    loader = loader or CMUDictLoader(settings.dict_path)
    cache_enabled = settings.cache_enabled if use_cache is None else use_cache
    if cache_enabled and cache is None:
        cache = IndexCache(settings.cache_path)

    with start_span("rhyme_assist.index.load", {"cache_enabled": cache_enabled}) as span:
        if cache_enabled and cache is not None:
            cached = cache.load()
            if cached is not None:
                _logger.info(
                    "Pronunciation index loaded from cache",
                    context={"path": str(cache.path), "words": cached.word_count},
                )
                if span is not None:
                    span.set_attribute("source", "cache")
                return cached

        text, source = loader.load_text()
        with observe_duration(_METRIC_BUILD_SECONDS):
            index = PronunciationIndex.build(text)
        _logger.info(
            "Pronunciation index built",
            context={"source": source, "words": index.word_count, "keys": index.key_count},
        )
        if span is not None:
            span.set_attribute("source", source)

        if cache_enabled and cache is not None:
            cache.save(index)
        return index


__all__ = ["IndexCache", "load_index"]
