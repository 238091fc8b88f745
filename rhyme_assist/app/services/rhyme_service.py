"""Service facade tying the pronunciation index to analysis and suggestions."""

from __future__ import annotations

import concurrent.futures
import threading
from typing import Any, Dict, List, Optional, Sequence

from rhyme_assist.config import EngineSettings
from rhyme_assist.core.analyzer import RhymeAnalysis, RhymeAnalyzer
from rhyme_assist.core.cmudict_loader import CMUDictLoader, PronunciationIndex
from rhyme_assist.core.context_scorer import DistanceFn, keywords
from rhyme_assist.core.index_cache import IndexCache, load_index
from rhyme_assist.core.lexicon import UserLexiconItem
from rhyme_assist.core.sections import (
    OverridesInput,
    SectionBracket,
    apply_override as apply_section_override,
    detect_brackets as detect_section_brackets,
)
from rhyme_assist.core.suggestions import (
    DEFAULT_MAX_COUNT,
    RecencyTracker,
    SuggestionEngine,
    SuggestionResult,
)

from ...utils.observability import (
    add_span_attributes,
    create_counter,
    create_histogram,
    get_logger,
    record_exception,
    start_span,
)
from ...utils.telemetry import StructuredTelemetry


class RhymeService:
    """Entry point for editors: analysis, suggestions and stanza brackets.

    The pronunciation index is loaded on a single background worker as soon
    as the service is created. Calls that need it wait for that one load;
    later calls reuse the finished index. Suggestion calls share one
    :class:`RecencyTracker`, so repeats are damped across keystrokes.
    """

    def __init__(
        self,
        *,
        index: Optional[PronunciationIndex] = None,
        settings: Optional[EngineSettings] = None,
        loader: Optional[CMUDictLoader] = None,
        cache: Optional[IndexCache] = None,
        use_cache: Optional[bool] = None,
        distance_fn: Optional[DistanceFn] = None,
        telemetry: Optional[StructuredTelemetry] = None,
    ) -> None:
        self.telemetry = telemetry or StructuredTelemetry()
        self.distance_fn = distance_fn
        self.tracker = RecencyTracker()
        self._latest_trace: Dict[str, Any] = {}
        # One editor_assist trace at a time on the shared telemetry.
        self._trace_lock = threading.Lock()
        self._logger = get_logger(__name__).bind(component="rhyme_service")

        self._components_lock = threading.Lock()
        self._analyzer: Optional[RhymeAnalyzer] = None
        self._engine: Optional[SuggestionEngine] = None
        self._ready = threading.Event()

        self._metric_requests = create_counter(
            "rhyme_assist_requests_total",
            "Rhyme service calls by operation.",
            label_names=("operation",),
        )
        self._metric_failures = create_counter(
            "rhyme_assist_request_failures_total",
            "Rhyme service calls that raised an exception.",
            label_names=("operation",),
        )
        self._metric_analysis_seconds = create_histogram(
            "rhyme_assist_analysis_seconds",
            "Time spent analyzing rhyme groups in a document.",
        )

        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="rhyme-index"
        )
        if index is not None:
            self._index_future: concurrent.futures.Future = concurrent.futures.Future()
            self._index_future.set_result(index)
        else:
            self._index_future = self._executor.submit(
                load_index,
                loader=loader,
                cache=cache,
                settings=settings,
                use_cache=use_cache,
            )

    # Index lifecycle ------------------------------------------------------
    def _components(self) -> SuggestionEngine:
        index = self._index_future.result()
        with self._components_lock:
            if self._engine is None:
                self._analyzer = RhymeAnalyzer(index)
                self._engine = SuggestionEngine(
                    index,
                    self._analyzer,
                    distance_fn=self.distance_fn,
                    tracker=self.tracker,
                )
                self._ready.set()
                self._logger.info(
                    "Rhyme service ready",
                    context={"words": index.word_count, "keys": index.key_count},
                )
            return self._engine

    def warm_up(self) -> None:
        """Block until the pronunciation index is available."""

        self._components()

    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def index(self) -> PronunciationIndex:
        return self._components().index

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    # Operations -----------------------------------------------------------
    def analyze(self, text: str) -> RhymeAnalysis:
        self._metric_requests.labels(operation="analyze").inc()
        with start_span("rhyme_assist.analyze", {"text.length": len(text)}) as span:
            try:
                analyzer = self._components().analyzer
                with self._metric_analysis_seconds.time():
                    analysis = analyzer.analyze(text)
            except Exception as exc:
                self._metric_failures.labels(operation="analyze").inc()
                self._logger.error("Rhyme analysis failed", context={"error": str(exc)})
                record_exception(span, exc)
                raise
            add_span_attributes(span, {"groups.total": len(analysis.groups)})
        return analysis

    def editor_assist(
        self,
        text: str,
        cursor: int,
        user_lexicon: Sequence[UserLexiconItem] = (),
        tail_length: int = 1,
        max_count: int = DEFAULT_MAX_COUNT,
    ) -> SuggestionResult:
        """Suggestions for the rhyme at ``cursor`` and the caret's bar position."""

        with self._trace_lock:
            return self._traced_editor_assist(text, cursor, user_lexicon, tail_length, max_count)

    def _traced_editor_assist(
        self,
        text: str,
        cursor: int,
        user_lexicon: Sequence[UserLexiconItem],
        tail_length: int,
        max_count: int,
    ) -> SuggestionResult:
        telemetry = self.telemetry
        telemetry.start_trace("editor_assist")
        telemetry.annotate("input.cursor", cursor)
        telemetry.annotate("input.tail_length", tail_length)
        telemetry.annotate("input.max_count", max_count)
        telemetry.annotate("input.lexicon_size", len(user_lexicon))
        self._metric_requests.labels(operation="editor_assist").inc()

        span_context = {"cursor": cursor, "tail_length": tail_length, "max_count": max_count}
        with start_span("rhyme_assist.editor_assist", span_context) as span:
            try:
                with telemetry.timer("index.wait"):
                    engine = self._components()
                with telemetry.timer("suggestions.rank") as timing:
                    result = engine.suggest(
                        text,
                        cursor,
                        user_lexicon,
                        tail_length=tail_length,
                        max_count=max_count,
                    )
                    timing["returned"] = len(result.suggestions)
            except Exception as exc:
                self._metric_failures.labels(operation="editor_assist").inc()
                self._logger.error("Editor assist failed", context={"error": str(exc)})
                record_exception(span, exc)
                telemetry.increment("editor_assist.failed")
                self._latest_trace = telemetry.snapshot()
                raise

            telemetry.annotate("result.target_key", result.target_key)
            telemetry.annotate("result.mode", result.mode)
            telemetry.annotate("result.count", len(result.suggestions))
            if result.target_key is None:
                telemetry.increment("editor_assist.no_target")
            telemetry.increment("editor_assist.completed")
            self._latest_trace = telemetry.snapshot()

            add_span_attributes(
                span,
                {
                    "result.count": len(result.suggestions),
                    "result.mode": result.mode,
                    "result.has_bar_position": result.bar_position is not None,
                },
            )
        return result

    def suggestions(
        self,
        text: str,
        cursor: int,
        user_lexicon: Sequence[UserLexiconItem] = (),
        tail_length: int = 1,
        max_count: int = DEFAULT_MAX_COUNT,
    ) -> List[str]:
        result = self.editor_assist(text, cursor, user_lexicon, tail_length, max_count)
        return list(result.suggestions)

    def detect_brackets(self, text: str, overrides: OverridesInput = None) -> List[SectionBracket]:
        self._metric_requests.labels(operation="detect_brackets").inc()
        return detect_section_brackets(text, overrides)

    def apply_override(self, blob: Optional[str], anchor: str, bar_count: Optional[int]) -> str:
        return apply_section_override(blob, anchor, bar_count)

    def context_keywords(self, text: str, cursor: int, max_lines: int = 8) -> List[str]:
        return keywords(text, cursor, max_lines)

    def latest_telemetry(self) -> Dict[str, Any]:
        """Snapshot of the most recent ``editor_assist`` trace."""

        return dict(self._latest_trace)


__all__ = ["RhymeService"]
