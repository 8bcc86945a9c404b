"""End-to-end analysis of a browser history log.

:func:`analyze_history` parses and filters raw records, classifies
transitions between consecutive domains, segments focus sessions and
information chains, and derives temporal, graph and insight metrics.

Long runs report progress through a ``progress(done, total)`` callback and
can be stopped with a :class:`CancellationToken`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import tzinfo
from typing import Any

from attnflow.analytics.calibration import ThresholdCalibrator
from attnflow.analytics.embedding import EmbeddingBackend
from attnflow.analytics.graph import GraphMetricsCalculator, build_domain_nodes
from attnflow.analytics.insights import InsightsGenerator
from attnflow.analytics.sessions import SessionSegmenter
from attnflow.analytics.similarity import FallbackBackend, SimilarityBackend, SimilarityEstimator
from attnflow.analytics.temporal import TemporalAnalyzer
from attnflow.analytics.transitions import (
    TransitionClassifier,
    iter_transitions,
    transition_stats,
)
from attnflow.config import AnalysisConfig
from attnflow.models import (
    AnalysisReport,
    AnalysisResult,
    HistoryGraph,
    TransitionKind,
    VisitEvent,
    is_filtered_domain,
    parse_visit,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class AnalysisCancelled(Exception):
    """The caller cancelled a running analysis."""


class CancellationToken:
    """Cooperative cancellation flag checked between units of work."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise AnalysisCancelled("Analysis cancelled")


def prepare_events(records: Iterable[Any], config: AnalysisConfig | None = None) -> list[VisitEvent]:
    """Parse, filter and sort raw history records.

    Unparseable records and visits to filtered domains are dropped. The sort
    is stable, so visits with equal timestamps keep their input order.
    """
    config = config or AnalysisConfig()
    events: list[VisitEvent] = []
    dropped = 0
    filtered = 0

    for raw in records:
        event = parse_visit(raw) if isinstance(raw, dict) else None
        if event is None:
            dropped += 1
            continue
        if is_filtered_domain(event.domain, config.filtered_domains):
            filtered += 1
            continue
        events.append(event)

    events.sort(key=lambda e: e.timestamp)
    logger.debug("Prepared %d events (%d unparseable, %d filtered)", len(events), dropped, filtered)
    return events


def count_transitions(events: Sequence[VisitEvent]) -> int:
    """Number of consecutive pairs on different domains."""
    return sum(1 for prev, cur in zip(events, events[1:]) if prev.domain != cur.domain)


def _embedding_backend(backend: SimilarityBackend) -> EmbeddingBackend | None:
    if isinstance(backend, EmbeddingBackend):
        return backend
    if isinstance(backend, FallbackBackend) and isinstance(backend.primary, EmbeddingBackend):
        return backend.primary
    return None


def analyze_history(
    records: Iterable[Any],
    config: AnalysisConfig | None = None,
    backend: SimilarityBackend | None = None,
    calibrator: ThresholdCalibrator | None = None,
    progress: ProgressCallback | None = None,
    cancel: CancellationToken | None = None,
    tz: tzinfo | None = None,
) -> AnalysisResult:
    """Run the full analysis over raw history records.

    Args:
        records: ``{url, title, lastVisitTime}`` dicts in any order.
        config: Analysis options; defaults when omitted.
        backend: Similarity backend; the heuristic combiner when omitted.
        calibrator: Threshold calibrator owned by this run; a fresh one from
            config (without persistence) when omitted.
        progress: Called as ``progress(done, total)`` every
            ``config.progress_every`` transitions and once at the end. With an
            embedding backend the warm-up counts too: one unit per event,
            reported after each batch, ahead of the transitions.
        cancel: Checked at the same points as ``progress``.
        tz: Timezone for hour-of-day metrics; local time when omitted.

    Returns:
        The report, the domain graph and the final thresholds.

    Raises:
        AnalysisCancelled: If ``cancel`` was cancelled during the run.
    """
    config = config or AnalysisConfig()
    if cancel is not None:
        cancel.raise_if_cancelled()

    events = prepare_events(records, config)
    estimator = SimilarityEstimator(backend)
    calibrator = calibrator or ThresholdCalibrator.from_config(config)
    classifier = TransitionClassifier(estimator, calibrator, config)
    nodes = build_domain_nodes(events)

    embedder = _embedding_backend(estimator.backend)
    warm_total = len(events) if embedder is not None else 0
    total = warm_total + count_transitions(events)
    reported = -1

    def checkpoint(done: int) -> None:
        nonlocal reported
        if cancel is not None:
            cancel.raise_if_cancelled()
        if progress is not None:
            progress(done, total)
        reported = done

    if embedder is not None and events:
        warmed = embedder.embed_batch(events, config.batch_size, on_batch=checkpoint)
        logger.debug("Embedded %d/%d events", warmed, len(events))

    kinds: list[TransitionKind] = []
    for transition in iter_transitions(events, classifier):
        kinds.append(transition.kind)
        if len(kinds) % config.progress_every == 0:
            checkpoint(warm_total + len(kinds))

    if cancel is not None:
        cancel.raise_if_cancelled()
    if progress is not None and reported != warm_total + len(kinds):
        progress(warm_total + len(kinds), total)

    if classifier.fallback_count:
        logger.warning("%d transitions scored with the basic heuristic", classifier.fallback_count)

    edges = classifier.edges
    segmenter = SessionSegmenter(config)
    sessions = segmenter.focus_sessions(events)
    chains = segmenter.information_chains(events)
    temporal = TemporalAnalyzer(config.session_gap_ms, tz).analyze(events)
    graph_metrics = GraphMetricsCalculator().calculate(nodes, edges)
    insights = InsightsGenerator().generate(
        temporal,
        sessions,
        kinds,
        graph_metrics.information_diversity,
        domain_count=len(nodes),
    )

    report = AnalysisReport(
        event_count=len(events),
        temporal=temporal,
        focus_sessions=sessions,
        chains=chains,
        graph=graph_metrics,
        insights=insights,
        transition_stats=transition_stats(edges),
        backend=estimator.backend_name,
    )
    logger.debug(
        "Analyzed %d events: %d edges, %d sessions, %d chains",
        len(events),
        len(edges),
        len(sessions),
        len(chains),
    )
    return AnalysisResult(
        report=report,
        graph=HistoryGraph(nodes=nodes, links=edges),
        thresholds=calibrator.thresholds,
    )
