"""Classification of attention transitions between consecutive visits.

A transition between two different domains is labeled:

- ``related``: quick move (within the related window) to similar content
- ``topic_shift``: some similarity, or within the topic-shift window
- ``context_switch``: everything else

Transitions between the same ordered domain pair are folded into one
aggregated TransitionEdge.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from attnflow.analytics.calibration import ThresholdCalibrator
from attnflow.analytics.similarity import SimilarityEstimator, basic_similarity
from attnflow.config import AnalysisConfig
from attnflow.models import TransitionEdge, TransitionKind, TransitionStats, VisitEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    """One classified move between two consecutive visits.

    Attributes:
        source: The earlier visit.
        target: The later visit.
        kind: Transition classification.
        similarity: Score used for the classification.
        time_diff_ms: Milliseconds between the visits.
        fallback: True if the basic heuristic replaced a failed backend.
    """

    source: VisitEvent
    target: VisitEvent
    kind: TransitionKind
    similarity: float
    time_diff_ms: int
    fallback: bool = False


def classify_transition(
    time_diff_ms: int,
    similarity: float,
    related_threshold: float,
    topic_shift_threshold: float,
    related_window_ms: int = 300_000,
    topic_shift_window_ms: int = 1_800_000,
) -> TransitionKind:
    """Apply the three-branch similarity and time-window policy."""
    if time_diff_ms <= related_window_ms and similarity >= related_threshold:
        return TransitionKind.RELATED
    if similarity >= topic_shift_threshold or time_diff_ms <= topic_shift_window_ms:
        return TransitionKind.TOPIC_SHIFT
    return TransitionKind.CONTEXT_SWITCH


class TransitionClassifier:
    """Classifies consecutive visit pairs and aggregates them into edges.

    Input must already be sorted by timestamp; this class does not re-sort.
    """

    def __init__(
        self,
        estimator: SimilarityEstimator | None = None,
        calibrator: ThresholdCalibrator | None = None,
        config: AnalysisConfig | None = None,
    ) -> None:
        self.config = config or AnalysisConfig()
        self.estimator = estimator or SimilarityEstimator()
        self.calibrator = calibrator or ThresholdCalibrator.from_config(self.config)
        self._edges: dict[tuple[str, str], TransitionEdge] = {}
        self.fallback_count = 0

    def classify_pair(self, prev: VisitEvent, next_event: VisitEvent) -> Transition:
        """Classify one pair without touching the edge aggregate.

        Backend failures are logged and scored with the basic heuristic and
        the fallback thresholds; they are not fed to the calibrator.
        """
        time_diff = next_event.timestamp - prev.timestamp

        try:
            sim = self.estimator.similarity(prev, next_event)
        except Exception as e:
            logger.warning(
                "Similarity failed for %s -> %s, using basic heuristic: %s",
                prev.domain,
                next_event.domain,
                e,
            )
            self.fallback_count += 1
            sim = basic_similarity(prev, next_event)
            kind = classify_transition(
                time_diff,
                sim,
                self.config.fallback_related_threshold,
                self.config.fallback_topic_shift_threshold,
                self.config.related_time_window_ms,
                self.config.topic_shift_time_window_ms,
            )
            return Transition(prev, next_event, kind, sim, time_diff, fallback=True)

        self.calibrator.observe(sim)
        kind = classify_transition(
            time_diff,
            sim,
            self.calibrator.related_threshold,
            self.calibrator.topic_shift_threshold,
            self.config.related_time_window_ms,
            self.config.topic_shift_time_window_ms,
        )
        return Transition(prev, next_event, kind, sim, time_diff)

    def add(self, transition: Transition) -> TransitionEdge:
        """Fold a transition into its ordered-pair edge.

        The edge keeps the kind of its first transition; weight, last
        timestamp and max similarity are updated on repeats.
        """
        key = (transition.source.domain, transition.target.domain)
        edge = self._edges.get(key)
        if edge is None:
            edge = TransitionEdge(
                source_domain=key[0],
                target_domain=key[1],
                weight=1,
                kind=transition.kind,
                similarity=transition.similarity,
                last_timestamp=transition.target.timestamp,
            )
            self._edges[key] = edge
            return edge

        edge.weight += 1
        edge.last_timestamp = max(edge.last_timestamp, transition.target.timestamp)
        edge.similarity = max(edge.similarity, transition.similarity)
        return edge

    def classify(self, prev: VisitEvent, next_event: VisitEvent) -> TransitionEdge:
        """Classify a pair and return its aggregated edge.

        Raises:
            ValueError: If both visits are on the same domain.
        """
        if prev.domain == next_event.domain:
            raise ValueError(f"Self-transition on {prev.domain} cannot form an edge")
        return self.add(self.classify_pair(prev, next_event))

    @property
    def edges(self) -> list[TransitionEdge]:
        """Aggregated edges in first-seen order."""
        return list(self._edges.values())


def iter_transitions(
    events: Iterable[VisitEvent],
    classifier: TransitionClassifier,
) -> Iterator[Transition]:
    """Classify every consecutive different-domain pair, in order.

    Self-transitions are skipped. Each yielded transition has already been
    folded into ``classifier.edges``.
    """
    prev: VisitEvent | None = None
    for event in events:
        if prev is not None and prev.domain != event.domain:
            transition = classifier.classify_pair(prev, event)
            classifier.add(transition)
            yield transition
        prev = event


def transition_stats(edges: Iterable[TransitionEdge]) -> TransitionStats:
    """Count edges per transition kind."""
    stats = TransitionStats()
    for edge in edges:
        if edge.kind == TransitionKind.RELATED:
            stats.related += 1
        elif edge.kind == TransitionKind.TOPIC_SHIFT:
            stats.topic_shift += 1
        else:
            stats.context_switch += 1
        stats.total += 1
    return stats
