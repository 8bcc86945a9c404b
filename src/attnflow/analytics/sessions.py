"""Segmentation of the visit stream into focus sessions and information chains.

Both passes walk the chronologically sorted events once and share the same
gap rule, but use different continuity predicates:

- focus sessions continue on the same domain or on title/domain overlap,
  and keep singleton sessions, so they partition the input exactly;
- information chains need overlap even on the same domain, and drop runs
  of a single visit.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from attnflow.analytics import complexity
from attnflow.analytics.similarity import text_jaccard, title_domain_text
from attnflow.config import AnalysisConfig
from attnflow.models import FocusSession, InformationChain, VisitEvent

Continuity = Callable[[VisitEvent, VisitEvent], bool]

DEFAULT_GAP_MS = 5 * 60 * 1000


def content_overlap(prev: VisitEvent, cur: VisitEvent) -> float:
    """Word Jaccard of the title and domain of two visits."""
    return text_jaccard(title_domain_text(prev), title_domain_text(cur))


def split_runs(events: Sequence[VisitEvent], continues: Continuity) -> list[list[VisitEvent]]:
    """Split events into maximal runs where every consecutive pair continues.

    Every event lands in exactly one run, in input order.
    """
    runs: list[list[VisitEvent]] = []
    current: list[VisitEvent] = []
    for event in events:
        if current and not continues(current[-1], event):
            runs.append(current)
            current = []
        current.append(event)
    if current:
        runs.append(current)
    return runs


def _duration_minutes(run: Sequence[VisitEvent]) -> float:
    return (run[-1].timestamp - run[0].timestamp) / 60000


def _avg_complexity(run: Sequence[VisitEvent]) -> float:
    return sum(complexity.score(e.domain, e.title) for e in run) / len(run)


def summarize_session(run: Sequence[VisitEvent]) -> FocusSession:
    return FocusSession(
        events=list(run),
        duration_minutes=round(_duration_minutes(run), 2),
        page_count=len(run),
        avg_complexity=round(_avg_complexity(run), 2),
    )


def summarize_chain(run: Sequence[VisitEvent]) -> InformationChain:
    """Summarize a chain; a zero-length chain is reported as one minute."""
    duration = _duration_minutes(run) or 1.0
    return InformationChain(
        events=list(run),
        duration_minutes=round(duration, 2),
        page_count=len(run),
        avg_complexity=round(_avg_complexity(run), 2),
        scent_strength=round(len(run) / duration, 2),
    )


def segment_focus_sessions(
    events: Sequence[VisitEvent],
    gap_ms: int = DEFAULT_GAP_MS,
    jaccard_min: float = 0.4,
) -> list[FocusSession]:
    """Partition events into focus sessions (singletons included).

    Args:
        events: Visits sorted ascending by timestamp.
        gap_ms: Maximum gap between consecutive visits of a session.
        jaccard_min: Overlap that must be exceeded across different domains.

    Returns:
        Sessions in chronological order; their page counts sum to len(events).
    """

    def continues(prev: VisitEvent, cur: VisitEvent) -> bool:
        if cur.timestamp - prev.timestamp > gap_ms:
            return False
        return prev.domain == cur.domain or content_overlap(prev, cur) > jaccard_min

    return [summarize_session(run) for run in split_runs(events, continues)]


def segment_information_chains(
    events: Sequence[VisitEvent],
    gap_ms: int = DEFAULT_GAP_MS,
    jaccard_min: float = 0.3,
) -> list[InformationChain]:
    """Find topically coherent foraging chains of two or more visits.

    Args:
        events: Visits sorted ascending by timestamp.
        gap_ms: Maximum gap between consecutive visits of a chain.
        jaccard_min: Overlap that must be exceeded, even on the same domain.

    Returns:
        Chains in chronological order; singleton runs are discarded.
    """

    def continues(prev: VisitEvent, cur: VisitEvent) -> bool:
        return cur.timestamp - prev.timestamp <= gap_ms and content_overlap(prev, cur) > jaccard_min

    return [summarize_chain(run) for run in split_runs(events, continues) if len(run) > 1]


class SessionSegmenter:
    """Both segmentation passes with thresholds taken from config."""

    def __init__(self, config: AnalysisConfig | None = None) -> None:
        self.config = config or AnalysisConfig()

    def focus_sessions(self, events: Sequence[VisitEvent]) -> list[FocusSession]:
        return segment_focus_sessions(events, self.config.session_gap_ms, self.config.session_jaccard_min)

    def information_chains(self, events: Sequence[VisitEvent]) -> list[InformationChain]:
        return segment_information_chains(events, self.config.session_gap_ms, self.config.chain_jaccard_min)
