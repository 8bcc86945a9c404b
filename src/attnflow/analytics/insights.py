"""Rule-based insights over the analysis outputs.

Pure aggregation: the same inputs always give the same metrics and
recommendations.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from attnflow.models import FocusSession, Insights, TemporalProfile, TransitionKind

HIGH_COMPLEXITY = 0.7
SHORT_FOCUS_MINUTES = 5.0
HIGH_SWITCH_RATE = 0.6
LOW_DIVERSITY = 1.0

SHORT_FOCUS = "Short focus periods. Minimize interruptions."
NO_HIGH_COMPLEXITY = "No high-complexity periods detected. Consider blocking time for deep work."
FREQUENT_SWITCHING = "Frequent topic switches. Batch related browsing together."
NARROW_SOURCES = "Most visits go to a few domains. Broaden your information sources."


def peak_complexity_hours(hourly_complexity: Sequence[float]) -> list[int]:
    return [hour for hour, value in enumerate(hourly_complexity) if value > HIGH_COMPLEXITY]


def average_focus_minutes(sessions: Sequence[FocusSession]) -> float:
    if not sessions:
        return 0.0
    return round(sum(s.duration_minutes for s in sessions) / len(sessions), 2)


def topic_switch_rate(kinds: Iterable[TransitionKind]) -> float:
    """Share of transitions that left the current topic (topic shift or context switch)."""
    total = 0
    switches = 0
    for kind in kinds:
        total += 1
        if kind != TransitionKind.RELATED:
            switches += 1
    return round(switches / total, 3) if total else 0.0


def recommendations(
    avg_focus: float,
    peak_hours: Sequence[int],
    switch_rate: float,
    diversity: float,
    domain_count: int,
) -> list[str]:
    """Fixed rule set, in a stable order."""
    recs: list[str] = []
    if avg_focus < SHORT_FOCUS_MINUTES:
        recs.append(SHORT_FOCUS)
    if not peak_hours:
        recs.append(NO_HIGH_COMPLEXITY)
    if switch_rate > HIGH_SWITCH_RATE:
        recs.append(FREQUENT_SWITCHING)
    if domain_count > 1 and diversity < LOW_DIVERSITY:
        recs.append(NARROW_SOURCES)
    return recs


class InsightsGenerator:
    """Builds Insights from the temporal profile, sessions and transitions."""

    def generate(
        self,
        temporal: TemporalProfile,
        sessions: Sequence[FocusSession],
        transition_kinds: Iterable[TransitionKind],
        diversity: float,
        domain_count: int = 0,
    ) -> Insights:
        peaks = peak_complexity_hours(temporal.hourly_complexity)
        avg_focus = average_focus_minutes(sessions)
        rate = topic_switch_rate(transition_kinds)
        return Insights(
            peak_complexity_hours=peaks,
            avg_focus_minutes=avg_focus,
            topic_switch_rate=rate,
            information_diversity=diversity,
            recommendations=recommendations(avg_focus, peaks, rate, diversity, domain_count),
        )
