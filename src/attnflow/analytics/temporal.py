"""Temporal rhythms of browsing activity.

Hour-of-day histograms, peak hours, raw-gap session lengths and an
ultradian periodicity estimate, plus a compact block-character rendering of
any 24-hour series for terminal output.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, tzinfo

from attnflow.analytics import complexity
from attnflow.models import TemporalProfile, VisitEvent

logger = logging.getLogger(__name__)

HOURS = 24
MINUTES_PER_HOUR = 60
PEAK_PERCENTILE = 0.75
DEFAULT_GAP_MS = 5 * 60 * 1000
# Candidate ultradian periods in minutes
RHYTHM_LAGS = tuple(range(90, 121, 5))

# Block characters for intensity levels (0-4)
INTENSITY_CHARS = [" ", "░", "▒", "▓", "█"]


def hour_of(timestamp_ms: int, tz: tzinfo | None = None) -> int:
    """Hour of day of a millisecond timestamp (local time when tz is None)."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=tz).hour


def hourly_activity(events: Sequence[VisitEvent], tz: tzinfo | None = None) -> list[int]:
    """Visit counts for each hour of the day."""
    counts = [0] * HOURS
    for event in events:
        counts[hour_of(event.timestamp, tz)] += 1
    return counts


def peak_hours(hourly: Sequence[int]) -> list[int]:
    """Hours whose count is at least the 75th-percentile count and above zero."""
    if not hourly:
        return []
    ordered = sorted(hourly)
    threshold = ordered[min(int(PEAK_PERCENTILE * len(ordered)), len(ordered) - 1)]
    return [hour for hour, count in enumerate(hourly) if count >= threshold and count > 0]


def session_durations_ms(events: Sequence[VisitEvent], gap_ms: int = DEFAULT_GAP_MS) -> list[int]:
    """Durations of raw-gap sessions: a gap above ``gap_ms`` starts a new one."""
    durations: list[int] = []
    start: int | None = None
    last: int | None = None
    for event in events:
        if last is None or event.timestamp - last > gap_ms:
            if start is not None and last is not None:
                durations.append(last - start)
            start = event.timestamp
        last = event.timestamp
    if start is not None and last is not None:
        durations.append(last - start)
    return durations


def average_session_minutes(events: Sequence[VisitEvent], gap_ms: int = DEFAULT_GAP_MS) -> float:
    durations = session_durations_ms(events, gap_ms)
    if not durations:
        return 0.0
    return round(sum(durations) / len(durations) / 60000, 2)


def minute_series(hourly: Sequence[int]) -> list[float]:
    """Spread each hourly count evenly across its 60 minutes."""
    series: list[float] = []
    for count in hourly:
        series.extend([count / MINUTES_PER_HOUR] * MINUTES_PER_HOUR)
    return series


def autocorrelation(series: Sequence[float], lag: int) -> float | None:
    """Normalized autocorrelation at a lag.

    Returns:
        The coefficient, or None if the series is shorter than twice the lag
        or has no variance.
    """
    n = len(series)
    if lag <= 0 or n < 2 * lag:
        return None
    mean = sum(series) / n
    variance = sum((x - mean) ** 2 for x in series)
    if variance == 0:
        return None
    covariance = sum((series[i] - mean) * (series[i + lag] - mean) for i in range(n - lag))
    return covariance / variance


def rhythm_period(series: Sequence[float], lags: Sequence[int] = RHYTHM_LAGS) -> int | None:
    """Lag (in minutes) with the strongest autocorrelation, or None if degenerate."""
    best_lag: int | None = None
    best_value: float | None = None
    for lag in lags:
        value = autocorrelation(series, lag)
        if value is None:
            continue
        if best_value is None or value > best_value:
            best_lag, best_value = lag, value
    return best_lag


def hourly_complexity(events: Sequence[VisitEvent], tz: tzinfo | None = None) -> list[float]:
    """Mean content-depth score of the visits in each hour (0.0 for idle hours)."""
    totals = [0.0] * HOURS
    counts = [0] * HOURS
    for event in events:
        hour = hour_of(event.timestamp, tz)
        totals[hour] += complexity.score(event.domain, event.title)
        counts[hour] += 1
    return [round(totals[h] / counts[h], 3) if counts[h] else 0.0 for h in range(HOURS)]


class TemporalAnalyzer:
    """Builds a TemporalProfile from chronologically sorted events."""

    def __init__(self, gap_ms: int = DEFAULT_GAP_MS, tz: tzinfo | None = None) -> None:
        self.gap_ms = gap_ms
        self.tz = tz

    def analyze(self, events: Sequence[VisitEvent]) -> TemporalProfile:
        hourly = hourly_activity(events, self.tz)
        period = rhythm_period(minute_series(hourly))
        logger.debug("Temporal profile over %d events, rhythm=%s", len(events), period)
        return TemporalProfile(
            hourly_activity=hourly,
            peak_hours=peak_hours(hourly),
            avg_session_minutes=average_session_minutes(events, self.gap_ms),
            rhythm_period_minutes=period,
            hourly_complexity=hourly_complexity(events, self.tz),
        )


def calculate_intensity(value: float, max_value: float) -> int:
    """Calculate intensity level (0-4) based on value and max.

    Uses quartile-based distribution:
    - 0: No activity
    - 1: up to 25% of max
    - 2: up to 50% of max
    - 3: up to 75% of max
    - 4: above 75% of max
    """
    if value <= 0:
        return 0
    if max_value <= 0:
        return 4

    ratio = value / max_value
    if ratio <= 0.25:
        return 1
    elif ratio <= 0.50:
        return 2
    elif ratio <= 0.75:
        return 3
    else:
        return 4


def render_hourly_strip(values: Sequence[float], legend: bool = True) -> str:
    """Render a 24-hour series as one row of block characters.

    Args:
        values: One value per hour.
        legend: Whether to include hour ticks and a legend.

    Returns:
        Rendered strip string.
    """
    max_value = max(values) if values else 0
    cells = "".join(INTENSITY_CHARS[calculate_intensity(v, max_value)] for v in values)
    lines = [f"  {cells}"]

    if legend:
        ticks = "".join(str(h // 10) if h % 6 == 0 else " " for h in range(len(values)))
        lines.append(f"  {ticks}")
        legend_chars = " ".join(INTENSITY_CHARS[1:])
        lines.append(f"  Less {legend_chars} More")

    return "\n".join(lines)
