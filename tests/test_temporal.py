"""Tests for temporal rhythm analysis."""

from datetime import timezone

import pytest

from attnflow.analytics.temporal import (
    INTENSITY_CHARS,
    TemporalAnalyzer,
    autocorrelation,
    average_session_minutes,
    calculate_intensity,
    hour_of,
    hourly_activity,
    hourly_complexity,
    minute_series,
    peak_hours,
    render_hourly_strip,
    rhythm_period,
    session_durations_ms,
)

UTC = timezone.utc


class TestHourlyActivity:
    def test_counts_by_hour(self, visit):
        events = [
            visit("https://a.com", 5),
            visit("https://a.com", 30),
            visit("https://a.com", 9 * 60 + 1),
        ]
        hourly = hourly_activity(events, UTC)
        assert hourly[0] == 2
        assert hourly[9] == 1
        assert sum(hourly) == 3

    def test_hour_of(self, visit):
        assert hour_of(visit("https://a.com", 23 * 60 + 59).timestamp, UTC) == 23


class TestPeakHours:
    def test_sparse_activity(self):
        """With mostly idle hours every active hour is a peak."""
        hourly = [0] * 24
        hourly[9] = 5
        hourly[10] = 3
        hourly[14] = 1
        assert peak_hours(hourly) == [9, 10, 14]

    def test_top_quartile(self):
        hourly = list(range(1, 25))
        assert peak_hours(hourly) == [18, 19, 20, 21, 22, 23]

    def test_idle(self):
        assert peak_hours([0] * 24) == []


class TestSessions:
    def test_raw_gap_sessions(self, visit):
        events = [
            visit("https://a.com", 0),
            visit("https://b.com", 2),
            visit("https://c.com", 4),
            visit("https://d.com", 20),
            visit("https://e.com", 21),
        ]
        assert session_durations_ms(events) == [4 * 60_000, 60_000]
        assert average_session_minutes(events) == 2.5

    def test_empty(self):
        assert session_durations_ms([]) == []
        assert average_session_minutes([]) == 0.0


class TestRhythm:
    """Tests for the autocorrelation periodicity estimate."""

    def test_minute_series(self):
        series = minute_series([60] + [0] * 23)
        assert len(series) == 24 * 60
        assert series[:60] == [1.0] * 60
        assert series[60] == 0.0

    def test_two_hour_cycle(self):
        hourly = [10 if h % 2 == 0 else 0 for h in range(24)]
        assert rhythm_period(minute_series(hourly)) == 120

    def test_constant_series_is_degenerate(self):
        assert rhythm_period(minute_series([3] * 24)) is None
        assert rhythm_period(minute_series([0] * 24)) is None

    def test_short_series_is_degenerate(self):
        assert autocorrelation([1.0, 2.0, 3.0], 90) is None
        assert rhythm_period([1.0, 0.0] * 50) is None

    def test_autocorrelation_perfect_period(self):
        series = [1.0, 0.0] * 10
        assert autocorrelation(series, 2) > autocorrelation(series, 1)


class TestHourlyComplexity:
    def test_mean_per_hour(self, visit):
        events = [
            visit("https://github.com", 0),
            visit("https://arxiv.org/abs/1", 10),
        ]
        values = hourly_complexity(events, UTC)
        assert values[0] == pytest.approx(0.8)
        assert values[1:] == [0.0] * 23


class TestTemporalAnalyzer:
    def test_profile(self, visit):
        events = [
            visit("https://github.com", 0),
            visit("https://github.com", 3),
            visit("https://arxiv.org", 60),
        ]
        profile = TemporalAnalyzer(tz=UTC).analyze(events)

        assert profile.hourly_activity[0] == 2
        assert profile.hourly_activity[1] == 1
        assert profile.peak_hours == [0, 1]
        assert profile.avg_session_minutes == 1.5
        assert profile.hourly_complexity[1] == pytest.approx(0.9)

    def test_empty(self):
        profile = TemporalAnalyzer(tz=UTC).analyze([])
        assert profile.hourly_activity == [0] * 24
        assert profile.peak_hours == []
        assert profile.avg_session_minutes == 0.0
        assert profile.rhythm_period_minutes is None


class TestCalculateIntensity:
    """Tests for calculate_intensity function."""

    def test_zero_value(self):
        assert calculate_intensity(0, 10) == 0

    def test_quartiles(self):
        assert calculate_intensity(2, 10) == 1
        assert calculate_intensity(5, 10) == 2
        assert calculate_intensity(7, 10) == 3
        assert calculate_intensity(10, 10) == 4

    def test_fractional_values(self):
        assert calculate_intensity(0.3, 0.9) == 2


class TestRenderHourlyStrip:
    def test_cells(self):
        values = [4, 1] + [0] * 22
        strip = render_hourly_strip(values, legend=False)
        assert strip == "  " + INTENSITY_CHARS[4] + INTENSITY_CHARS[1] + " " * 22

    def test_legend(self):
        strip = render_hourly_strip([0.5] * 24)
        lines = strip.splitlines()
        assert len(lines) == 3
        assert lines[0] == "  " + INTENSITY_CHARS[4] * 24
        assert "Less" in lines[2] and "More" in lines[2]
