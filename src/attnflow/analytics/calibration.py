"""Self-calibrating similarity thresholds.

Keeps a rolling window of observed similarity scores and moves the "related"
cutoff so that roughly a fixed top fraction of transitions qualifies as
related. State is an explicit immutable value; :func:`observe` and
:func:`maybe_recalibrate` return the next state instead of mutating globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Protocol

from attnflow.models import ThresholdState

if TYPE_CHECKING:
    from attnflow.config import AnalysisConfig

logger = logging.getLogger(__name__)

MAX_RELATED = 0.95
MIN_GAP = 0.01
PERSIST_EPSILON = 0.005


class ThresholdPersistence(Protocol):
    """Anything with ``load``/``save`` for ThresholdState."""

    def load(self) -> ThresholdState | None: ...

    def save(self, state: ThresholdState) -> None: ...


@dataclass(frozen=True)
class CalibrationSettings:
    """Rolling window parameters."""

    window: int = 500
    adjust_every: int = 100
    target_top_fraction: float = 0.33

    @classmethod
    def from_config(cls, config: AnalysisConfig) -> CalibrationSettings:
        return cls(
            window=config.calibration_window,
            adjust_every=config.calibration_adjust_every,
            target_top_fraction=config.calibration_target_top_fraction,
        )


@dataclass(frozen=True)
class CalibratorState:
    """Thresholds plus the rolling sample buffer.

    Attributes:
        related: Current "related" similarity threshold.
        topic_shift: Topic-shift floor (not recalibrated).
        samples: Most recent scores, oldest first, at most ``window`` long.
        since_adjust: Observations since the last recalibration check.
    """

    related: float = 0.50
    topic_shift: float = 0.25
    samples: tuple[float, ...] = field(default_factory=tuple)
    since_adjust: int = 0

    @property
    def thresholds(self) -> ThresholdState:
        return ThresholdState(related=self.related, topic_shift=self.topic_shift)


def initial_state(
    related: float = 0.50,
    topic_shift: float = 0.25,
    store: ThresholdPersistence | None = None,
) -> CalibratorState:
    """Start from persisted thresholds when available, else the given defaults."""
    persisted = store.load() if store is not None else None
    if persisted is not None:
        logger.debug("Loaded persisted thresholds: %s", persisted)
        return CalibratorState(related=persisted.related, topic_shift=persisted.topic_shift)
    return CalibratorState(related=related, topic_shift=topic_shift)


def percentile_candidate(samples: tuple[float, ...] | list[float], target_top_fraction: float) -> float | None:
    """Value at the (1 - target_top_fraction) percentile of the samples."""
    if not samples:
        return None
    ordered = sorted(samples)
    idx = int((1 - target_top_fraction) * len(ordered))
    return ordered[min(idx, len(ordered) - 1)]


def maybe_recalibrate(state: CalibratorState, settings: CalibrationSettings) -> CalibratorState:
    """Recompute the related threshold once the window is full.

    The new value is clamped to [topic_shift + 0.01, 0.95]. With fewer
    samples than ``window`` the state is returned unchanged.
    """
    if len(state.samples) < settings.window:
        return state

    candidate = percentile_candidate(state.samples, settings.target_top_fraction)
    if candidate is None:
        return state

    related = min(max(candidate, state.topic_shift + MIN_GAP), MAX_RELATED)
    return replace(state, related=related)


def observe(state: CalibratorState, score: float, settings: CalibrationSettings) -> CalibratorState:
    """Record one similarity score and recalibrate every ``adjust_every`` scores."""
    samples = (state.samples + (float(score),))[-settings.window:]
    since_adjust = state.since_adjust + 1
    next_state = replace(state, samples=samples, since_adjust=since_adjust)

    if since_adjust >= settings.adjust_every:
        next_state = maybe_recalibrate(replace(next_state, since_adjust=0), settings)
    return next_state


class ThresholdCalibrator:
    """Owns a CalibratorState for one pipeline run and persists changes.

    Writes go to the store only when the related threshold moves by more
    than a small epsilon.
    """

    def __init__(
        self,
        settings: CalibrationSettings | None = None,
        state: CalibratorState | None = None,
        store: ThresholdPersistence | None = None,
    ) -> None:
        self.settings = settings or CalibrationSettings()
        self.store = store
        self.state = state if state is not None else initial_state(store=store)

    @classmethod
    def from_config(cls, config: AnalysisConfig, store: ThresholdPersistence | None = None) -> ThresholdCalibrator:
        state = initial_state(
            related=config.related_threshold,
            topic_shift=config.topic_shift_threshold,
            store=store,
        )
        return cls(CalibrationSettings.from_config(config), state, store)

    @property
    def related_threshold(self) -> float:
        return self.state.related

    @property
    def topic_shift_threshold(self) -> float:
        return self.state.topic_shift

    @property
    def thresholds(self) -> ThresholdState:
        return self.state.thresholds

    def observe(self, score: float) -> CalibratorState:
        before = self.state.related
        self.state = observe(self.state, score, self.settings)

        if abs(self.state.related - before) > PERSIST_EPSILON:
            logger.info("Recalibrated related threshold %.3f -> %.3f", before, self.state.related)
            if self.store is not None:
                self.store.save(self.state.thresholds)
        return self.state
