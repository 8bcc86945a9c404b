"""Analytics for browsing attention flow."""

from attnflow.analytics.calibration import (
    CalibrationSettings,
    CalibratorState,
    ThresholdCalibrator,
    maybe_recalibrate,
    observe,
)
from attnflow.analytics.embedding import (
    EmbeddingBackend,
    HashingEncoder,
    build_passage,
)
from attnflow.analytics.features import TextFeatureExtractor, extract_features
from attnflow.analytics.graph import (
    GraphMetricsCalculator,
    build_domain_nodes,
    hub_scores,
    information_diversity,
)
from attnflow.analytics.insights import InsightsGenerator
from attnflow.analytics.sessions import (
    SessionSegmenter,
    segment_focus_sessions,
    segment_information_chains,
)
from attnflow.analytics.shortlist import (
    SimilarVisit,
    find_similar_visits,
    shortlist_candidates,
)
from attnflow.analytics.similarity import (
    FallbackBackend,
    HeuristicBackend,
    SimilarityBackend,
    SimilarityBackendError,
    SimilarityEstimator,
    basic_similarity,
)
from attnflow.analytics.temporal import TemporalAnalyzer, render_hourly_strip
from attnflow.analytics.transitions import (
    Transition,
    TransitionClassifier,
    classify_transition,
    iter_transitions,
    transition_stats,
)

__all__ = [
    # Calibration
    "CalibrationSettings",
    "CalibratorState",
    "ThresholdCalibrator",
    "maybe_recalibrate",
    "observe",
    # Similarity
    "EmbeddingBackend",
    "HashingEncoder",
    "build_passage",
    "TextFeatureExtractor",
    "extract_features",
    "FallbackBackend",
    "HeuristicBackend",
    "SimilarityBackend",
    "SimilarityBackendError",
    "SimilarityEstimator",
    "basic_similarity",
    "SimilarVisit",
    "find_similar_visits",
    "shortlist_candidates",
    # Structure
    "GraphMetricsCalculator",
    "build_domain_nodes",
    "hub_scores",
    "information_diversity",
    "InsightsGenerator",
    "SessionSegmenter",
    "segment_focus_sessions",
    "segment_information_chains",
    "TemporalAnalyzer",
    "render_hourly_strip",
    "Transition",
    "TransitionClassifier",
    "classify_transition",
    "iter_transitions",
    "transition_stats",
]
