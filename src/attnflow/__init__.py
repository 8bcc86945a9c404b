"""
attnflow - Attention Flow

Browser history attention analysis - classify how attention moves between
sites, find focus sessions and information chains, and summarize daily
rhythms and source diversity.
"""

__version__ = "0.1.0"

from attnflow.models import (
    AnalysisReport,
    AnalysisResult,
    DomainNode,
    FeatureVector,
    FocusSession,
    HistoryGraph,
    InformationChain,
    ThresholdState,
    TransitionEdge,
    TransitionKind,
    VisitEvent,
    parse_visit,
)
from attnflow.config import AnalysisConfig, get_config, load_config
from attnflow.pipeline import (
    AnalysisCancelled,
    CancellationToken,
    analyze_history,
    prepare_events,
)

__all__ = [
    "__version__",
    # Models
    "VisitEvent",
    "FeatureVector",
    "TransitionKind",
    "TransitionEdge",
    "FocusSession",
    "InformationChain",
    "ThresholdState",
    "DomainNode",
    "AnalysisReport",
    "HistoryGraph",
    "AnalysisResult",
    "parse_visit",
    # Config
    "AnalysisConfig",
    "get_config",
    "load_config",
    # Pipeline
    "analyze_history",
    "prepare_events",
    "CancellationToken",
    "AnalysisCancelled",
]
