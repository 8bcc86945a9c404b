"""Data models for attention-flow analysis.

This module defines the canonical records that flow through the analysis
pipeline: raw browser visits, derived feature vectors, transition edges
between domains, focus sessions, information chains and the final report
handed to the visualization layer.

Python attributes are snake_case. Every model serializes with camelCase
aliases (``model_dump(by_alias=True)``) so the renderer receives the field
names it expects.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import urlparse

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_CAMEL = ConfigDict(
    alias_generator=AliasGenerator(serialization_alias=to_camel),
    populate_by_name=True,
)
_FROZEN_CAMEL = ConfigDict(
    alias_generator=AliasGenerator(serialization_alias=to_camel),
    populate_by_name=True,
    frozen=True,
)


class TransitionKind(str, Enum):
    """How attention moved between two consecutive visits."""

    RELATED = "related"
    TOPIC_SHIFT = "topic_shift"
    CONTEXT_SWITCH = "context_switch"


class VisitEvent(BaseModel):
    """One browser history visit. Immutable once created."""

    model_config = _FROZEN_CAMEL

    url: str
    domain: str
    title: str = ""
    timestamp: int  # milliseconds since epoch

    @classmethod
    def from_url(cls, url: str, timestamp: int, title: str | None = None) -> VisitEvent:
        """Build an event, deriving the domain from the URL."""
        return cls(url=url, domain=extract_domain(url), title=title or "", timestamp=timestamp)

    def visited_at(self, tz: Any = None) -> datetime:
        """Return the visit time as a datetime (local time when tz is None)."""
        return datetime.fromtimestamp(self.timestamp / 1000, tz=tz)


class FeatureVector(BaseModel):
    """Text features derived from a VisitEvent."""

    model_config = _FROZEN_CAMEL

    tokens: frozenset[str] = Field(default_factory=frozenset)
    semantic_groups: dict[str, float] = Field(default_factory=dict)
    domain: str = ""


class TransitionEdge(BaseModel):
    """Directed, aggregated relation between two distinct domains.

    Edges are keyed by the ordered (source, target) pair; a move in the
    opposite direction is a different edge.
    """

    model_config = _CAMEL

    source_domain: str
    target_domain: str
    weight: int = 1
    kind: TransitionKind
    similarity: float = 0.0
    last_timestamp: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return (self.source_domain, self.target_domain)


class FocusSession(BaseModel):
    """A maximal run of visits judged to be continuous attention."""

    model_config = _CAMEL

    events: list[VisitEvent] = Field(default_factory=list)
    duration_minutes: float = 0.0
    page_count: int = 0
    avg_complexity: float = 0.0


class InformationChain(FocusSession):
    """A topically coherent foraging run (always at least two visits)."""

    scent_strength: float = 0.0  # pages per minute

    @property
    def length(self) -> int:
        return self.page_count


class ThresholdState(BaseModel):
    """Snapshot of the similarity thresholds."""

    model_config = _CAMEL

    related: float = 0.50
    topic_shift: float = 0.25


class DomainNode(BaseModel):
    """One graph node per visited domain."""

    model_config = _CAMEL

    domain: str
    title: str = ""
    visit_count: int = 0
    last_visit: int = 0
    urls: list[str] = Field(default_factory=list)


class TransitionStats(BaseModel):
    """Edge counts per transition kind."""

    model_config = _CAMEL

    related: int = 0
    topic_shift: int = 0
    context_switch: int = 0
    total: int = 0


class TemporalProfile(BaseModel):
    """When the user is active and how long they stay."""

    model_config = _CAMEL

    hourly_activity: list[int] = Field(default_factory=lambda: [0] * 24)
    peak_hours: list[int] = Field(default_factory=list)
    avg_session_minutes: float = 0.0
    rhythm_period_minutes: int | None = None
    hourly_complexity: list[float] = Field(default_factory=lambda: [0.0] * 24)


class GraphMetrics(BaseModel):
    """Hub domains and information diversity of the domain graph."""

    model_config = _CAMEL

    hubs: list[tuple[str, int]] = Field(default_factory=list)
    information_diversity: float = 0.0


class Insights(BaseModel):
    """Labeled metrics and rule-based recommendations."""

    model_config = _CAMEL

    peak_complexity_hours: list[int] = Field(default_factory=list)
    avg_focus_minutes: float = 0.0
    topic_switch_rate: float = 0.0
    information_diversity: float = 0.0
    recommendations: list[str] = Field(default_factory=list)


class AnalysisReport(BaseModel):
    """Everything derived from one run over a visit log."""

    model_config = _CAMEL

    event_count: int = 0
    temporal: TemporalProfile = Field(default_factory=TemporalProfile)
    focus_sessions: list[FocusSession] = Field(default_factory=list)
    chains: list[InformationChain] = Field(default_factory=list)
    graph: GraphMetrics = Field(default_factory=GraphMetrics)
    insights: Insights = Field(default_factory=Insights)
    transition_stats: TransitionStats = Field(default_factory=TransitionStats)
    backend: str = "heuristic"


class HistoryGraph(BaseModel):
    """Nodes and links consumed by the renderer."""

    model_config = _CAMEL

    nodes: list[DomainNode] = Field(default_factory=list)
    links: list[TransitionEdge] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Return value of :func:`attnflow.pipeline.analyze_history`."""

    model_config = _CAMEL

    report: AnalysisReport = Field(default_factory=AnalysisReport)
    graph: HistoryGraph = Field(default_factory=HistoryGraph)
    thresholds: ThresholdState = Field(default_factory=ThresholdState)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def extract_domain(url: str) -> str:
    """Extract the normalized domain from a URL.

    The hostname is lowercased and a single leading ``www.`` is removed.
    URLs that do not parse to a hostname fall back to the raw string.

    Examples:
        >>> extract_domain("https://www.GitHub.com/user/repo")
        'github.com'
        >>> extract_domain("not a url")
        'not a url'
    """
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return url
    if not hostname:
        return url
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def is_filtered_domain(domain: str, filtered_domains: list[str]) -> bool:
    """Check whether a domain equals, or is a subdomain of, a filtered entry."""
    for blocked in filtered_domains:
        b = blocked.strip().lower()
        if b.startswith("www."):
            b = b[4:]
        if not b:
            continue
        if domain == b or domain.endswith(f".{b}"):
            return True
    return False


def parse_visit(raw: dict) -> VisitEvent | None:
    """Normalize one raw history record into a VisitEvent.

    Accepts ``{url, title, lastVisitTime}`` records. Missing titles become
    empty strings and malformed URLs keep the raw string as their domain.
    Records with no URL or no usable timestamp return None.
    """
    url = str(raw.get("url") or "").strip()
    if not url:
        return None

    ts = raw.get("lastVisitTime", raw.get("timestamp"))
    try:
        timestamp = int(float(ts))
        # Must be representable as a datetime for the hour-of-day metrics
        datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None

    title = raw.get("title")
    return VisitEvent.from_url(url, timestamp, str(title).strip() if title else "")
