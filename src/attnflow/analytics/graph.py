"""Domain graph construction and structural metrics."""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Iterable, Sequence

from attnflow.models import DomainNode, GraphMetrics, TransitionEdge, VisitEvent

logger = logging.getLogger(__name__)

TOP_HUBS = 5


def build_domain_nodes(events: Iterable[VisitEvent]) -> list[DomainNode]:
    """Aggregate visits into one node per domain, in first-seen order.

    The node title is the first non-empty title seen for the domain and
    ``urls`` lists the distinct URLs, sorted.
    """
    nodes: dict[str, DomainNode] = {}
    urls: dict[str, set[str]] = defaultdict(set)

    for event in events:
        node = nodes.get(event.domain)
        if node is None:
            node = DomainNode(domain=event.domain, title=event.title)
            nodes[event.domain] = node
        elif not node.title and event.title:
            node.title = event.title
        node.visit_count += 1
        node.last_visit = max(node.last_visit, event.timestamp)
        urls[event.domain].add(event.url)

    for domain, node in nodes.items():
        node.urls = sorted(urls[domain])
    return list(nodes.values())


def hub_scores(edges: Iterable[TransitionEdge]) -> dict[str, int]:
    """Count two-hop paths a -> mid -> b through each domain.

    Every ordered (source, target) pair counts, round trips a -> mid -> a
    included.
    """
    incoming: dict[str, set[str]] = defaultdict(set)
    outgoing: dict[str, set[str]] = defaultdict(set)
    for edge in edges:
        outgoing[edge.source_domain].add(edge.target_domain)
        incoming[edge.target_domain].add(edge.source_domain)

    scores: dict[str, int] = {}
    for mid, sources in incoming.items():
        targets = outgoing.get(mid)
        if not targets:
            continue
        scores[mid] = len(sources) * len(targets)
    return scores


def top_hubs(scores: dict[str, int], limit: int = TOP_HUBS) -> list[tuple[str, int]]:
    """Highest hub scores first; ties broken alphabetically."""
    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    return ranked[:limit]


def information_diversity(counts: Iterable[int]) -> float:
    """Base-2 Shannon entropy of a visit-count distribution.

    >>> information_diversity([1, 1])
    1.0
    >>> information_diversity([])
    0.0
    """
    values = [c for c in counts if c > 0]
    total = sum(values)
    if total == 0:
        return 0.0
    entropy = -sum((c / total) * math.log2(c / total) for c in values)
    return round(abs(entropy), 3)


class GraphMetricsCalculator:
    """Hub scores and information diversity for a domain graph."""

    def __init__(self, top_n: int = TOP_HUBS) -> None:
        self.top_n = top_n

    def calculate(self, nodes: Sequence[DomainNode], edges: Sequence[TransitionEdge]) -> GraphMetrics:
        hubs = top_hubs(hub_scores(edges), self.top_n)
        diversity = information_diversity(node.visit_count for node in nodes)
        logger.debug("Graph over %d nodes, %d edges: diversity=%.3f", len(nodes), len(edges), diversity)
        return GraphMetrics(hubs=hubs, information_diversity=diversity)
