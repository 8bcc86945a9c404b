"""Tests for the domain graph and its metrics."""

from attnflow.analytics.graph import (
    GraphMetricsCalculator,
    build_domain_nodes,
    hub_scores,
    information_diversity,
    top_hubs,
)
from attnflow.models import TransitionEdge, TransitionKind


def edge(source, target):
    return TransitionEdge(source_domain=source, target_domain=target, kind=TransitionKind.RELATED)


class TestBuildDomainNodes:
    """Tests for build_domain_nodes."""

    def test_aggregates_per_domain(self, visit):
        events = [
            visit("https://github.com/b", 0),
            visit("https://stackoverflow.com/q/1", 1, title="Question"),
            visit("https://github.com/a", 2, title="Repo A"),
            visit("https://github.com/b", 3, title="Repo B"),
        ]
        nodes = build_domain_nodes(events)

        assert [n.domain for n in nodes] == ["github.com", "stackoverflow.com"]
        github = nodes[0]
        assert github.visit_count == 3
        assert github.title == "Repo A"
        assert github.urls == ["https://github.com/a", "https://github.com/b"]
        assert github.last_visit == events[3].timestamp

    def test_empty(self):
        assert build_domain_nodes([]) == []


class TestHubScores:
    def test_counts_two_hop_paths(self):
        edges = [edge("a", "mid"), edge("b", "mid"), edge("mid", "c")]
        assert hub_scores(edges) == {"mid": 2}

    def test_round_trip_counts(self):
        """a -> mid -> a is an ordered pair like any other."""
        edges = [edge("a", "mid"), edge("mid", "a")]
        assert hub_scores(edges) == {"mid": 1, "a": 1}

    def test_mixed(self):
        edges = [edge("a", "m"), edge("b", "m"), edge("m", "c"), edge("m", "a")]
        # (a, c), (a, a), (b, c), (b, a)
        assert hub_scores(edges) == {"m": 4, "a": 1}


class TestTopHubs:
    def test_ordering_and_limit(self):
        scores = {"z": 3, "a": 3, "m": 5, "b": 1, "c": 1, "d": 1}
        assert top_hubs(scores) == [("m", 5), ("a", 3), ("z", 3), ("b", 1), ("c", 1)]

    def test_custom_limit(self):
        assert top_hubs({"a": 1, "b": 2}, limit=1) == [("b", 2)]


class TestInformationDiversity:
    def test_uniform(self):
        assert information_diversity([1, 1, 1, 1]) == 2.0

    def test_single_domain(self):
        assert information_diversity([7]) == 0.0

    def test_skewed(self):
        assert information_diversity([2, 1, 1]) == 1.5

    def test_rounded(self):
        assert information_diversity([1, 1, 1]) == 1.585

    def test_zero_counts_ignored(self):
        assert information_diversity([0, 3, 3]) == 1.0


def test_graph_metrics_calculator(visit):
    events = [
        visit("https://a.com", 0),
        visit("https://b.com", 1),
        visit("https://c.com", 2),
    ]
    nodes = build_domain_nodes(events)
    metrics = GraphMetricsCalculator().calculate(nodes, [edge("a.com", "b.com"), edge("b.com", "c.com")])

    assert metrics.hubs == [("b.com", 1)]
    assert metrics.information_diversity == 1.585
