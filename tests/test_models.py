"""Tests for data models and record normalization."""

import pytest
from pydantic import ValidationError

from attnflow.models import (
    AnalysisReport,
    DomainNode,
    InformationChain,
    TemporalProfile,
    ThresholdState,
    TransitionEdge,
    TransitionKind,
    VisitEvent,
    extract_domain,
    is_filtered_domain,
    parse_visit,
)


class TestExtractDomain:
    """Tests for extract_domain."""

    def test_strips_www(self):
        """A leading www. is removed."""
        assert extract_domain("https://www.github.com/user/repo") == "github.com"

    def test_lowercases_hostname(self):
        """Hostnames are lowercased."""
        assert extract_domain("https://Docs.Python.ORG/3/") == "docs.python.org"

    def test_keeps_subdomains(self):
        """Subdomains other than www are kept."""
        assert extract_domain("https://en.wikipedia.org/wiki/Attention") == "en.wikipedia.org"

    def test_ignores_port_and_credentials(self):
        """Port and userinfo are not part of the domain."""
        assert extract_domain("http://user:pw@localhost:8080/x") == "localhost"

    def test_malformed_url_falls_back_to_raw(self):
        """Strings without a hostname come back unchanged."""
        assert extract_domain("not a url") == "not a url"
        assert extract_domain("about:blank") == "about:blank"


class TestIsFilteredDomain:
    """Tests for is_filtered_domain."""

    def test_exact_match(self):
        assert is_filtered_domain("google.com", ["google.com"])

    def test_subdomain_match(self):
        """Subdomains of a filtered entry are filtered too."""
        assert is_filtered_domain("news.google.com", ["google.com"])

    def test_suffix_without_dot_is_not_a_match(self):
        """notgoogle.com is not a subdomain of google.com."""
        assert not is_filtered_domain("notgoogle.com", ["google.com"])

    def test_entries_are_normalized(self):
        """Entries may be given with www. and in any case."""
        assert is_filtered_domain("bing.com", ["WWW.Bing.com "])

    def test_empty_list(self):
        assert not is_filtered_domain("github.com", [])


class TestParseVisit:
    """Tests for parse_visit."""

    def test_full_record(self):
        """A complete record becomes a VisitEvent."""
        event = parse_visit(
            {"url": "https://github.com/a/b", "title": " Repo ", "lastVisitTime": 1700000000000}
        )
        assert event == VisitEvent(
            url="https://github.com/a/b",
            domain="github.com",
            title="Repo",
            timestamp=1700000000000,
        )

    def test_missing_title_defaults_to_empty(self):
        event = parse_visit({"url": "https://github.com", "lastVisitTime": 1})
        assert event is not None
        assert event.title == ""

    def test_none_title_defaults_to_empty(self):
        event = parse_visit({"url": "https://github.com", "title": None, "lastVisitTime": 1})
        assert event is not None
        assert event.title == ""

    def test_float_timestamp_is_truncated(self):
        """Browser exports use float milliseconds."""
        event = parse_visit({"url": "https://github.com", "lastVisitTime": 1700000000123.75})
        assert event is not None
        assert event.timestamp == 1700000000123

    def test_timestamp_alias(self):
        """A plain ``timestamp`` field is accepted when lastVisitTime is absent."""
        event = parse_visit({"url": "https://github.com", "timestamp": "42"})
        assert event is not None
        assert event.timestamp == 42

    def test_invalid_timestamp_is_dropped(self):
        assert parse_visit({"url": "https://github.com", "lastVisitTime": "yesterday"}) is None
        assert parse_visit({"url": "https://github.com"}) is None

    def test_out_of_range_timestamp_is_dropped(self):
        """Timestamps a datetime cannot represent are rejected, not deferred."""
        assert parse_visit({"url": "https://github.com", "lastVisitTime": 10**18}) is None
        assert parse_visit({"url": "https://github.com", "lastVisitTime": -(10**18)}) is None
        assert parse_visit({"url": "https://github.com", "lastVisitTime": "inf"}) is None

    def test_missing_url_is_dropped(self):
        assert parse_visit({"title": "x", "lastVisitTime": 1}) is None
        assert parse_visit({"url": "   ", "lastVisitTime": 1}) is None

    def test_malformed_url_keeps_raw_domain(self):
        event = parse_visit({"url": "chrome settings", "lastVisitTime": 1})
        assert event is not None
        assert event.domain == "chrome settings"


class TestVisitEvent:
    """Tests for the VisitEvent model."""

    def test_frozen(self):
        """Visits are immutable."""
        event = VisitEvent.from_url("https://github.com", 0)
        with pytest.raises(ValidationError):
            event.title = "changed"

    def test_hashable(self):
        """Equal visits hash equally, so they can key caches."""
        a = VisitEvent.from_url("https://github.com", 0, "x")
        b = VisitEvent.from_url("https://github.com", 0, "x")
        assert {a: 1}[b] == 1


class TestSerialization:
    """Tests for camelCase serialization."""

    def test_edge_aliases(self):
        edge = TransitionEdge(
            source_domain="a.com",
            target_domain="b.com",
            kind=TransitionKind.RELATED,
            similarity=0.7,
            last_timestamp=5,
        )
        data = edge.model_dump(by_alias=True, mode="json")
        assert data == {
            "sourceDomain": "a.com",
            "targetDomain": "b.com",
            "weight": 1,
            "kind": "related",
            "similarity": 0.7,
            "lastTimestamp": 5,
        }

    def test_threshold_aliases(self):
        data = ThresholdState(related=0.6, topic_shift=0.2).model_dump(by_alias=True)
        assert data == {"related": 0.6, "topicShift": 0.2}

    def test_populate_by_name_and_alias(self):
        """Models accept snake_case names."""
        node = DomainNode(domain="a.com", visit_count=3, last_visit=9)
        assert node.model_dump(by_alias=True)["visitCount"] == 3

    def test_report_defaults_are_empty(self):
        """A default report is the empty-history report."""
        report = AnalysisReport()
        assert report.event_count == 0
        assert report.focus_sessions == []
        assert report.chains == []
        assert report.temporal == TemporalProfile()
        assert report.temporal.hourly_activity == [0] * 24
        assert report.transition_stats.total == 0


class TestInformationChain:
    def test_length_is_page_count(self):
        chain = InformationChain(page_count=4, duration_minutes=2.0, scent_strength=2.0)
        assert chain.length == 4
