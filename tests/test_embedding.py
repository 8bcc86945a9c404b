"""Tests for the embedding backend and passage builder."""

import math

import pytest

from attnflow.analytics.embedding import (
    PASSAGE_PREFIX,
    EmbeddingBackend,
    HashingEncoder,
    build_passage,
    domain_context,
    vector_cosine,
)
from attnflow.analytics.similarity import (
    FallbackBackend,
    HeuristicBackend,
    SimilarityBackendError,
    SimilarityEstimator,
)
from attnflow.storage import EmbeddingCache, hash_text


class CountingEncoder:
    """Wraps HashingEncoder and counts calls."""

    name = "counting"

    def __init__(self):
        self.inner = HashingEncoder(dim=64)
        self.calls = 0

    def __call__(self, text):
        self.calls += 1
        return self.inner(text)


def broken_encoder(text):
    raise RuntimeError("model failed to load")


class TestBuildPassage:
    """Tests for build_passage."""

    def test_prefix_title_context_path_domain(self, visit):
        event = visit("https://github.com/psf/requests-oauthlib/issues/123", title="Issue: token refresh!")
        passage = build_passage(event)

        assert passage.startswith(PASSAGE_PREFIX)
        assert "Issue token refresh" in passage
        assert "code development programming software" in passage
        assert "requests oauthlib issues" in passage
        assert "123" not in passage
        assert passage.endswith("github.com")

    def test_anthropic_fallback_context(self):
        assert "anthropic" in domain_context("support.claude.com")
        assert domain_context("example.org") == ""

    def test_empty_title(self, visit):
        passage = build_passage(visit("https://example.org/"))
        assert passage == "passage: example.org"


class TestHashingEncoder:
    def test_deterministic_and_normalized(self):
        encoder = HashingEncoder(dim=128)
        first = encoder("passage: python tutorial")
        second = encoder("passage: python tutorial")

        assert first == second
        assert len(first) == 128
        assert math.sqrt(sum(v * v for v in first)) == pytest.approx(1.0)

    def test_topic_groups_pull_passages_together(self):
        encoder = HashingEncoder()
        claude = encoder(build_passage_text("claude assistant chat"))
        anthropic = encoder(build_passage_text("anthropic documentation"))
        shopping = encoder(build_passage_text("buy shoes online"))

        assert vector_cosine(claude, anthropic) > vector_cosine(claude, shopping)

    def test_rejects_tiny_dimension(self):
        with pytest.raises(ValueError):
            HashingEncoder(dim=4)


def build_passage_text(words):
    return f"{PASSAGE_PREFIX}{words}"


class TestVectorCosine:
    def test_edge_cases(self):
        assert vector_cosine([], [1.0]) == 0.0
        assert vector_cosine([0.0, 0.0], [1.0, 0.0]) == 0.0
        assert vector_cosine([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
        assert vector_cosine([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


class TestEmbeddingBackend:
    """Tests for EmbeddingBackend."""

    def test_score_is_clamped_cosine(self, visit):
        backend = EmbeddingBackend(HashingEncoder(dim=64))
        a = visit("https://claude.ai/", title="Claude")
        b = visit("https://docs.anthropic.com/", title="Anthropic docs")

        expected = vector_cosine(backend.embed(a), backend.embed(b))
        assert backend.score(a, b) == pytest.approx(max(0.0, min(1.0, expected)))

    def test_negative_cosine_clamped_to_zero(self, visit):
        vectors = {"a": [1.0, 0.0], "b": [-1.0, 0.0]}

        def encoder(passage):
            return vectors["a" if "alpha" in passage else "b"]

        backend = EmbeddingBackend(encoder)
        assert backend.score(visit("https://x.com", title="alpha"), visit("https://y.com", title="beta")) == 0.0

    def test_name(self):
        assert EmbeddingBackend(HashingEncoder()).name == "embedding:hashing"
        assert EmbeddingBackend(broken_encoder, model_name="e5").name == "embedding:e5"

    def test_encoder_failure_raises_backend_error(self, visit):
        backend = EmbeddingBackend(broken_encoder)
        with pytest.raises(SimilarityBackendError):
            backend.score(visit("https://a.com"), visit("https://b.com"))

    def test_empty_vector_raises(self, visit):
        backend = EmbeddingBackend(lambda text: [])
        with pytest.raises(SimilarityBackendError):
            backend.embed(visit("https://a.com"))

    def test_non_finite_vector_raises(self, visit):
        backend = EmbeddingBackend(lambda text: [float("nan"), 1.0])
        with pytest.raises(SimilarityBackendError):
            backend.embed(visit("https://a.com"))

    def test_dimension_change_raises(self, visit):
        backend = EmbeddingBackend(lambda text: [1.0] * (3 if "first" in text else 4))
        backend.embed(visit("https://a.com", title="first"))
        with pytest.raises(SimilarityBackendError):
            backend.embed(visit("https://b.com", title="second"))

    def test_reads_through_cache(self, visit, temp_db_path):
        """A cached vector is not recomputed, even across cache instances."""
        encoder = CountingEncoder()
        event = visit("https://github.com/a/b", title="Repo")

        with EmbeddingCache(temp_db_path) as cache:
            backend = EmbeddingBackend(encoder, cache)
            first = backend.embed(event)
            backend.embed(event)
            assert encoder.calls == 1
            assert cache.get_metadata(hash_text(build_passage(event)))["model"] == "counting"

        with EmbeddingCache(temp_db_path) as cache:
            backend = EmbeddingBackend(encoder, cache)
            assert backend.embed(event) == first
            assert encoder.calls == 1

    def test_embed_batch(self, visit, temp_db_path):
        encoder = CountingEncoder()
        events = [visit(f"https://site{i}.com/page", title=f"page {i}") for i in range(5)]

        with EmbeddingCache(temp_db_path) as cache:
            backend = EmbeddingBackend(encoder, cache)
            assert backend.embed_batch(events, batch_size=2) == 5
            assert cache.count() == 5

    def test_memoizes_without_cache(self, visit):
        encoder = CountingEncoder()
        backend = EmbeddingBackend(encoder)
        event = visit("https://github.com/a/b", title="Repo")

        assert backend.embed(event) == backend.embed(event)
        assert encoder.calls == 1

    def test_embed_batch_reports_each_batch(self, visit):
        seen = []
        events = [visit(f"https://site{i}.com/page", title=f"page {i}") for i in range(5)]

        backend = EmbeddingBackend(CountingEncoder())
        assert backend.embed_batch(events, batch_size=2, on_batch=seen.append) == 5
        assert seen == [2, 4, 5]

    def test_embed_batch_logs_failures(self, visit, caplog):
        backend = EmbeddingBackend(broken_encoder)
        with caplog.at_level("WARNING", logger="attnflow.analytics.embedding"):
            assert backend.embed_batch([visit("https://a.com")]) == 0
        assert "Could not embed" in caplog.text


class TestEmbeddingWithFallback:
    """Both scoring paths through the estimator."""

    def test_embedding_path(self, visit):
        embedding = EmbeddingBackend(HashingEncoder(dim=64))
        estimator = SimilarityEstimator(FallbackBackend(embedding))
        a = visit("https://claude.ai/", title="Claude")
        b = visit("https://docs.anthropic.com/", title="Docs")

        assert estimator.similarity(a, b) == pytest.approx(embedding.score(a, b))
        assert estimator.backend.last_backend == "embedding:hashing"

    def test_fallback_path(self, visit):
        fallback = FallbackBackend(EmbeddingBackend(broken_encoder))
        estimator = SimilarityEstimator(fallback)
        a = visit("https://claude.ai/", title="Claude")
        b = visit("https://docs.anthropic.com/", title="Docs")

        assert estimator.similarity(a, b) == pytest.approx(HeuristicBackend().score(a, b))
        assert fallback.failures == 1
        assert fallback.last_backend == "heuristic"
