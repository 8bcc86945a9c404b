"""Similarity estimation between browser visits.

Four independent signals are combined into a single score in [0, 1]:

- semantic group cosine of the weighted token/topic bags
- token Jaccard overlap
- domain relation (identical, institutional TLD, subdomain)
- company relation (known multi-domain companies)

The scoring strategy is pluggable through :class:`SimilarityBackend`. The
heuristic combiner is always available; a dense-embedding backend (see
:mod:`attnflow.analytics.embedding`) can be wrapped in a
:class:`FallbackBackend` so failures degrade to the heuristic.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from math import sqrt

from attnflow.analytics.features import TextFeatureExtractor
from attnflow.models import VisitEvent

logger = logging.getLogger(__name__)

INSTITUTIONAL_TLDS = frozenset({"edu", "gov", "org"})

# Domains operated by the same company
COMPANY_DOMAINS: list[list[str]] = [
    ["anthropic.com", "claude.ai", "docs.anthropic.com", "console.anthropic.com"],
    ["google.com", "youtube.com", "gmail.com", "drive.google.com"],
    ["microsoft.com", "outlook.com", "office.com", "github.com"],
    ["facebook.com", "instagram.com", "whatsapp.com", "meta.com"],
    ["amazon.com", "aws.amazon.com", "prime.amazon.com"],
    ["linkedin.com", "indeed.com", "glassdoor.com"],
    ["stackoverflow.com", "stackexchange.com", "serverfault.com"],
]

# Signal weights (semantic, jaccard, domain, company)
BOOSTED_WEIGHTS = (0.2, 0.3, 0.2, 0.3)
SEMANTIC_WEIGHTS = (0.4, 0.3, 0.2, 0.1)
DOMAIN_BOOST = 0.4
COMPANY_BOOST = 0.3
STRONG_DOMAIN = 0.6
STRONG_COMPANY = 0.9


class SimilarityBackendError(Exception):
    """A similarity backend could not produce a score."""


@dataclass(frozen=True)
class SimilarityBreakdown:
    """Individual signals and the combined score for one pair.

    Attributes:
        semantic: Cosine of the semantic group vectors.
        jaccard: Token Jaccard overlap.
        domain: Domain relation score.
        company: Company relation score.
        raw: Weighted sum before clamping (may exceed 1.0).
        score: Final score clamped to [0, 1].
        boosted: Whether the strong-relation weighting branch was used.
    """

    semantic: float
    jaccard: float
    domain: float
    company: float
    raw: float
    score: float
    boosted: bool


def cosine_similarity(vec1: dict[str, float], vec2: dict[str, float]) -> float:
    """Compute cosine similarity between two sparse weight maps.

    Args:
        vec1: First vector (key -> weight mapping).
        vec2: Second vector (key -> weight mapping).

    Returns:
        Cosine similarity, or 0.0 if either vector is empty.
    """
    if not vec1 or not vec2:
        return 0.0

    common_terms = set(vec1.keys()) & set(vec2.keys())
    if not common_terms:
        return 0.0

    dot_product = sum(vec1[term] * vec2[term] for term in common_terms)
    magnitude1 = sqrt(sum(v * v for v in vec1.values()))
    magnitude2 = sqrt(sum(v * v for v in vec2.values()))

    if magnitude1 == 0 or magnitude2 == 0:
        return 0.0

    return dot_product / (magnitude1 * magnitude2)


def token_jaccard(tokens_a: set[str] | frozenset[str], tokens_b: set[str] | frozenset[str]) -> float:
    """Jaccard overlap of two token sets; 0.0 when both are empty."""
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def text_jaccard(text_a: str, text_b: str) -> float:
    """Jaccard overlap of the lowercase word sets of two strings."""
    words_a = set(re.findall(r"\b\w+\b", (text_a or "").lower()))
    words_b = set(re.findall(r"\b\w+\b", (text_b or "").lower()))
    return token_jaccard(words_a, words_b)


def title_domain_text(event: VisitEvent) -> str:
    return f"{event.title} {event.domain}"


def domain_relation(domain_a: str, domain_b: str) -> float:
    """Score how closely two domains are related.

    Returns:
        1.0 for identical domains, 0.3 for a shared institutional TLD
        (edu/gov/org), 0.6 when one domain contains the other, else 0.0.
    """
    if domain_a == domain_b:
        return 1.0

    tld_a = domain_a.rsplit(".", 1)[-1]
    tld_b = domain_b.rsplit(".", 1)[-1]
    if tld_a == tld_b and tld_a in INSTITUTIONAL_TLDS:
        return 0.3

    if domain_a and domain_b and (domain_a in domain_b or domain_b in domain_a):
        return 0.6

    return 0.0


def _in_company(domain: str, company: list[str]) -> bool:
    return any(d in domain or domain in d for d in company)


def company_relation(domain_a: str, domain_b: str) -> float:
    """1.0 if both domains belong to the same known company, else 0.0."""
    if not domain_a or not domain_b:
        return 0.0
    for company in COMPANY_DOMAINS:
        if _in_company(domain_a, company) and _in_company(domain_b, company):
            return 1.0
    return 0.0


def combine_signals(semantic: float, jaccard: float, domain: float, company: float) -> tuple[float, bool]:
    """Adaptive weighted combination of the four signals.

    A strong domain or company relation switches to the boosted weights and
    adds flat bonuses, which can push the raw sum above 1.0.

    Returns:
        Tuple of (raw_score, boosted).
    """
    boosted = domain >= STRONG_DOMAIN or company >= STRONG_COMPANY
    weights = BOOSTED_WEIGHTS if boosted else SEMANTIC_WEIGHTS
    raw = (
        semantic * weights[0]
        + jaccard * weights[1]
        + domain * weights[2]
        + company * weights[3]
    )
    if boosted:
        if domain >= STRONG_DOMAIN:
            raw += DOMAIN_BOOST
        if company >= STRONG_COMPANY:
            raw += COMPANY_BOOST
    return raw, boosted


def clamp_unit(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def basic_similarity(a: VisitEvent, b: VisitEvent) -> float:
    """Dependency-free fallback score.

    Word Jaccard of title and domain, nudged up when both domains share a
    top-level domain. Used with the fallback thresholds when a backend fails.
    """
    overlap = text_jaccard(title_domain_text(a), title_domain_text(b))
    same_tld = a.domain.rsplit(".", 1)[-1] == b.domain.rsplit(".", 1)[-1]
    return clamp_unit(0.8 * overlap + (0.2 if same_tld else 0.0))


class SimilarityBackend(ABC):
    """Scores a pair of visits in [0, 1]."""

    name: str = "backend"

    @abstractmethod
    def score(self, a: VisitEvent, b: VisitEvent) -> float:
        """Return the similarity of two visits."""


class HeuristicBackend(SimilarityBackend):
    """Four-signal combiner over text features and domain tables."""

    name = "heuristic"

    def __init__(self, extractor: TextFeatureExtractor | None = None) -> None:
        self.extractor = extractor or TextFeatureExtractor()

    def breakdown(self, a: VisitEvent, b: VisitEvent) -> SimilarityBreakdown:
        fa = self.extractor.extract(a)
        fb = self.extractor.extract(b)

        semantic = cosine_similarity(fa.semantic_groups, fb.semantic_groups)
        jaccard = token_jaccard(fa.tokens, fb.tokens)
        domain = domain_relation(fa.domain, fb.domain)
        company = company_relation(fa.domain, fb.domain)
        raw, boosted = combine_signals(semantic, jaccard, domain, company)

        return SimilarityBreakdown(
            semantic=semantic,
            jaccard=jaccard,
            domain=domain,
            company=company,
            raw=raw,
            score=clamp_unit(raw),
            boosted=boosted,
        )

    def score(self, a: VisitEvent, b: VisitEvent) -> float:
        return self.breakdown(a, b).score


class FallbackBackend(SimilarityBackend):
    """Try a primary backend, fall back to another when it fails.

    Failures are logged and counted, never raised.
    """

    def __init__(self, primary: SimilarityBackend, fallback: SimilarityBackend | None = None) -> None:
        self.primary = primary
        self.fallback = fallback or HeuristicBackend()
        self.failures = 0
        self.last_backend = self.primary.name

    @property
    def name(self) -> str:  # type: ignore[override]
        return f"{self.primary.name}+{self.fallback.name}"

    def score(self, a: VisitEvent, b: VisitEvent) -> float:
        try:
            value = self.primary.score(a, b)
        except Exception as e:
            self.failures += 1
            self.last_backend = self.fallback.name
            logger.warning(
                "%s backend failed for %s -> %s, using %s: %s",
                self.primary.name,
                a.domain,
                b.domain,
                self.fallback.name,
                e,
            )
            return self.fallback.score(a, b)
        self.last_backend = self.primary.name
        return value


def _pair_key(a: VisitEvent, b: VisitEvent) -> tuple[tuple[str, str], tuple[str, str]]:
    ka = (a.url, a.title)
    kb = (b.url, b.title)
    return (ka, kb) if ka <= kb else (kb, ka)


class SimilarityEstimator:
    """Symmetric, cached similarity over a pluggable backend.

    Pairs are cached by an unordered (url, title) key and always scored in a
    canonical order, so ``similarity(a, b) == similarity(b, a)``. Backend
    errors propagate and are not cached.
    """

    def __init__(self, backend: SimilarityBackend | None = None) -> None:
        self.backend = backend or HeuristicBackend()
        self._cache: dict[tuple[tuple[str, str], tuple[str, str]], float] = {}

    @property
    def backend_name(self) -> str:
        return self.backend.name

    def similarity(self, a: VisitEvent, b: VisitEvent) -> float:
        key = _pair_key(a, b)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        first, second = (a, b) if (a.url, a.title) == key[0] else (b, a)
        value = clamp_unit(float(self.backend.score(first, second)))
        self._cache[key] = value
        return value

    def clear(self) -> None:
        self._cache.clear()
