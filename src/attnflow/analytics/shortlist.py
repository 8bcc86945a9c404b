"""BM25 shortlist of recent visits worth a closer similarity comparison."""

from __future__ import annotations

import math
import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from attnflow.analytics.similarity import SimilarityEstimator
from attnflow.models import VisitEvent

K1 = 1.2
B = 0.75

_SPLIT = re.compile(r"[^a-z0-9]+")


def lexical_tokens(event: VisitEvent) -> list[str]:
    """Lowercased alphanumeric tokens (longer than two chars) of title and URL."""
    text = f"{event.title} {event.url}".lower()
    return [t for t in _SPLIT.split(text) if len(t) > 2]


def inverse_document_frequency(documents: Sequence[Sequence[str]]) -> dict[str, float]:
    """Smoothed IDF: ``log((N + 1) / (df + 0.5))``."""
    n = len(documents) or 1
    df: Counter[str] = Counter()
    for tokens in documents:
        df.update(set(tokens))
    return {term: math.log((n + 1) / (count + 0.5)) for term, count in df.items()}


def bm25_score(
    query: Sequence[str],
    document: Sequence[str],
    idf: dict[str, float],
    avg_length: float,
) -> float:
    freqs = Counter(document)
    norm = K1 * (1 - B + B * (len(document) / (avg_length or 1.0)))
    total = 0.0
    for term in set(query):
        f = freqs.get(term)
        if not f:
            continue
        total += idf.get(term, 0.0) * (f * (K1 + 1)) / (f + norm)
    return total


def shortlist_candidates(
    current: VisitEvent,
    recents: Sequence[VisitEvent],
    k: int = 10,
) -> list[VisitEvent]:
    """Rank recent visits by BM25 against the current one and keep the top k.

    Ties keep their input order.
    """
    if k <= 0 or not recents:
        return []

    query = lexical_tokens(current)
    documents = [lexical_tokens(e) for e in recents]
    idf = inverse_document_frequency([query, *documents])
    avg_length = sum(len(d) for d in documents) / len(documents)

    scored = [
        (bm25_score(query, doc, idf, avg_length), idx)
        for idx, doc in enumerate(documents)
    ]
    scored.sort(key=lambda item: (-item[0], item[1]))
    return [recents[idx] for _, idx in scored[:k]]


@dataclass
class SimilarVisit:
    """One re-ranked shortlist entry.

    Attributes:
        event: The recent visit.
        score: Similarity to the query visit, 0.0 to 1.0.
    """

    event: VisitEvent
    score: float


def find_similar_visits(
    current: VisitEvent,
    recents: Sequence[VisitEvent],
    estimator: SimilarityEstimator,
    k: int = 10,
) -> list[SimilarVisit]:
    """Shortlist by BM25, then re-rank the shortlist with the estimator.

    Visits with the same URL as ``current`` are skipped and repeated URLs
    are considered once.
    """
    seen = {current.url}
    pool: list[VisitEvent] = []
    for event in recents:
        if event.url not in seen:
            seen.add(event.url)
            pool.append(event)
    candidates = shortlist_candidates(current, pool, k)
    results = [SimilarVisit(event=e, score=estimator.similarity(current, e)) for e in candidates]
    results.sort(key=lambda r: r.score, reverse=True)
    return results
