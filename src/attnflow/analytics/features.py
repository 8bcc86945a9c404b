"""Text feature extraction for browser visits.

Turns a visit into normalized tokens (title, URL path and domain parts) and a
weighted bag of tokens and topic groups. No external ML dependencies required.
"""

from __future__ import annotations

import re
from collections import defaultdict
from math import sqrt
from urllib.parse import urlparse

from attnflow.models import FeatureVector, VisitEvent

# Articles, prepositions and common web boilerplate
STOPWORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from",
    "has", "he", "in", "is", "it", "its", "of", "on", "that", "the",
    "to", "was", "will", "with", "into", "over", "about", "your", "you",
    "www", "com", "org", "net", "html", "htm", "php", "asp", "aspx",
    "http", "https", "index",
})

# Weight of a token in its own slot
TOKEN_WEIGHT = 0.3
# Weight added to a topic group slot for each member token
GROUP_WEIGHT = 2.0
GROUP_PREFIX = "GROUP_"

SEMANTIC_GROUPS: dict[str, list[str]] = {
    "ai_tech": [
        "ai", "artificial", "intelligence", "machine", "learning", "claude",
        "anthropic", "chatbot", "assistant", "bot", "neural", "model",
    ],
    "programming": [
        "code", "coding", "programming", "developer", "development", "software",
        "engineer", "engineering", "github", "stackoverflow", "python",
        "javascript", "java",
    ],
    "career": [
        "job", "jobs", "career", "careers", "employment", "work", "professional",
        "linkedin", "indeed", "resume", "hiring", "salary",
    ],
    "social": [
        "social", "facebook", "twitter", "instagram", "network", "networking",
        "community", "discussion", "forum", "reddit",
    ],
    "news": [
        "news", "article", "story", "report", "journalism", "media", "press",
        "breaking", "update", "politics",
    ],
    "shopping": [
        "shop", "shopping", "buy", "purchase", "store", "retail", "amazon",
        "ebay", "product", "price",
    ],
    "video": [
        "video", "watch", "streaming", "youtube", "netflix", "movie", "film",
        "entertainment",
    ],
    "education": [
        "learn", "learning", "education", "course", "tutorial", "guide",
        "university", "school", "wikipedia",
    ],
}


def _build_word_groups() -> dict[str, list[str]]:
    lookup: dict[str, list[str]] = defaultdict(list)
    for group, words in SEMANTIC_GROUPS.items():
        for word in words:
            lookup[word].append(group)
    return dict(lookup)


WORD_TO_GROUPS = _build_word_groups()


def tokenize(text: str) -> list[str]:
    """Lowercase text, turn punctuation into whitespace and split.

    Args:
        text: The text to tokenize.

    Returns:
        Raw tokens in order, without any filtering.
    """
    if not text:
        return []
    return re.sub(r"[^\w\s]", " ", text.lower()).split()


def path_tokens(path: str) -> list[str]:
    """Extract tokens from a URL path.

    Segments that are numeric-only or two characters or shorter are dropped;
    the rest are split on ``-`` and ``_``.
    """
    tokens: list[str] = []
    for segment in path.split("/"):
        if len(segment) <= 2 or segment.isdigit():
            continue
        tokens.extend(tokenize(re.sub(r"[-_]", " ", segment)))
    return tokens


def clean_tokens(tokens: list[str]) -> list[str]:
    """Drop stopwords and tokens of length two or less."""
    return [t for t in tokens if len(t) > 2 and t not in STOPWORDS]


def semantic_vector(tokens: list[str]) -> dict[str, float]:
    """Build an L2-normalized weighted bag from cleaned tokens.

    Every token adds TOKEN_WEIGHT to its own slot and GROUP_WEIGHT to the
    slot of every topic group it belongs to. An empty token list gives an
    empty mapping.
    """
    vector: dict[str, float] = defaultdict(float)
    for token in tokens:
        vector[token] += TOKEN_WEIGHT
        for group in WORD_TO_GROUPS.get(token, ()):
            vector[f"{GROUP_PREFIX}{group}"] += GROUP_WEIGHT

    magnitude = sqrt(sum(v * v for v in vector.values()))
    if magnitude == 0:
        return {}
    return {key: value / magnitude for key, value in vector.items()}


def extract_features(event: VisitEvent) -> FeatureVector:
    """Compute the FeatureVector for a visit. Never raises.

    Path and domain tokens are only used when the URL parses to a hostname;
    for malformed URLs only the title contributes.
    """
    tokens = tokenize(event.title)

    try:
        parsed = urlparse(event.url)
        hostname = parsed.hostname
    except ValueError:
        parsed = None
        hostname = None

    if parsed is not None and hostname:
        tokens.extend(path_tokens(parsed.path))
        tokens.extend(tokenize(event.domain.replace(".", " ")))

    cleaned = clean_tokens(tokens)
    return FeatureVector(
        tokens=frozenset(cleaned),
        semantic_groups=semantic_vector(cleaned),
        domain=event.domain,
    )


class TextFeatureExtractor:
    """Feature extraction with a per-event memo.

    VisitEvent is immutable, so features computed once stay valid.
    """

    def __init__(self) -> None:
        self._cache: dict[VisitEvent, FeatureVector] = {}

    def extract(self, event: VisitEvent) -> FeatureVector:
        features = self._cache.get(event)
        if features is None:
            features = extract_features(event)
            self._cache[event] = features
        return features

    def __len__(self) -> int:
        return len(self._cache)
