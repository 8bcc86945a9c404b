"""Dense-embedding similarity backend.

The embedding model itself is external: any callable mapping a passage of
text to a fixed-length vector can be plugged in. :class:`HashingEncoder` is a
deterministic, dependency-free stand-in that needs no model.
"""

from __future__ import annotations

import logging
import math
import re
import time
from collections.abc import Callable, Iterable, Sequence
from urllib.parse import urlparse

from attnflow.analytics.similarity import SimilarityBackend, SimilarityBackendError, clamp_unit
from attnflow.models import VisitEvent
from attnflow.storage.embedding_cache import EmbeddingCache, LRUCache, hash_text

logger = logging.getLogger(__name__)

Encoder = Callable[[str], Sequence[float]]

PASSAGE_PREFIX = "passage: "
# Vectors kept in memory when no EmbeddingCache is given
DEFAULT_MEMO_SIZE = 1000
MAX_PATH_SEGMENTS = 5

# Extra words that give an encoder context about well-known domains
DOMAIN_CONTEXT: dict[str, str] = {
    "claude.ai": "anthropic claude ai assistant chatbot artificial intelligence",
    "docs.anthropic.com": "anthropic claude ai documentation technical guides artificial intelligence",
    "console.anthropic.com": "anthropic claude ai console dashboard artificial intelligence",
    "anthropic.com": "anthropic claude ai company artificial intelligence research",
    "linkedin.com": "professional networking career jobs",
    "indeed.com": "job search employment careers",
    "glassdoor.com": "job reviews company salaries careers",
    "github.com": "code development programming software",
    "stackoverflow.com": "programming development coding technical",
    "reddit.com": "social discussion community forum",
    "twitter.com": "social media microblogging news",
    "facebook.com": "social networking social media",
    "youtube.com": "video entertainment content streaming",
    "netflix.com": "video streaming entertainment movies",
    "amazon.com": "shopping ecommerce retail products",
    "ebay.com": "shopping ecommerce auction marketplace",
    "wikipedia.org": "knowledge encyclopedia information reference",
    "medium.com": "articles blogging writing content",
    "news.ycombinator.com": "technology news startup programming",
    "techcrunch.com": "technology news startup business",
    "cnn.com": "news current events politics",
    "bbc.com": "news current events international",
    "nytimes.com": "news journalism politics current events",
}

# Topic keyword groups used by the hashing encoder
ENCODER_GROUPS: dict[str, list[str]] = {
    "anthropic": ["anthropic", "claude", "assistant", "chatbot", "artificial", "intelligence"],
    "job": ["job", "career", "employment", "linkedin", "indeed", "glassdoor", "hiring", "resume"],
    "tech": ["github", "programming", "code", "developer", "software", "stackoverflow", "coding"],
    "social": ["facebook", "twitter", "social", "instagram", "discussion", "community", "forum"],
    "shopping": ["amazon", "ebay", "shopping", "buy", "retail", "store", "ecommerce", "products"],
    "news": ["news", "cnn", "bbc", "article", "media", "journalism", "politics"],
    "video": ["youtube", "netflix", "video", "streaming", "watch", "entertainment", "movies"],
    "education": ["wikipedia", "learn", "education", "university", "course", "encyclopedia"],
}


def domain_context(domain: str) -> str:
    context = DOMAIN_CONTEXT.get(domain)
    if context:
        return context
    if "anthropic" in domain or "claude" in domain:
        return "anthropic claude ai artificial intelligence assistant chatbot"
    return ""


def build_passage(event: VisitEvent) -> str:
    """Build the text passed to the embedding encoder for a visit.

    Clean title, domain context words, URL path tokens and the domain, with
    the ``passage:`` prefix retrieval encoders expect.
    """
    title = re.sub(r"\s+", " ", re.sub(r"[^\w\s-]", " ", event.title)).strip()

    try:
        parsed = urlparse(event.url)
        segments = [s for s in parsed.path.split("/") if s and len(s) < 80][:MAX_PATH_SEGMENTS]
    except ValueError:
        segments = []

    tokens = [
        token.lower()
        for segment in segments
        for token in re.split(r"[-_]", segment)
        if len(token) > 2 and not token.isdigit()
    ]

    parts = [title, domain_context(event.domain), " ".join(tokens), event.domain]
    return (PASSAGE_PREFIX + " ".join(p for p in parts if p)).strip()


def _string_hash(text: str) -> int:
    h = 0
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h


class HashingEncoder:
    """Deterministic pseudo-embedding of a passage.

    Each token increments a hashed bucket; tokens matching a topic group also
    add weight to a handful of buckets reserved for that group, so topically
    related passages land near each other. The result is L2-normalized.
    """

    name = "hashing"

    def __init__(self, dim: int = 384, max_tokens: int = 128) -> None:
        if dim < 8:
            raise ValueError("dim must be at least 8")
        self.dim = dim
        self.max_tokens = max_tokens

    def __call__(self, text: str) -> list[float]:
        vector = [0.0] * self.dim
        tokens = text.lower().split()[: self.max_tokens]

        for token in tokens:
            vector[_string_hash(token) % self.dim] += 1.0
            if len(token) <= 2:
                continue
            for group, keywords in ENCODER_GROUPS.items():
                if any(k in token or token in k for k in keywords):
                    base = _string_hash(group)
                    for i in range(5):
                        vector[(base + i * 73) % self.dim] += 0.5

        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / norm for v in vector]


def vector_cosine(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of two dense vectors; 0.0 for empty or zero vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    if na == 0 or nb == 0:
        return 0.0
    return dot / (na * nb)


class EmbeddingBackend(SimilarityBackend):
    """Similarity as the cosine of two passage embeddings.

    Vectors are read through an optional EmbeddingCache keyed by the hash of
    the passage text; without one they are memoized in an in-process LRU.
    Any encoder problem surfaces as SimilarityBackendError.
    """

    def __init__(
        self,
        encoder: Encoder,
        cache: EmbeddingCache | None = None,
        model_name: str | None = None,
        memo_size: int = DEFAULT_MEMO_SIZE,
    ) -> None:
        self.encoder = encoder
        self.cache = cache
        self.memo = LRUCache(memo_size) if cache is None else None
        self.model_name = model_name or getattr(encoder, "name", "embedding")
        self.dim: int | None = None

    @property
    def name(self) -> str:  # type: ignore[override]
        return f"embedding:{self.model_name}"

    def embed(self, event: VisitEvent) -> list[float]:
        """Return the embedding for a visit, computing and caching on a miss.

        Raises:
            SimilarityBackendError: If the encoder fails or returns an invalid vector.
        """
        passage = build_passage(event)
        key = hash_text(passage)

        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached
        elif self.memo is not None:
            cached = self.memo.get(key)
            if cached is not None:
                return cached

        try:
            raw = self.encoder(passage)
            vector = [float(x) for x in raw]
        except Exception as e:
            raise SimilarityBackendError(f"encoder failed: {e}") from e

        if not vector:
            raise SimilarityBackendError("encoder returned an empty vector")
        if not all(math.isfinite(x) for x in vector):
            raise SimilarityBackendError("encoder returned non-finite values")
        if self.dim is None:
            self.dim = len(vector)
        elif len(vector) != self.dim:
            raise SimilarityBackendError(
                f"encoder returned {len(vector)} dimensions, expected {self.dim}"
            )

        if self.cache is not None:
            self.cache.put(key, vector, {"model": self.model_name, "t": int(time.time())})
        elif self.memo is not None:
            self.memo.set(key, vector)
        return vector

    def embed_batch(
        self,
        events: Iterable[VisitEvent],
        batch_size: int = 12,
        on_batch: Callable[[int], None] | None = None,
    ) -> int:
        """Warm the cache for many events, a batch at a time.

        Args:
            events: Visits to embed.
            batch_size: Events per batch.
            on_batch: Called after each batch with the number of events
                processed so far. Exceptions it raises stop the warm-up.

        Returns:
            Number of events embedded successfully. Failures are logged.
        """
        done = 0
        seen = 0
        batch: list[VisitEvent] = []
        for event in events:
            batch.append(event)
            if len(batch) >= batch_size:
                done += self._embed_many(batch)
                seen += len(batch)
                batch = []
                if on_batch is not None:
                    on_batch(seen)
        if batch:
            done += self._embed_many(batch)
            seen += len(batch)
            if on_batch is not None:
                on_batch(seen)
        return done

    def _embed_many(self, batch: list[VisitEvent]) -> int:
        ok = 0
        for event in batch:
            try:
                self.embed(event)
                ok += 1
            except SimilarityBackendError as e:
                logger.warning("Could not embed %s: %s", event.url, e)
        return ok

    def score(self, a: VisitEvent, b: VisitEvent) -> float:
        va = self.embed(a)
        vb = self.embed(b)
        if len(va) != len(vb):
            raise SimilarityBackendError("embedding dimensions differ")
        return clamp_unit(vector_cosine(va, vb))
