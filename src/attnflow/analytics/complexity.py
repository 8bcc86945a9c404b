"""Content-depth scoring for visits."""

from __future__ import annotations

# Prior content depth per domain
DOMAIN_PRIORS: dict[str, float] = {
    "github.com": 0.7,
    "stackoverflow.com": 0.8,
    "arxiv.org": 0.9,
    "wikipedia.org": 0.6,
    "reddit.com": 0.4,
    "youtube.com": 0.3,
}
DEFAULT_PRIOR = 0.5

DEEP_KEYWORDS = ("documentation", "api", "tutorial", "research")
SHALLOW_KEYWORDS = ("meme", "funny", "social")
KEYWORD_STEP = 0.1


def domain_prior(domain: str) -> float:
    """Prior for a domain; subdomains inherit their parent's prior.

    >>> domain_prior("en.wikipedia.org")
    0.6
    >>> domain_prior("example.com")
    0.5
    """
    if domain in DOMAIN_PRIORS:
        return DOMAIN_PRIORS[domain]
    for known, prior in DOMAIN_PRIORS.items():
        if domain.endswith(f".{known}"):
            return prior
    return DEFAULT_PRIOR


def score(domain: str, title: str = "") -> float:
    """Content-depth score in [0, 1].

    Starts from the domain prior, adds 0.1 per deep keyword and subtracts 0.1
    per shallow keyword found in the lowercased title.
    """
    value = domain_prior(domain)
    lower = (title or "").lower()
    value += KEYWORD_STEP * sum(1 for k in DEEP_KEYWORDS if k in lower)
    value -= KEYWORD_STEP * sum(1 for k in SHALLOW_KEYWORDS if k in lower)
    return min(1.0, max(0.0, value))
