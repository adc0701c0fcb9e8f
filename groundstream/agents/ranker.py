"""
Source ranking by domain-trust heuristics.

Scores are additive: a URL collects every rule it matches, so a government
domain earns both the generic trusted-domain weight and the government
bonus. This double counting is intentional and is part of the policy table.
"""

from typing import List, Sequence

from ..core.schema import SearchResult

TRUSTED_DOMAINS = ['.gov', '.edu', 'who.int', 'nih.gov', 'ieee.org', 'nature.com', 'science.org', 'reuters.com', 'bbc.co.uk']

TRUSTED_DOMAIN_WEIGHT = 100
GOVERNMENT_BONUS = 80
EDUCATION_BONUS = 70
REFERENCE_SITE_BONUS = 10  # wikipedia: useful but editable
LOW_QUALITY_PENALTY = -20
LOCAL_PENALTY = -100

LOW_QUALITY_MARKERS = ['blogspot', 'medium.com']


def score_source(url: str) -> int:
    """Heuristic trust score for a result URL."""
    u = (url or "").lower()
    score = 0

    for domain in TRUSTED_DOMAINS:
        if domain in u:
            score += TRUSTED_DOMAIN_WEIGHT
    if '.gov' in u:
        score += GOVERNMENT_BONUS
    if '.edu' in u:
        score += EDUCATION_BONUS
    if 'wikipedia.org' in u:
        score += REFERENCE_SITE_BONUS

    if any(marker in u for marker in LOW_QUALITY_MARKERS):
        score += LOW_QUALITY_PENALTY
    if 'localhost' in u or u.startswith('file:'):
        score += LOCAL_PENALTY

    return score


def rank_results(results: Sequence[SearchResult]) -> List[SearchResult]:
    """Attach scores and sort descending. sorted() is stable, so ties keep input order."""
    scored = [result.with_score(score_source(result.url)) for result in results]
    return sorted(scored, key=lambda r: r.score, reverse=True)
