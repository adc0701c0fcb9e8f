"""
External web search provider (Brave Search API).
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests

from .agent import ISearchProvider
from ..core import config
from ..core.errors import SearchError
from ..core.schema import SearchResult

logger = logging.getLogger(__name__)


def normalize_result(item: Dict[str, Any]) -> SearchResult:
    """Map one raw provider hit onto a SearchResult."""
    url = item.get("url") or ""
    domain = item.get("domain") or item.get("source") or ""
    if not isinstance(domain, str):
        domain = ""
    if not domain and url:
        domain = urlparse(url).netloc

    rank = item.get("rank")
    return SearchResult(
        title=item.get("title") or "",
        url=url,
        snippet=item.get("snippet") or item.get("description") or "",
        source_domain=domain,
        rank=rank if isinstance(rank, int) else None,
    )


def extract_hits(data: Any) -> List[Dict[str, Any]]:
    """Find the hit list in a provider payload; shapes differ between API versions."""
    if not isinstance(data, dict):
        return []

    hits = None
    for key in ("results", "items", "web", "data"):
        if data.get(key):
            hits = data[key]
            break

    # Brave nests web hits as {"web": {"results": [...]}}
    if isinstance(hits, dict):
        hits = hits.get("results")

    if not isinstance(hits, list):
        return []
    return [h for h in hits if isinstance(h, dict)]


class BraveSearchProvider(ISearchProvider):
    """
    Brave Search over HTTP.

    The blocking request runs in a worker thread so the event loop stays
    free; a cancelled caller simply stops waiting for it.
    """

    def __init__(self, api_key: Optional[str] = None, api_url: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.api_key = api_key if api_key is not None else config.BRAVE_API_KEY
        self.api_url = api_url or config.BRAVE_API_URL
        self.timeout = timeout or config.SEARCH_TIMEOUT_SEC
        self.session = session or requests.Session()

    async def search(self, query: str, size: int = 5) -> List[SearchResult]:
        return await asyncio.to_thread(self.search_sync, query, size)

    def search_sync(self, query: str, size: int = 5) -> List[SearchResult]:
        if not self.api_key:
            raise SearchError("BRAVE_API_KEY not configured")

        try:
            response = self.session.get(
                self.api_url,
                params={"q": query, "size": str(size)},
                headers={
                    "Accept": "application/json",
                    "X-Subscription-Token": self.api_key,
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise SearchError(f"Brave search request failed: {e}") from e

        if not response.ok:
            raise SearchError(f"Brave search failed: {response.status_code} {response.text[:200]}")

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise SearchError(f"Brave search returned invalid JSON: {e}") from e

        hits = extract_hits(data)
        logger.debug(f"Brave search returned {len(hits)} hits for query of length {len(query)}")
        return [normalize_result(item) for item in hits[:size]]

    def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            self.session.close()
