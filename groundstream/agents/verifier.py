"""
Claim verification against ranked web evidence.
"""

import json
import re
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence

from .agent import IModelStreamAdapter, ISearchProvider
from .ranker import rank_results
from ..core.errors import SearchError, ValidationError
from ..core.schema import SearchResult
from ..util.logging import logger

MAX_QUERIES = 5
RESULTS_PER_QUERY = 5
MAX_EVIDENCE = 8

VERDICTS = ("true", "false", "partially true", "unverifiable")

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_json_reply(text: str) -> Any:
    """Parse model output as JSON, tolerating a surrounding code fence. None when unparseable."""
    if not text:
        return None
    cleaned = _FENCE.sub("", text.strip())
    try:
        return json.loads(cleaned)
    except (json.JSONDecodeError, ValueError):
        return None


class FactVerifier:
    """Generates search queries for a claim, gathers evidence and asks the model for a verdict."""

    def __init__(self, search_provider: ISearchProvider, model_adapter: IModelStreamAdapter):
        self.search_provider = search_provider
        self.model_adapter = model_adapter

    async def verify(self, claim: str, queries: Optional[Sequence[str]] = None,
                     model: Optional[str] = None) -> Dict[str, Any]:
        if claim is None or not claim.strip():
            raise ValidationError("claim required")

        search_queries = [q for q in (queries or []) if q and q.strip()]
        if not search_queries:
            search_queries = await self.generate_queries(claim, model)

        evidence = await self.gather_evidence(search_queries)
        reply = await self.model_adapter.complete(self._verdict_prompt(claim, evidence), model)

        result = parse_json_reply(reply)
        if not isinstance(result, dict):
            result = {
                "claim": claim,
                "verdict": "unverifiable",
                "explanation": reply,
                "sources": [asdict(r) for r in evidence[:3]],
            }

        logger.log_operation("verify.claim", "success", {
            "queries": len(search_queries),
            "evidence": len(evidence),
            "verdict": result.get("verdict"),
        })
        return {"result": result, "evidence": [asdict(r) for r in evidence]}

    async def generate_queries(self, claim: str, model: Optional[str] = None) -> List[str]:
        prompt = (
            "Generate three concise web search queries to verify the following claim. "
            f"Return them as a JSON array of strings.\n\nClaim: {claim}"
        )
        parsed = parse_json_reply(await self.model_adapter.complete(prompt, model))
        if isinstance(parsed, list):
            queries = [q for q in parsed if isinstance(q, str) and q.strip()]
            if queries:
                return queries
        return [claim]

    async def gather_evidence(self, queries: Sequence[str]) -> List[SearchResult]:
        collected: List[SearchResult] = []
        for query in list(queries)[:MAX_QUERIES]:
            try:
                collected.extend(await self.search_provider.search(query, RESULTS_PER_QUERY))
            except SearchError as e:
                logger.warning(f"Verification search failed for one query: {e}")
        return rank_results(collected)[:MAX_EVIDENCE]

    def _verdict_prompt(self, claim: str, evidence: Sequence[SearchResult]) -> str:
        grounding = "\n\n".join(
            f"{i}. {r.title} — {r.url}\n{r.snippet}" for i, r in enumerate(evidence, start=1)
        )
        return (
            "You are a careful fact-checker. Given the claim and the numbered sources below, "
            f"decide whether the claim is {', '.join(VERDICTS[:-1])} or {VERDICTS[-1]}. "
            "Respond with a JSON object with keys claim, verdict, explanation and sources "
            "(a list of the URLs you relied on).\n\n"
            f"Claim: {claim}\n\nSources:\n{grounding}"
        )
