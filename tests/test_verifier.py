"""
Claim verification flow with scripted search and model replies.
"""

import asyncio
import json

import pytest

from groundstream.agents.verifier import FactVerifier, parse_json_reply
from groundstream.core.errors import SearchError, ValidationError
from groundstream.core.schema import SearchResult


class FlakySearch:
    """Fails for queries containing 'broken', otherwise returns one result per query."""

    def __init__(self):
        self.queries = []

    async def search(self, query, size=5):
        self.queries.append((query, size))
        if "broken" in query:
            raise SearchError("upstream down")
        return [SearchResult(title=query, url=f"https://{query.replace(' ', '-')}.example.gov/", snippet="s")]


def test_generated_queries_used(adapter_factory):
    verdict = {"claim": "c", "verdict": "true", "explanation": "ok", "sources": []}
    adapter = adapter_factory(replies=[json.dumps(["q one", "q two"]), json.dumps(verdict)])
    search = FlakySearch()

    outcome = asyncio.run(FactVerifier(search, adapter).verify("water boils at 100C"))

    assert [q for q, _ in search.queries] == ["q one", "q two"]
    assert all(size == 5 for _, size in search.queries)
    assert outcome["result"]["verdict"] == "true"
    assert [e["title"] for e in outcome["evidence"]] == ["q one", "q two"]


def test_unparseable_queries_fall_back_to_claim(adapter_factory):
    adapter = adapter_factory(replies=["not json", json.dumps({"verdict": "false"})])
    search = FlakySearch()

    asyncio.run(FactVerifier(search, adapter).verify("the moon is cheese"))

    assert search.queries == [("the moon is cheese", 5)]


def test_explicit_queries_skip_generation(adapter_factory):
    adapter = adapter_factory(replies=[json.dumps({"verdict": "partially true"})])
    search = FlakySearch()

    outcome = asyncio.run(FactVerifier(search, adapter).verify("claim", queries=["a", "b"]))

    assert len(adapter.prompts) == 1
    assert outcome["result"]["verdict"] == "partially true"


def test_failed_queries_skipped_and_capped(adapter_factory):
    adapter = adapter_factory(replies=[json.dumps({"verdict": "true"})])
    search = FlakySearch()
    queries = ["broken one", "a", "b", "c", "d", "e", "f"]

    outcome = asyncio.run(FactVerifier(search, adapter).verify("claim", queries=queries))

    assert len(search.queries) == 5
    assert len(outcome["evidence"]) == 4


def test_unparseable_verdict_falls_back(adapter_factory):
    adapter = adapter_factory(replies=["I think it is probably true."])
    outcome = asyncio.run(FactVerifier(FlakySearch(), adapter).verify("claim", queries=["x", "y", "z", "w"]))

    result = outcome["result"]
    assert result["verdict"] == "unverifiable"
    assert result["explanation"] == "I think it is probably true."
    assert len(result["sources"]) == 3
    assert [s["title"] for s in result["sources"]] == ["x", "y", "z"]
    assert result["sources"][0]["url"] == "https://x.example.gov/"
    assert result["sources"][0]["snippet"] == "s"


def test_empty_claim_rejected(adapter_factory):
    with pytest.raises(ValidationError):
        asyncio.run(FactVerifier(FlakySearch(), adapter_factory()).verify("  "))


def test_parse_json_reply_handles_fences():
    assert parse_json_reply('```json\n{"verdict": "true"}\n```') == {"verdict": "true"}
    assert parse_json_reply("[1, 2]") == [1, 2]
    assert parse_json_reply("nope") is None
    assert parse_json_reply("") is None
