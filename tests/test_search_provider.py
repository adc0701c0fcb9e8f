"""
Brave search provider with a mocked HTTP session.
"""

import asyncio

import pytest
import requests
from unittest.mock import MagicMock

from groundstream.agents.search import BraveSearchProvider, extract_hits, normalize_result
from groundstream.core.errors import SearchError


def _response(payload=None, status_code=200, ok=True, json_error=None):
    response = MagicMock()
    response.ok = ok
    response.status_code = status_code
    response.text = "upstream says no"
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


class TestBraveSearchProvider:

    @pytest.fixture
    def session(self):
        return MagicMock()

    @pytest.fixture
    def provider(self, session):
        return BraveSearchProvider(api_key="test-key", api_url="https://search.test/api", timeout=5, session=session)

    def test_nested_web_results(self, provider, session):
        session.get.return_value = _response({
            "web": {"results": [
                {"title": "One", "url": "https://one.example/a", "description": "first"},
                {"title": "Two", "url": "https://two.example/b", "description": "second"},
            ]}
        })

        results = asyncio.run(provider.search("query", 5))

        assert [r.title for r in results] == ["One", "Two"]
        assert results[0].snippet == "first"
        assert results[0].source_domain == "one.example"

    def test_request_parameters(self, provider, session):
        session.get.return_value = _response({"results": []})

        provider.search_sync("what is rust", 6)

        args, kwargs = session.get.call_args
        assert args[0] == "https://search.test/api"
        assert kwargs["params"] == {"q": "what is rust", "size": "6"}
        assert kwargs["headers"]["X-Subscription-Token"] == "test-key"
        assert kwargs["timeout"] == 5

    def test_results_truncated_to_size(self, provider, session):
        session.get.return_value = _response({
            "results": [{"title": str(i), "url": f"https://e{i}.example"} for i in range(10)]
        })

        assert len(provider.search_sync("q", 3)) == 3

    def test_missing_api_key(self, session):
        provider = BraveSearchProvider(api_key="", session=session)

        with pytest.raises(SearchError):
            provider.search_sync("q")
        session.get.assert_not_called()

    def test_http_error_status(self, provider, session):
        session.get.return_value = _response(status_code=503, ok=False)

        with pytest.raises(SearchError, match="503"):
            asyncio.run(provider.search("q"))

    def test_transport_error(self, provider, session):
        session.get.side_effect = requests.exceptions.ConnectionError("no route")

        with pytest.raises(SearchError):
            provider.search_sync("q")

    def test_invalid_json(self, provider, session):
        session.get.return_value = _response(json_error=ValueError("bad json"))

        with pytest.raises(SearchError):
            provider.search_sync("q")


def test_extract_hits_shapes():
    assert extract_hits({"items": [{"url": "a"}, "junk"]}) == [{"url": "a"}]
    assert extract_hits({"data": {"results": [{"url": "b"}]}}) == [{"url": "b"}]
    assert extract_hits({"results": []}) == []
    assert extract_hits(None) == []


def test_normalize_result_fallbacks():
    result = normalize_result({"title": "T", "url": "https://docs.python.org/3/", "snippet": "S", "rank": 2})

    assert result.snippet == "S"
    assert result.source_domain == "docs.python.org"
    assert result.rank == 2

    bare = normalize_result({"source": "example.org", "rank": "1"})
    assert bare.title == ""
    assert bare.source_domain == "example.org"
    assert bare.rank is None
