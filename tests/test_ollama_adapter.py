"""
Ollama stream adapter against a fake async client.
"""

import asyncio

import httpx
import ollama
import pytest
from unittest.mock import patch

from groundstream.agents.agent import ModelCompleted, ModelDelta, ModelError
from groundstream.agents.ollama_agent import OllamaStreamAdapter, check_ollama_health
from groundstream.core.errors import StreamFailure


class FakeAsyncClient:
    def __init__(self, parts=None, response=None, error=None, error_midway=None):
        self.parts = parts or []
        self.response = response
        self.error = error
        self.error_midway = error_midway
        self.calls = []

    async def chat(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if kwargs.get("stream"):
            return self._iterate()
        return self.response

    async def _iterate(self):
        for part in self.parts:
            yield part
        if self.error_midway is not None:
            raise self.error_midway


def _collect(adapter, prompt="prompt"):
    async def run():
        return [event async for event in adapter.stream(prompt)]
    return asyncio.run(run())


class TestOllamaStreamAdapter:

    def test_deltas_then_completion(self):
        client = FakeAsyncClient(parts=[
            {"message": {"content": "Hello"}, "done": False},
            {"message": {"content": " world"}, "done": False},
            {"message": {"content": ""}, "done": True},
        ])
        adapter = OllamaStreamAdapter(model_name="test-model", client=client)

        events = _collect(adapter)

        assert events == [ModelDelta("Hello"), ModelDelta(" world"), ModelCompleted()]
        assert client.calls[0]["model"] == "test-model"
        assert client.calls[0]["messages"] == [{"role": "user", "content": "prompt"}]

    def test_response_error_becomes_model_error(self):
        client = FakeAsyncClient(error=ollama.ResponseError("model 'x' not found", 404))

        events = _collect(OllamaStreamAdapter(client=client))

        assert len(events) == 1
        assert isinstance(events[0], ModelError)
        assert "not found" in events[0].message

    def test_midstream_transport_failure(self):
        client = FakeAsyncClient(
            parts=[{"message": {"content": "partial"}, "done": False}],
            error_midway=httpx.ReadError("connection reset"),
        )

        events = _collect(OllamaStreamAdapter(client=client))

        assert events[0] == ModelDelta("partial")
        assert isinstance(events[1], ModelError)

    def test_stream_without_done_just_ends(self):
        client = FakeAsyncClient(parts=[{"message": {"content": "a"}, "done": False}])

        assert _collect(OllamaStreamAdapter(client=client)) == [ModelDelta("a")]

    def test_complete_returns_message_content(self):
        client = FakeAsyncClient(response={"message": {"role": "assistant", "content": "answer"}})

        text = asyncio.run(OllamaStreamAdapter(client=client).complete("q"))

        assert text == "answer"
        assert client.calls[0]["stream"] is False

    def test_complete_failure_raises_stream_failure(self):
        client = FakeAsyncClient(error=ConnectionError("refused"))

        with pytest.raises(StreamFailure):
            asyncio.run(OllamaStreamAdapter(client=client).complete("q"))


class TestOllamaHealth:

    @patch("groundstream.agents.ollama_agent.ollama.Client")
    def test_healthy_when_list_answers(self, mock_client):
        mock_client.return_value.list.return_value = {"models": []}

        assert check_ollama_health("http://ollama:11434") is True
        mock_client.assert_called_once_with(host="http://ollama:11434")

    @patch("groundstream.agents.ollama_agent.ollama.Client")
    def test_unhealthy_on_timeout(self, mock_client):
        mock_client.return_value.list.side_effect = httpx.ConnectTimeout("timed out")

        assert check_ollama_health() is False
