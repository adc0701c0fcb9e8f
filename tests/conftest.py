"""
Shared fixtures: temporary memory stores and scripted collaborators.
"""

import asyncio
import os
import tempfile
from typing import List, Optional

import pytest

from groundstream.agents.agent import (
    IModelStreamAdapter,
    IModerationGate,
    ISearchProvider,
    ModelCompleted,
    ModelDelta,
    ModelError,
    ModerationDecision,
)
from groundstream.core.dao import MemoryStore
from groundstream.core.errors import SearchError, StreamFailure
from groundstream.core.schema import SearchResult
from groundstream.vector.embeddings import DeterministicHashEmbedding


class ScriptedModerationGate(IModerationGate):
    def __init__(self, blocked_terms=(), failure: Exception = None):
        self.blocked_terms = list(blocked_terms)
        self.failure = failure
        self.calls = []

    async def check(self, text):
        self.calls.append(text)
        if self.failure is not None:
            raise self.failure
        for term in self.blocked_terms:
            if term in text:
                return ModerationDecision(allowed=False, reason={"categories": ["test"], "term": term})
        return ModerationDecision(allowed=True)


class ScriptedSearchProvider(ISearchProvider):
    def __init__(self, results: Optional[List[SearchResult]] = None, failure: Exception = None, delay: float = 0):
        self.results = results or []
        self.failure = failure
        self.delay = delay
        self.queries = []

    async def search(self, query, size=5):
        self.queries.append((query, size))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failure is not None:
            raise self.failure
        return list(self.results[:size])


class ScriptedModelAdapter(IModelStreamAdapter):
    """Replays a fixed event script; `pause` seconds between events."""

    def __init__(self, script=None, completion: str = "", pause: float = 0, raise_after: Exception = None,
                 replies: Optional[List[str]] = None):
        self.script = script if script is not None else [ModelDelta("ok"), ModelCompleted()]
        self.completion = completion
        self.replies = list(replies or [])
        self.pause = pause
        self.raise_after = raise_after
        self.prompts = []
        self.closed = False

    async def stream(self, prompt, model=None):
        self.prompts.append(prompt)
        try:
            for event in self.script:
                if self.pause:
                    await asyncio.sleep(self.pause)
                yield event
            if self.raise_after is not None:
                raise self.raise_after
        finally:
            self.closed = True

    async def complete(self, prompt, model=None):
        self.prompts.append(prompt)
        if self.raise_after is not None:
            raise self.raise_after
        if self.replies:
            return self.replies.pop(0)
        return self.completion


@pytest.fixture
def temp_db_path():
    """Temporary SQLite file, removed after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield os.path.join(tmpdir, "memory.db")


@pytest.fixture
def embedder():
    return DeterministicHashEmbedding(dimension=64)


@pytest.fixture
def memory_store(temp_db_path, embedder):
    return MemoryStore(db_path=temp_db_path, embedding_provider=embedder)


@pytest.fixture
def sample_results():
    return [
        SearchResult(title="Personal blog", url="https://someone.blogspot.com/post", snippet="opinions"),
        SearchResult(title="Agency page", url="https://www.nasa.gov/facts", snippet="facts"),
        SearchResult(title="News", url="https://example.com/news", snippet="news"),
    ]


@pytest.fixture
def moderation_gate():
    return ScriptedModerationGate()


@pytest.fixture
def gate_factory():
    return ScriptedModerationGate


@pytest.fixture
def search_factory():
    return ScriptedSearchProvider


@pytest.fixture
def adapter_factory():
    return ScriptedModelAdapter


@pytest.fixture
def events():
    """Model event constructors, for building scripts inline."""
    return {"delta": ModelDelta, "error": ModelError, "completed": ModelCompleted,
            "search_error": SearchError, "stream_failure": StreamFailure}
