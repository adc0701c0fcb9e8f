"""
Collaborator interfaces consumed by the stream orchestrator.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Optional, Union

from ..core.schema import SearchResult


@dataclass(frozen=True)
class ModerationDecision:
    """Result of a moderation check."""
    allowed: bool
    reason: Optional[Any] = None


@dataclass(frozen=True)
class ModelDelta:
    """One incremental piece of generated text."""
    text: str


@dataclass(frozen=True)
class ModelError:
    """Stream-level error reported by the model provider."""
    message: str


@dataclass(frozen=True)
class ModelCompleted:
    """The model finished generating."""


ModelStreamEvent = Union[ModelDelta, ModelError, ModelCompleted]


class IModerationGate(ABC):
    """Maps text to an allow/deny decision."""

    @abstractmethod
    async def check(self, text: str) -> ModerationDecision:
        """
        Decide whether text may be processed.

        Disallowed content is a normal decision, not an exception. Raise
        ModerationUnavailable only when the gate itself cannot decide.
        """
        pass


class ISearchProvider(ABC):
    """Maps a query string to raw external search results."""

    @abstractmethod
    async def search(self, query: str, size: int = 5) -> List[SearchResult]:
        """Return up to size results. Raises SearchError on upstream failure."""
        pass


class IModelStreamAdapter(ABC):
    """Maps a composed prompt to an ordered sequence of text deltas."""

    @abstractmethod
    def stream(self, prompt: str, model: Optional[str] = None) -> AsyncIterator[ModelStreamEvent]:
        """
        Yield ModelDelta events in generation order, then exactly one
        ModelCompleted or ModelError.
        """
        pass

    @abstractmethod
    async def complete(self, prompt: str, model: Optional[str] = None) -> str:
        """Non-streaming generation. Raises StreamFailure on provider errors."""
        pass
