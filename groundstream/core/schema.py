"""
Record types shared by the memory store, the ranker and the orchestrator.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

import numpy as np


@dataclass(frozen=True)
class MemoryRecord:
    id: int
    namespace: str
    text: str
    created_at: int  # epoch milliseconds
    # Only loaded when scoring; listings leave it out
    embedding: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "namespace": self.namespace,
            "text": self.text,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class MemoryHit:
    record: MemoryRecord
    score: float


@dataclass(frozen=True)
class SearchResult:
    """One external search hit. `score` is filled in by the source ranker."""
    title: str
    url: str
    snippet: str = ""
    source_domain: str = ""
    rank: Optional[int] = None
    score: int = 0

    def with_score(self, score: int) -> "SearchResult":
        return replace(self, score=score)

    def public_view(self) -> Dict[str, str]:
        """The triple sent to clients, without internal scoring."""
        return {"title": self.title, "url": self.url, "snippet": self.snippet}


@dataclass
class GroundingContext:
    memory_lines: List[str] = field(default_factory=list)
    search_lines: List[str] = field(default_factory=list)
