"""
Vector-level types used by the similarity search strategies.
"""

from dataclasses import dataclass

import numpy as np


@dataclass
class VectorRecord:
    """A candidate vector keyed by its memory record id."""

    id: int
    """Identifier of the owning memory record"""

    vector: np.ndarray
    """The stored embedding"""


@dataclass
class QueryResult:
    """Represents a scored match from a similarity search."""

    id: int
    """Identifier of the matching record"""

    score: float
    """Cosine similarity of the match"""
