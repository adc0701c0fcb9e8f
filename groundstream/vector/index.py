"""
Similarity search strategies over stored embeddings.

The memory store hands every candidate to a strategy on each query. The
default strategy is a full linear scan (O(N*D)); an indexed strategy can be
dropped in behind the same interface as long as it keeps the ordering rules:
score descending, ties broken by ascending record id.
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

import numpy as np

from .types import VectorRecord, QueryResult

# Guards the zero-vector case in the cosine denominator
COSINE_EPSILON = 1e-12


def cosine_similarity(a, b) -> float:
    """dot(a, b) / (|a| * |b| + eps)"""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    return float(np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b) + COSINE_EPSILON))


def encode_embedding(vector) -> bytes:
    """Serialize an embedding as a fixed-width little-endian float32 blob."""
    return np.asarray(vector, dtype="<f4").tobytes()


def decode_embedding(blob: bytes) -> np.ndarray:
    """Inverse of encode_embedding."""
    return np.frombuffer(blob, dtype="<f4")


class IVectorSearch(ABC):
    """Abstract interface for similarity search over a snapshot of candidates."""

    @abstractmethod
    def search(self, query_vector: np.ndarray, candidates: Sequence[VectorRecord], top_k: int = 5) -> List[QueryResult]:
        """Score candidates against the query and return the best top_k."""
        pass


class LinearScanSearch(IVectorSearch):
    """Full-scan cosine similarity. Deterministic regardless of scan order."""

    def search(self, query_vector: np.ndarray, candidates: Sequence[VectorRecord], top_k: int = 5) -> List[QueryResult]:
        if top_k <= 0 or not candidates:
            return []

        query = np.asarray(query_vector, dtype=np.float64)
        matrix = np.vstack([np.asarray(c.vector, dtype=np.float64) for c in candidates])

        # einsum keeps the per-row arithmetic identical, so equal vectors score equal
        dots = np.einsum("ij,j->i", matrix, query)
        norms = np.sqrt(np.einsum("ij,ij->i", matrix, matrix)) * np.linalg.norm(query)
        scores = dots / (norms + COSINE_EPSILON)

        scored = sorted(
            ((float(score), candidate.id) for score, candidate in zip(scores, candidates)),
            key=lambda item: (-item[0], item[1]),
        )

        return [QueryResult(id=record_id, score=score) for score, record_id in scored[:top_k]]
