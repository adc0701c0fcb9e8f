"""
Embedding providers and similarity search strategies for the memory store.
"""

from .index import IVectorSearch, LinearScanSearch, cosine_similarity, encode_embedding, decode_embedding
from .types import VectorRecord, QueryResult
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding, OllamaEmbedding

__all__ = [
    'IVectorSearch',
    'LinearScanSearch',
    'cosine_similarity',
    'encode_embedding',
    'decode_embedding',
    'VectorRecord',
    'QueryResult',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'OllamaEmbedding'
]
