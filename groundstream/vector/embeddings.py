"""
Embedding providers: text -> fixed-dimension float vector.
"""

from abc import ABC, abstractmethod
import hashlib
from typing import List

import httpx
import ollama

from ..core.errors import EmbeddingError


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector for given text. Raises EmbeddingError."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for testing purposes.

    Identical text always maps to the identical vector, so exact-text
    lookups score ~1.0 without any model dependency. Unrelated texts get
    essentially uncorrelated vectors.
    """

    def __init__(self, dimension: int = 384):
        if dimension < 1:
            raise ValueError("dimension must be >= 1")
        self.dimension = dimension

    def embed_text(self, text: str) -> List[float]:
        """Generate deterministic embedding vector using hash function."""
        if text is None:
            raise EmbeddingError("cannot embed None")

        vector = []
        block = 0
        while len(vector) < self.dimension:
            # One md5 digest yields four 32-bit components
            hex_dig = hashlib.md5(f"{block}:{text}".encode()).hexdigest()
            for i in range(0, len(hex_dig), 8):
                value = int(hex_dig[i:i + 8], 16)
                # Map to [-1, 1] for cosine similarity
                vector.append((value / (2 ** 32)) * 2 - 1)
            block += 1

        return vector[:self.dimension]

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models."""

    def __init__(self, model_name: str = "all-mpnet-base-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> List[float]:
        """Generate embedding vector using sentence transformers."""
        try:
            embedding = self.model.encode(text, convert_to_tensor=False)
        except (OSError, RuntimeError, ValueError) as e:
            raise EmbeddingError(f"sentence-transformers embedding failed: {e}") from e
        return embedding.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension


class OllamaEmbedding(IEmbeddingProvider):
    """Embeddings served by a local Ollama instance."""

    def __init__(self, model_name: str = "nomic-embed-text", host: str = None, client=None):
        self.model_name = model_name
        self._client = client or ollama.Client(host=host)
        self._dimension = None

    def embed_text(self, text: str) -> List[float]:
        try:
            response = self._client.embed(model=self.model_name, input=text)
            embedding = list(response["embeddings"][0])
        except ollama.ResponseError as e:
            raise EmbeddingError(f"Ollama embedding error: {e.error}") from e
        except (httpx.HTTPError, ConnectionError, OSError) as e:
            raise EmbeddingError(f"Ollama unreachable: {e}") from e
        except (KeyError, IndexError, TypeError) as e:
            raise EmbeddingError(f"Malformed Ollama embedding response: {e}") from e

        if self._dimension is None:
            self._dimension = len(embedding)
        return embedding

    def get_dimension(self) -> int:
        if self._dimension is None:
            self._dimension = len(self.embed_text("dimension check"))
        return self._dimension
