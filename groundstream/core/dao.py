"""
Memory store: persisted (namespace, text, embedding, timestamp) records with
insert and full-scan similarity query.

Writes are serialized through a store-level lock and committed in a single
transaction; reads never take that lock and see every write committed before
their SELECT started.
"""

import sqlite3
import threading
import time
from typing import List, Optional

import numpy as np

from .config import DB_PATH, get_embedding_provider
from .db import get_db, init_db, health_check
from .errors import EmbeddingError, PersistenceError, ValidationError
from .schema import MemoryHit, MemoryRecord
from ..util.logging import logger
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import IVectorSearch, LinearScanSearch, decode_embedding, encode_embedding
from ..vector.types import VectorRecord

DIMENSION_META_KEY = "embedding_dim"


class MemoryStore:
    """Append-only memory records with cosine-similarity recall."""

    def __init__(self, db_path: str = None, embedding_provider: IEmbeddingProvider = None,
                 search_strategy: IVectorSearch = None):
        self.db_path = db_path or DB_PATH
        self.embedding_provider = embedding_provider or get_embedding_provider()
        self.search_strategy = search_strategy or LinearScanSearch()
        self._write_lock = threading.Lock()

        try:
            init_db(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to initialize memory store at {self.db_path}: {e}") from e

    def store(self, namespace: str, text: str) -> int:
        """Embed and persist one record. Returns its id."""
        if not namespace or not namespace.strip():
            raise ValidationError("namespace cannot be empty")
        if not text or not text.strip():
            raise ValidationError("text cannot be empty")

        vector = self._embed(text)
        blob = encode_embedding(vector)
        created_at = int(time.time() * 1000)

        with self._write_lock:
            try:
                with get_db(self.db_path) as conn:
                    conn.execute("BEGIN IMMEDIATE")
                    self._check_dimension(conn, len(vector))
                    cursor = conn.execute(
                        "INSERT INTO memories (namespace, text, embedding, created_at) VALUES (?, ?, ?, ?)",
                        (namespace, text, blob, created_at)
                    )
                    record_id = cursor.lastrowid
                    conn.commit()
            except sqlite3.Error as e:
                logger.log_memory_operation("store", namespace, details={"error": str(e)}, status="failed")
                raise PersistenceError(f"Failed to store memory: {e}") from e

        logger.log_memory_operation("store", namespace, record_id, {"dimension": len(vector)})
        return record_id

    def query(self, text: str, top_k: int = 5) -> List[MemoryHit]:
        """Return at most top_k records ordered by similarity to text."""
        if top_k <= 0:
            return []

        query_vector = self._embed(text)

        try:
            with get_db(self.db_path) as conn:
                # One statement, one consistent snapshot
                rows = conn.execute(
                    "SELECT id, namespace, text, embedding, created_at FROM memories"
                ).fetchall()
                dimension = self._stored_dimension(conn)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read memories: {e}") from e

        if not rows:
            return []

        if dimension is not None and len(query_vector) != dimension:
            raise EmbeddingError(
                f"Query embedding has {len(query_vector)} components, store expects {dimension}"
            )

        records = {}
        candidates = []
        for record_id, namespace, record_text, blob, created_at in rows:
            embedding = decode_embedding(blob)
            records[record_id] = MemoryRecord(
                id=record_id,
                namespace=namespace,
                text=record_text,
                embedding=embedding,
                created_at=created_at
            )
            candidates.append(VectorRecord(id=record_id, vector=embedding))

        results = self.search_strategy.search(query_vector, candidates, top_k)

        logger.log_memory_operation("query", details={"candidates": len(candidates), "hits": len(results)})
        return [MemoryHit(record=records[r.id], score=r.score) for r in results]

    def list_memories(self, limit: int = 50) -> List[MemoryRecord]:
        """Most recent records first, without embeddings."""
        try:
            with get_db(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT id, namespace, text, created_at FROM memories "
                    "ORDER BY created_at DESC, id DESC LIMIT ?",
                    (limit,)
                ).fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list memories: {e}") from e

        return [
            MemoryRecord(id=r[0], namespace=r[1], text=r[2], created_at=r[3])
            for r in rows
        ]

    def count(self) -> int:
        try:
            with get_db(self.db_path) as conn:
                return conn.execute("SELECT COUNT(*) FROM memories").fetchone()[0]
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to count memories: {e}") from e

    def dimension(self) -> Optional[int]:
        """Embedding width fixed by the first insert, or None for an empty store."""
        try:
            with get_db(self.db_path) as conn:
                return self._stored_dimension(conn)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read store metadata: {e}") from e

    def health_check(self) -> bool:
        return health_check(self.db_path)

    def _embed(self, text: str) -> np.ndarray:
        vector = np.asarray(self.embedding_provider.embed_text(text), dtype=np.float32)
        if vector.ndim != 1 or vector.size == 0:
            raise EmbeddingError(f"Embedding provider returned shape {vector.shape}")
        if not np.all(np.isfinite(vector)):
            raise EmbeddingError("Embedding provider returned non-finite components")
        return vector

    def _stored_dimension(self, conn: sqlite3.Connection) -> Optional[int]:
        row = conn.execute("SELECT value FROM store_meta WHERE key = ?", (DIMENSION_META_KEY,)).fetchone()
        return int(row[0]) if row else None

    def _check_dimension(self, conn: sqlite3.Connection, width: int) -> None:
        dimension = self._stored_dimension(conn)
        if dimension is None:
            conn.execute(
                "INSERT INTO store_meta (key, value) VALUES (?, ?)",
                (DIMENSION_META_KEY, str(width))
            )
        elif dimension != width:
            raise EmbeddingError(f"Embedding has {width} components, store expects {dimension}")
