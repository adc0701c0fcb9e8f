"""
Configuration for the grounding service.
Everything is read from the environment (optionally via a .env file).
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

# Database path configuration
DB_PATH = os.getenv("DB_PATH", "./data/groundstream_memory.db")

DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# Embedding configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence_transformers|ollama
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-mpnet-base-v2")
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))  # hash provider only

# Model provider (Ollama)
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.1:8b")
OLLAMA_EMBED_MODEL = os.getenv("OLLAMA_EMBED_MODEL", "nomic-embed-text")

# External search (Brave)
BRAVE_API_KEY = os.getenv("BRAVE_API_KEY", "")
BRAVE_API_URL = os.getenv("BRAVE_API_URL", "https://api.search.brave.com/res/v1/web/search")
SEARCH_TIMEOUT_SEC = float(os.getenv("SEARCH_TIMEOUT_SEC", "10"))

# Moderation gate
MODERATION_ENABLED = os.getenv("MODERATION_ENABLED", "true").lower() == "true"

# Orchestrator tuning
MEMORY_TOP_K = int(os.getenv("MEMORY_TOP_K", "4"))
SEARCH_RESULT_LIMIT = int(os.getenv("SEARCH_RESULT_LIMIT", "6"))
STREAM_QUEUE_SIZE = int(os.getenv("STREAM_QUEUE_SIZE", "64"))
ASSISTANT_NAME = os.getenv("ASSISTANT_NAME", "Prometheus")

# Admission control (fixed window per client)
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "60"))
RATE_LIMIT_WINDOW_SEC = float(os.getenv("RATE_LIMIT_WINDOW_SEC", "60"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",") if o.strip()]

# Version string
VERSION = "1.0.0"


def get_embedding_provider():
    """Get configured embedding provider implementation."""
    if EMBED_PROVIDER == "sentence_transformers":
        from ..vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(EMBED_MODEL_NAME)
    elif EMBED_PROVIDER == "ollama":
        from ..vector.embeddings import OllamaEmbedding
        return OllamaEmbedding(OLLAMA_EMBED_MODEL, host=OLLAMA_HOST)
    else:
        from ..vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(EMBED_DIM)


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "false").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def validate_config() -> List[str]:
    """Validate configuration and return any issues."""
    issues = []

    if EMBED_PROVIDER not in ["hash", "sentence_transformers", "ollama"]:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    if EMBED_DIM < 1:
        issues.append("EMBED_DIM must be >= 1")

    if not BRAVE_API_KEY:
        issues.append("BRAVE_API_KEY not configured - web search grounding will be degraded")

    if MEMORY_TOP_K < 1:
        issues.append("MEMORY_TOP_K must be >= 1")

    if SEARCH_RESULT_LIMIT < 1:
        issues.append("SEARCH_RESULT_LIMIT must be >= 1")

    if STREAM_QUEUE_SIZE < 1:
        issues.append("STREAM_QUEUE_SIZE must be >= 1")

    if RATE_LIMIT_MAX_REQUESTS < 1 or RATE_LIMIT_WINDOW_SEC <= 0:
        issues.append("RATE_LIMIT_MAX_REQUESTS and RATE_LIMIT_WINDOW_SEC must be positive")

    return issues
