"""
Process-wide collaborators for the HTTP layer.

Each getter builds its object on first use; tests replace them through
`app.dependency_overrides` or by building their own orchestrator.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from ..agents.ollama_agent import OllamaStreamAdapter
from ..agents.orchestrator import StreamOrchestrator
from ..agents.safety import AllowAllModerationGate, PatternModerationGate
from ..agents.search import BraveSearchProvider
from ..agents.verifier import FactVerifier
from ..core import config
from ..core.dao import MemoryStore
from ..core.rate_limit import FixedWindowRateLimiter
from ..util.logging import logger

_memory_store: Optional[MemoryStore] = None
_search_provider: Optional[BraveSearchProvider] = None
_model_adapter: Optional[OllamaStreamAdapter] = None
_orchestrator: Optional[StreamOrchestrator] = None
_rate_limiter: Optional[FixedWindowRateLimiter] = None


def get_memory_store() -> MemoryStore:
    global _memory_store
    if _memory_store is None:
        _memory_store = MemoryStore(config.DB_PATH, config.get_embedding_provider())
    return _memory_store


def get_search_provider() -> BraveSearchProvider:
    global _search_provider
    if _search_provider is None:
        _search_provider = BraveSearchProvider()
    return _search_provider


def get_model_adapter() -> OllamaStreamAdapter:
    global _model_adapter
    if _model_adapter is None:
        _model_adapter = OllamaStreamAdapter()
    return _model_adapter


def build_orchestrator(memory_store: MemoryStore = None, search_provider=None,
                       moderation_gate=None, model_adapter=None) -> StreamOrchestrator:
    """Wire a StreamOrchestrator from configuration, filling in any collaborator not given."""
    if moderation_gate is None:
        moderation_gate = PatternModerationGate() if config.MODERATION_ENABLED else AllowAllModerationGate()

    return StreamOrchestrator(
        memory_store=memory_store or get_memory_store(),
        search_provider=search_provider or get_search_provider(),
        moderation_gate=moderation_gate,
        model_adapter=model_adapter or get_model_adapter(),
        memory_top_k=config.MEMORY_TOP_K,
        search_limit=config.SEARCH_RESULT_LIMIT,
        queue_size=config.STREAM_QUEUE_SIZE,
        assistant_name=config.ASSISTANT_NAME,
    )


def get_orchestrator() -> StreamOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
        logger.info("Stream orchestrator initialized")
    return _orchestrator


def get_verifier(orchestrator: StreamOrchestrator = Depends(get_orchestrator)) -> FactVerifier:
    return FactVerifier(orchestrator.search_provider, orchestrator.model_adapter)


def get_rate_limiter() -> FixedWindowRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = FixedWindowRateLimiter(config.RATE_LIMIT_MAX_REQUESTS, config.RATE_LIMIT_WINDOW_SEC)
    return _rate_limiter


def enforce_rate_limit(request: Request, limiter: FixedWindowRateLimiter = Depends(get_rate_limiter)) -> None:
    """Reject the request with 429 once its client exhausts the current window."""
    client_id = request.client.host if request.client else "unknown"
    if not limiter.allow(client_id):
        logger.log_operation("rate_limit.check", "rejected", {"client": client_id})
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests",
            headers={"Retry-After": str(limiter.retry_after())},
        )


def close_collaborators() -> None:
    """Release process-wide collaborators; the next request rebuilds them."""
    global _search_provider, _orchestrator
    if _search_provider is not None:
        _search_provider.close()
        _search_provider = None
    _orchestrator = None
