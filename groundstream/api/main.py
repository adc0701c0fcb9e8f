"""
HTTP surface of the grounding service.

All routes live under /api and share one fixed-window rate limit per client.
"""

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .chat import router as chat_router
from .dependencies import close_collaborators, enforce_rate_limit, get_memory_store, get_orchestrator
from .schemas import (
    AdminMemoriesResponse,
    AdminStatsResponse,
    HealthResponse,
    MemoryHitResponse,
    MemoryQueryRequest,
    MemoryQueryResponse,
    MemoryRecordResponse,
    MemoryStoreRequest,
    MemoryStoreResponse,
    SearchResponse,
    SourceResponse,
)
from ..agents.ollama_agent import check_ollama_health
from ..agents.orchestrator import StreamOrchestrator
from ..agents.ranker import rank_results
from ..core.config import CORS_ORIGINS, VERSION, debug_enabled
from ..core.dao import MemoryStore
from ..core.errors import (
    EmbeddingError,
    ModerationBlocked,
    PersistenceError,
    SearchError,
    StreamFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)

SEARCH_ENDPOINT_SIZE = 8
STARTED_AT = time.time()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close_collaborators()
    logger.info("Collaborators closed")


# Initialize the FastAPI application
app = FastAPI(
    title="Groundstream API",
    version=VERSION,
    description="Retrieval-grounded streaming chat with semantic memory",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

router = APIRouter()


def _record_response(record) -> MemoryRecordResponse:
    return MemoryRecordResponse(**record.to_dict())


@router.get("/health", response_model=HealthResponse)
def health_check_endpoint(store: MemoryStore = Depends(get_memory_store)):
    """Check system health."""
    db_health = store.health_check()
    memory_count = store.count() if db_health else 0

    return HealthResponse(
        ok=db_health,
        db_health=db_health,
        model_available=check_ollama_health(),
        memory_count=memory_count,
        version=VERSION
    )


@router.get("/search", response_model=SearchResponse)
async def search_endpoint(q: Optional[str] = None, query: Optional[str] = None,
                          orchestrator: StreamOrchestrator = Depends(get_orchestrator)):
    """Ranked web search without generation. Accepts `q` or `query`."""
    q = q or query
    if not q or not q.strip():
        raise ValidationError("Missing q")

    results = await orchestrator.search_provider.search(q, SEARCH_ENDPOINT_SIZE)
    return SearchResponse(results=[SourceResponse(**asdict(r)) for r in rank_results(results)])


@router.post("/memory", response_model=MemoryStoreResponse)
def store_memory_endpoint(req: MemoryStoreRequest, store: MemoryStore = Depends(get_memory_store)):
    """Embed and persist one memory."""
    record_id = store.store(req.namespace, req.text)
    return MemoryStoreResponse(id=record_id)


@router.post("/memory/query", response_model=MemoryQueryResponse)
def query_memory_endpoint(req: MemoryQueryRequest, store: MemoryStore = Depends(get_memory_store)):
    """Nearest memories to the given text, best first."""
    hits = store.query(req.text, req.top_k)
    return MemoryQueryResponse(
        hits=[MemoryHitResponse(**hit.record.to_dict(), score=hit.score) for hit in hits]
    )


@router.get("/admin/memories", response_model=AdminMemoriesResponse)
def admin_memories_endpoint(limit: int = 100, store: MemoryStore = Depends(get_memory_store)):
    """Most recent memories."""
    limit = max(1, min(limit, 1000))
    return AdminMemoriesResponse(memories=[_record_response(r) for r in store.list_memories(limit)])


@router.get("/admin/stats", response_model=AdminStatsResponse)
def admin_stats_endpoint(store: MemoryStore = Depends(get_memory_store)):
    return AdminStatsResponse(
        uptime=round(time.time() - STARTED_AT, 3),
        memoryCount=store.count(),
        sampleMem=[_record_response(r) for r in store.list_memories(5)]
    )


app.include_router(router, prefix="/api", dependencies=[Depends(enforce_rate_limit)])
app.include_router(chat_router, prefix="/api", tags=["chat"], dependencies=[Depends(enforce_rate_limit)])


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(ModerationBlocked)
async def moderation_blocked_handler(request: Request, exc: ModerationBlocked):
    return JSONResponse(
        status_code=403,
        content={"error": "Content blocked by moderation", "detail": jsonable_encoder(exc.reason)}
    )


@app.exception_handler(EmbeddingError)
@app.exception_handler(SearchError)
@app.exception_handler(StreamFailure)
async def upstream_error_handler(request: Request, exc: Exception):
    logger.warning(f"Upstream failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"error": str(exc)})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error(f"Persistence failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Memory store unavailable"})


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions."""
    logging.error(f"Unhandled exception: {exc}")
    content = {"detail": "Internal server error"}
    if debug_enabled():
        content["debug"] = str(exc)
    return JSONResponse(
        status_code=500,
        content=content,
    )
