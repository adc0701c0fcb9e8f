"""
Retrieval-augmented streaming orchestrator.

One run walks a linear state machine:

1. MODERATING - hard gate; a disallowed prompt raises ModerationBlocked before
   any stream exists, a failing gate fails open
2. RETRIEVING_CONTEXT - memory recall and web search, concurrently; each may
   degrade independently (memory silently, search with a search_error event)
3. COMPOSING - memory lines then ranked search lines become the grounded prompt
4. STREAMING - model deltas are relayed one chunk event per delta, then one
   terminal done or error event

CANCELLED is reachable from every non-terminal state. Events travel through a
bounded queue between the producer task and the transport, which gives the
transport backpressure and a single cancellation path.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

from .agent import (
    IModelStreamAdapter,
    IModerationGate,
    ISearchProvider,
    ModelCompleted,
    ModelDelta,
    ModelError,
    ModerationDecision,
)
from .ranker import rank_results
from ..core import config
from ..core.dao import MemoryStore
from ..core.errors import GroundstreamError, ModerationBlocked, StreamFailure, UpstreamDegraded, ValidationError
from ..core.schema import GroundingContext, MemoryHit, SearchResult
from ..util.logging import logger

T = TypeVar("T")


class RunState(str, Enum):
    INIT = "init"
    MODERATING = "moderating"
    BLOCKED = "blocked"
    RETRIEVING_CONTEXT = "retrieving_context"
    COMPOSING = "composing"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({RunState.BLOCKED, RunState.DONE, RunState.ERROR, RunState.CANCELLED})


class StageStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    FATAL = "fatal"


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Outcome of one pipeline stage: a value plus whether it was degraded."""
    status: StageStatus
    value: T
    error: Optional[GroundstreamError] = None

    @classmethod
    def ok(cls, value: T) -> "StageResult[T]":
        return cls(status=StageStatus.OK, value=value)

    @classmethod
    def degraded(cls, stage: str, fallback: T, cause: Exception) -> "StageResult[T]":
        return cls(status=StageStatus.DEGRADED, value=fallback, error=UpstreamDegraded(stage, cause))

    @classmethod
    def fatal(cls, cause: Exception, value: T = None) -> "StageResult[T]":
        error = cause if isinstance(cause, GroundstreamError) else StreamFailure(str(cause) or cause.__class__.__name__)
        return cls(status=StageStatus.FATAL, value=value, error=error)

    @property
    def is_ok(self) -> bool:
        return self.status == StageStatus.OK


class EventType(str, Enum):
    MEMORY = "memory"
    SEARCH = "search"
    SEARCH_ERROR = "search_error"
    CHUNK = "chunk"
    ERROR = "error"
    DONE = "done"


@dataclass(frozen=True)
class StreamEvent:
    type: EventType
    payload: Any

    @classmethod
    def memory(cls, lines: Sequence[str]) -> "StreamEvent":
        return cls(EventType.MEMORY, list(lines))

    @classmethod
    def search(cls, results: Sequence[Dict[str, str]]) -> "StreamEvent":
        return cls(EventType.SEARCH, list(results))

    @classmethod
    def search_error(cls, message: str) -> "StreamEvent":
        return cls(EventType.SEARCH_ERROR, message)

    @classmethod
    def chunk(cls, text: str) -> "StreamEvent":
        return cls(EventType.CHUNK, text)

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(EventType.ERROR, message)

    @classmethod
    def done(cls, elapsed_ms: int) -> "StreamEvent":
        return cls(EventType.DONE, elapsed_ms)

    @property
    def is_terminal(self) -> bool:
        return self.type in (EventType.DONE, EventType.ERROR)

    def to_frame(self) -> Dict[str, Any]:
        """Wire representation, one JSON object per line."""
        key = {
            EventType.MEMORY: "memories",
            EventType.SEARCH: "results",
            EventType.SEARCH_ERROR: "error",
            EventType.CHUNK: "text",
            EventType.ERROR: "error",
            EventType.DONE: "elapsed",
        }[self.type]
        return {"type": self.type.value, key: self.payload}


def format_memory_lines(hits: Sequence[MemoryHit]) -> List[str]:
    return [f"Memory: {hit.record.text} (score={hit.score:.3f})" for hit in hits]


def format_search_lines(results: Sequence[SearchResult]) -> List[str]:
    """Numbered 1-based, in the same order as the emitted search event."""
    return [f"{i}. {r.title} — {r.url}\n{r.snippet}" for i, r in enumerate(results, start=1)]


def compose_prompt(prompt: str, context: GroundingContext, assistant_name: str = "Prometheus") -> str:
    """Build the grounded model input: instructions, memories, sources, question."""
    parts = []
    if context.memory_lines:
        parts.append("Relevant memories:\n" + "\n".join(context.memory_lines))
    if context.search_lines:
        parts.append("Top web sources:\n" + "\n\n".join(context.search_lines))
    grounding = "\n\n".join(parts)

    return (
        f"You are {assistant_name}, an expert assistant. Use the following context "
        "(memories + web sources) to ground your answer and cite sources when stating facts. "
        "If sources contradict, say so.\n\n"
        f"{grounding}\n\n"
        f"User question: {prompt}\n"
        "Provide a clear answer and cite sources inline (use [1], [2] referencing the numbered results above)."
    )


_END = object()


class StreamRun:
    """
    One accepted orchestration run.

    The transport iterates `events()`; disconnect handling calls `cancel()`,
    which returns immediately without waiting on outstanding external calls.
    """

    def __init__(self, orchestrator: "StreamOrchestrator", prompt: str, model: Optional[str] = None,
                 queue_size: int = 64, run_id: Optional[str] = None):
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.prompt = prompt
        self.model = model
        # Only moderated prompts become runs
        self.state = RunState.MODERATING
        self.history: List[RunState] = [RunState.INIT, RunState.MODERATING]
        self.chunks_emitted = 0
        # Outcome of the STREAMING stage; FATAL whenever the model fails
        self.stream_result: Optional[StageResult[int]] = None
        self._orchestrator = orchestrator
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._task: Optional[asyncio.Task] = None

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def start(self) -> None:
        self._task = asyncio.create_task(self._produce(), name=f"stream-run-{self.run_id}")

    async def events(self) -> AsyncIterator[StreamEvent]:
        try:
            while True:
                item = await self._queue.get()
                if item is _END:
                    return
                yield item
        finally:
            # Consumer went away (or finished): make sure no work outlives it
            self.cancel()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if not self.finished:
            self._transition(RunState.CANCELLED)
            logger.log_stream_run(self.run_id, RunState.CANCELLED.value, self.chunks_emitted)
            self._close_queue()

    def _transition(self, state: RunState) -> None:
        self.state = state
        self.history.append(state)
        logger.log_stage(self.run_id, state.value, "entered")

    def _close_queue(self) -> None:
        # Drop undelivered events so the end marker always fits
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
        self._queue.put_nowait(_END)

    async def _emit(self, event: StreamEvent) -> None:
        await self._queue.put(event)

    async def _finish(self, state: RunState, event: StreamEvent, elapsed_ms: Optional[int] = None) -> None:
        await self._emit(event)
        self._transition(state)
        logger.log_stream_run(self.run_id, state.value, self.chunks_emitted, elapsed_ms)

    async def _produce(self) -> None:
        orchestrator = self._orchestrator
        try:
            self._transition(RunState.RETRIEVING_CONTEXT)
            memory_result, search_result = await orchestrator.retrieve_context(self.prompt, self.run_id)

            memory_lines = format_memory_lines(memory_result.value)
            if memory_lines:
                await self._emit(StreamEvent.memory(memory_lines))

            if search_result.is_ok:
                await self._emit(StreamEvent.search([r.public_view() for r in search_result.value]))
            else:
                await self._emit(StreamEvent.search_error(str(search_result.error.cause)))

            self._transition(RunState.COMPOSING)
            context = GroundingContext(
                memory_lines=memory_lines,
                search_lines=format_search_lines(search_result.value)
            )
            full_prompt = compose_prompt(self.prompt, context, orchestrator.assistant_name)

            self._transition(RunState.STREAMING)
            await self._stream(full_prompt)

        except asyncio.CancelledError:
            if not self.finished:
                self._transition(RunState.CANCELLED)
            raise
        except Exception as e:
            # A defect inside one run still ends it with exactly one terminal event
            logger.error(f"Stream run {self.run_id} failed unexpectedly: {e}")
            if not self.finished:
                await self._finish(RunState.ERROR, StreamEvent.error(f"Internal error: {e}"))

        await self._queue.put(_END)

    async def _stream(self, full_prompt: str) -> None:
        adapter = self._orchestrator.model_adapter
        started = time.monotonic()
        stream = adapter.stream(full_prompt, self.model)
        try:
            async for event in stream:
                if isinstance(event, ModelDelta):
                    if event.text:
                        self.chunks_emitted += 1
                        await self._emit(StreamEvent.chunk(event.text))
                elif isinstance(event, ModelError):
                    await self._fail_stream(StreamFailure(event.message))
                    return
                elif isinstance(event, ModelCompleted):
                    elapsed_ms = int(round((time.monotonic() - started) * 1000))
                    self.stream_result = StageResult.ok(self.chunks_emitted)
                    logger.log_stage(self.run_id, "stream", StageStatus.OK.value, {"chunks": self.chunks_emitted})
                    await self._finish(RunState.DONE, StreamEvent.done(elapsed_ms), elapsed_ms)
                    return

            await self._fail_stream(StreamFailure("Model stream ended before completion"))
        except Exception as e:
            # Adapter blew up mid-stream; chunks already sent stand
            await self._fail_stream(e)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _fail_stream(self, cause: Exception) -> None:
        self.stream_result = StageResult.fatal(cause, self.chunks_emitted)
        logger.log_stage(self.run_id, "stream", StageStatus.FATAL.value, {"error": str(self.stream_result.error)})
        await self._finish(RunState.ERROR, StreamEvent.error(str(self.stream_result.error)))


class StreamOrchestrator:
    """
    Sequences moderation, retrieval, composition and streaming.

    All collaborators are passed in explicitly so test instances are isolated
    from each other and from the process configuration.
    """

    def __init__(self, memory_store: Optional[MemoryStore], search_provider: ISearchProvider,
                 moderation_gate: IModerationGate, model_adapter: IModelStreamAdapter,
                 memory_top_k: int = None, search_limit: int = None, queue_size: int = None,
                 assistant_name: str = None):
        self.memory_store = memory_store
        self.search_provider = search_provider
        self.moderation_gate = moderation_gate
        self.model_adapter = model_adapter
        self.memory_top_k = memory_top_k or config.MEMORY_TOP_K
        self.search_limit = search_limit or config.SEARCH_RESULT_LIMIT
        self.queue_size = queue_size or config.STREAM_QUEUE_SIZE
        self.assistant_name = assistant_name or config.ASSISTANT_NAME

    async def open_run(self, prompt: str, model: Optional[str] = None) -> StreamRun:
        """
        Moderate the prompt and start a run.

        Raises ValidationError for an empty prompt and ModerationBlocked when
        the gate disallows it; in both cases no events are ever produced.
        """
        prompt = _require_prompt(prompt)
        run_id = uuid.uuid4().hex[:12]

        logger.log_stage(run_id, RunState.MODERATING.value, "entered")
        moderation = await self.moderate(prompt, run_id)
        if not moderation.value.allowed:
            logger.log_stage(run_id, RunState.BLOCKED.value, "entered")
            raise ModerationBlocked(moderation.value.reason)

        run = StreamRun(self, prompt, model, self.queue_size, run_id=run_id)
        run.start()
        return run

    async def moderate(self, prompt: str, run_id: str) -> StageResult[ModerationDecision]:
        """Hard gate. Gate infrastructure failure fails open."""
        try:
            decision = await self.moderation_gate.check(prompt)
        except Exception as e:
            logger.log_moderation(run_id, True, e, failed=True)
            return StageResult.degraded("moderation", ModerationDecision(allowed=True, reason="moderation_error"), e)

        logger.log_moderation(run_id, decision.allowed, decision.reason)
        return StageResult.ok(decision)

    async def retrieve_context(self, prompt: str, run_id: str) -> Tuple[StageResult[List[MemoryHit]], StageResult[List[SearchResult]]]:
        """Memory and search have no data dependency; run them together."""
        memory_result, search_result = await asyncio.gather(
            self.retrieve_memory(prompt, run_id),
            self.retrieve_search(prompt, run_id),
        )
        return memory_result, search_result

    async def retrieve_memory(self, prompt: str, run_id: str) -> StageResult[List[MemoryHit]]:
        if self.memory_store is None:
            return StageResult.ok([])
        try:
            hits = await asyncio.to_thread(self.memory_store.query, prompt, self.memory_top_k)
        except Exception as e:
            logger.log_stage(run_id, "memory", StageStatus.DEGRADED.value, {"error": str(e)})
            return StageResult.degraded("memory", [], e)

        logger.log_stage(run_id, "memory", StageStatus.OK.value, {"hits": len(hits)})
        return StageResult.ok(hits)

    async def retrieve_search(self, prompt: str, run_id: str) -> StageResult[List[SearchResult]]:
        try:
            results = await self.search_provider.search(prompt, self.search_limit)
        except Exception as e:
            logger.log_stage(run_id, "search", StageStatus.DEGRADED.value, {"error": str(e)})
            return StageResult.degraded("search", [], e)

        ranked = rank_results(results)[:self.search_limit]
        logger.log_stage(run_id, "search", StageStatus.OK.value, {"results": len(ranked)})
        return StageResult.ok(ranked)

    async def answer(self, prompt: str, model: Optional[str] = None) -> Dict[str, Any]:
        """
        Non-streaming grounded answer.

        Same moderation and retrieval policy as a stream run; on success the
        prompt itself is remembered in the "user" namespace.
        """
        prompt = _require_prompt(prompt)
        run_id = uuid.uuid4().hex[:12]

        moderation = await self.moderate(prompt, run_id)
        if not moderation.value.allowed:
            raise ModerationBlocked(moderation.value.reason)

        memory_result, search_result = await self.retrieve_context(prompt, run_id)
        context = GroundingContext(
            memory_lines=[hit.record.text for hit in memory_result.value],
            search_lines=format_search_lines(search_result.value)
        )
        text = await self.model_adapter.complete(compose_prompt(prompt, context, self.assistant_name), model)

        if self.memory_store is not None:
            try:
                await asyncio.to_thread(self.memory_store.store, "user", prompt)
            except Exception as e:
                # The answer is already generated; remembering the prompt is best effort
                logger.log_memory_operation("store", "user", details={"error": str(e)}, status="failed")

        return {"text": text, "sources": search_result.value}


def _require_prompt(prompt: Optional[str]) -> str:
    if prompt is None or not str(prompt).strip():
        raise ValidationError("Prompt missing")
    return str(prompt)
