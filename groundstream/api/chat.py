"""
Grounded chat endpoints: NDJSON streaming, one-shot answers and claim verification.

Moderation blocks and validation failures raise before any frame is written,
so they surface as ordinary HTTP errors rather than as stream events.
"""

import json
import logging
from dataclasses import asdict
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from .dependencies import get_orchestrator, get_verifier
from .schemas import PromptRequest, PromptResponse, SourceResponse, StreamPromptRequest, VerifyRequest, VerifyResponse
from ..agents.orchestrator import StreamOrchestrator, StreamRun
from ..agents.verifier import FactVerifier

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"

router = APIRouter()


async def ndjson_frames(run: StreamRun) -> AsyncIterator[str]:
    """Serialize run events, one JSON object per line."""
    try:
        async for event in run.events():
            yield json.dumps(event.to_frame()) + "\n"
    finally:
        # Client disconnect lands here too
        run.cancel()


async def _start_stream(orchestrator: StreamOrchestrator, prompt: Optional[str], model: Optional[str]) -> StreamingResponse:
    run = await orchestrator.open_run(prompt, model)
    logger.info(f"Stream run {run.run_id} accepted")
    return StreamingResponse(
        ndjson_frames(run),
        media_type=NDJSON_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/stream-prompt")
async def stream_prompt_post(req: StreamPromptRequest, orchestrator: StreamOrchestrator = Depends(get_orchestrator)):
    return await _start_stream(orchestrator, req.prompt, req.model)


@router.get("/stream-prompt")
async def stream_prompt_get(prompt: Optional[str] = None, model: Optional[str] = None,
                            orchestrator: StreamOrchestrator = Depends(get_orchestrator)):
    return await _start_stream(orchestrator, prompt, model)


@router.post("/prompt", response_model=PromptResponse)
async def prompt_endpoint(req: PromptRequest, orchestrator: StreamOrchestrator = Depends(get_orchestrator)):
    """Non-streaming grounded answer."""
    answer = await orchestrator.answer(req.prompt, req.model)
    return PromptResponse(
        text=answer["text"],
        sources=[SourceResponse(**asdict(r)) for r in answer["sources"]]
    )


@router.post("/verify", response_model=VerifyResponse)
async def verify_endpoint(req: VerifyRequest, verifier: FactVerifier = Depends(get_verifier)):
    verification = await verifier.verify(req.claim, req.queries, req.model)
    return VerifyResponse(**verification)
