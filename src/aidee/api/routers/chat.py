from __future__ import annotations

from typing import AsyncIterator, List, Optional
import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool

from ...config import Settings
from ...domain.chat_models import ChatRequest, ImageRequest, ImageResponse, PersonaInfo
from ...domain.personas import list_personas
from ...observability.metrics import record_stream
from ...services.context import assemble
from ...services.images import ImageGenerationError, generate_image
from ...services.relay import InferenceNotConfigured, RelayError, relay


logger = logging.getLogger("aidee.api.chat")

router = APIRouter(prefix="/api", tags=["chat"])

IMAGE_FAILED = "이미지 생성 실패"


def _error(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _continue(first: Optional[str], stream: AsyncIterator[str], project_id: str) -> AsyncIterator[str]:
    if first is None:
        record_stream("completed")
        return
    yield first
    try:
        async for chunk in stream:
            yield chunk
    except RelayError as exc:
        # Headers are already sent; the client sees a truncated body
        logger.error("chat stream aborted project_id=%s: %s", project_id, exc)
        record_stream("failed")
        raise
    record_stream("completed")


@router.post("/chat")
async def chat(req: ChatRequest):
    """Relay one conversational turn as a plain-text chunked stream.

    Persists nothing: the caller owns both turn inserts.
    """
    settings = Settings.from_env()
    if not settings.inference_configured:
        logger.error("chat relay refused: inference credential missing")
        record_stream("not_configured")
        return _error("API Key Missing")

    # The ceiling covers context assembly as well as the stream
    started = time.monotonic()
    history = [turn.model_dump() for turn in req.messages]
    instruction = await run_in_threadpool(
        assemble,
        req.project_id,
        req.resolved_persona_id(),
        is_initial=req.is_initial,
        project_data=req.project_data,
    )
    try:
        stream = relay(
            history,
            instruction,
            settings=settings,
            budget_s=settings.max_duration_s - (time.monotonic() - started),
        )
    except InferenceNotConfigured as exc:
        logger.error("chat relay refused: %s", exc)
        record_stream("not_configured")
        return _error("API Key Missing")

    # Pull the first fragment before committing to a 200
    try:
        first: Optional[str] = await stream.__anext__()
    except StopAsyncIteration:
        first = None
    except RelayError as exc:
        logger.error("chat relay failed project_id=%s: %s", req.project_id, exc)
        record_stream("failed")
        return _error(str(exc) or "Relay failed")

    return StreamingResponse(
        _continue(first, stream, req.project_id),
        media_type="text/plain; charset=utf-8",
    )


@router.get("/personas", response_model=List[PersonaInfo])
def personas() -> List[PersonaInfo]:
    return [PersonaInfo(id=p.id, name=p.name) for p in list_personas()]


@router.post("/images", response_model=ImageResponse, response_model_by_alias=True)
def images(req: ImageRequest):
    try:
        url = generate_image(req.prompt)
    except ImageGenerationError as exc:
        logger.error("image generation failed: %s", exc)
        return _error(IMAGE_FAILED)
    return ImageResponse(image_url=url)
