from __future__ import annotations

from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional
import logging

from ..config import Settings
from .streaming import StreamTimeout, with_deadline

# Optional import: langchain-openai
try:
    from langchain_openai import ChatOpenAI  # type: ignore
except Exception:  # pragma: no cover - optional import
    ChatOpenAI = None  # type: ignore


logger = logging.getLogger("aidee.relay")
LOG = logging.getLogger("aidee.llm")


class InferenceNotConfigured(RuntimeError):
    """The inference credential is missing; the relay refuses to run."""


class RelayError(RuntimeError):
    """The inference stream failed or was cut short."""


def _to_messages(history: Iterable[Mapping[str, Any]], instruction: str) -> List[Dict[str, str]]:
    msgs: List[Dict[str, str]] = [{"role": "system", "content": instruction}]
    for m in history:
        r = m.get("role") or "user"
        c = m.get("content") or ""
        if r not in ("user", "assistant"):
            r = "user"
        msgs.append({"role": r, "content": c})
    return msgs


def _get_llm(settings: Settings) -> Any:
    if not ChatOpenAI:
        raise InferenceNotConfigured("LLM client not available")
    LOG.debug("inference_client model=%s base_url=%s", settings.model, settings.inference_base_url)
    return ChatOpenAI(
        api_key=settings.inference_api_key,
        base_url=settings.inference_base_url,
        model=settings.model,
        temperature=0.7,
        streaming=True,
    )


def _chunk_text(chunk: Any) -> str:
    content = getattr(chunk, "content", chunk)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        # Some providers stream content parts: [{"type": "text", "text": "..."}]
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts)
    return ""


async def _stream(llm: Any, msgs: List[Dict[str, str]]) -> AsyncIterator[str]:
    delivered = 0
    try:
        async for chunk in llm.astream(msgs):
            text = _chunk_text(chunk)
            if text:
                delivered += 1
                yield text
    except Exception as exc:
        LOG.warning("relay_stream_failed after %d chunks: %s", delivered, exc)
        raise RelayError(str(exc) or exc.__class__.__name__) from exc
    LOG.debug("relay_stream_completed chunks=%d", delivered)


def relay(
    history: Iterable[Mapping[str, Any]],
    instruction: str,
    *,
    settings: Optional[Settings] = None,
    budget_s: Optional[float] = None,
) -> AsyncIterator[str]:
    """Stream the assistant reply for ``history`` under ``instruction``.

    Configuration is checked eagerly, so a missing credential raises
    InferenceNotConfigured here, before the endpoint is contacted. The
    returned async iterator yields text fragments in arrival order; it is
    finite and cannot be restarted. Errors while streaming surface as
    RelayError. There is no retry; callers re-invoke with the same history.

    The wall-clock ceiling is ``settings.max_duration_s`` unless ``budget_s``
    is given; a handler that spent time before calling passes what remains.
    """
    settings = settings or Settings.from_env()
    if not settings.inference_configured:
        raise InferenceNotConfigured("API Key Missing")
    msgs = _to_messages(history, instruction)
    llm = _get_llm(settings)
    LOG.info("relay_start model=%s turns=%d", settings.model, len(msgs) - 1)
    budget = settings.max_duration_s if budget_s is None else max(budget_s, 0.001)
    return _guarded(with_deadline(_stream(llm, msgs), budget))


async def _guarded(stream: AsyncIterator[str]) -> AsyncIterator[str]:
    try:
        async for chunk in stream:
            yield chunk
    except StreamTimeout as exc:
        LOG.warning("relay_timeout: %s", exc)
        raise RelayError(str(exc)) from exc
