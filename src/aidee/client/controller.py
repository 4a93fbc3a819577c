from __future__ import annotations

"""Conversation controller driving one project's chat session.

This module provides:
- ConversationState / TranscriptEntry: what a chat view renders
- ConversationBackend protocol with two implementations:
  - LocalConversationBackend: in-process (context assembler, relay, turn persistence)
  - HttpConversationBackend: talks to the API over HTTP with httpx, reading the
    streamed reply body as it arrives
- ConversationController: single controller; the persona is configuration

Turn lifecycle: LOADING -> IDLE -> SENDING -> STREAMING -> IDLE. Only one turn
runs at a time per controller; a second submit while busy is rejected, not
queued. Nothing serialises turns across controllers for the same project.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Protocol
import logging

import httpx
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from ..config import Settings
from ..domain.chat_models import Message
from ..domain.models import is_valid_project_id
from ..services.context import assemble
from ..services.relay import RelayError, relay
from ..services.turns import TurnPersistence


logger = logging.getLogger("aidee.client")


class ConversationState(str, Enum):
    LOADING = "loading"
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"


@dataclass
class TranscriptEntry:
    role: str
    content: str
    id: Optional[str] = None

    def as_turn(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class ConversationBackend(Protocol):
    async def load_transcript(self, project_id: str) -> List[Message]: ...

    async def append_turn(self, project_id: str, role: str, content: str) -> Optional[Message]: ...

    def stream_reply(
        self,
        project_id: str,
        history: List[Dict[str, str]],
        persona_id: Optional[str],
        is_initial: bool = False,
        project_data: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[str]: ...


class LocalConversationBackend:
    def __init__(self, persistence: Optional[TurnPersistence] = None, settings: Optional[Settings] = None) -> None:
        self.persistence = persistence or TurnPersistence()
        self.settings = settings

    async def load_transcript(self, project_id: str) -> List[Message]:
        return await run_in_threadpool(self.persistence.load_transcript, project_id)

    async def append_turn(self, project_id: str, role: str, content: str) -> Optional[Message]:
        if role == "user":
            return await run_in_threadpool(self.persistence.append_user_turn, project_id, content)
        return await run_in_threadpool(self.persistence.append_assistant_turn, project_id, content)

    async def stream_reply(
        self,
        project_id: str,
        history: List[Dict[str, str]],
        persona_id: Optional[str],
        is_initial: bool = False,
        project_data: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[str]:
        instruction = await run_in_threadpool(
            assemble, project_id, persona_id, is_initial=is_initial, project_data=project_data
        )
        async for chunk in relay(history, instruction, settings=self.settings):
            yield chunk


class HttpConversationBackend:
    """Remote backend: the API's chat, transcript and message endpoints."""

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ) -> None:
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        self._client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def load_transcript(self, project_id: str) -> List[Message]:
        resp = await self._client.get(f"/projects/{project_id}/messages")
        resp.raise_for_status()
        return [Message.model_validate(m) for m in resp.json()]

    async def append_turn(self, project_id: str, role: str, content: str) -> Optional[Message]:
        try:
            resp = await self._client.post(
                f"/projects/{project_id}/messages",
                json={"role": role, "content": content},
            )
            resp.raise_for_status()
            return Message.model_validate(resp.json())
        except (httpx.HTTPError, ValueError, ValidationError):
            logger.exception("failed to persist %s turn project_id=%s", role, project_id)
            return None

    async def stream_reply(
        self,
        project_id: str,
        history: List[Dict[str, str]],
        persona_id: Optional[str],
        is_initial: bool = False,
        project_data: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[str]:
        body: Dict[str, Any] = {
            "messages": history,
            "projectId": project_id,
            "personaId": persona_id,
            "isInitial": is_initial,
        }
        if project_data is not None:
            body["projectData"] = project_data
        async with self._client.stream("POST", "/api/chat", json=body) as resp:
            if resp.status_code >= 400:
                await resp.aread()
                try:
                    detail = resp.json().get("error")
                except ValueError:
                    detail = resp.text
                raise RelayError(detail or f"chat request failed ({resp.status_code})")
            async for text in resp.aiter_text():
                if text:
                    yield text


class ConversationController:
    def __init__(
        self,
        project_id: str,
        backend: ConversationBackend,
        *,
        persona_id: Optional[str] = None,
        is_new: bool = False,
        project_data: Optional[Dict[str, Any]] = None,
        on_change: Optional[Callable[["ConversationController"], None]] = None,
    ) -> None:
        self.project_id = project_id
        self.backend = backend
        self.persona_id = persona_id
        self.project_data = project_data
        self.entries: List[TranscriptEntry] = []
        self.state = ConversationState.LOADING
        self._is_new = is_new
        self._on_change = on_change

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

    def _set_state(self, state: ConversationState) -> None:
        self.state = state
        self._notify()

    def select_persona(self, persona_id: Optional[str]) -> None:
        # Applies from the next turn; the transcript is shared across personas
        self.persona_id = persona_id

    async def load(self) -> None:
        """Fetch the transcript; a brand-new empty project opens with a greeting turn."""
        self._set_state(ConversationState.LOADING)
        messages: List[Message] = []
        if is_valid_project_id(self.project_id):
            try:
                messages = await self.backend.load_transcript(self.project_id)
            except Exception:
                logger.exception("transcript load failed project_id=%s", self.project_id)
                messages = []
        self.entries = [TranscriptEntry(role=m.role, content=m.content, id=m.id) for m in messages]
        is_new, self._is_new = self._is_new, False
        self._set_state(ConversationState.IDLE)
        if is_new and not self.entries:
            self._set_state(ConversationState.SENDING)
            await self._run_turn(None, is_initial=True)

    async def submit(self, text: str) -> bool:
        """Send one user turn. Returns False when rejected (blank text or busy)."""
        if not text or not text.strip() or self.state != ConversationState.IDLE:
            return False
        # Claimed before the first await so a concurrent submit sees SENDING
        self._set_state(ConversationState.SENDING)
        return await self._run_turn(text)

    def _history(self) -> List[Dict[str, str]]:
        return [e.as_turn() for e in self.entries if e.content]

    async def _persist(self, role: str, content: str) -> Optional[Message]:
        try:
            return await self.backend.append_turn(self.project_id, role, content)
        except Exception:
            logger.exception("failed to persist %s turn project_id=%s", role, self.project_id)
            return None

    async def _run_turn(self, text: Optional[str], *, is_initial: bool = False) -> bool:
        try:
            return await self._exchange(text, is_initial)
        finally:
            self._set_state(ConversationState.IDLE)

    async def _exchange(self, text: Optional[str], is_initial: bool) -> bool:
        if text is not None:
            self.entries.append(TranscriptEntry(role="user", content=text))
            self._notify()
        history = self._history()
        if text is not None:
            await self._persist("user", text)

        placeholder = TranscriptEntry(role="assistant", content="")
        self.entries.append(placeholder)
        self._notify()
        parts: List[str] = []
        try:
            async for chunk in self.backend.stream_reply(
                self.project_id,
                history,
                self.persona_id,
                is_initial=is_initial,
                project_data=self.project_data,
            ):
                parts.append(chunk)
                placeholder.content = "".join(parts)
                if self.state != ConversationState.STREAMING:
                    self._set_state(ConversationState.STREAMING)
                else:
                    self._notify()
        except Exception:
            logger.exception("conversation turn failed project_id=%s", self.project_id)
            return False

        saved = await self._persist("assistant", placeholder.content)
        if saved is not None:
            placeholder.id = saved.id
        return True
