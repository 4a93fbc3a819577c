from __future__ import annotations

from datetime import UTC, datetime
from threading import RLock
from typing import Dict, List, Protocol
import logging
import uuid

from ..config import Settings
from ..domain.chat_models import Message


logger = logging.getLogger("aidee.store")


class MessageStore(Protocol):
    def add_message(self, project_id: str, role: str, content: str) -> Message: ...

    def list_messages(self, project_id: str) -> List[Message]: ...


class InMemoryMessageStore:
    """Append-only message log keyed by project.

    Timestamps never go backwards within one store instance, so a message
    appended after another always sorts at or after it.
    """

    def __init__(self) -> None:
        self._messages: Dict[str, List[Message]] = {}
        self._last_ts: datetime | None = None
        self._lock = RLock()

    def _next_timestamp(self) -> str:
        now = datetime.now(UTC)
        if self._last_ts is not None and now < self._last_ts:
            now = self._last_ts
        self._last_ts = now
        return now.isoformat().replace("+00:00", "Z")

    def add_message(self, project_id: str, role: str, content: str) -> Message:
        with self._lock:
            msg = Message(
                id=uuid.uuid4().hex,
                project_id=project_id,
                role=role,
                content=content,
                created_at=self._next_timestamp(),
            )
            self._messages.setdefault(project_id, []).append(msg)
            return msg.model_copy()

    def list_messages(self, project_id: str) -> List[Message]:
        with self._lock:
            return [m.model_copy() for m in self._messages.get(project_id, [])]


_store: MessageStore | None = None


def get_message_store() -> MessageStore:
    global _store
    if _store is not None:
        return _store
    settings = Settings.from_env()
    if settings.store_impl == "supabase":
        from .supabase_store import SupabaseStore

        _store = SupabaseStore.from_settings(settings)
        return _store
    _store = InMemoryMessageStore()
    return _store
