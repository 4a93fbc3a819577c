from __future__ import annotations

from typing import List, Optional
import logging

from ..domain.chat_models import Message
from ..domain.models import is_valid_project_id
from ..infrastructure.message_store import MessageStore, get_message_store


logger = logging.getLogger("aidee.turns")


class TurnPersistence:
    """Appends conversation turns to the message store.

    Each append is a single insert; nothing spans the user insert, the relay
    call and the assistant insert. Failures are logged and reported as None.
    """

    def __init__(self, store: Optional[MessageStore] = None) -> None:
        self._store = store

    @property
    def store(self) -> MessageStore:
        return self._store or get_message_store()

    def _append(self, project_id: str, role: str, content: str) -> Optional[Message]:
        try:
            return self.store.add_message(project_id, role=role, content=content)
        except Exception:
            logger.exception("failed to persist %s turn project_id=%s", role, project_id)
            return None

    def append_user_turn(self, project_id: str, content: str) -> Optional[Message]:
        return self._append(project_id, "user", content)

    def append_assistant_turn(self, project_id: str, content: str) -> Optional[Message]:
        return self._append(project_id, "assistant", content)

    def load_transcript(self, project_id: str) -> List[Message]:
        if not is_valid_project_id(project_id):
            return []
        return self.store.list_messages(project_id)
