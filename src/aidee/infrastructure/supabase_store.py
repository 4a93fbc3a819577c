from __future__ import annotations

"""Hosted project/message store speaking the Supabase REST (PostgREST) dialect.

Tables:
- projects (id, user_id, title, requirements jsonb, created_at)
- messages (id, project_id, role, content, created_at)

Only insert, equality-filtered select with ordering, and single-row select are
used; nothing is ever updated or deleted from here.
"""

from datetime import UTC, datetime
from typing import Any, Dict, List, Optional
import logging

import requests

from ..config import Settings
from ..domain.chat_models import Message
from ..domain.models import Project, ProjectContext, ProjectCreate, summarize_title
from .http import DEFAULT_TIMEOUT, build_session


logger = logging.getLogger("aidee.store")


class StoreError(RuntimeError):
    pass


class SupabaseStore:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: tuple[int, int] = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._session = session or build_session()
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseStore":
        # The service credential bypasses row-level policies; ownership is enforced by the API layer.
        key = settings.store_service_key or settings.store_anon_key
        if not settings.store_url or not key:
            raise StoreError("Hosted store not configured (SUPABASE_URL and a store key are required)")
        return cls(settings.store_url, key)

    def _headers(self, **extra: str) -> Dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        try:
            resp = self._session.get(self._url(table), params=params, headers=self._headers(), timeout=self._timeout)
            resp.raise_for_status()
            rows = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise StoreError(f"select from {table} failed: {exc}") from exc
        return rows if isinstance(rows, list) else []

    def _insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self._session.post(
                self._url(table),
                json=row,
                headers=self._headers(Prefer="return=representation"),
                timeout=self._timeout,
            )
            resp.raise_for_status()
            rows = resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise StoreError(f"insert into {table} failed: {exc}") from exc
        if isinstance(rows, list) and rows:
            return rows[0]
        if isinstance(rows, dict):
            return rows
        raise StoreError(f"insert into {table} returned no row")

    @staticmethod
    def _to_project(row: Dict[str, Any]) -> Project:
        return Project(
            id=str(row["id"]),
            title=row.get("title"),
            requirements=row.get("requirements") or {},
            owner=str(row.get("user_id") or ""),
            created_at=row.get("created_at") or datetime.now(UTC),
        )

    @staticmethod
    def _to_message(row: Dict[str, Any]) -> Message:
        return Message(
            id=str(row["id"]),
            project_id=str(row["project_id"]),
            role=row["role"],
            content=row.get("content") or "",
            created_at=str(row.get("created_at") or ""),
        )

    # Projects

    def create(self, owner: str, payload: ProjectCreate) -> Project:
        row = self._insert(
            "projects",
            {
                "user_id": owner,
                "title": summarize_title(payload.requirements.idea) or None,
                "requirements": payload.requirements.to_document(),
            },
        )
        return self._to_project(row)

    def get(self, project_id: str) -> Optional[Project]:
        rows = self._select("projects", {"select": "*", "id": f"eq.{project_id}", "limit": "1"})
        return self._to_project(rows[0]) if rows else None

    def list_for_owner(self, owner: str) -> List[Project]:
        rows = self._select("projects", {"select": "*", "user_id": f"eq.{owner}", "order": "created_at.desc"})
        return [self._to_project(r) for r in rows]

    def get_context(self, project_id: str) -> Optional[ProjectContext]:
        rows = self._select("projects", {"select": "title,requirements", "id": f"eq.{project_id}", "limit": "1"})
        if not rows:
            return None
        row = rows[0]
        return ProjectContext(title=row.get("title"), requirements=row.get("requirements") or {})

    # Messages

    def add_message(self, project_id: str, role: str, content: str) -> Message:
        row = self._insert("messages", {"project_id": project_id, "role": role, "content": content})
        return self._to_message(row)

    def list_messages(self, project_id: str) -> List[Message]:
        rows = self._select(
            "messages",
            {"select": "*", "project_id": f"eq.{project_id}", "order": "created_at.asc"},
        )
        return [self._to_message(r) for r in rows]
