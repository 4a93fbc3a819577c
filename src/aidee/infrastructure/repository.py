from __future__ import annotations

from datetime import UTC, datetime
from threading import RLock
from typing import Dict, List, Optional, Protocol
import logging
import uuid

from ..config import Settings
from ..domain.models import Project, ProjectContext, ProjectCreate, summarize_title


logger = logging.getLogger("aidee.store")


class ProjectRepository(Protocol):
    def create(self, owner: str, payload: ProjectCreate) -> Project: ...
    def get(self, project_id: str) -> Optional[Project]: ...
    def list_for_owner(self, owner: str) -> List[Project]: ...
    def get_context(self, project_id: str) -> Optional[ProjectContext]: ...


class InMemoryProjectRepository:
    """Process-local project store for development and tests."""

    def __init__(self) -> None:
        self._projects: Dict[str, Project] = {}
        self._lock = RLock()

    def create(self, owner: str, payload: ProjectCreate) -> Project:
        with self._lock:
            pid = str(uuid.uuid4())
            document = payload.requirements.to_document()
            project = Project(
                id=pid,
                title=summarize_title(payload.requirements.idea) or None,
                requirements=document,
                owner=owner,
                created_at=datetime.now(UTC),
            )
            self._projects[pid] = project
            return project.model_copy(deep=True)

    def get(self, project_id: str) -> Optional[Project]:
        with self._lock:
            proj = self._projects.get(project_id)
            return proj.model_copy(deep=True) if proj else None

    def list_for_owner(self, owner: str) -> List[Project]:
        with self._lock:
            owned = [p.model_copy(deep=True) for p in self._projects.values() if p.owner == owner]
        # Newest first
        return sorted(owned, key=lambda p: p.created_at, reverse=True)

    def get_context(self, project_id: str) -> Optional[ProjectContext]:
        with self._lock:
            proj = self._projects.get(project_id)
            if not proj:
                return None
            return ProjectContext(title=proj.title, requirements=dict(proj.requirements))


_repo: ProjectRepository | None = None


def get_repo() -> ProjectRepository:
    global _repo
    if _repo is not None:
        return _repo
    settings = Settings.from_env()
    if settings.store_impl == "supabase":
        from .supabase_store import SupabaseStore

        _repo = SupabaseStore.from_settings(settings)
        logger.info("Using hosted project store url=%s", settings.store_url)
        return _repo
    _repo = InMemoryProjectRepository()
    return _repo
