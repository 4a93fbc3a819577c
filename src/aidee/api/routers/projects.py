from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ...domain.chat_models import Message, MessageCreate
from ...domain.models import Project, ProjectCreate, is_valid_project_id
from ...infrastructure.message_store import get_message_store
from ...infrastructure.repository import get_repo
from ...infrastructure.supabase_store import StoreError
from ...security.session import SessionContext, require_session


router = APIRouter(prefix="/projects", tags=["projects"])


def _owned_project(project_id: str, session: SessionContext) -> Project:
    if not is_valid_project_id(project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    try:
        proj = get_repo().get(project_id)
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    if not proj or proj.owner != session.user.id:
        raise HTTPException(status_code=404, detail="Project not found")
    return proj


@router.post("", response_model=Project, status_code=status.HTTP_201_CREATED)
def create_project(payload: ProjectCreate, session: SessionContext = Depends(require_session)) -> Project:
    try:
        return get_repo().create(session.user.id, payload)
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.get("", response_model=List[Project])
def list_projects(session: SessionContext = Depends(require_session)) -> List[Project]:
    try:
        return get_repo().list_for_owner(session.user.id)
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.get("/{project_id}", response_model=Project)
def get_project(project_id: str, session: SessionContext = Depends(require_session)) -> Project:
    return _owned_project(project_id, session)


@router.get("/{project_id}/messages", response_model=List[Message])
def list_messages(project_id: str, session: SessionContext = Depends(require_session)) -> List[Message]:
    # A malformed id is an empty transcript, not an error
    if not is_valid_project_id(project_id):
        return []
    _owned_project(project_id, session)
    try:
        return get_message_store().list_messages(project_id)
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.post("/{project_id}/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
def add_message(
    project_id: str,
    req: MessageCreate,
    session: SessionContext = Depends(require_session),
) -> Message:
    _owned_project(project_id, session)
    try:
        return get_message_store().add_message(project_id, role=req.role, content=req.content)
    except StoreError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
