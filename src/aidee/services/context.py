from __future__ import annotations

from typing import Any, Dict, List, Optional
import json
import logging

from ..domain.models import ProjectContext, ProjectRequirements, format_budget
from ..domain.personas import get_persona
from ..infrastructure.repository import ProjectRepository, get_repo
from .prompts import (
    CONTEXT_HEADER,
    INITIAL_GREETING_DIRECTIVE,
    PERSONA_HEADER,
    STATUS_FRESH,
    STATUS_MID_FLOW,
    SYSTEM_PROMPT_TEMPLATE,
    UNTITLED,
)


logger = logging.getLogger("aidee.context")


def _fetch_context(repo: ProjectRepository, project_id: str) -> Optional[ProjectContext]:
    try:
        return repo.get_context(project_id)
    except Exception:
        logger.exception("project context lookup failed project_id=%s; continuing with defaults", project_id)
        return None


def _fallback_context(project_data: Optional[Dict[str, Any]]) -> Optional[ProjectContext]:
    if not isinstance(project_data, dict):
        return None
    requirements = project_data.get("requirements")
    return ProjectContext(
        title=project_data.get("title") or None,
        requirements=requirements if isinstance(requirements, dict) else {},
    )


def budget_line(requirements: Dict[str, Any]) -> Optional[str]:
    view = ProjectRequirements.from_document(requirements)
    lo, hi = view.min_budget, view.max_budget
    if not isinstance(lo, int) or not isinstance(hi, int):
        return None
    return f"- 예산 범위: {format_budget(lo)} ~ {format_budget(hi)}"


def serialize_requirements(requirements: Dict[str, Any]) -> str:
    document = ProjectRequirements.from_document(requirements).to_document()
    return json.dumps(document, ensure_ascii=False)


def assemble(
    project_id: str,
    persona_id: Optional[str],
    *,
    is_initial: bool = False,
    project_data: Optional[Dict[str, Any]] = None,
    repo: Optional[ProjectRepository] = None,
) -> str:
    """Build the system instruction for one conversational turn.

    Never raises for store problems: a missing project or a failed lookup
    yields an instruction built from defaults.
    """
    context = _fetch_context(repo or get_repo(), project_id)
    if context is None:
        context = _fallback_context(project_data)
        if context is None:
            logger.info("no project context for project_id=%s; using defaults", project_id)
            context = ProjectContext()

    title = (context.title or "").strip()
    persona = get_persona(persona_id)

    lines: List[str] = [
        SYSTEM_PROMPT_TEMPLATE,
        "",
        CONTEXT_HEADER,
        f"- 프로젝트명: {title or UNTITLED}",
        f"- 사용자 초기 정보: {serialize_requirements(context.requirements)}",
    ]
    budget = budget_line(context.requirements)
    if budget:
        lines.append(budget)
    lines.extend(
        [
            "",
            f"현재 사용자는 {STATUS_MID_FLOW if title else STATUS_FRESH}입니다.",
            "위의 운영 규칙에 따라 대화를 시작하거나 이어나가세요.",
            "",
            PERSONA_HEADER,
            f"- {persona.name}: {persona.prompt}",
        ]
    )
    if is_initial:
        lines.extend(["", INITIAL_GREETING_DIRECTIVE])
    return "\n".join(lines)
