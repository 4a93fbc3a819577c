from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
import re

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


OTHER_OPTION = "기타 (직접 입력)"

GOAL_OPTIONS = ("아이디어 구체화", "2D·3D 시각화", "시제품 제작 및 사업화")
CATEGORY_OPTIONS = ("조명", "인테리어 소품", "가구", "패션·악세서리", "디지털 기기", OTHER_OPTION)
SIZE_OPTIONS = (
    "손바닥 크기 (10cm 이내)",
    "소형 (10~50cm)",
    "중형 (50~100cm)",
    "대형 (100cm 이상)",
    "아직 못 정했어요",
)
FEATURE_OPTIONS = ("단순 구조물", "빛·색 변화", "센서 감지", "조립·분해 가능", "IoT / 스마트 기능", OTHER_OPTION)
DURATION_OPTIONS = ("1주", "2주", "1개월", "3개월", "6개월", "1년", "1년 +")
USAGE_OPTIONS = ("개인 소장 및 전시용", "대량 판매", "크라우드 펀딩", "브랜드 런칭")

# Budget values are expressed in units of 10,000 KRW (만 원); 10000 == 1억 원.
BUDGET_MAX = 10000
BUDGET_STEP = 500
BUDGET_MIN_GAP = 500
DEFAULT_MIN_BUDGET = 2000
DEFAULT_MAX_BUDGET = 7500

TITLE_MAX_CHARS = 15

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE)


def is_valid_project_id(project_id: Optional[str]) -> bool:
    return bool(project_id) and bool(_UUID_RE.match(str(project_id)))


class ProjectRequirements(BaseModel):
    """Typed view over the stored requirements document.

    Every field is optional so partially filled or legacy documents still load;
    unknown keys are kept as extras. Serialised with camelCase keys, matching
    the document written by the provisioning form.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    goal: Optional[str] = None
    categories: Optional[List[str]] = None
    other_category: Optional[str] = None
    min_budget: Optional[int] = None
    max_budget: Optional[int] = None
    size: Optional[str] = None
    features: Optional[List[str]] = None
    other_feature: Optional[str] = None
    duration: Optional[str] = None
    usage: Optional[str] = None
    idea: Optional[str] = None

    @classmethod
    def from_document(cls, document: Any) -> "ProjectRequirements":
        if isinstance(document, ProjectRequirements):
            return document
        if not isinstance(document, dict):
            return cls()
        try:
            return cls.model_validate(document)
        except Exception:
            # Keep the raw keys around rather than dropping context entirely
            return cls.model_construct(**document)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def is_empty(self) -> bool:
        return not self.to_document()


def _blank(value: Optional[str]) -> bool:
    return not (value or "").strip()


def step_errors(req: ProjectRequirements, step: int) -> List[str]:
    """Return the validation problems for one provisioning step (1, 2 or 3)."""
    errors: List[str] = []
    if step == 1:
        if req.goal not in GOAL_OPTIONS:
            errors.append("goal must be one of the listed development stages")
        categories = req.categories or []
        if not categories:
            errors.append("select at least one category")
        if OTHER_OPTION in categories and _blank(req.other_category):
            errors.append("otherCategory is required when the free-text category is selected")
        lo = req.min_budget if req.min_budget is not None else DEFAULT_MIN_BUDGET
        hi = req.max_budget if req.max_budget is not None else DEFAULT_MAX_BUDGET
        if lo < 0 or hi > BUDGET_MAX:
            errors.append(f"budget must stay within 0..{BUDGET_MAX}")
        if lo % BUDGET_STEP or hi % BUDGET_STEP:
            errors.append(f"budget values move in steps of {BUDGET_STEP}")
        if hi - lo < BUDGET_MIN_GAP:
            errors.append(f"maxBudget must exceed minBudget by at least {BUDGET_MIN_GAP}")
    elif step == 2:
        if req.size not in SIZE_OPTIONS:
            errors.append("size must be one of the listed options")
        features = req.features or []
        if not features:
            errors.append("select at least one feature")
        if OTHER_OPTION in features and _blank(req.other_feature):
            errors.append("otherFeature is required when the free-text feature is selected")
        if req.duration not in DURATION_OPTIONS:
            errors.append("duration must be one of the listed options")
        if req.usage not in USAGE_OPTIONS:
            errors.append("usage must be one of the listed options")
    elif step == 3:
        if _blank(req.idea):
            errors.append("idea must not be empty")
    else:
        errors.append(f"unknown step {step}")
    return errors


def step_is_valid(data: Any, step: int) -> bool:
    return not step_errors(ProjectRequirements.from_document(data), step)


def summarize_title(idea: Optional[str]) -> str:
    text = (idea or "").strip()
    if len(text) > TITLE_MAX_CHARS:
        return text[:TITLE_MAX_CHARS] + "..."
    return text


def format_budget(value: int) -> str:
    if value >= BUDGET_MAX:
        return "1억 원"
    return f"{value:,} 만 원"


class ProjectCreate(BaseModel):
    requirements: ProjectRequirements

    @model_validator(mode="after")
    def _check_steps(self) -> "ProjectCreate":
        problems: List[str] = []
        for step in (1, 2, 3):
            problems.extend(step_errors(self.requirements, step))
        if problems:
            raise ValueError("; ".join(problems))
        if self.requirements.min_budget is None:
            self.requirements.min_budget = DEFAULT_MIN_BUDGET
        if self.requirements.max_budget is None:
            self.requirements.max_budget = DEFAULT_MAX_BUDGET
        return self


class Project(BaseModel):
    id: str
    title: Optional[str] = None
    requirements: Dict[str, Any] = Field(default_factory=dict)
    owner: str
    created_at: datetime


class ProjectContext(BaseModel):
    """The least-data projection read by the context assembler."""

    title: Optional[str] = None
    requirements: Dict[str, Any] = Field(default_factory=dict)
