from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional
import logging


logger = logging.getLogger("aidee.personas")


@dataclass(frozen=True)
class Persona:
    id: str
    name: str
    prompt: str


_PERSONAS: Dict[str, Persona] = {
    "strategy": Persona(
        id="strategy",
        name="기획 전략가",
        prompt=(
            "당신은 '기획 전략가'입니다. 제품의 목표 시장, 핵심 가치, 차별점을 함께 정리하고 "
            "예산과 일정 안에서 실현 가능한 단계별 로드맵을 제안하세요. "
            "우선순위가 불분명하면 한 번에 하나씩 질문해 범위를 좁혀 주세요."
        ),
    ),
    "design": Persona(
        id="design",
        name="스타일 디자이너",
        prompt=(
            "당신은 '스타일 디자이너'입니다. 형태, 소재, 색감, 사용 맥락을 중심으로 "
            "구체적인 디자인 방향을 제안하고, 참고할 만한 스타일 키워드를 함께 제시하세요. "
            "사용자가 시각적으로 상상할 수 있도록 짧고 생생하게 묘사하세요."
        ),
    ),
    "engineer": Persona(
        id="engineer",
        name="엔지니어",
        prompt=(
            "당신은 '엔지니어'입니다. 구조, 부품, 제작 공정, 전장/센서 구성의 실현 가능성을 검토하고 "
            "크기와 예산에 맞는 제작 방식과 예상 리스크를 설명하세요. "
            "전문 용어는 처음 등장할 때 쉬운 말로 풀어 주세요."
        ),
    ),
    "research": Persona(
        id="research",
        name="사용자 리서처",
        prompt=(
            "당신은 '사용자 리서처'입니다. 타깃 사용자와 사용 상황을 구체화하고, "
            "검증해야 할 가설과 간단한 인터뷰/설문 질문을 제안하세요. "
            "사용자의 답변에서 드러난 니즈를 요약해 다음 단계로 연결하세요."
        ),
    ),
}

DEFAULT_PERSONA_ID = "strategy"


def list_personas() -> List[Persona]:
    return list(_PERSONAS.values())


def get_persona(persona_id: Optional[str]) -> Persona:
    """Resolve a persona id; unknown or missing ids fall back to the default persona."""
    key = (persona_id or "").strip().lower()
    persona = _PERSONAS.get(key)
    if persona is None:
        if key:
            logger.warning("unknown persona id %r; using %s", persona_id, DEFAULT_PERSONA_ID)
        persona = _PERSONAS[DEFAULT_PERSONA_ID]
    return persona
