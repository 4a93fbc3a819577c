from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


Role = Literal["user", "assistant"]


class ChatTurn(BaseModel):
    role: Role
    content: str


class Message(BaseModel):
    id: str
    project_id: str
    role: Role
    content: str
    created_at: str


class MessageCreate(BaseModel):
    role: Role
    content: str


class ChatRequest(BaseModel):
    """Body of the conversation endpoint; keys follow the browser client's camelCase."""

    model_config = ConfigDict(populate_by_name=True)

    messages: List[ChatTurn] = Field(default_factory=list)
    project_id: str = Field(alias="projectId")
    persona_id: Optional[str] = Field(default=None, alias="personaId")
    expert_id: Optional[str] = Field(default=None, alias="expertId")
    project_data: Optional[Dict[str, Any]] = Field(default=None, alias="projectData")
    is_initial: bool = Field(default=False, alias="isInitial")

    def resolved_persona_id(self) -> Optional[str]:
        return self.persona_id or self.expert_id


class PersonaInfo(BaseModel):
    id: str
    name: str


class ImageRequest(BaseModel):
    prompt: str = Field(min_length=1)


class ImageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(alias="imageUrl")
