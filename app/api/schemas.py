# app/api/schemas.py
from __future__ import annotations

from typing import Any, Dict, Optional, List

from pydantic import BaseModel, Field

from app.intake.schema import IntakeForm


class StartSessionRequest(BaseModel):
    user_id: Optional[str] = None


class MessageSchema(BaseModel):
    role: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ProgressResponse(BaseModel):
    current_stage: str
    completed_stages: List[str]
    progress: float
    notification: Optional[str]
    stage_not_recognized: bool


class StartSessionResponse(BaseModel):
    session_id: str
    user_id: str
    messages: List[MessageSchema]
    progress: ProgressResponse


class SendMessageRequest(BaseModel):
    message: str


class SendMessageResponse(BaseModel):
    reply: MessageSchema
    progress: ProgressResponse
    unexpected_situation: bool


class CompletionResponse(BaseModel):
    shown: bool
    scheduled_time: Optional[str]
    modal_open: bool


class IntakeResponse(BaseModel):
    form: IntakeForm
    completion: CompletionResponse
    changed_fields: List[str] = Field(default_factory=list)


class UpdateIntakeRequest(BaseModel):
    fields: Dict[str, str]


class StageSchema(BaseModel):
    value: str
    label: str
    description: str
