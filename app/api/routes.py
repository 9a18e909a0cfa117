# app/api/routes.py
from __future__ import annotations

import logging
import time
from typing import Dict, List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import ValidationError

from app.agent import AgentBackendError, HttpAgentBackend
from app.config import get_settings
from app.intake.stages import STAGE_DESCRIPTIONS, STAGE_LABELS, STAGE_ORDER
from app.intake.state import ConversationSession, ConversationTurn
from app.services import ConversationService
from .schemas import (
    StartSessionRequest,
    StartSessionResponse,
    MessageSchema,
    ProgressResponse,
    SendMessageRequest,
    SendMessageResponse,
    CompletionResponse,
    IntakeResponse,
    UpdateIntakeRequest,
    StageSchema,
)

logger = logging.getLogger(__name__)

router = APIRouter()

_sessions: Dict[str, ConversationSession] = {}

_backend = HttpAgentBackend()
_service = ConversationService(backend=_backend)


def get_service() -> ConversationService:
    return _service


def close_backend() -> None:
    _backend.close()


def _get_session(session_id: str) -> ConversationSession:
    session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=404,
            detail="Session not found. Start a new conversation.",
        )
    return session


def _message(turn: ConversationTurn) -> MessageSchema:
    return MessageSchema(role=turn.role, content=turn.content, metadata=turn.metadata)


def _progress(service: ConversationService, session: ConversationSession) -> ProgressResponse:
    state = session.progress
    notification = service.current_notification(session)
    return ProgressResponse(
        current_stage=state.current_stage.value,
        completed_stages=[s.value for s in STAGE_ORDER if s in state.completed_stages],
        progress=service.tracker.progress(state),
        notification=notification.value if notification is not None else None,
        stage_not_recognized=state.stage_not_recognized,
    )


def _intake(session: ConversationSession, changed: List[str] | None = None) -> IntakeResponse:
    completion = session.completion
    return IntakeResponse(
        form=session.form,
        completion=CompletionResponse(
            shown=completion.shown,
            scheduled_time=completion.scheduled_time,
            modal_open=completion.modal_open,
        ),
        changed_fields=changed or [],
    )


def _refresh_after_exchange(
    service: ConversationService,
    session: ConversationSession,
    generation: int,
) -> None:
    # Give the backend a moment to record the exchange
    delay = get_settings().refetch_delay_seconds
    if delay > 0:
        time.sleep(delay)
    service.refresh_intake(session, generation=generation)


@router.get("/stages", response_model=List[StageSchema])
def list_stages() -> List[StageSchema]:
    return [
        StageSchema(
            value=stage.value,
            label=STAGE_LABELS[stage],
            description=STAGE_DESCRIPTIONS[stage],
        )
        for stage in STAGE_ORDER
    ]


@router.post("/sessions", response_model=StartSessionResponse)
def start_session(
    payload: StartSessionRequest,
    service: ConversationService = Depends(get_service),
) -> StartSessionResponse:
    """
    Start a new conversation. The intake form is filled from whatever the
    backend already holds for this user.
    """
    user_id = payload.user_id or "User"
    session = service.start_session(user_id)
    _sessions[session.session_id] = session

    service.refresh_intake(session)

    return StartSessionResponse(
        session_id=session.session_id,
        user_id=session.user_id,
        messages=[_message(t) for t in session.turns],
        progress=_progress(service, session),
    )


@router.post("/sessions/{session_id}/messages", response_model=SendMessageResponse)
def send_message(
    session_id: str,
    payload: SendMessageRequest,
    background_tasks: BackgroundTasks,
    service: ConversationService = Depends(get_service),
) -> SendMessageResponse:
    session = _get_session(session_id)

    try:
        reply = service.send_message(session, payload.message)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    background_tasks.add_task(
        _refresh_after_exchange, service, session, session.generation
    )

    return SendMessageResponse(
        reply=_message(reply),
        progress=_progress(service, session),
        unexpected_situation=session.unexpected_situation,
    )


@router.get("/sessions/{session_id}/progress", response_model=ProgressResponse)
def get_progress(
    session_id: str,
    service: ConversationService = Depends(get_service),
) -> ProgressResponse:
    return _progress(service, _get_session(session_id))


@router.get("/sessions/{session_id}/messages", response_model=List[MessageSchema])
def get_messages(session_id: str) -> List[MessageSchema]:
    return [_message(t) for t in _get_session(session_id).turns]


@router.post("/sessions/{session_id}/refresh", response_model=IntakeResponse)
def refresh_intake(
    session_id: str,
    service: ConversationService = Depends(get_service),
) -> IntakeResponse:
    session = _get_session(session_id)
    changed = service.refresh_intake(session)
    return _intake(session, changed)


@router.get("/sessions/{session_id}/intake", response_model=IntakeResponse)
def get_intake(session_id: str) -> IntakeResponse:
    return _intake(_get_session(session_id))


@router.patch("/sessions/{session_id}/intake", response_model=IntakeResponse)
def update_intake(
    session_id: str,
    payload: UpdateIntakeRequest,
    service: ConversationService = Depends(get_service),
) -> IntakeResponse:
    session = _get_session(session_id)

    try:
        for field_name, value in payload.fields.items():
            service.update_field(session, field_name, value)
    except KeyError as e:
        raise HTTPException(status_code=422, detail=f"Unknown intake field: {e.args[0]}")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid intake value: {e.errors()[0]['msg']}")

    return _intake(session)


@router.post("/sessions/{session_id}/completion/dismiss", response_model=IntakeResponse)
def dismiss_completion(
    session_id: str,
    service: ConversationService = Depends(get_service),
) -> IntakeResponse:
    session = _get_session(session_id)
    service.dismiss_completion(session)
    return _intake(session)


@router.post("/sessions/{session_id}/reset", response_model=StartSessionResponse)
def reset_session(
    session_id: str,
    service: ConversationService = Depends(get_service),
) -> StartSessionResponse:
    session = _get_session(session_id)

    try:
        service.reset_session(session)
    except AgentBackendError as e:
        logger.warning("Session reset failed for %s: %s", session_id, e)
        raise HTTPException(status_code=502, detail="Failed to reset session. Please try again.")

    return StartSessionResponse(
        session_id=session.session_id,
        user_id=session.user_id,
        messages=[_message(t) for t in session.turns],
        progress=_progress(service, session),
    )
