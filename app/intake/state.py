# app/intake/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from app.intake.completion import CompletionState
from app.intake.schema import IntakeForm
from app.intake.stages import ConversationStage

WELCOME_MESSAGE = (
    "Welcome to Grand Villas, Looks like Home, Feels like Family. "
    "We are so glad you dropped by, what can I help you with today?"
)


@dataclass
class StageProgressState:
    """
    Where the conversation is in the fixed stage sequence.

    current_stage is never a member of completed_stages.
    """

    current_stage: ConversationStage = ConversationStage.TRUST_BUILDING
    completed_stages: Set[ConversationStage] = field(default_factory=set)

    # Set on every stage change; the caller clears it after a display interval
    pending_notification: Optional[ConversationStage] = None
    notification_set_at: Optional[float] = None

    # Last reply carried no usable stage label
    stage_not_recognized: bool = False


@dataclass
class ConversationTurn:
    role: str  # "user" or "agent"
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ConversationSession:
    """
    Everything one chat session owns. Created by start_session(), mutated
    only in response to server data or explicit user edits, and put back
    to its initial values by reset_session().
    """

    session_id: str
    user_id: str
    room_id: str

    progress: StageProgressState = field(default_factory=StageProgressState)
    completion: CompletionState = field(default_factory=CompletionState)
    form: IntakeForm = field(default_factory=IntakeForm)
    turns: List[ConversationTurn] = field(default_factory=list)

    # Last reply was flagged by the agent as an unexpected situation
    unexpected_situation: bool = False

    # Last transcript-derived values merged into the form. Only keys whose
    # extracted value moved since then are merged again, so manual edits
    # survive a refetch of an unchanged transcript.
    last_extraction: Dict[str, str] = field(default_factory=dict)

    # Bumped by every reset; refreshes started under an older value are dropped
    generation: int = 0
