# app/intake/completion.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from app.intake.catalog import VISIT_TIME_QUESTION
from app.intake.schema import TranscriptRecord

logger = logging.getLogger(__name__)

PENDING_MARKER = "pending confirmation"


@dataclass
class CompletionState:
    """
    Once `shown` flips to True it stays True until the session is reset.
    `modal_open` is only the presentation side and can be dismissed freely.
    """

    shown: bool = False
    scheduled_time: Optional[str] = None
    modal_open: bool = False

    def reset(self) -> None:
        self.shown = False
        self.scheduled_time = None
        self.modal_open = False


@dataclass(frozen=True)
class CompletionResult:
    trigger: bool
    time: Optional[str] = None


def evaluate_completion(record: Optional[TranscriptRecord], already_shown: bool) -> CompletionResult:
    """
    Decide whether a confirmed visit time has appeared in the transcript.

    Fires only for the visit-time question, only once per session, and
    never for an answer the agent marked as pending confirmation.
    """
    if record is None:
        return CompletionResult(trigger=False)

    visit_entry = None
    for entry in record.visit_scheduling:
        if entry.question == VISIT_TIME_QUESTION:
            visit_entry = entry  # latest answer wins

    if visit_entry is None:
        return CompletionResult(trigger=False)

    if PENDING_MARKER in visit_entry.answer.lower():
        logger.info("Visit time proposed but pending confirmation: %r", visit_entry.answer)
        return CompletionResult(trigger=False)

    if already_shown:
        return CompletionResult(trigger=False)

    return CompletionResult(trigger=True, time=visit_entry.answer)


def apply_completion(state: CompletionState, result: CompletionResult) -> bool:
    """
    Latch a positive result into the session state. Returns True if this
    call is the one that fired.
    """
    if not result.trigger or state.shown:
        return False

    state.shown = True
    state.scheduled_time = result.time
    state.modal_open = True
    logger.info("Visit scheduled for %r", result.time)
    return True
