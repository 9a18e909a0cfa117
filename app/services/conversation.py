# app/services/conversation.py
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.agent import AgentBackend, AgentBackendError
from app.config import get_settings
from app.db import SessionLocal, engine, Base
from app.models import ChatSession, ChatMessage, IntakeSnapshot
from app.intake.completion import apply_completion, evaluate_completion
from app.intake.extractor import map_transcript_to_form
from app.intake.stages import ConversationStage
from app.intake.state import ConversationSession, ConversationTurn, WELCOME_MESSAGE
from app.intake.tracker import StageTracker

logger = logging.getLogger(__name__)

CONNECTION_ERROR_REPLY = "Sorry, I encountered a connection error. Please try again."
PROCESSING_ERROR_REPLY = "Sorry, I encountered an error processing your message."
UNEXPECTED_STATUS = "Unexpected situation"


@contextmanager
def db_session():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """
    Create all tables. Call this once at startup.
    """
    Base.metadata.create_all(bind=engine)


class ConversationService:
    """
    Service that coordinates:
      - exchanging messages with the remote agent
      - feeding the last reply's stage label to the StageTracker
      - refetching the transcript and merging it into the intake form
      - raising the one-time visit-scheduled signal
      - persisting the visible message stream and form snapshots
    """

    def __init__(
        self,
        backend: AgentBackend,
        tracker: Optional[StageTracker] = None,
        agent_id: Optional[str] = None,
        room_id: Optional[str] = None,
    ):
        settings = get_settings()
        self.backend = backend
        self.tracker = tracker or StageTracker()
        self.agent_id = agent_id or settings.agent_id
        self.room_id = room_id or settings.room_id
        self.notification_display_seconds = settings.notification_display_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_session(self, user_id: str) -> ConversationSession:
        """
        Create a new chat session with the welcome message already shown.
        """
        with db_session() as db:
            row = ChatSession(
                user_id=user_id,
                room_id=self.room_id,
                started_at=datetime.now(timezone.utc),
            )
            db.add(row)
            db.flush()  # to get row.id

            session = ConversationSession(
                session_id=row.id,
                user_id=user_id,
                room_id=self.room_id,
            )
            self._add_turn(db, session, "agent", WELCOME_MESSAGE)

        logger.info("Started session %s for user %s", session.session_id, user_id)
        return session

    def send_message(self, session: ConversationSession, text: str) -> ConversationTurn:
        """
        Send one user message and return the agent turn that was shown for it.

        Only the last reply of the exchange is shown and consulted for the
        stage label. Connection failures become a fallback reply and leave
        stage progress untouched.
        """
        text = text.strip()
        if not text:
            raise ValueError("Message text is empty")

        session.progress.stage_not_recognized = False
        with db_session() as db:
            self._add_turn(db, session, "user", text)

        try:
            replies = self.backend.send_message(text, session.user_id)
        except AgentBackendError as e:
            logger.warning("Message send failed for session %s: %s", session.session_id, e)
            with db_session() as db:
                return self._add_turn(db, session, "agent", CONNECTION_ERROR_REPLY)

        if not replies:
            with db_session() as db:
                return self._add_turn(db, session, "agent", PROCESSING_ERROR_REPLY)

        last = replies[-1]
        metadata = last.metadata
        raw_stage = metadata.stage if metadata is not None else None

        session.unexpected_situation = (
            metadata is not None and metadata.response_status == UNEXPECTED_STATUS
        )
        self.tracker.observe(session.progress, raw_stage)

        with db_session() as db:
            return self._add_turn(
                db,
                session,
                "agent",
                last.text or PROCESSING_ERROR_REPLY,
                stage=raw_stage,
                meta=metadata.model_dump(exclude_none=True) if metadata is not None else None,
            )

    def refresh_intake(
        self,
        session: ConversationSession,
        generation: Optional[int] = None,
    ) -> List[str]:
        """
        Refetch the transcript, merge it into the intake form and check for a
        confirmed visit. Returns the names of the form fields that changed.

        Only extracted values that differ from the previous refresh are
        merged, so a manual edit stands until the transcript itself moves on.

        A failed fetch is logged and changes nothing. When generation is given
        and the session has been reset since it was read, the refresh is
        dropped.
        """
        if self._is_stale(session, generation):
            return []

        try:
            snapshot = self.backend.fetch_transcript(
                session.room_id, session.user_id, self.agent_id
            )
        except AgentBackendError as e:
            logger.warning("Transcript refetch failed for session %s: %s", session.session_id, e)
            return []

        if self._is_stale(session, generation):
            return []

        form_data = map_transcript_to_form(snapshot.record, snapshot.visit_info)
        fresh = {
            key: value
            for key, value in form_data.items()
            if session.last_extraction.get(key) != value
        }
        changed = session.form.merge(fresh)
        session.last_extraction.update(form_data)

        result = evaluate_completion(snapshot.record, session.completion.shown)
        apply_completion(session.completion, result)

        if changed:
            logger.debug("Intake fields updated for session %s: %s", session.session_id, changed)
            self._save_form(session)
        return changed

    def update_field(self, session: ConversationSession, field_name: str, value: str) -> None:
        """
        Manual edit of one intake form field. Raises KeyError for unknown fields
        and ValidationError for values outside a field's allowed choices.
        """
        session.form.set_field(field_name, value)
        self._save_form(session)

    def dismiss_completion(self, session: ConversationSession) -> None:
        # Closing the prompt does not re-arm it
        session.completion.modal_open = False

    def current_notification(
        self,
        session: ConversationSession,
        now: Optional[float] = None,
    ) -> Optional[ConversationStage]:
        return self.tracker.expire_notification(
            session.progress,
            time.monotonic() if now is None else now,
            self.notification_display_seconds,
        )

    def reset_session(self, session: ConversationSession) -> None:
        """
        Reset the conversation on the backend, then put stage progress,
        the completion latch and the form's flag fields back to their
        initial values. Raises AgentBackendError if the backend refuses,
        in which case nothing local changes.
        """
        self.backend.reset_session(session.user_id)
        session.generation += 1

        self.tracker.reset(session.progress)
        session.completion.reset()
        session.form.clear_flags()
        session.last_extraction.clear()
        session.unexpected_situation = False
        session.turns.clear()

        with db_session() as db:
            db.execute(delete(ChatMessage).where(ChatMessage.session_id == session.session_id))
            row = db.get(ChatSession, session.session_id)
            if row is not None:
                row.reset_at = datetime.now(timezone.utc)
            self._add_turn(db, session, "agent", WELCOME_MESSAGE)

        self._save_form(session)
        logger.info("Reset session %s", session.session_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _is_stale(self, session: ConversationSession, generation: Optional[int]) -> bool:
        if generation is None or generation == session.generation:
            return False
        logger.info(
            "Dropping refresh for session %s started before its last reset",
            session.session_id,
        )
        return True

    def _add_turn(
        self,
        db: Session,
        session: ConversationSession,
        role: str,
        content: str,
        stage: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> ConversationTurn:
        db.add(
            ChatMessage(
                session_id=session.session_id,
                sender=role,
                text=content,
                stage=stage,
                meta=meta,
                ts=datetime.now(timezone.utc),
            )
        )
        turn = ConversationTurn(role=role, content=content, metadata=meta or {})
        session.turns.append(turn)
        return turn

    def _save_form(self, session: ConversationSession) -> None:
        with db_session() as db:
            existing = db.get(IntakeSnapshot, session.session_id)
            if existing is None:
                db.add(
                    IntakeSnapshot(
                        session_id=session.session_id,
                        data=session.form.model_dump(),
                    )
                )
            else:
                existing.data = session.form.model_dump()
