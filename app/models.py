# app/models.py
from datetime import datetime
import uuid

from sqlalchemy import (
    String,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    JSON,
    CheckConstraint,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id: Mapped[str] = mapped_column(
        String, primary_key=True, default=generate_uuid
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    room_id: Mapped[str] = mapped_column(String, nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    reset_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    messages: Mapped[list["ChatMessage"]] = relationship(
        "ChatMessage", back_populates="session", cascade="all, delete-orphan"
    )
    intake_snapshot: Mapped["IntakeSnapshot"] = relationship(
        "IntakeSnapshot",
        back_populates="session",
        uselist=False,
        cascade="all, delete-orphan",
    )


class ChatMessage(Base):
    """
    The visible message stream: user messages, the agent's last reply per
    exchange, and fallback replies substituted on connection errors.
    """
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String, ForeignKey("chat_sessions.id", ondelete="CASCADE"), nullable=False
    )
    sender: Mapped[str] = mapped_column(String, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    stage: Mapped[str | None] = mapped_column(String, nullable=True)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    ts: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "sender IN ('user', 'agent')",
            name="ck_chat_messages_sender_valid",
        ),
    )

    session: Mapped[ChatSession] = relationship(
        "ChatSession", back_populates="messages"
    )


class IntakeSnapshot(Base):
    __tablename__ = "intake_snapshots"

    session_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("chat_sessions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    session: Mapped[ChatSession] = relationship(
        "ChatSession", back_populates="intake_snapshot"
    )
