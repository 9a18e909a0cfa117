"""Pytest configuration for the intake guide tests."""

import os
import sys
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

import pytest

# Ensure project root is on PYTHONPATH
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Settings are read once at import time, so point them somewhere harmless first
_db_dir = tempfile.mkdtemp(prefix="intake-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_db_dir}/test.db"
os.environ["REFETCH_DELAY_SECONDS"] = "0"

from app.agent import AgentBackend, AgentBackendError, TranscriptSnapshot  # noqa: E402
from app.intake.schema import AgentReply, TranscriptRecord, VisitInfo  # noqa: E402
from app.services import ConversationService, init_db  # noqa: E402


class FakeAgentBackend(AgentBackend):
    """In-memory stand-in for the remote agent."""

    def __init__(self):
        self.replies: List[AgentReply] = []
        self.record: Optional[TranscriptRecord] = None
        self.visit_info: Optional[VisitInfo] = None
        self.fail_send = False
        self.fail_fetch = False
        self.fail_reset = False
        self.sent: List[tuple] = []
        self.reset_calls: List[str] = []
        # Called from inside fetch_transcript, to interleave other calls with a refetch
        self.on_fetch: Optional[Callable[[], None]] = None

    def reply_with(self, *replies: dict) -> None:
        self.replies = [AgentReply.model_validate(r) for r in replies]

    def set_record(self, payload: dict, visit_info: Optional[dict] = None) -> None:
        self.record = TranscriptRecord.from_payload(payload)
        self.visit_info = VisitInfo.from_payload(visit_info)

    def send_message(self, text, user_id):
        self.sent.append((text, user_id))
        if self.fail_send:
            raise AgentBackendError("connection refused")
        return list(self.replies)

    def fetch_transcript(self, room_id, user_id, agent_id):
        if self.fail_fetch:
            raise AgentBackendError("connection refused")
        if self.on_fetch is not None:
            self.on_fetch()
        return TranscriptSnapshot(record=self.record, visit_info=self.visit_info)

    def reset_session(self, user_id):
        if self.fail_reset:
            raise AgentBackendError("Failed to reset session")
        self.reset_calls.append(user_id)


@pytest.fixture(scope="session", autouse=True)
def _create_tables():
    init_db()


@pytest.fixture
def backend() -> FakeAgentBackend:
    return FakeAgentBackend()


@pytest.fixture
def service(backend) -> ConversationService:
    return ConversationService(backend=backend, agent_id="agent-1", room_id="room-1")
