# app/agent/client.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

import httpx

from app.config import get_settings
from app.intake.schema import AgentReply, TranscriptRecord, VisitInfo

logger = logging.getLogger(__name__)


class AgentBackendError(RuntimeError):
    """
    The remote agent could not be reached or answered with something
    unusable. Callers turn this into a fallback reply; it never reaches
    the stage or intake state.
    """


@dataclass(frozen=True)
class TranscriptSnapshot:
    record: Optional[TranscriptRecord]
    visit_info: Optional[VisitInfo]


class AgentBackend(ABC):
    """
    Simple abstraction over the remote conversational agent so the
    conversation service can run against a fake in tests.
    """

    @abstractmethod
    def send_message(self, text: str, user_id: str) -> List[AgentReply]:
        """
        Send one user message; returns the agent's replies in order.
        """
        ...

    @abstractmethod
    def fetch_transcript(self, room_id: str, user_id: str, agent_id: str) -> TranscriptSnapshot:
        """
        Fetch the accumulated transcript record plus visit info.
        """
        ...

    @abstractmethod
    def reset_session(self, user_id: str) -> None:
        """
        Ask the backend to drop the conversation for `user_id`.
        """
        ...


class HttpAgentBackend(AgentBackend):
    """
    HTTP implementation using httpx.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_base_url: Optional[str] = None,
        agent_id: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.agent_base_url).rstrip("/")
        self.auth_base_url = (auth_base_url or settings.auth_base_url).rstrip("/")
        self.agent_id = agent_id or settings.agent_id

        self.client = httpx.Client(
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = self.client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise AgentBackendError(f"{method} {url} failed: {e}") from e
        except ValueError as e:
            raise AgentBackendError(f"{method} {url} returned invalid JSON") from e

    def send_message(self, text: str, user_id: str) -> List[AgentReply]:
        url = f"{self.base_url}/{self.agent_id}/message"
        payload = self._request(
            "POST",
            url,
            json={"text": text, "userId": user_id, "userName": user_id},
        )

        if isinstance(payload, dict):
            # Some agent builds answer with a single object instead of a list
            payload = [payload]
        if not isinstance(payload, list):
            logger.warning("Unexpected reply payload type: %s", type(payload).__name__)
            return []

        return [AgentReply.model_validate(item) for item in payload if isinstance(item, dict)]

    def fetch_transcript(self, room_id: str, user_id: str, agent_id: str) -> TranscriptSnapshot:
        url = f"{self.auth_base_url}/auth/comprehensive-record"
        payload = self._request(
            "GET",
            url,
            params={"roomId": room_id, "userId": user_id, "agentId": agent_id},
        )

        if not isinstance(payload, dict) or not payload.get("success"):
            raise AgentBackendError("Transcript fetch was not successful")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise AgentBackendError("Transcript response has no data")

        return TranscriptSnapshot(
            record=TranscriptRecord.from_payload(data.get("comprehensiveRecord")),
            visit_info=VisitInfo.from_payload(data.get("visitInfo")),
        )

    def reset_session(self, user_id: str) -> None:
        url = f"{self.auth_base_url}/auth/session/reset"
        payload = self._request("POST", url, json={"userId": user_id})

        if not isinstance(payload, dict) or not payload.get("success"):
            message = payload.get("message") if isinstance(payload, dict) else None
            raise AgentBackendError(message or "Failed to reset session")
