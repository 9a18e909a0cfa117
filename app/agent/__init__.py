# app/agent/__init__.py
from .client import AgentBackend, AgentBackendError, HttpAgentBackend, TranscriptSnapshot

__all__ = ["AgentBackend", "AgentBackendError", "HttpAgentBackend", "TranscriptSnapshot"]
