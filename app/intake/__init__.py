# app/intake/__init__.py
from .schema import (
    AgentReply,
    DiscoveryCategory,
    DiscoveryEntry,
    IntakeForm,
    TranscriptRecord,
    VisitInfo,
)
from .stages import ConversationStage, STAGE_ORDER
from .tracker import StageTracker
from .extractor import map_transcript_to_form, build_recap
from .completion import CompletionResult, CompletionState, evaluate_completion

__all__ = [
    "AgentReply",
    "DiscoveryCategory",
    "DiscoveryEntry",
    "IntakeForm",
    "TranscriptRecord",
    "VisitInfo",
    "ConversationStage",
    "STAGE_ORDER",
    "StageTracker",
    "map_transcript_to_form",
    "build_recap",
    "CompletionResult",
    "CompletionState",
    "evaluate_completion",
]
