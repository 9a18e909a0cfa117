# app/intake/stages.py
from enum import Enum
from typing import Dict, Tuple


class ConversationStage(str, Enum):
    TRUST_BUILDING = "trust_building"
    SITUATION_DISCOVERY = "situation_discovery"
    LIFESTYLE_DISCOVERY = "lifestyle_discovery"
    READINESS_DISCOVERY = "readiness_discovery"
    PRIORITIES_DISCOVERY = "priorities_discovery"
    NEEDS_MATCHING = "needs_matching"
    INFO_SHARING = "info_sharing"
    SCHEDULE_VISIT = "schedule_visit"
    VISIT_TRANSITION = "visit_transition"


# Fixed conversation order; progress is measured against its length.
STAGE_ORDER: Tuple[ConversationStage, ...] = tuple(ConversationStage)

STAGE_LABELS: Dict[ConversationStage, str] = {
    ConversationStage.TRUST_BUILDING: "Building Trust",
    ConversationStage.SITUATION_DISCOVERY: "Understanding You",
    ConversationStage.LIFESTYLE_DISCOVERY: "Your Lifestyle",
    ConversationStage.READINESS_DISCOVERY: "Your Readiness",
    ConversationStage.PRIORITIES_DISCOVERY: "Your Priorities",
    ConversationStage.NEEDS_MATCHING: "Needs Matching",
    ConversationStage.INFO_SHARING: "Info Sharing",
    ConversationStage.SCHEDULE_VISIT: "Schedule Visit",
    ConversationStage.VISIT_TRANSITION: "Next Steps",
}

STAGE_DESCRIPTIONS: Dict[ConversationStage, str] = {
    ConversationStage.TRUST_BUILDING: "Setting the tone & earning trust",
    ConversationStage.SITUATION_DISCOVERY: "Understanding your situation & motivations",
    ConversationStage.LIFESTYLE_DISCOVERY: "Understanding the prospect's lifestyle",
    ConversationStage.READINESS_DISCOVERY: "Gauging your awareness & readiness",
    ConversationStage.PRIORITIES_DISCOVERY: "Understanding priorities in a community",
    ConversationStage.NEEDS_MATCHING: "Connecting priorities to community",
    ConversationStage.INFO_SHARING: "Sharing information about the community",
    ConversationStage.SCHEDULE_VISIT: "Confirm contact information",
    ConversationStage.VISIT_TRANSITION: "Transitioning to a visit",
}
