# app/intake/schema.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, List, Literal, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


def _as_text(value: Any) -> Optional[str]:
    """
    Backend payloads are loosely typed. Strings pass through, numbers are
    stringified, everything else counts as absent.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


class DiscoveryCategory(str, Enum):
    SITUATION = "situation"
    LIFESTYLE = "lifestyle"
    READINESS = "readiness"
    PRIORITIES = "priorities"
    VISIT_SCHEDULING = "visit_scheduling"


class DiscoveryEntry(BaseModel):
    question: str = ""
    answer: str = ""
    timestamp: Optional[str] = None

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("question", "answer", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value) or ""

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[str]:
        return _as_text(value)


class ContactInfo(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    loved_one_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("loved_one_name", "lovedOneName")
    )
    collected_at: Optional[str] = Field(
        None, validation_alias=AliasChoices("collected_at", "collectedAt")
    )

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _as_text(value)


class TranscriptRecord(BaseModel):
    """
    Read-only snapshot of the backend's accumulated record for one
    conversation. A fresh instance is built on every refetch; nothing
    in this package patches one in place.

    Missing or mistyped categories come through as empty lists.
    """

    contact_info: Optional[ContactInfo] = Field(
        None, validation_alias=AliasChoices("contact_info", "contactInfo")
    )
    situation: List[DiscoveryEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("situation_discovery", "situation"),
    )
    lifestyle: List[DiscoveryEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("lifestyle_discovery", "lifestyle"),
    )
    readiness: List[DiscoveryEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("readiness_discovery", "readiness"),
    )
    priorities: List[DiscoveryEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("priorities_discovery", "priorities"),
    )
    visit_scheduling: List[DiscoveryEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("visit_scheduling", "visitScheduling"),
    )
    last_updated: Optional[str] = Field(
        None, validation_alias=AliasChoices("last_updated", "lastUpdated")
    )

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    @field_validator("contact_info", mode="before")
    @classmethod
    def _contact_or_none(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, ContactInfo)) else None

    @field_validator(
        "situation", "lifestyle", "readiness", "priorities", "visit_scheduling",
        mode="before",
    )
    @classmethod
    def _entries_or_empty(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, (dict, DiscoveryEntry))]

    @field_validator("last_updated", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _as_text(value)

    def entries(self, category: DiscoveryCategory) -> List[DiscoveryEntry]:
        return getattr(self, category.value)

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["TranscriptRecord"]:
        if not isinstance(payload, Mapping):
            return None
        try:
            return cls.model_validate(dict(payload))
        except ValidationError as e:
            logger.warning("Discarding malformed transcript record: %s", e)
            return None


# Allowed preferred-contact choices; anything else from the backend is dropped.
CONTACT_METHODS = ("phone", "email", "mail")


class VisitInfo(BaseModel):
    email: Optional[str] = None
    mailing_address: Optional[str] = Field(
        None, validation_alias=AliasChoices("mailingAddress", "mailing_address")
    )
    preferred_contact: Optional[str] = Field(
        None, validation_alias=AliasChoices("preferredContact", "preferred_contact")
    )
    collected_at: Optional[str] = Field(
        None, validation_alias=AliasChoices("collectedAt", "collected_at")
    )

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _as_text(value)

    @field_validator("preferred_contact")
    @classmethod
    def _known_contact_method(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        method = value.strip().lower()
        if method not in CONTACT_METHODS:
            logger.debug("Ignoring unknown preferred contact method: %r", value)
            return None
        return method

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["VisitInfo"]:
        if not isinstance(payload, Mapping):
            return None
        try:
            return cls.model_validate(dict(payload))
        except ValidationError as e:
            logger.warning("Discarding malformed visit info: %s", e)
            return None


class ReplyMetadata(BaseModel):
    stage: Optional[str] = None
    response_status: Optional[str] = Field(
        None, validation_alias=AliasChoices("responseStatus", "response_status")
    )
    asked_question: Optional[str] = Field(
        None, validation_alias=AliasChoices("askedQuestion", "asked_question")
    )

    # The agent attaches arbitrary extra keys; keep them around for logging.
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @field_validator("stage", "response_status", "asked_question", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _as_text(value)


class AgentReply(BaseModel):
    text: str = ""
    metadata: Optional[ReplyMetadata] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("text", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _as_text(value) or ""

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata_or_none(cls, value: Any) -> Any:
        return value if isinstance(value, (dict, ReplyMetadata)) else None


# Fields that reset_session() puts back to their empty choice.
FLAG_FIELDS = ("aware_looking", "preferred_contact_method")


class IntakeForm(BaseModel):
    """
    Flat intake form derived from the transcript record.

    This is the long-lived projection the rest of the app reads. It only
    changes through merge() (fresh extraction), set_field() (manual edit)
    or clear_flags() (session reset).
    """

    name: str = ""
    location: str = ""
    family_member_name: str = ""
    reason_for_call: str = ""
    greatest_concern: str = ""
    impact: str = ""
    current_residence: str = ""
    daily_routine: str = ""
    enjoys_doing: str = ""
    aware_looking: Literal["yes", "no", ""] = ""
    feelings_about_move: str = ""
    others_involved: str = ""
    most_important: str = ""
    confidence_factors: str = ""
    recap: str = ""
    email: str = ""
    mailing_address: str = ""
    preferred_contact_method: Literal["phone", "email", "mail", ""] = ""
    referral_source: str = ""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    def merge(self, partial: Mapping[str, Optional[str]]) -> List[str]:
        """
        Monotonic merge of a fresh extraction into the form.

        Non-empty values fill or overwrite; missing or empty values never
        blank a field that is already filled. A value outside a field's
        allowed choices counts as absent. Returns the changed field names.
        """
        changed: List[str] = []
        for field_name, value in partial.items():
            if field_name not in type(self).model_fields or not value:
                continue
            if getattr(self, field_name) == value:
                continue
            try:
                setattr(self, field_name, value)
            except ValidationError:
                logger.debug("Ignoring invalid value for %s: %r", field_name, value)
                continue
            changed.append(field_name)
        return changed

    def set_field(self, field_name: str, value: str) -> None:
        """
        Raises KeyError for unknown fields and ValidationError for a value
        outside the field's allowed choices; the form is unchanged either way.
        """
        if field_name not in type(self).model_fields:
            raise KeyError(field_name)
        setattr(self, field_name, value)

    def clear_flags(self) -> None:
        for field_name in FLAG_FIELDS:
            setattr(self, field_name, "")
