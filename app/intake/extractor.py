# app/intake/extractor.py
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from app.intake.catalog import match_question
from app.intake.schema import DiscoveryCategory, TranscriptRecord, VisitInfo

logger = logging.getLogger(__name__)


# Categories that feed the intake form. Visit scheduling is handled by the
# completion detector instead.
DISCOVERY_CATEGORIES = (
    DiscoveryCategory.SITUATION,
    DiscoveryCategory.LIFESTYLE,
    DiscoveryCategory.READINESS,
    DiscoveryCategory.PRIORITIES,
)


def classify_awareness(answer: str) -> str:
    """
    Heuristic: any "yes" in the answer (case-insensitive) counts as aware.
    Everything else, including an empty answer, is "no".
    """
    return "yes" if "yes" in answer.lower() else "no"


def _copy_if_present(form_data: Dict[str, str], field_name: str, value: Optional[str]) -> None:
    if value:
        form_data[field_name] = value


def _first_answer(
    record: TranscriptRecord,
    category: DiscoveryCategory,
    target_field: str,
) -> Optional[str]:
    for entry in record.entries(category):
        if entry.answer and match_question(category, entry.question) == target_field:
            return entry.answer
    return None


def build_recap(record: TranscriptRecord) -> Optional[str]:
    """
    Build the "It sounds like ..." recap from whatever is known so far.

    Clauses, in order, each only when its source exists:
      - the loved one's name
      - the first biggest-concern answer
      - the first enjoys-doing answer

    Returns None when nothing is known, so a previous recap survives the merge.
    """
    parts: List[str] = []

    loved_one = record.contact_info.loved_one_name if record.contact_info else None
    if loved_one:
        parts.append(f"{loved_one} is your loved one")

    concern = _first_answer(record, DiscoveryCategory.SITUATION, "greatest_concern")
    if concern:
        parts.append(f"Your main concern is: {concern}")

    activity = _first_answer(record, DiscoveryCategory.LIFESTYLE, "enjoys_doing")
    if activity:
        parts.append(f"They love: {activity}")

    if not parts:
        return None
    return f"It sounds like {', '.join(parts)}."


def map_transcript_to_form(
    record: Optional[TranscriptRecord],
    visit_info: Optional[VisitInfo],
) -> Dict[str, str]:
    """
    Derive intake form fields from a transcript snapshot.

    Pure: the same inputs always give the same partial form, and neither
    input is modified. Only fields with data are present in the result;
    callers merge it into the live IntakeForm with IntakeForm.merge().

    Within a category entries are taken in chronological order, so a later
    answer for the same field replaces an earlier one.
    """
    form_data: Dict[str, str] = {}

    if record is not None and record.contact_info is not None:
        contact = record.contact_info
        _copy_if_present(form_data, "name", contact.name)
        _copy_if_present(form_data, "location", contact.location)
        _copy_if_present(form_data, "family_member_name", contact.loved_one_name)

    if visit_info is not None:
        _copy_if_present(form_data, "email", visit_info.email)
        _copy_if_present(form_data, "mailing_address", visit_info.mailing_address)
        _copy_if_present(form_data, "preferred_contact_method", visit_info.preferred_contact)

    if record is None:
        return form_data

    for category in DISCOVERY_CATEGORIES:
        for entry in record.entries(category):
            target_field = match_question(category, entry.question)
            if target_field is None:
                logger.debug(
                    "No catalog match for %s question: %r", category.value, entry.question
                )
                continue

            if target_field == "aware_looking":
                form_data[target_field] = classify_awareness(entry.answer)
            else:
                form_data[target_field] = entry.answer

    recap = build_recap(record)
    if recap is not None:
        form_data["recap"] = recap

    return form_data
