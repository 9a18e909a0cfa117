# app/intake/catalog.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from app.intake.schema import DiscoveryCategory


@dataclass(frozen=True)
class QuestionMatcher:
    """
    One row of the question catalog.

    A matcher fires when the question equals `exact`, or when it contains
    every fragment in `contains`. The agent interpolates the loved one's
    name into some questions, so those rows match on fixed fragments
    around the name instead of the full text.
    """

    category: DiscoveryCategory
    target_field: str
    exact: Optional[str] = None
    contains: Tuple[str, ...] = field(default_factory=tuple)

    def matches(self, question: str) -> bool:
        if self.exact is not None and question == self.exact:
            return True
        if self.contains:
            return all(fragment in question for fragment in self.contains)
        return False


# Must stay in sync with the remote agent's exact phrasing. A wording change
# on the agent side shows up as unmatched questions in the debug log.
QUESTION_CATALOG: Tuple[QuestionMatcher, ...] = (
    # situation
    QuestionMatcher(
        DiscoveryCategory.SITUATION,
        "reason_for_call",
        exact="What made you decide to reach out about senior living today?",
    ),
    QuestionMatcher(
        DiscoveryCategory.SITUATION,
        "greatest_concern",
        contains=("What's your biggest concern about", "right now?"),
    ),
    QuestionMatcher(
        DiscoveryCategory.SITUATION,
        "impact",
        exact="How is this situation impacting your family?",
    ),
    QuestionMatcher(
        DiscoveryCategory.SITUATION,
        "current_residence",
        contains=("Where does", "currently live?"),
    ),
    # lifestyle
    QuestionMatcher(
        DiscoveryCategory.LIFESTYLE,
        "daily_routine",
        exact="Tell me about your loved one. What does a typical day look like for them?",
    ),
    QuestionMatcher(
        DiscoveryCategory.LIFESTYLE,
        "enjoys_doing",
        exact="What does he/she enjoy doing?",
    ),
    # The agent actually asks "What does she love doing?". Earlier mappings
    # used that phrasing only for the recap and left enjoys_doing empty.
    QuestionMatcher(
        DiscoveryCategory.LIFESTYLE,
        "enjoys_doing",
        contains=("love doing",),
    ),
    # readiness
    QuestionMatcher(
        DiscoveryCategory.READINESS,
        "aware_looking",
        exact="Is your loved one aware that you're looking at options?",
    ),
    QuestionMatcher(
        DiscoveryCategory.READINESS,
        "feelings_about_move",
        exact="How does your loved one feel about the idea of moving?",
    ),
    QuestionMatcher(
        DiscoveryCategory.READINESS,
        "others_involved",
        exact="Who else is involved in helping make this decision?",
    ),
    # priorities
    QuestionMatcher(
        DiscoveryCategory.PRIORITIES,
        "most_important",
        exact="What's most important to you regarding the community you may choose?",
    ),
    QuestionMatcher(
        DiscoveryCategory.PRIORITIES,
        "confidence_factors",
        exact=(
            "What would make you feel confident that this is the right "
            "decision for your family?"
        ),
    ),
)

VISIT_TIME_QUESTION = "What time would work best for your visit?"


def matchers_for(category: DiscoveryCategory) -> List[QuestionMatcher]:
    return [m for m in QUESTION_CATALOG if m.category == category]


def match_question(category: DiscoveryCategory, question: str) -> Optional[str]:
    """
    Return the target field of the first catalog row matching `question`
    within `category`, or None when the catalog has no row for it.
    """
    for matcher in matchers_for(category):
        if matcher.matches(question):
            return matcher.target_field
    return None
