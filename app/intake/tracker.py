# app/intake/tracker.py
from __future__ import annotations

import logging
import re
import time
from typing import Optional

from app.intake.stages import ConversationStage, STAGE_ORDER
from app.intake.state import StageProgressState

logger = logging.getLogger(__name__)

_WHITESPACE_RUN = re.compile(r"\s+")


class StageTracker:
    """
    StageTracker turns the agent's free-form stage labels into progress
    through the fixed stage sequence.

    It holds no state of its own: every method takes the session's
    StageProgressState and mutates only that. The agent is trusted on
    ordering, so a label earlier than the current stage is accepted too.
    """

    TOTAL_STAGES = len(STAGE_ORDER)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @staticmethod
    def normalize(raw: Optional[str]) -> Optional[ConversationStage]:
        """
        "Situation Discovery", "situation_discovery" and
        " SITUATION   DISCOVERY " all map to SITUATION_DISCOVERY.
        Anything outside the catalog gives None.
        """
        if not isinstance(raw, str):
            return None
        key = _WHITESPACE_RUN.sub("_", raw.strip().casefold())
        try:
            return ConversationStage(key)
        except ValueError:
            return None

    def advance(self, state: StageProgressState, new_stage: ConversationStage) -> bool:
        """
        Move to `new_stage`. Returns False (and changes nothing) when it is
        already the current stage.
        """
        if new_stage == state.current_stage:
            return False

        previous = state.current_stage
        state.completed_stages.add(previous)
        # Keep the invariant when the agent goes back to an earlier stage
        state.completed_stages.discard(new_stage)
        state.current_stage = new_stage
        state.pending_notification = new_stage
        state.notification_set_at = time.monotonic()

        if STAGE_ORDER.index(new_stage) < STAGE_ORDER.index(previous):
            logger.info("Stage moved back: %s -> %s", previous.value, new_stage.value)
        else:
            logger.info("Stage advanced: %s -> %s", previous.value, new_stage.value)
        return True

    def observe(self, state: StageProgressState, raw: Optional[str]) -> Optional[ConversationStage]:
        """
        Feed one raw stage label from the agent. Unrecognized or missing
        labels only set the stage_not_recognized flag.
        """
        stage = self.normalize(raw)
        if stage is None:
            logger.warning("Stage not recognized: %r", raw)
            state.stage_not_recognized = True
            return None

        state.stage_not_recognized = False
        self.advance(state, stage)
        return stage

    def progress(self, state: StageProgressState) -> float:
        """
        Percentage of the sequence reached, counting the current stage as
        in progress.
        """
        reached = len(state.completed_stages) + (1 if state.current_stage is not None else 0)
        percent = reached / self.TOTAL_STAGES * 100
        return max(0.0, min(100.0, percent))

    # ------------------------------------------------------------------
    # Notification timing
    # ------------------------------------------------------------------

    def clear_notification(self, state: StageProgressState) -> None:
        state.pending_notification = None
        state.notification_set_at = None

    def expire_notification(
        self,
        state: StageProgressState,
        now: float,
        display_seconds: float,
    ) -> Optional[ConversationStage]:
        """
        Return the notification that should be visible at `now`, clearing it
        once it has been up for `display_seconds`. `now` is on the
        time.monotonic() clock.
        """
        if state.pending_notification is None:
            return None
        if (
            state.notification_set_at is not None
            and now - state.notification_set_at >= display_seconds
        ):
            self.clear_notification(state)
            return None
        return state.pending_notification

    def reset(self, state: StageProgressState) -> None:
        state.current_stage = ConversationStage.TRUST_BUILDING
        state.completed_stages.clear()
        state.stage_not_recognized = False
        self.clear_notification(state)
