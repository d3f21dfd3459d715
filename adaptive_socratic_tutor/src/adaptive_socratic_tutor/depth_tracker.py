"""
Dialogue State Tracker

Owns the ConversationDepthTracker of one session and computes its transitions.

A turn's transition is computed with ``preview`` (no mutation) and installed
with ``commit`` once the tutor reply exists, so a failed completion call
leaves the tracker exactly where it was.

Transitions per turn:
- depth -1 (floor 1) when confidence < 0.2 or misconceptions on two turns in a row
- otherwise depth +1 (cap 5) when ready on two turns in a row, an understanding
  check succeeded, or behavioral evidence sits above the current depth
- cycle stage advances once per turn; low-confidence recovery resets it
- dialogue level only escalates
"""

import logging
from dataclasses import replace
from typing import Iterable, Optional

from adaptive_socratic_tutor import config
from adaptive_socratic_tutor.dialogue_types import (
    BehavioralAssessment,
    CycleStage,
    DialogueLevel,
    SocraticAssessment,
    SocraticQuestionType,
)
from adaptive_socratic_tutor.session_state import ConversationDepthTracker

logger = logging.getLogger(__name__)

NEXT_CYCLE_STAGE = {
    CycleStage.WONDER_RECEIVE: CycleStage.REFLECT,
    CycleStage.REFLECT: CycleStage.REFINE_CROSS_EXAMINE,
    CycleStage.REFINE_CROSS_EXAMINE: CycleStage.RESTATE,
    CycleStage.RESTATE: CycleStage.REPEAT,
    CycleStage.REPEAT: CycleStage.REFLECT,
}


def compute_behavioral_depth_level(assessment: BehavioralAssessment) -> int:
    """
    Map behavioral evidence to a depth level (1-5).

    - teach-back score >= 2 → 2
    - successful transfer → 3
    - reasoning score >= 3 → 4
    - reasoning score >= 3 with cross-domain evidence (>= 4) → 5
    """
    level = 1
    if assessment.teach_back_score >= 2:
        level = max(level, 2)
    if assessment.transfer_success:
        level = max(level, 3)
    if assessment.reasoning_score >= 3:
        level = max(level, 4)
    if assessment.reasoning_score >= 3 and assessment.depth_level_evidence >= 4:
        level = max(level, 5)
    return level


def _escalate_level(
    level: DialogueLevel,
    max_depth: int,
    meta_turns: int,
) -> DialogueLevel:
    if max_depth >= config.META_DISCOURSE_DEPTH and meta_turns > 0:
        return DialogueLevel.META_DISCOURSE
    if max_depth >= config.STRATEGIC_DISCOURSE_DEPTH and level == DialogueLevel.DIALOGUE:
        return DialogueLevel.STRATEGIC_DISCOURSE
    return level


class DialogueStateTracker:
    """Per-session state machine over depth, dialogue level and cycle stage."""

    def __init__(self, state: Optional[ConversationDepthTracker] = None):
        self._state = state or ConversationDepthTracker()

    @property
    def state(self) -> ConversationDepthTracker:
        return self._state

    def snapshot(self) -> ConversationDepthTracker:
        return replace(self._state)

    def reset(self) -> None:
        self._state = ConversationDepthTracker()

    def preview(
        self,
        assessment: SocraticAssessment,
        concepts: Iterable[str] = (),
        understanding_check_succeeded: bool = False,
        behavioral_level: Optional[int] = None,
    ) -> ConversationDepthTracker:
        """
        Compute the next snapshot for this turn without mutating the tracker.

        Args:
            assessment: Assessment of the student utterance
            concepts: Concept tags touched this turn
            understanding_check_succeeded: Student answered a check while ready
            behavioral_level: Depth implied by behavioral probes, if any

        Returns:
            The candidate ConversationDepthTracker
        """
        prev = self._state
        recovery = assessment.confidence_level < config.RECOVERY_CONFIDENCE

        ready_streak = prev.consecutive_ready_turns + 1 if assessment.readiness_for_advancement else 0
        misconception_streak = prev.consecutive_misconception_turns + 1 if assessment.misconceptions else 0

        depth = prev.current_depth
        if recovery or misconception_streak >= 2:
            depth = max(config.MIN_DEPTH, depth - 1)
        elif (
            ready_streak >= 2
            or understanding_check_succeeded
            or (behavioral_level is not None and behavioral_level > depth)
        ):
            depth = min(config.MAX_DEPTH, depth + 1)

        max_depth = max(prev.max_depth_reached, depth)

        if recovery:
            stage = CycleStage.WONDER_RECEIVE
        else:
            stage = NEXT_CYCLE_STAGE[prev.cycle_stage]

        connections = list(prev.conceptual_connections)
        for concept in concepts:
            if concept in connections:
                continue
            connections.append(concept)
        connections = connections[-config.MAX_CONCEPTUAL_CONNECTIONS:]

        return replace(
            prev,
            current_depth=depth,
            max_depth_reached=max_depth,
            conceptual_connections=tuple(connections),
            dialogue_level=_escalate_level(prev.dialogue_level, max_depth, prev.meta_questioning_turns),
            cycle_stage=stage,
            should_deepen_inquiry=(
                assessment.depth_of_thinking >= 3
                and assessment.confidence_level > config.READINESS_CONFIDENCE
            ),
            suggested_next_level=min(depth + 1, config.MAX_DEPTH),
            consecutive_ready_turns=ready_streak,
            consecutive_misconception_turns=misconception_streak,
            turns=prev.turns + 1,
        )

    def commit(self, snapshot: ConversationDepthTracker) -> None:
        """Install a previewed snapshot."""
        prev = self._state
        if snapshot.current_depth != prev.current_depth:
            logger.info(
                f"📈 [DialogueStateTracker] Depth {prev.current_depth} → {snapshot.current_depth} "
                f"(max {snapshot.max_depth_reached})"
            )
        if snapshot.dialogue_level != prev.dialogue_level:
            logger.info(
                f"🧭 [DialogueStateTracker] Dialogue level {prev.dialogue_level.value} → "
                f"{snapshot.dialogue_level.value}"
            )
        self._state = snapshot

    def advance(
        self,
        assessment: SocraticAssessment,
        concepts: Iterable[str] = (),
        understanding_check_succeeded: bool = False,
        behavioral_level: Optional[int] = None,
    ) -> ConversationDepthTracker:
        """Preview and commit in one step."""
        snapshot = self.preview(assessment, concepts, understanding_check_succeeded, behavioral_level)
        self.commit(snapshot)
        return snapshot

    def with_question_type(
        self,
        snapshot: ConversationDepthTracker,
        question_type: SocraticQuestionType,
    ) -> ConversationDepthTracker:
        """Record the question type chosen for a (previewed) snapshot."""
        meta_turns = snapshot.meta_questioning_turns
        if question_type == SocraticQuestionType.META_QUESTIONING:
            meta_turns += 1
        return replace(
            snapshot,
            question_type=question_type,
            meta_questioning_turns=meta_turns,
            dialogue_level=_escalate_level(snapshot.dialogue_level, snapshot.max_depth_reached, meta_turns),
        )

    def record_question_type(self, question_type: SocraticQuestionType) -> None:
        self._state = self.with_question_type(self._state, question_type)
