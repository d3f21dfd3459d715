"""
Question Type Selector

Maps an assessment (and optionally the previous question type) to the next
Socratic question type. Every method is total. Randomized branches draw from
an injected ``random.Random`` so tests can seed them.
"""

import random
from typing import Optional

from adaptive_socratic_tutor import config
from adaptive_socratic_tutor.dialogue_types import SocraticAssessment, SocraticQuestionType

HIGH_CONFIDENCE_CHOICES = (
    SocraticQuestionType.IMPLICATIONS,
    SocraticQuestionType.PERSPECTIVE,
    SocraticQuestionType.META_QUESTIONING,
)


class QuestionSelector:
    """Pedagogical policy for choosing question types."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def select_initial(self, problem_text: str) -> SocraticQuestionType:
        """Pick the opening question type from surface words of the problem."""
        text = (problem_text or "").lower()
        if "solve" in text or "find" in text:
            return SocraticQuestionType.CLARIFICATION
        if "why" in text or "explain" in text:
            return SocraticQuestionType.EVIDENCE
        if "compare" in text or "evaluate" in text:
            return SocraticQuestionType.PERSPECTIVE
        return SocraticQuestionType.CLARIFICATION

    def select_next(self, assessment: SocraticAssessment) -> SocraticQuestionType:
        """
        Subsequent-turn policy by confidence band.

        - < 0.3: clarification (70%) or assumptions (30%)
        - 0.3-0.7: evidence
        - > 0.7: uniformly one of implications, perspective, meta-questioning
        """
        confidence = assessment.confidence_level
        if confidence < config.LOW_CONFIDENCE_THRESHOLD:
            if self.rng.random() < config.CLARIFICATION_PROBABILITY:
                return SocraticQuestionType.CLARIFICATION
            return SocraticQuestionType.ASSUMPTIONS
        if confidence <= config.HIGH_CONFIDENCE_THRESHOLD:
            return SocraticQuestionType.EVIDENCE
        return self.rng.choice(HIGH_CONFIDENCE_CHOICES)

    def select_understanding_check(self, assessment: SocraticAssessment) -> SocraticQuestionType:
        if assessment.confidence_level > config.CHECK_HIGH_CONFIDENCE:
            # Force justification
            return SocraticQuestionType.EVIDENCE
        if assessment.confidence_level < config.CHECK_LOW_CONFIDENCE:
            return SocraticQuestionType.CLARIFICATION
        if assessment.depth_of_thinking >= config.CHECK_DEPTH_FOR_IMPLICATIONS:
            return SocraticQuestionType.IMPLICATIONS
        return SocraticQuestionType.EVIDENCE

    def select_contextual(
        self,
        assessment: SocraticAssessment,
        previous: Optional[SocraticQuestionType],
    ) -> SocraticQuestionType:
        """
        Choose with the previous question type in view.

        Critically low confidence always gets clarification. A student ready to
        advance gets the subsequent-turn policy. Otherwise the previous type is
        kept so the student can finish working through it.
        """
        if assessment.confidence_level < config.RECOVERY_CONFIDENCE:
            return SocraticQuestionType.CLARIFICATION
        if assessment.readiness_for_advancement:
            return self.select_next(assessment)
        if previous is None:
            return self.select_next(assessment)
        return previous
