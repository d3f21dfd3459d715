"""
Unit Tests for Question Type Selector
"""

import pytest
import random
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_socratic_tutor", "src"))

from adaptive_socratic_tutor.dialogue_types import SocraticAssessment, SocraticQuestionType
from adaptive_socratic_tutor.question_selector import HIGH_CONFIDENCE_CHOICES, QuestionSelector


class FixedRandom(random.Random):
    """Random source returning a fixed draw."""

    def __init__(self, value: float):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def assessment(confidence, ready=False, depth=1, misconceptions=()):
    return SocraticAssessment(
        confidence_level=confidence,
        misconceptions=misconceptions,
        readiness_for_advancement=ready,
        conceptual_understanding=2,
        depth_of_thinking=depth,
    )


class TestQuestionSelector:
    """Test suite for QuestionSelector."""

    @pytest.fixture
    def selector(self):
        return QuestionSelector(random.Random(42))

    @pytest.mark.parametrize("problem,expected", [
        ("Solve 2x + 5 = 13", SocraticQuestionType.CLARIFICATION),
        ("Explain why the sum of angles is 180", SocraticQuestionType.EVIDENCE),
        ("Compare 3/4 and 5/8", SocraticQuestionType.PERSPECTIVE),
        ("12 + 7", SocraticQuestionType.CLARIFICATION),
    ])
    def test_select_initial(self, selector, problem, expected):
        assert selector.select_initial(problem) == expected

    def test_low_confidence_band(self):
        assert QuestionSelector(FixedRandom(0.1)).select_next(assessment(0.2)) == SocraticQuestionType.CLARIFICATION
        assert QuestionSelector(FixedRandom(0.9)).select_next(assessment(0.2)) == SocraticQuestionType.ASSUMPTIONS

    @pytest.mark.parametrize("confidence", [0.3, 0.5, 0.7])
    def test_middle_band_is_deterministic(self, selector, confidence):
        assert selector.select_next(assessment(confidence)) == SocraticQuestionType.EVIDENCE

    def test_high_confidence_band(self, selector):
        for _ in range(20):
            assert selector.select_next(assessment(0.9)) in HIGH_CONFIDENCE_CHOICES

    def test_seeded_selection_is_reproducible(self):
        first = [QuestionSelector(random.Random(7)).select_next(assessment(0.9)) for _ in range(5)]
        second = [QuestionSelector(random.Random(7)).select_next(assessment(0.9)) for _ in range(5)]
        assert first == second

    @pytest.mark.parametrize("confidence,depth,expected", [
        (0.9, 1, SocraticQuestionType.EVIDENCE),
        (0.2, 1, SocraticQuestionType.CLARIFICATION),
        (0.5, 3, SocraticQuestionType.IMPLICATIONS),
        (0.5, 1, SocraticQuestionType.EVIDENCE),
    ])
    def test_understanding_check(self, selector, confidence, depth, expected):
        assert selector.select_understanding_check(assessment(confidence, depth=depth)) == expected

    def test_contextual_recovery_forces_clarification(self, selector):
        result = selector.select_contextual(assessment(0.1), SocraticQuestionType.IMPLICATIONS)
        assert result == SocraticQuestionType.CLARIFICATION

    def test_contextual_keeps_previous_type(self, selector):
        result = selector.select_contextual(assessment(0.5), SocraticQuestionType.ASSUMPTIONS)
        assert result == SocraticQuestionType.ASSUMPTIONS

    def test_contextual_ready_uses_next_policy(self, selector):
        result = selector.select_contextual(assessment(0.5, ready=True), SocraticQuestionType.ASSUMPTIONS)
        assert result == SocraticQuestionType.EVIDENCE

    def test_contextual_without_previous(self, selector):
        assert selector.select_contextual(assessment(0.5), None) == SocraticQuestionType.EVIDENCE


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
