"""
Unit Tests for Student Assessor

Tests confidence, misconception, understanding and depth scoring.
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_socratic_tutor", "src"))

from adaptive_socratic_tutor.student_assessor import (
    DEFAULT_ASSESSMENT,
    StudentAssessor,
    parse_predicted_confidence,
)


EXPLANATION_WITH_EXAMPLE = (
    "I subtracted 3 from both sides because whatever happens on one side has to happen on the other, "
    "for example taking 3 away on the left means taking 3 away on the right as well. "
    "That keeps the equation balanced the whole way through."
)


class TestStudentAssessor:
    """Test suite for StudentAssessor."""

    @pytest.fixture
    def assessor(self):
        return StudentAssessor()

    def test_uncertain_guess_is_low_confidence(self, assessor):
        assessment = assessor.assess("I don't know, maybe x is 8?")

        assert assessment.confidence_level <= 0.2
        assert assessment.readiness_for_advancement is False

    def test_confident_language(self, assessor):
        assessment = assessor.assess("I'm sure the answer works when I plug it back in")

        assert assessment.confidence_level == 0.9
        assert assessment.readiness_for_advancement is True
        assert assessment.misconceptions == ()

    def test_hedging_language(self, assessor):
        assessment = assessor.assess("We could maybe subtract five from both sides")
        assert assessment.confidence_level == 0.6

    def test_short_answer_capped(self, assessor):
        assessment = assessor.assess("ok")
        assert assessment.confidence_level <= 0.4

    def test_overgeneralization_tags(self, assessor):
        assessment = assessor.assess("You always have to divide first and never multiply")

        assert "overgeneralization:always" in assessment.misconceptions
        assert "overgeneralization:never" in assessment.misconceptions
        assert assessment.readiness_for_advancement is False

    def test_understanding_with_explanation_and_example(self, assessor):
        assert len(EXPLANATION_WITH_EXAMPLE) > 200
        assessment = assessor.assess(EXPLANATION_WITH_EXAMPLE)
        assert assessment.conceptual_understanding == 4

    def test_short_text_minimum_understanding(self, assessor):
        assert assessor.assess("x is 4").conceptual_understanding == 1

    def test_thinking_depth_counts_indicator_classes(self, assessor):
        # questioning + reasoning + evaluation
        assessment = assessor.assess("Why does it work? Because I can check it by substituting")
        assert assessment.depth_of_thinking == 4

    @pytest.mark.parametrize("utterance", [None, "", "   "])
    def test_empty_input_gets_default(self, assessor, utterance):
        assert assessor.assess(utterance) == DEFAULT_ASSESSMENT

    @pytest.mark.parametrize("utterance", [
        "no idea",
        "definitely 42",
        "because because because since therefore thus",
        "compare contrast pattern verify why " * 20,
        12345,
    ])
    def test_scores_always_in_range(self, assessor, utterance):
        assessment = assessor.assess(utterance)

        assert 0.0 <= assessment.confidence_level <= 1.0
        assert 1 <= assessment.conceptual_understanding <= 5
        assert 1 <= assessment.depth_of_thinking <= 5

    def test_extract_concepts_uses_whole_words(self, assessor):
        concepts = assessor.extract_concepts("I'm using substitution on the equations to find the mean")
        assert "algebra" in concepts
        assert "statistics" in concepts
        assert "geometry" not in concepts


class TestPredictedConfidence:
    """Self-reported confidence parsing."""

    def test_decimal_value(self):
        assert parse_predicted_confidence("x = 4, confidence: 0.7") == pytest.approx(0.7)

    def test_value_out_of_hundred(self):
        assert parse_predicted_confidence("confidence: 80") == pytest.approx(0.8)

    def test_percent_sure(self):
        assert parse_predicted_confidence("I'm 90% sure it's 4") == pytest.approx(0.9)

    def test_absent(self):
        assert parse_predicted_confidence("x is four") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
