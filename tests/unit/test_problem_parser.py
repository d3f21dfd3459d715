"""
Unit Tests for Problem Parser and Classifier
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_socratic_tutor", "src"))

from adaptive_socratic_tutor.dialogue_types import DifficultyLevel, ProblemType
from adaptive_socratic_tutor.problem_classifier import ProblemClassifier
from adaptive_socratic_tutor.problem_parser import ProblemParser


class TestProblemParser:
    """Test suite for ProblemParser."""

    @pytest.fixture
    def parser(self):
        return ProblemParser()

    def test_linear_equation(self, parser):
        parsed = parser.parse_problem("Solve 2x + 5 = 13")

        assert parsed.is_valid is True
        assert parsed.problem_type == ProblemType.ALGEBRA
        assert parsed.difficulty == DifficultyLevel.INTERMEDIATE
        assert parsed.math_concepts[0] == "algebra"
        assert parsed.metadata["has_equations"] is True

    def test_circle_area(self, parser):
        parsed = parser.parse_problem("Find the area of a circle with radius 5")

        assert parsed.problem_type == ProblemType.GEOMETRY
        assert parsed.difficulty == DifficultyLevel.BEGINNER
        assert "circles" in parsed.math_concepts

    def test_normalization(self, parser):
        parsed = parser.parse_problem("  What is   3 × 4 ÷ 2  ")
        assert parsed.content == "What is 3 * 4 / 2"

    @pytest.mark.parametrize("text", ["hello there", "", "  ", None])
    def test_invalid_problems(self, parser, text):
        parsed = parser.parse_problem(text)

        assert parsed.is_valid is False
        assert parsed.errors

    def test_too_long(self, parser):
        parsed = parser.parse_problem("1 + " * 600 + "1")
        assert parsed.is_valid is False
        assert any("too long" in e for e in parsed.errors)

    def test_unsupported_symbol_warning(self, parser):
        parsed = parser.parse_problem("Solve x + 1 = 3 §")
        assert parsed.is_valid is True
        assert any("Unsupported symbols" in w for w in parsed.warnings)

    def test_preview(self, parser):
        preview = parser.generate_preview(parser.parse_problem("Solve 2x + 5 = 13"))
        assert "ALGEBRA" in preview
        assert parser.generate_preview(parser.parse_problem("")).startswith("❌")


class TestProblemClassifier:
    """Test suite for ProblemClassifier."""

    @pytest.fixture
    def classifier(self):
        return ProblemClassifier()

    @pytest.fixture
    def parser(self):
        return ProblemParser()

    def test_calculus_is_advanced(self, classifier, parser):
        result = classifier.classify(parser.parse_problem("find the derivative of f(x) = x^2"))

        assert result.problem_type == ProblemType.CALCULUS
        assert result.difficulty == DifficultyLevel.ADVANCED
        assert result.prerequisites == ["Advanced integration", "Series", "Multivariable concepts"]

    def test_statistics(self, classifier, parser):
        result = classifier.classify(parser.parse_problem("What is the mean of 2, 4, 6"))
        assert result.problem_type == ProblemType.STATISTICS

    @pytest.mark.parametrize("text", [
        "Solve 2x + 5 = 13",
        "Find the area of a circle with radius 5",
        "12 + 7",
        "What is sin 30 degrees and then cos 60 degrees",
    ])
    def test_confidence_bounds(self, classifier, parser, text):
        result = classifier.classify(parser.parse_problem(text))

        assert 0.3 <= result.confidence <= 0.95
        assert classifier.validate_classification(result) is True

    def test_summary(self, classifier, parser):
        summary = classifier.summary(classifier.classify(parser.parse_problem("Solve 2x + 5 = 13")))
        assert summary.startswith("Type: algebra")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
