"""
Unit Tests for Violation Detector
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_socratic_tutor", "src"))

from adaptive_socratic_tutor.dialogue_types import EnhancedMessage
from adaptive_socratic_tutor.violation_detector import ViolationDetector, contains_direct_answer


class TestViolationDetector:
    """Test suite for ViolationDetector."""

    @pytest.fixture
    def detector(self):
        return ViolationDetector()

    @pytest.mark.parametrize("text", [
        "The answer is 42.",
        "The solution is 7",
        "x = 5",
        "Therefore, x = 4 and we are done.",
        "So x = 7.",
        "The final answer is four.",
    ])
    def test_direct_answers_flagged(self, detector, text):
        assert detector.contains_direct_answer(text) is True

    @pytest.mark.parametrize("text", [
        "What do you think the answer is?",
        "What does the left side become?",
        "Can you tell me what x = 5 would mean here",
        "Let's look at both sides of the equation together.",
        "",
        None,
    ])
    def test_guidance_not_flagged(self, detector, text):
        assert detector.contains_direct_answer(text) is False

    def test_module_shortcut(self):
        assert contains_direct_answer("The answer is 9") is True

    def test_compliance_metrics(self, detector):
        messages = [
            EnhancedMessage(role="system", content="The answer is 1"),
            EnhancedMessage(role="assistant", content="What are we asked to find?"),
            EnhancedMessage(role="user", content="x = 4"),
            EnhancedMessage(role="assistant", content="The answer is 4."),
            EnhancedMessage(role="assistant", content="How did you get that? What do you think?", direct_answer_flagged=True),
            EnhancedMessage(role="assistant", content="Why does that step work?"),
        ]
        metrics = detector.compliance_metrics(messages)

        assert metrics.direct_answer_violations == 2
        assert metrics.compliance_score == pytest.approx(50.0)
        assert metrics.last_violation_turn == 3
        assert metrics.examples[0] == "The answer is 4."

    def test_compliance_with_no_tutor_messages(self, detector):
        metrics = detector.compliance_metrics([])
        assert metrics.compliance_score == 100.0
        assert metrics.to_dict()["direct_answer_violations"] == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
