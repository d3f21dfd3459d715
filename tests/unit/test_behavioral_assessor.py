"""
Unit Tests for Behavioral Assessor

Grading is exercised against a scripted completion client.
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_socratic_tutor", "src"))

from adaptive_socratic_tutor.behavioral_assessor import (
    TRANSFER_TEMPLATES,
    BehavioralAssessor,
    is_coherent_explanation,
)
from adaptive_socratic_tutor.dialogue_types import DifficultyLevel
from adaptive_socratic_tutor.errors import UpstreamUnavailableError


class ScriptedClient:
    """Returns queued replies; raises when the queue holds an exception."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    async def complete(self, messages, **options):
        self.requests.append((messages, options))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


COHERENT = "You subtract three from both sides because the equation has to stay balanced on both sides."


class TestBehavioralAssessor:
    """Test suite for BehavioralAssessor."""

    @pytest.mark.asyncio
    async def test_reasoning_score(self):
        client = ScriptedClient("3")
        score = await BehavioralAssessor(client).score_reasoning_chain(COHERENT, "algebra")

        assert score == 3
        messages, options = client.requests[0]
        assert 'concept "algebra"' in messages[0]["content"]
        assert options["max_tokens"] == 10

    @pytest.mark.asyncio
    async def test_reasoning_score_clamped(self):
        assert await BehavioralAssessor(ScriptedClient("7")).score_reasoning_chain(COHERENT, "algebra") == 4

    @pytest.mark.asyncio
    async def test_unparseable_grade(self):
        assert await BehavioralAssessor(ScriptedClient("great")).score_reasoning_chain(COHERENT, "algebra") == 0

    @pytest.mark.asyncio
    async def test_grader_unavailable_scores_zero(self):
        client = ScriptedClient(UpstreamUnavailableError("down"))
        assert await BehavioralAssessor(client).score_reasoning_chain(COHERENT, "algebra") == 0

    @pytest.mark.asyncio
    async def test_teach_back_coherent(self):
        assert await BehavioralAssessor(ScriptedClient("3")).assess_teach_back(COHERENT, "algebra") == 3

    @pytest.mark.asyncio
    async def test_teach_back_incoherent_loses_a_point(self):
        assert await BehavioralAssessor(ScriptedClient("3")).assess_teach_back("it works", "algebra") == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply,expected", [("yes", True), ("Yes, it matches", True), ("no", False), ("", False)])
    async def test_transfer_response(self, reply, expected):
        assessor = BehavioralAssessor(ScriptedClient(reply))
        assert await assessor.assess_transfer_response("subtract 7 then divide by 3", "Subtract 7") is expected

    @pytest.mark.asyncio
    async def test_question_quality_floor(self):
        client = ScriptedClient(UpstreamUnavailableError("down"))
        assert await BehavioralAssessor(client).assess_student_question_quality("why?", "algebra") == 1

    @pytest.mark.parametrize("concept,difficulty,expected", [
        ("linear equations", DifficultyLevel.BEGINNER, TRANSFER_TEMPLATES["algebra"][DifficultyLevel.BEGINNER]),
        ("triangle", DifficultyLevel.INTERMEDIATE, TRANSFER_TEMPLATES["geometry"][DifficultyLevel.INTERMEDIATE]),
        ("derivative", DifficultyLevel.ADVANCED, TRANSFER_TEMPLATES["calculus"][DifficultyLevel.ADVANCED]),
        ("derivative", "expert", TRANSFER_TEMPLATES["algebra"][DifficultyLevel.INTERMEDIATE]),
    ])
    def test_transfer_challenge(self, concept, difficulty, expected):
        assert BehavioralAssessor.generate_transfer_challenge(concept, difficulty) == expected

    def test_coherence(self):
        assert is_coherent_explanation(COHERENT) is True
        assert is_coherent_explanation("short") is False
        assert is_coherent_explanation("x" * 60) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
