"""
Unit Tests for the Prompt Catalog question bank
"""

import pytest
import random
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_socratic_tutor", "src"))

from adaptive_socratic_tutor.catalog import FALLBACK_QUESTIONS, QUESTION_BANK, PromptCatalog
from adaptive_socratic_tutor.dialogue_types import SocraticAssessment, SocraticQuestionType
from adaptive_socratic_tutor.prompts import build_turn_guidance

SHORT_REPLY = "x is 4"
LONG_REPLY = "If I subtract five from both sides first, then the left side only has the 2x term left over"


def assessment(confidence, ready=False, depth=1, misconceptions=()):
    return SocraticAssessment(
        confidence_level=confidence,
        misconceptions=tuple(misconceptions),
        readiness_for_advancement=ready,
        depth_of_thinking=depth,
    )


class TestQuestionBank:
    """Test suite for contextual question selection."""

    @pytest.fixture
    def catalog(self):
        return PromptCatalog()

    @pytest.mark.parametrize("question_type,state,reply,pool", [
        (SocraticQuestionType.ASSUMPTIONS, assessment(0.9, misconceptions=["overgeneralization:always"]), SHORT_REPLY, "misconception"),
        (SocraticQuestionType.EVIDENCE, assessment(0.9, ready=True), SHORT_REPLY, "after_correct"),
        (SocraticQuestionType.IMPLICATIONS, assessment(0.5), LONG_REPLY, "building"),
        (SocraticQuestionType.IMPLICATIONS, assessment(0.5), SHORT_REPLY, "high_confidence"),
        (SocraticQuestionType.META_QUESTIONING, assessment(0.9), SHORT_REPLY, "after_success"),
        (SocraticQuestionType.META_QUESTIONING, assessment(0.5, depth=3), SHORT_REPLY, "reflection"),
        (SocraticQuestionType.CLARIFICATION, assessment(0.1), SHORT_REPLY, "stuck"),
        (SocraticQuestionType.CLARIFICATION, assessment(0.25), SHORT_REPLY, "low_confidence"),
        (SocraticQuestionType.EVIDENCE, assessment(0.25), SHORT_REPLY, "low_confidence"),
        (SocraticQuestionType.PERSPECTIVE, assessment(0.5), SHORT_REPLY, "high_confidence"),
    ])
    def test_question_pool(self, catalog, question_type, state, reply, pool):
        assert catalog.question_pool(state, question_type, reply) == pool

    def test_missing_low_pool_uses_high_confidence(self, catalog):
        pool = catalog.question_pool(assessment(0.25), SocraticQuestionType.META_QUESTIONING, SHORT_REPLY)
        assert pool == "high_confidence"

    def test_every_pool_has_questions(self):
        for pools in QUESTION_BANK.values():
            for questions in pools.values():
                assert questions
                assert all(q.strip() for q in questions)

    def test_selection_follows_seeded_random(self, catalog):
        state = assessment(0.1)
        pool = QUESTION_BANK[SocraticQuestionType.CLARIFICATION]["stuck"]

        question = catalog.select_contextual_question(
            state, SocraticQuestionType.CLARIFICATION, SHORT_REPLY, rng=random.Random(3)
        )

        assert question == random.Random(3).choice(pool)

    def test_selection_stays_in_pool(self, catalog):
        rng = random.Random(11)
        pool = QUESTION_BANK[SocraticQuestionType.EVIDENCE]["after_correct"]
        for _ in range(10):
            question = catalog.select_contextual_question(
                assessment(0.9, ready=True), SocraticQuestionType.EVIDENCE, SHORT_REPLY, rng=rng
            )
            assert question in pool

    def test_empty_bank_falls_back(self):
        catalog = PromptCatalog(question_bank={})
        question = catalog.select_contextual_question(
            assessment(0.5), SocraticQuestionType.PERSPECTIVE, SHORT_REPLY, rng=random.Random(0)
        )
        assert question == FALLBACK_QUESTIONS[SocraticQuestionType.PERSPECTIVE]

    def test_guidance_carries_suggested_question(self):
        guidance = build_turn_guidance(
            assessment(0.5),
            SocraticQuestionType.EVIDENCE,
            SHORT_REPLY,
            current_depth=1,
            struggling_turns=0,
            suggested_question="Can you prove that works?",
        )

        assert 'Here\'s a good question to consider (you may adapt or use directly): "Can you prove that works?"' in guidance

    def test_guidance_without_suggestion(self):
        guidance = build_turn_guidance(
            assessment(0.5), SocraticQuestionType.EVIDENCE, SHORT_REPLY, current_depth=1, struggling_turns=0
        )
        assert "good question to consider" not in guidance


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
