"""
Behavioral Assessor

Evidence of understanding beyond what the student says about themselves:
1. Reasoning-chain scoring (LLM graded, 0-4)
2. Teach-back scoring with a coherence check
3. Transfer challenges from curated templates (no LLM drift)
4. Transfer-response and question-quality grading

LLM-graded probes degrade to their lowest score when the completion
service is unavailable; they never interrupt the dialogue.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from adaptive_socratic_tutor.completion_client import CompletionClient
from adaptive_socratic_tutor.dialogue_types import DifficultyLevel
from adaptive_socratic_tutor.errors import TutorError

logger = logging.getLogger(__name__)

REASONING_RUBRIC = """You are evaluating a student's explanation of the concept "{concept}". Score the explanation from 0-4 based on this rubric:
- 1 point if the explanation identifies assumptions made
- 1 point if the explanation states evidence or reasoning
- 1 point if the explanation makes logical connections
- 1 point if the explanation acknowledges limitations or uncertainties

Respond with ONLY a single integer from 0-4, nothing else."""

TRANSFER_RUBRIC = """You are evaluating if a student's response demonstrates the expected approach to solving a problem. The expected approach is: "{expected_approach}"

Respond with ONLY "yes" if the response matches the expected approach, or "no" if it does not."""

QUESTION_QUALITY_RUBRIC = """You are evaluating the quality of a student's question about "{concept}". Score from 1-5:
- 1: Basic recall question ("What is X?")
- 2: Simple application question ("How do I use X?")
- 3: Analysis question ("Why does X work?")
- 4: Synthesis question ("How does X relate to Y?")
- 5: Evaluation/connection question ("How does X connect to Y in different contexts?")

Respond with ONLY a single integer from 1-5, nothing else."""


@dataclass(frozen=True)
class TransferChallenge:
    prompt: str
    expected_approach: str


TRANSFER_TEMPLATES = {
    "algebra": {
        DifficultyLevel.BEGINNER: TransferChallenge(
            "If you have 3x + 7 = 22, how would you solve for x?",
            "Subtract 7 from both sides, then divide by 3",
        ),
        DifficultyLevel.INTERMEDIATE: TransferChallenge(
            "Solve 2(x - 3) + 5 = 13. What steps would you take?",
            "Distribute 2, combine like terms, isolate x",
        ),
        DifficultyLevel.ADVANCED: TransferChallenge(
            "How would you solve the system: 2x + 3y = 12 and x - y = 1?",
            "Use substitution or elimination method",
        ),
    },
    "geometry": {
        DifficultyLevel.BEGINNER: TransferChallenge(
            "If a rectangle has length 8 and width 5, how would you find its area?",
            "Multiply length by width",
        ),
        DifficultyLevel.INTERMEDIATE: TransferChallenge(
            "A triangle has sides of length 3, 4, and 5. How would you determine if it's a right triangle?",
            "Use Pythagorean theorem: check if 3² + 4² = 5²",
        ),
        DifficultyLevel.ADVANCED: TransferChallenge(
            "Given a circle with radius r, how would you find the area of a sector with central angle θ?",
            "Use formula: (θ/360) × πr²",
        ),
    },
    "calculus": {
        DifficultyLevel.BEGINNER: TransferChallenge(
            "If f(x) = x², what is the derivative f'(x)?",
            "Apply power rule: 2x",
        ),
        DifficultyLevel.INTERMEDIATE: TransferChallenge(
            "How would you find the maximum value of f(x) = -x² + 4x + 1?",
            "Take derivative, set to zero, find critical point, verify maximum",
        ),
        DifficultyLevel.ADVANCED: TransferChallenge(
            "How would you evaluate the integral ∫(2x + 3)dx?",
            "Apply power rule for integration: x² + 3x + C",
        ),
    },
}

_GEOMETRY_HINTS = ("geometry", "triangle", "circle")
_CALCULUS_HINTS = ("calculus", "derivative", "integral")


def _parse_int(text: str) -> Optional[int]:
    match = re.match(r"\s*(-?\d+)", text or "")
    return int(match.group(1)) if match else None


def is_coherent_explanation(explanation: str) -> bool:
    """Long enough and either uses a causal connective or spans two sentences."""
    if len(explanation) <= 50:
        return False
    if any(word in explanation for word in ("because", "since", "therefore")):
        return True
    return len(explanation.split(".")) >= 2


class BehavioralAssessor:
    """
    LLM-graded behavioral probes.

    All grading calls use low temperature and a tiny token budget; the
    model is asked for a bare integer or yes/no.
    """

    def __init__(self, completion_client: CompletionClient):
        self.completion_client = completion_client

    async def _grade(self, system_prompt: str, user_content: str, temperature: float) -> Optional[str]:
        try:
            return await self.completion_client.complete(
                [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                temperature=temperature,
                max_tokens=10,
            )
        except TutorError as e:
            logger.warning(f"⚠️ [BehavioralAssessor] Grading unavailable: {e}")
            return None

    async def score_reasoning_chain(self, explanation: str, concept: str) -> int:
        """
        Score reasoning quality (0-4).

        Returns:
            0 when the grader is unavailable or answers with no integer
        """
        text = await self._grade(
            REASONING_RUBRIC.format(concept=concept),
            f'Student explanation: "{explanation}"',
            temperature=0.3,
        )
        score = _parse_int(text) if text else None
        return max(0, min(4, score if score is not None else 0))

    async def assess_teach_back(self, explanation: str, concept: str) -> int:
        """
        Score a teach-back (0-4).

        Reuses the reasoning rubric; a good score on an incoherent
        explanation loses one point.
        """
        score = await self.score_reasoning_chain(explanation, concept)
        if score >= 2 and not is_coherent_explanation(explanation):
            return max(0, score - 1)
        return score

    @staticmethod
    def generate_transfer_challenge(concept: str, difficulty: DifficultyLevel) -> TransferChallenge:
        """Pick a curated transfer problem for a concept's domain and difficulty."""
        concept_lower = (concept or "").lower()
        category = "algebra"
        if any(hint in concept_lower for hint in _GEOMETRY_HINTS):
            category = "geometry"
        elif any(hint in concept_lower for hint in _CALCULUS_HINTS):
            category = "calculus"

        try:
            level = DifficultyLevel(difficulty)
        except ValueError:
            return TRANSFER_TEMPLATES["algebra"][DifficultyLevel.INTERMEDIATE]
        return TRANSFER_TEMPLATES[category][level]

    async def assess_transfer_response(self, response: str, expected_approach: str) -> bool:
        text = await self._grade(
            TRANSFER_RUBRIC.format(expected_approach=expected_approach),
            f'Student response: "{response}"',
            temperature=0.2,
        )
        return bool(text) and text.strip().lower().startswith("yes")

    async def assess_student_question_quality(self, question: str, concept: str) -> int:
        """Score a student-authored question (1-5, 1 when ungraded)."""
        text = await self._grade(
            QUESTION_QUALITY_RUBRIC.format(concept=concept),
            f'Student question: "{question}"',
            temperature=0.3,
        )
        score = _parse_int(text) if text else None
        return max(1, min(5, score if score is not None else 1))
