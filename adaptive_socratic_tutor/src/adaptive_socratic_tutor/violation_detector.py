"""
Violation Detector

Flags tutor utterances that leak a direct answer instead of guiding.
Detection is advisory: callers count and log violations, they never block
the conversation on one.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Pattern, Tuple

from adaptive_socratic_tutor.dialogue_types import EnhancedMessage

# Guiding phrasing is never flagged, even when a number appears
SOCRATIC_GUIDANCE_PATTERNS: Tuple[Pattern, ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"what does.*become\?",
        r"how.*do.*that\?",
        r"what.*next.*step\?",
        r"how.*arrive.*conclusion\?",
        r"can you.*tell me",
        r"what.*think",
        r"do you.*know",
        r"\?.*$",
    )
)

DIRECT_ANSWER_PATTERNS: Tuple[Pattern, ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^the answer is\s*\d+",
        r"^the solution is\s*\d+",
        r"^x\s*=\s*\d+\.?$",
        r"^therefore,?\s*x\s*=\s*\d+",
        r"^so,?\s*x\s*=\s*\d+\.?$",
        r"^the final answer is",
        r"^the result is\s*\d+",
        r"we get\s*x\s*=\s*\d+\.?$",
        r"this gives us\s*x\s*=\s*\d+",
    )
)


@dataclass
class ComplianceMetrics:
    direct_answer_violations: int = 0
    compliance_score: float = 100.0
    last_violation_turn: int = 0
    examples: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "direct_answer_violations": self.direct_answer_violations,
            "compliance_score": self.compliance_score,
            "last_violation_turn": self.last_violation_turn,
            "examples": list(self.examples),
        }


class ViolationDetector:
    def __init__(
        self,
        guidance_patterns: Tuple[Pattern, ...] = SOCRATIC_GUIDANCE_PATTERNS,
        direct_answer_patterns: Tuple[Pattern, ...] = DIRECT_ANSWER_PATTERNS,
    ):
        self.guidance_patterns = guidance_patterns
        self.direct_answer_patterns = direct_answer_patterns

    def contains_direct_answer(self, text: str) -> bool:
        if not text or not isinstance(text, str):
            return False
        if any(p.search(text) for p in self.guidance_patterns):
            return False
        stripped = text.strip()
        return any(p.search(stripped) for p in self.direct_answer_patterns)

    def compliance_metrics(self, messages: Iterable[EnhancedMessage]) -> ComplianceMetrics:
        """
        Summarize Socratic compliance over the tutor side of a conversation.

        A message counts as a violation if it was flagged when produced or
        still reads as a direct answer.
        """
        tutor_messages = [m for m in messages if m.role == "assistant"]
        violations = [
            (turn, m.content)
            for turn, m in enumerate(tutor_messages, start=1)
            if m.direct_answer_flagged or self.contains_direct_answer(m.content)
        ]

        total = len(tutor_messages)
        score = ((total - len(violations)) / total) * 100 if total else 100.0
        return ComplianceMetrics(
            direct_answer_violations=len(violations),
            compliance_score=score,
            last_violation_turn=violations[-1][0] if violations else 0,
            examples=[content for _, content in violations[:3]],
        )


_default_detector = ViolationDetector()


def contains_direct_answer(text: str) -> bool:
    """Module-level shortcut using the default pattern tables."""
    return _default_detector.contains_direct_answer(text)
