"""
Student Assessor

Scores a single student utterance into a SocraticAssessment:
confidence, misconceptions, readiness, conceptual understanding and
depth of thinking. Pure pattern-table scoring; no LLM call, no state.
"""

import re
from typing import List, Optional

from adaptive_socratic_tutor import config
from adaptive_socratic_tutor.catalog import AssessmentPatterns, DEFAULT_ASSESSMENT_PATTERNS, PromptCatalog
from adaptive_socratic_tutor.dialogue_types import SocraticAssessment

_CONFIDENCE_VALUE = re.compile(r"confidence:\s*([0-9.]+)", re.IGNORECASE)
_CONFIDENCE_PERCENT = re.compile(r"(\d+)%\s*(?:confident|sure)", re.IGNORECASE)

DEFAULT_ASSESSMENT = SocraticAssessment(
    confidence_level=config.EMPTY_CONFIDENCE,
    misconceptions=(),
    readiness_for_advancement=False,
    conceptual_understanding=1,
    depth_of_thinking=1,
)


class StudentAssessor:
    """
    Assesses student utterances with injected pattern tables.

    Confidence rules (first match wins):
    - uncertainty language → 0.2
    - confident language → 0.9
    - hedging → 0.6
    Short answers without confident language are capped at 0.4.
    """

    def __init__(
        self,
        patterns: AssessmentPatterns = DEFAULT_ASSESSMENT_PATTERNS,
        catalog: Optional[PromptCatalog] = None,
    ):
        self.patterns = patterns
        self.catalog = catalog or PromptCatalog()

    def assess(self, utterance) -> SocraticAssessment:
        """
        Assess one utterance.

        Args:
            utterance: Raw student text. Non-strings are coerced; None and
                blank text yield the default low assessment.

        Returns:
            SocraticAssessment with every score in range. Never raises.
        """
        if utterance is None:
            return DEFAULT_ASSESSMENT
        try:
            text = utterance if isinstance(utterance, str) else str(utterance)
        except Exception:
            return DEFAULT_ASSESSMENT
        if not text.strip():
            return DEFAULT_ASSESSMENT

        confidence = self._confidence(text)
        misconceptions = tuple(
            tag for tag, pattern in self.patterns.overgeneralization if pattern.search(text)
        )

        return SocraticAssessment(
            confidence_level=confidence,
            misconceptions=misconceptions,
            readiness_for_advancement=confidence > config.READINESS_CONFIDENCE and not misconceptions,
            conceptual_understanding=self.assess_conceptual_understanding(text),
            depth_of_thinking=self.assess_thinking_depth(text),
        )

    def _confidence(self, text: str) -> float:
        is_confident = any(p.search(text) for p in self.patterns.confidence)

        confidence = config.BASE_CONFIDENCE
        if any(p.search(text) for p in self.patterns.uncertainty):
            confidence = config.UNCERTAIN_CONFIDENCE
        elif is_confident:
            confidence = config.CONFIDENT_CONFIDENCE
        elif any(p.search(text) for p in self.patterns.hedging):
            confidence = config.HEDGING_CONFIDENCE

        if len(text.strip()) < config.SHORT_ANSWER_LENGTH and not is_confident:
            confidence = min(confidence, config.SHORT_ANSWER_CONFIDENCE_CAP)

        return max(0.0, min(1.0, confidence))

    def assess_conceptual_understanding(self, text: str) -> int:
        """Length tiers gated by explanation, example and connection markers (1-5)."""
        length = len(text.strip())
        has_explanation = bool(self.patterns.explanation.search(text))
        has_examples = bool(self.patterns.examples.search(text))
        has_connection = bool(self.patterns.connection.search(text))
        tier2, tier3, tier4, tier5 = config.UNDERSTANDING_LENGTH_TIERS

        score = 1
        if length > tier2:
            score = 2
        if length > tier3 and has_explanation:
            score = 3
        if length > tier4 and has_explanation and has_examples:
            score = 4
        if length > tier5 and has_explanation and has_examples and has_connection:
            score = 5
        return score

    def assess_thinking_depth(self, text: str) -> int:
        matches = sum(1 for p in self.patterns.depth_indicators.values() if p.search(text))
        return min(5, max(1, matches + 1))

    def extract_concepts(self, text: str) -> List[str]:
        return self.catalog.extract_concepts(text)


def parse_predicted_confidence(text: str) -> Optional[float]:
    """
    Read a self-reported confidence ("confidence: 0.7", "80% sure").

    Returns:
        Value in [0, 1] or None when the student gave none
    """
    if not text:
        return None

    match = _CONFIDENCE_VALUE.search(text)
    if match:
        try:
            value = float(match.group(1))
        except ValueError:
            value = None
        if value is not None:
            if value > 1:
                value = value / 100
            return max(0.0, min(1.0, value))

    match = _CONFIDENCE_PERCENT.search(text)
    if match:
        return max(0.0, min(1.0, int(match.group(1)) / 100))

    return None
