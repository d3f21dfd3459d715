"""
Prompt and Concept Catalog

Static lookup tables used by the assessor, selector and engine:
- Assessment pattern tables (uncertainty, confidence, hedging, overgeneralization,
  explanation/example markers, thinking-depth indicator classes)
- Metacognitive prompt templates
- Domain concept vocabularies
- Contextual question bank per Socratic question type, split into sub-pools
  by student state
- Fallback questions per Socratic question type (openings)

Tables are built once and exposed read-only. Swap them by constructing a new
``AssessmentPatterns`` / ``PromptCatalog`` and injecting it; nothing here is
mutated at runtime.
"""

import random
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import List, Mapping, Optional, Pattern, Tuple

from adaptive_socratic_tutor import config
from adaptive_socratic_tutor.dialogue_types import SocraticAssessment, SocraticQuestionType


def _compile(*patterns: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


@dataclass(frozen=True)
class AssessmentPatterns:
    """Regex tables driving utterance assessment."""
    uncertainty: Tuple[Pattern, ...]
    confidence: Tuple[Pattern, ...]
    hedging: Tuple[Pattern, ...]
    # (tag, pattern) pairs; each match contributes one misconception tag
    overgeneralization: Tuple[Tuple[str, Pattern], ...]
    explanation: Pattern
    examples: Pattern
    connection: Pattern
    # Independent indicator classes counted for depth of thinking
    depth_indicators: Mapping[str, Pattern] = field(default_factory=lambda: MappingProxyType({}))


DEFAULT_ASSESSMENT_PATTERNS = AssessmentPatterns(
    uncertainty=_compile(
        r"i don't know",
        r"not sure",
        r"confused",
        r"don't understand",
        r"i need help",
        r"help me",
        r"stuck",
        r"lost",
        r"no idea",
        r"can't figure",
        r"don't get it",
    ),
    confidence=_compile(
        r"i'm sure",
        r"definitely",
        r"certainly",
        r"obviously",
        r"i know",
        r"i think i got it",
        r"that makes sense",
    ),
    hedging=_compile(r"maybe|perhaps|might|could|guess|think so"),
    overgeneralization=tuple(
        (f"overgeneralization:{word}", re.compile(word, re.IGNORECASE))
        for word in ("always", "never", "every time")
    ),
    explanation=re.compile(r"because|since|therefore|so|means|indicates", re.IGNORECASE),
    examples=re.compile(r"for example|like|such as|instance", re.IGNORECASE),
    connection=re.compile(r"connect|relate|similar", re.IGNORECASE),
    depth_indicators=MappingProxyType({
        "questioning": re.compile(r"why|how|what if|suppose|assume", re.IGNORECASE),
        "reasoning": re.compile(r"because|since|therefore|thus|consequently", re.IGNORECASE),
        "analysis": re.compile(r"compare|contrast|similar|different|relate", re.IGNORECASE),
        "abstraction": re.compile(r"pattern|trend|general|specific|example", re.IGNORECASE),
        "evaluation": re.compile(r"verify|check|test|prove|validate", re.IGNORECASE),
    }),
)


METACOGNITIVE_PROMPTS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "process_reflection": (
        "How did you decide to take that approach?",
        "What was your thinking process here?",
        "What made you choose this method?",
    ),
    "confidence_check": (
        "How confident are you in this answer? What makes you feel that way?",
        "On a scale of 1-10, how sure are you about this step?",
        "What part of this solution feels most solid to you?",
    ),
    "strategy_awareness": (
        "What strategy are you using here? Have you used it before?",
        "Is this approach similar to problems you've solved before?",
        "What other methods could work for this problem?",
    ),
    "error_analysis": (
        "What do you think might have led to this mistake?",
        "If you were to start over, what would you do differently?",
        "What could help you avoid this error next time?",
    ),
})

CONCEPTUAL_FRAMEWORK: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "algebra": ("variables", "equations", "solving", "substitution", "elimination"),
    "geometry": ("shapes", "area", "perimeter", "angles", "theorems"),
    "calculus": ("derivatives", "integrals", "limits", "rates", "optimization"),
    "statistics": ("mean", "median", "distribution", "probability", "correlation"),
    "arithmetic": ("addition", "subtraction", "multiplication", "division"),
    "fractions": ("numerator", "denominator", "equivalent", "simplify"),
})

FALLBACK_QUESTIONS: Mapping[SocraticQuestionType, str] = MappingProxyType({
    SocraticQuestionType.CLARIFICATION: "What do you think the problem is asking us to find?",
    SocraticQuestionType.ASSUMPTIONS: "What are you assuming is true here, and how could we check it?",
    SocraticQuestionType.EVIDENCE: "That's interesting thinking! Can you tell me more about your reasoning?",
    SocraticQuestionType.PERSPECTIVE: "Is there another way we could look at this problem?",
    SocraticQuestionType.IMPLICATIONS: "If that's true, what would it mean for the next step?",
    SocraticQuestionType.META_QUESTIONING: "How are you thinking about this problem?",
})

def _pools(**pools: Tuple[str, ...]) -> Mapping[str, Tuple[str, ...]]:
    return MappingProxyType(pools)


# Pool names: low_confidence / high_confidence for every type that has them,
# plus the situational pools picked by PromptCatalog.question_pool
QUESTION_BANK: Mapping[SocraticQuestionType, Mapping[str, Tuple[str, ...]]] = MappingProxyType({
    SocraticQuestionType.CLARIFICATION: _pools(
        high_confidence=(
            "Walk me through your thinking. How did you arrive at that?",
            "Can you explain that in your own words?",
            "What exactly are we trying to find here?",
        ),
        low_confidence=(
            "Let's start simple. What information do we have?",
            "What's the very first thing you notice about this problem?",
            "If you had to describe this to a friend, what would you say?",
        ),
        stuck=(
            "Let's break this down. What's just one small piece you understand?",
            "What's the easiest part of this problem?",
            "What do the numbers in the problem tell us?",
        ),
    ),
    SocraticQuestionType.ASSUMPTIONS: _pools(
        high_confidence=(
            "What are you assuming must be true for that to work?",
            "Does that hold true in every case?",
            "What if we didn't make that assumption? What changes?",
        ),
        low_confidence=(
            "What do we know for certain about this type of problem?",
            "Are there any rules or patterns that always apply here?",
            "What properties of this concept can we count on?",
        ),
        misconception=(
            "Let's test that. If that were true, what would happen?",
            "Hmm, can you think of a case where that might not work?",
            "What would need to be different for that to be correct?",
        ),
    ),
    SocraticQuestionType.EVIDENCE: _pools(
        high_confidence=(
            "Excellent thinking! What evidence supports that conclusion?",
            "How do you know that's the right approach?",
            "Can you prove that works?",
        ),
        low_confidence=(
            "What makes you lean toward that answer?",
            "How could we check if that's on the right track?",
            "What part of the problem suggests that?",
        ),
        after_correct=(
            "You got it! Now explain why that works.",
            "Perfect! Can you show me the reasoning behind that?",
            "Good! What rule or principle did you use there?",
        ),
    ),
    SocraticQuestionType.PERSPECTIVE: _pools(
        high_confidence=(
            "Great! Is there another way you could approach this?",
            "How might someone else solve this differently?",
            "What if we started from the answer and worked backwards?",
        ),
        low_confidence=(
            "Let's think about this from a different angle. What else could we try?",
            "Sometimes it helps to draw a picture. What would that look like?",
            "What's a simpler version of this problem we could try first?",
        ),
    ),
    SocraticQuestionType.IMPLICATIONS: _pools(
        high_confidence=(
            "If that's true, what does it tell us about the next step?",
            "How does this connect to what we learned earlier?",
            "What pattern do you notice emerging?",
        ),
        low_confidence=(
            "If we tried that, what would happen?",
            "Let's follow that thought. Where does it lead?",
            "What's the next logical step from here?",
        ),
        building=(
            "You're building toward something! What comes next?",
            "You've got part of it. How does this piece fit with what you found before?",
            "We're getting closer! What does this tell us about our goal?",
        ),
    ),
    SocraticQuestionType.META_QUESTIONING: _pools(
        high_confidence=(
            "How did you decide to try that approach?",
            "What strategy are you using here?",
            "What does this problem remind you of?",
        ),
        reflection=(
            "What made this problem challenging?",
            "How is this similar to problems you've solved before?",
            "If you saw this problem again, what would you do first?",
        ),
        after_success=(
            "You figured it out! What was the key insight?",
            "How did your thinking change as you worked through this?",
            "What strategy worked best for you here?",
        ),
    ),
})

OPENING_FALLBACK = (
    "I'm excited to explore this problem with you! "
    "What's your initial understanding of what we're looking for?"
)
DEFAULT_METACOGNITIVE_PROMPT = "Can you tell me more about your thinking?"
DEFAULT_GUIDANCE_QUESTION = "How are you thinking about this problem?"


class PromptCatalog:
    """Read-only view over prompt templates and concept vocabularies."""

    def __init__(
        self,
        metacognitive_prompts: Mapping[str, Tuple[str, ...]] = METACOGNITIVE_PROMPTS,
        conceptual_framework: Mapping[str, Tuple[str, ...]] = CONCEPTUAL_FRAMEWORK,
        fallback_questions: Mapping[SocraticQuestionType, str] = FALLBACK_QUESTIONS,
        question_bank: Mapping[SocraticQuestionType, Mapping[str, Tuple[str, ...]]] = QUESTION_BANK,
    ):
        self.metacognitive_prompts = MappingProxyType(dict(metacognitive_prompts))
        self.conceptual_framework = MappingProxyType(dict(conceptual_framework))
        self.fallback_questions = MappingProxyType(dict(fallback_questions))
        self.question_bank = MappingProxyType({
            question_type: MappingProxyType(dict(pools)) for question_type, pools in question_bank.items()
        })
        self._term_patterns = MappingProxyType({
            domain: tuple(re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE) for term in terms)
            for domain, terms in self.conceptual_framework.items()
        })

    def get_metacognitive_prompt(self, category: str, rng: Optional[random.Random] = None) -> str:
        prompts = self.metacognitive_prompts.get(category)
        if not prompts:
            return DEFAULT_METACOGNITIVE_PROMPT
        return (rng or random).choice(prompts)

    def get_conceptual_framework(self, domain: str) -> Tuple[str, ...]:
        return self.conceptual_framework.get(domain, ())

    def get_all_domains(self) -> List[str]:
        return list(self.conceptual_framework.keys())

    def fallback_question(self, question_type: Optional[SocraticQuestionType]) -> str:
        if question_type is None:
            return DEFAULT_GUIDANCE_QUESTION
        return self.fallback_questions.get(question_type, DEFAULT_GUIDANCE_QUESTION)

    def question_pool(
        self,
        assessment: SocraticAssessment,
        question_type: SocraticQuestionType,
        student_response: str,
    ) -> str:
        """
        Name of the question-bank pool that fits the student's state.

        Situational pools (misconception, after_correct, building, after_success,
        stuck, reflection) win over the confidence pools. Medium confidence
        uses the high-confidence pool.
        """
        confidence = assessment.confidence_level
        if question_type == SocraticQuestionType.ASSUMPTIONS and assessment.misconceptions:
            return "misconception"
        if question_type == SocraticQuestionType.EVIDENCE and assessment.readiness_for_advancement:
            return "after_correct"
        if (
            question_type == SocraticQuestionType.IMPLICATIONS
            and len(student_response or "") > config.BUILDING_RESPONSE_LENGTH
        ):
            return "building"
        if question_type == SocraticQuestionType.META_QUESTIONING and confidence > config.AFTER_SUCCESS_CONFIDENCE:
            return "after_success"
        if question_type == SocraticQuestionType.CLARIFICATION and confidence < config.RECOVERY_CONFIDENCE:
            return "stuck"
        if (
            question_type == SocraticQuestionType.META_QUESTIONING
            and assessment.depth_of_thinking >= config.REFLECTION_THINKING_DEPTH
        ):
            return "reflection"

        level = "low_confidence" if confidence < config.LOW_CONFIDENCE_THRESHOLD else "high_confidence"
        pools = self.question_bank.get(question_type, {})
        if level in pools:
            return level
        if "high_confidence" in pools:
            return "high_confidence"
        return next(iter(pools), level)

    def select_contextual_question(
        self,
        assessment: SocraticAssessment,
        question_type: SocraticQuestionType,
        student_response: str,
        rng: Optional[random.Random] = None,
    ) -> str:
        """Draw an example question for this turn from the matching pool."""
        pools = self.question_bank.get(question_type)
        if not pools:
            return self.fallback_question(question_type)
        questions = pools.get(self.question_pool(assessment, question_type, student_response))
        if not questions:
            return self.fallback_question(question_type)
        return (rng or random).choice(questions)

    def extract_concepts(self, text: str) -> List[str]:
        """Domains whose vocabulary appears in the text as whole words."""
        if not text:
            return []
        return [
            domain
            for domain, patterns in self._term_patterns.items()
            if any(p.search(text) for p in patterns)
        ]
