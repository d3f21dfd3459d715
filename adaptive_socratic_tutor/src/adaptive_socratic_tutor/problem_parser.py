"""
Problem Parser

Normalizes and validates free-text math problems before a session starts.
Produces a ParsedProblem with a detected problem type, a rough difficulty
and the math concepts the text touches.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

from adaptive_socratic_tutor.dialogue_types import DifficultyLevel, ProblemType

logger = logging.getLogger(__name__)

MIN_PROBLEM_LENGTH = 3
MAX_PROBLEM_LENGTH = 2000
MAX_MATH_CONCEPTS = 5


@dataclass
class ParsedProblem:
    """Result of parsing a problem statement."""
    is_valid: bool
    content: str
    original_text: str = ""
    problem_type: ProblemType = ProblemType.ARITHMETIC
    difficulty: DifficultyLevel = DifficultyLevel.BEGINNER
    math_concepts: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


class ProblemParser:
    """
    Parses custom text problems.

    Type detection checks pattern families from most to least specific
    (calculus before trigonometry before statistics, and so on).
    """

    MATH_PATTERNS = {
        "linear": re.compile(
            r"(?:\d*\.?\d*\s*[a-z]\s*[+\-]\s*\d+\s*=\s*\d+)|(?:[a-z]\s*[+\-]\s*[a-z]\s*=\s*\d+)", re.IGNORECASE
        ),
        "quadratic": re.compile(r"\d*\.?\d*\s*[a-z]\s*\^\s*2|[a-z]\s*squared|[a-z]\s*²", re.IGNORECASE),
        "geometry": re.compile(
            r"area|perimeter|volume|radius|diameter|circumference|triangle|circle|rectangle|square|polygon",
            re.IGNORECASE,
        ),
        "calculus": re.compile(r"derivative|integral|limit|differentiate|integrate|d/dx|∫|lim", re.IGNORECASE),
        "trigonometry": re.compile(r"sin|cos|tan|cot|sec|csc|sine|cosine|tangent|θ|angle", re.IGNORECASE),
        "statistics": re.compile(
            r"mean|median|mode|average|probability|standard deviation|variance|distribution", re.IGNORECASE
        ),
        "arithmetic": re.compile(r"^\s*\d+\.?\d*\s*[+\-*/÷×]\s*\d+\.?\d*\s*=?\s*$"),
    }

    DIFFICULTY_INDICATORS = {
        DifficultyLevel.ADVANCED: [
            "complex", "advanced", "calculus", "derivative", "integral", "matrix",
            "polynomial", "logarithm", "exponential", "trigonometric",
        ],
        DifficultyLevel.INTERMEDIATE: [
            "solve", "equation", "system", "two variables", "fractions", "decimals",
            "multi-step", "word problem", "graph",
        ],
    }

    CONCEPT_MAP = {
        "equation": ["linear equations", "solving equations"],
        "system": ["system of equations", "multiple variables"],
        "quadratic": ["quadratic equations", "factoring"],
        "area": ["geometry", "area calculation"],
        "volume": ["geometry", "volume calculation"],
        "perimeter": ["geometry", "perimeter calculation"],
        "circle": ["geometry", "circles"],
        "triangle": ["geometry", "triangles"],
        "derivative": ["calculus", "differentiation"],
        "integral": ["calculus", "integration"],
        "limit": ["calculus", "limits"],
        "sin": ["trigonometry", "sine function"],
        "cos": ["trigonometry", "cosine function"],
        "tan": ["trigonometry", "tangent function"],
        "probability": ["statistics", "probability theory"],
        "mean": ["statistics", "measures of central tendency"],
        "percentage": ["arithmetic", "percentages"],
        "fraction": ["arithmetic", "fractions"],
    }

    _MATH_KEYWORDS = re.compile(
        r"solve|find|calculate|determine|equation|formula|area|volume|derivative|integral", re.IGNORECASE
    )
    _UNSUPPORTED_SYMBOLS = re.compile(r"[§¶†‡•‰‱]")

    def parse_problem(self, text: str) -> ParsedProblem:
        """
        Parse and validate a problem statement.

        Args:
            text: Raw problem text from the student

        Returns:
            ParsedProblem; ``is_valid`` is False with ``errors`` filled in when
            the text cannot be tutored
        """
        if not isinstance(text, str):
            text = "" if text is None else str(text)

        normalized = self.normalize_text(text)
        errors, warnings = self.validate_input(normalized)

        if errors:
            logger.info(f"⚠️ [ProblemParser] Rejected problem: {errors[0]}")
            return ParsedProblem(
                is_valid=False,
                content=normalized,
                original_text=text,
                errors=errors,
                warnings=warnings,
                metadata=self._metadata(normalized, DifficultyLevel.BEGINNER, valid=False),
            )

        problem_type = self.detect_problem_type(normalized)
        difficulty = self.assess_difficulty(normalized, problem_type)

        return ParsedProblem(
            is_valid=True,
            content=normalized,
            original_text=text,
            problem_type=problem_type,
            difficulty=difficulty,
            math_concepts=self.extract_math_concepts(normalized, problem_type),
            warnings=warnings,
            metadata=self._metadata(normalized, difficulty, valid=True),
        )

    @staticmethod
    def normalize_text(text: str) -> str:
        normalized = re.sub(r"\s+", " ", text.strip())
        normalized = re.sub(r"[“”‘’]", '"', normalized)
        normalized = normalized.replace("×", "*").replace("÷", "/").replace("−", "-")
        normalized = re.sub(r"\b(\d+)\s*\^\s*(\d+)", r"\1^\2", normalized)
        normalized = re.sub(r"\b(\d+)\s*squared\b", r"\1^2", normalized, flags=re.IGNORECASE)
        normalized = re.sub(r"\b(\d+)\s*cubed\b", r"\1^3", normalized, flags=re.IGNORECASE)
        return normalized

    def validate_input(self, text: str):
        """
        Check length and mathematical content.

        Returns:
            (errors, warnings) lists
        """
        errors: List[str] = []
        warnings: List[str] = []

        if len(text) < MIN_PROBLEM_LENGTH:
            errors.append("Problem text is too short. Please provide a complete mathematical problem.")
        if len(text) > MAX_PROBLEM_LENGTH:
            errors.append(f"Problem text is too long. Please keep it under {MAX_PROBLEM_LENGTH} characters.")
        if not self.contains_mathematical_content(text):
            errors.append(
                "No mathematical content detected. Please include numbers, variables, or mathematical operations."
            )

        if "=" in text and not re.search(r"\d+\s*=\s*\d+", text) and not re.search(r"[a-z]\s*=\s*\d+", text, re.IGNORECASE):
            warnings.append("Equation format detected. Make sure variables and numbers are properly spaced.")

        unsupported = self._UNSUPPORTED_SYMBOLS.findall(text)
        if unsupported:
            warnings.append(
                f"Unsupported symbols detected: {', '.join(unsupported)}. These may not be processed correctly."
            )

        return errors, warnings

    def contains_mathematical_content(self, text: str) -> bool:
        if re.search(r"\d", text):
            return True
        if re.search(r"\b[a-z]\b", text, re.IGNORECASE):
            return True
        if re.search(r"[+\-*/=^√∫∑∏]", text):
            return True
        return bool(self._MATH_KEYWORDS.search(text))

    def detect_problem_type(self, text: str) -> ProblemType:
        patterns = self.MATH_PATTERNS
        if patterns["calculus"].search(text):
            return ProblemType.CALCULUS
        if patterns["trigonometry"].search(text):
            return ProblemType.TRIGONOMETRY
        if patterns["statistics"].search(text):
            return ProblemType.STATISTICS
        if patterns["geometry"].search(text):
            return ProblemType.GEOMETRY
        if patterns["quadratic"].search(text) or patterns["linear"].search(text):
            return ProblemType.ALGEBRA
        if patterns["arithmetic"].search(text):
            return ProblemType.ARITHMETIC
        # Equation-like content defaults to algebra
        if "=" in text or re.search(r"[a-z]", text, re.IGNORECASE):
            return ProblemType.ALGEBRA
        return ProblemType.ARITHMETIC

    def assess_difficulty(self, text: str, problem_type: ProblemType) -> DifficultyLevel:
        lower = text.lower()
        for level, indicators in self.DIFFICULTY_INDICATORS.items():
            if any(indicator in lower for indicator in indicators):
                return level

        if problem_type == ProblemType.CALCULUS:
            return DifficultyLevel.ADVANCED
        if problem_type in (ProblemType.TRIGONOMETRY, ProblemType.STATISTICS):
            return DifficultyLevel.INTERMEDIATE

        if len(re.findall(r"\b[a-z]\b", text, re.IGNORECASE)) > 2:
            return DifficultyLevel.INTERMEDIATE
        if re.search(r"\^|squared|cubed|sqrt|log|ln", text, re.IGNORECASE):
            return DifficultyLevel.INTERMEDIATE
        return DifficultyLevel.BEGINNER

    def extract_math_concepts(self, text: str, problem_type: ProblemType) -> List[str]:
        lower = text.lower()
        concepts = [problem_type.value.replace("_", " ")]
        for keyword, related in self.CONCEPT_MAP.items():
            if keyword in lower:
                concepts.extend(related)
        # De-duplicate preserving order
        return list(dict.fromkeys(concepts))[:MAX_MATH_CONCEPTS]

    @staticmethod
    def _metadata(text: str, difficulty: DifficultyLevel, valid: bool) -> Dict[str, Any]:
        complexity = {
            DifficultyLevel.BEGINNER: "low",
            DifficultyLevel.INTERMEDIATE: "medium",
            DifficultyLevel.ADVANCED: "high",
        }[difficulty]
        return {
            "word_count": len(text.split()),
            "has_equations": valid and "=" in text,
            "has_variables": valid and bool(re.search(r"[a-z]", text, re.IGNORECASE)),
            "complexity": complexity,
        }

    @staticmethod
    def generate_preview(parsed: ParsedProblem) -> str:
        if not parsed.is_valid:
            return "❌ Invalid Problem:\n" + ("\n".join(parsed.errors) or "Unknown error")
        return "\n".join([
            "📝 Problem Preview:",
            f'   Text: "{parsed.content}"',
            f"   Type: {parsed.problem_type.value.replace('_', ' ').upper()}",
            f"   Difficulty: {parsed.difficulty.value.upper()}",
            f"   Concepts: {', '.join(parsed.math_concepts)}",
        ])
