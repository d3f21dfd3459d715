"""
Problem Classifier

Scores a parsed problem against keyword and regex tables to pick its type
and difficulty, then attaches a suggested teaching approach, a time
estimate and prerequisites.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List

from adaptive_socratic_tutor.dialogue_types import DifficultyLevel, ProblemType
from adaptive_socratic_tutor.problem_parser import ParsedProblem

MIN_CLASSIFICATION_CONFIDENCE = 0.3
MAX_CLASSIFICATION_CONFIDENCE = 0.95


@dataclass
class ClassificationResult:
    problem_type: ProblemType
    difficulty: DifficultyLevel
    confidence: float
    reasoning: str
    suggested_approach: str
    estimated_time: str
    prerequisites: List[str] = field(default_factory=list)


def _patterns(*patterns: str, flags=re.IGNORECASE):
    return [re.compile(p, flags) for p in patterns]


class ProblemClassifier:
    """
    Keyword/pattern scorer for problem type and difficulty.

    Keyword hits add 2 points, pattern hits add 3. Ties resolve to the
    first entry in table order.
    """

    TYPE_PATTERNS: Dict[ProblemType, Dict[str, list]] = {
        ProblemType.ALGEBRA: {
            "keywords": ["solve", "equation", "variable", "x", "y", "unknown", "linear", "quadratic", "polynomial"],
            "patterns": _patterns(
                r"\b\w*x\w*\s*[=+\-*/]\s*\w*",
                r"\b\d*x\^?\d*\s*[+\-]\s*\d*",
                r"solve\s+for\s+\w+",
                r"find\s+\w+\s+if",
            ),
        },
        ProblemType.GEOMETRY: {
            "keywords": [
                "triangle", "circle", "rectangle", "square", "angle", "area", "perimeter", "volume",
                "radius", "diameter", "polygon", "vertex", "side", "hypotenuse",
            ],
            "patterns": _patterns(
                r"\b(triangle|circle|rectangle|square|polygon)\b",
                r"\b(area|perimeter|volume|circumference)\b",
                r"\b\d+\s*(degrees?\b|°)",
                r"\bangle\s+\w+",
            ),
        },
        ProblemType.CALCULUS: {
            "keywords": [
                "derivative", "integral", "limit", "differentiate", "integrate", "slope", "tangent",
                "rate of change", "maximum", "minimum",
            ],
            "patterns": _patterns(
                r"\b(derivative|integral|limit)\b",
                r"\bd/dx\b",
                r"∫",
                r"\blim\b",
                r"\bf'?\([x\w]+\)",
            ),
        },
        ProblemType.STATISTICS: {
            "keywords": [
                "mean", "median", "mode", "standard deviation", "probability", "distribution", "sample",
                "population", "variance", "correlation",
            ],
            "patterns": _patterns(
                r"\b(mean|median|mode|average)\b",
                r"\bprobability\s+of\b",
                r"\bstandard\s+deviation\b",
                r"\b\d+%\s+chance\b",
            ),
        },
        ProblemType.TRIGONOMETRY: {
            "keywords": ["sin", "cos", "tan", "sine", "cosine", "tangent", "angle", "radian", "degree", "triangle"],
            "patterns": _patterns(
                r"\b(sin|cos|tan|sec|csc|cot)\b",
                r"\b(sine|cosine|tangent)\b",
                r"\b\d+\s*(degrees?\b|radians?\b|°)",
            ),
        },
        ProblemType.ARITHMETIC: {
            "keywords": [
                "add", "subtract", "multiply", "divide", "sum", "difference", "product", "quotient",
                "fraction", "decimal", "percentage",
            ],
            "patterns": _patterns(
                r"^\s*\d+\s*[+\-*/]\s*\d+",
                r"\b\d+\s*/\s*\d+\b",
                r"\b\d+\.\d+\b",
                r"\b\d+%",
                flags=0,
            ),
        },
    }

    DIFFICULTY_KEYWORDS: Dict[DifficultyLevel, List[str]] = {
        DifficultyLevel.BEGINNER: ["basic", "simple", "easy", "elementary", "introduction"],
        DifficultyLevel.INTERMEDIATE: ["solve", "find", "calculate", "determine", "moderate"],
        DifficultyLevel.ADVANCED: ["prove", "derive", "optimize", "analyze", "complex", "advanced"],
    }

    SUGGESTED_APPROACHES: Dict[ProblemType, Dict[DifficultyLevel, str]] = {
        ProblemType.ALGEBRA: {
            DifficultyLevel.BEGINNER: "Start with identifying variables and constants, then guide through step-by-step solving",
            DifficultyLevel.INTERMEDIATE: "Focus on problem setup and systematic equation solving techniques",
            DifficultyLevel.ADVANCED: "Emphasize multiple solution methods and verification strategies",
        },
        ProblemType.GEOMETRY: {
            DifficultyLevel.BEGINNER: "Use visual aids and basic shape properties",
            DifficultyLevel.INTERMEDIATE: "Apply geometric theorems and formulas systematically",
            DifficultyLevel.ADVANCED: "Integrate multiple geometric concepts and proof techniques",
        },
        ProblemType.CALCULUS: {
            DifficultyLevel.BEGINNER: "Focus on conceptual understanding before computational techniques",
            DifficultyLevel.INTERMEDIATE: "Practice standard techniques with guided problem-solving",
            DifficultyLevel.ADVANCED: "Explore connections between concepts and advanced applications",
        },
        ProblemType.STATISTICS: {
            DifficultyLevel.BEGINNER: "Start with data interpretation and basic measures",
            DifficultyLevel.INTERMEDIATE: "Apply statistical methods with real-world context",
            DifficultyLevel.ADVANCED: "Analyze complex distributions and inference techniques",
        },
        ProblemType.TRIGONOMETRY: {
            DifficultyLevel.BEGINNER: "Use unit circle and basic triangle relationships",
            DifficultyLevel.INTERMEDIATE: "Apply trigonometric identities and equations",
            DifficultyLevel.ADVANCED: "Integrate with calculus and complex number concepts",
        },
        ProblemType.ARITHMETIC: {
            DifficultyLevel.BEGINNER: "Focus on number sense and basic operations",
            DifficultyLevel.INTERMEDIATE: "Practice multi-step calculations and estimation",
            DifficultyLevel.ADVANCED: "Explore number theory and advanced computational techniques",
        },
    }

    PREREQUISITES: Dict[ProblemType, Dict[DifficultyLevel, List[str]]] = {
        ProblemType.ALGEBRA: {
            DifficultyLevel.BEGINNER: ["Basic arithmetic", "Understanding of variables"],
            DifficultyLevel.INTERMEDIATE: ["Linear equations", "Basic factoring"],
            DifficultyLevel.ADVANCED: ["Quadratic equations", "Polynomial operations", "Function concepts"],
        },
        ProblemType.GEOMETRY: {
            DifficultyLevel.BEGINNER: ["Basic shapes", "Measurement concepts"],
            DifficultyLevel.INTERMEDIATE: ["Area and perimeter formulas", "Pythagorean theorem"],
            DifficultyLevel.ADVANCED: ["Coordinate geometry", "Trigonometry", "Proof techniques"],
        },
        ProblemType.CALCULUS: {
            DifficultyLevel.BEGINNER: ["Algebra", "Functions", "Limits concept"],
            DifficultyLevel.INTERMEDIATE: ["Derivatives", "Basic integration"],
            DifficultyLevel.ADVANCED: ["Advanced integration", "Series", "Multivariable concepts"],
        },
        ProblemType.STATISTICS: {
            DifficultyLevel.BEGINNER: ["Basic arithmetic", "Data interpretation"],
            DifficultyLevel.INTERMEDIATE: ["Probability concepts", "Descriptive statistics"],
            DifficultyLevel.ADVANCED: ["Probability distributions", "Hypothesis testing", "Regression"],
        },
        ProblemType.TRIGONOMETRY: {
            DifficultyLevel.BEGINNER: ["Basic geometry", "Angle measurement"],
            DifficultyLevel.INTERMEDIATE: ["Right triangle trigonometry", "Unit circle"],
            DifficultyLevel.ADVANCED: ["Trigonometric identities", "Inverse functions", "Complex numbers"],
        },
        ProblemType.ARITHMETIC: {
            DifficultyLevel.BEGINNER: ["Number recognition", "Basic operations"],
            DifficultyLevel.INTERMEDIATE: ["Fractions", "Decimals", "Percentages"],
            DifficultyLevel.ADVANCED: ["Number theory", "Advanced computational methods"],
        },
    }

    ESTIMATED_TIMES = {
        DifficultyLevel.BEGINNER: "5-10 minutes",
        DifficultyLevel.INTERMEDIATE: "10-20 minutes",
        DifficultyLevel.ADVANCED: "20-45 minutes",
    }

    def classify(self, problem: ParsedProblem) -> ClassificationResult:
        """
        Classify a parsed problem.

        Args:
            problem: Output of ProblemParser.parse_problem

        Returns:
            ClassificationResult with confidence in [0.3, 0.95]
        """
        content = problem.content.lower()
        problem_type = self.classify_type(content)
        difficulty = self.classify_difficulty(content, problem_type)
        return ClassificationResult(
            problem_type=problem_type,
            difficulty=difficulty,
            confidence=self.calculate_confidence(content, problem_type),
            reasoning=self.generate_reasoning(content, problem_type, difficulty),
            suggested_approach=self.suggest_approach(problem_type, difficulty),
            estimated_time=self.estimate_time(difficulty),
            prerequisites=self.get_prerequisites(problem_type, difficulty),
        )

    def _keyword_matches(self, content: str, problem_type: ProblemType) -> List[str]:
        return [k for k in self.TYPE_PATTERNS[problem_type]["keywords"] if k in content]

    def _pattern_matches(self, content: str, problem_type: ProblemType) -> int:
        return sum(1 for p in self.TYPE_PATTERNS[problem_type]["patterns"] if p.search(content))

    def classify_type(self, content: str) -> ProblemType:
        scores = {
            problem_type: 2 * len(self._keyword_matches(content, problem_type))
            + 3 * self._pattern_matches(content, problem_type)
            for problem_type in self.TYPE_PATTERNS
        }
        best = max(scores.values())
        if best == 0:
            return ProblemType.ALGEBRA
        return next(t for t, score in scores.items() if score == best)

    def classify_difficulty(self, content: str, problem_type: ProblemType) -> DifficultyLevel:
        scores = {level: 0 for level in (
            DifficultyLevel.BEGINNER, DifficultyLevel.INTERMEDIATE, DifficultyLevel.ADVANCED
        )}

        word_count = len(content.split())
        if word_count < 20:
            scores[DifficultyLevel.BEGINNER] += 2
        elif word_count < 50:
            scores[DifficultyLevel.INTERMEDIATE] += 2
        else:
            scores[DifficultyLevel.ADVANCED] += 2

        if re.search(r"and|then|next|also|furthermore|moreover", content):
            scores[DifficultyLevel.INTERMEDIATE] += 3
        if re.search(r"derivative|integral|matrix|vector|complex|advanced", content):
            scores[DifficultyLevel.ADVANCED] += 4

        for level, keywords in self.DIFFICULTY_KEYWORDS.items():
            scores[level] += 2 * sum(1 for k in keywords if k in content)

        if problem_type == ProblemType.CALCULUS:
            scores[DifficultyLevel.ADVANCED] += 3
        elif problem_type == ProblemType.ARITHMETIC:
            scores[DifficultyLevel.BEGINNER] += 2

        best = max(scores.values())
        return next(level for level, score in scores.items() if score == best)

    def calculate_confidence(self, content: str, problem_type: ProblemType) -> float:
        confidence = 0.5
        confidence += 0.1 * len(self._keyword_matches(content, problem_type))
        confidence += 0.15 * self._pattern_matches(content, problem_type)

        word_count = len(content.split())
        if 10 < word_count < 100:
            confidence += 0.1
        if re.search(r"[+\-*/=<>∫∂∆∑∏√π]", content):
            confidence += 0.1

        return min(MAX_CLASSIFICATION_CONFIDENCE, max(MIN_CLASSIFICATION_CONFIDENCE, confidence))

    def generate_reasoning(self, content: str, problem_type: ProblemType, difficulty: DifficultyLevel) -> str:
        reasons = []
        matched = self._keyword_matches(content, problem_type)
        if matched:
            reasons.append(f"Classified as {problem_type.value} due to keywords: {', '.join(matched[:3])}")

        if difficulty == DifficultyLevel.BEGINNER:
            reasons.append("Beginner level due to straightforward language and basic concepts")
        elif difficulty == DifficultyLevel.INTERMEDIATE:
            reasons.append("Intermediate level due to multi-step nature or moderate complexity")
        else:
            reasons.append("Advanced level due to complex concepts or abstract reasoning required")
        return ". ".join(reasons)

    def suggest_approach(self, problem_type: ProblemType, difficulty: DifficultyLevel) -> str:
        approaches = self.SUGGESTED_APPROACHES.get(problem_type, self.SUGGESTED_APPROACHES[ProblemType.ALGEBRA])
        return approaches[difficulty]

    def estimate_time(self, difficulty: DifficultyLevel) -> str:
        return self.ESTIMATED_TIMES.get(difficulty, "10-20 minutes")

    def get_prerequisites(self, problem_type: ProblemType, difficulty: DifficultyLevel) -> List[str]:
        table = self.PREREQUISITES.get(problem_type, self.PREREQUISITES[ProblemType.ALGEBRA])
        return list(table[difficulty])

    @staticmethod
    def validate_classification(result: ClassificationResult) -> bool:
        return (
            MIN_CLASSIFICATION_CONFIDENCE <= result.confidence <= 1.0
            and len(result.reasoning) > 10
            and len(result.suggested_approach) > 20
            and len(result.prerequisites) > 0
        )

    @staticmethod
    def summary(result: ClassificationResult) -> str:
        return (
            f"Type: {result.problem_type.value} | Difficulty: {result.difficulty.value} | "
            f"Confidence: {result.confidence * 100:.0f}% | Time: {result.estimated_time}"
        )
