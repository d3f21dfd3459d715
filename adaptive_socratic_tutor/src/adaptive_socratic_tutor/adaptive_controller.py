"""
Adaptive Difficulty Controller

Recommends a difficulty level and teaching strategy for future sessions from
a window of past SessionPerformance records. Runs between sessions, never
per turn.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

from adaptive_socratic_tutor import config
from adaptive_socratic_tutor.dialogue_types import (
    AdaptiveDifficulty,
    DifficultyLevel,
    LearningStyle,
    ProblemType,
    SessionPerformance,
)

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


@dataclass
class PerformanceAnalysis:
    average_success: float
    average_time: float
    trend_direction: str  # "improving", "stable" or "declining"
    consistency: float


@dataclass
class TeachingStrategy:
    primary_approach: str
    questioning_style: str
    feedback_style: str
    pacing: str
    focus_areas: List[str] = field(default_factory=list)
    adaptations: List[str] = field(default_factory=list)


@dataclass
class AdaptiveRecommendation:
    type: str
    priority: str  # "high", "medium" or "low"
    message: str
    action: str
    reasoning: str


@dataclass
class CandidateProblem:
    """A problem offered for selection, scored by ``adapt_problem_selection``."""
    problem_id: str
    type: str
    difficulty: DifficultyLevel = DifficultyLevel.INTERMEDIATE
    concepts: List[str] = field(default_factory=list)
    has_visual_elements: bool = False
    open_ended: bool = False
    adaptive_score: float = 0.0


class AdaptiveController:
    """
    Cross-session difficulty adaptation.

    Algorithm:
    - avg success >= 0.85 with estimate confidence >= 0.8 → one level up
    - avg success <= 0.4 with estimate confidence >= 0.7 → one level down
    - negative learning velocity with a declining trend → one level down
    - learning-style override applied last
    """

    DIFFICULTY_LEVELS = [
        DifficultyLevel.BEGINNER,
        DifficultyLevel.INTERMEDIATE,
        DifficultyLevel.ADVANCED,
    ]

    PERFORMANCE_WINDOW = 5
    PREFERENCE_WINDOW = 10
    MIN_SAMPLES_FOR_CONFIDENCE = 3

    def calculate_adaptive_difficulty(
        self,
        recent_performance: Sequence[SessionPerformance],
        knowledge_gaps: Optional[Sequence[str]] = None,
        learning_style: Optional[LearningStyle] = None,
    ) -> AdaptiveDifficulty:
        """
        Recommend a difficulty level from recent sessions.

        Args:
            recent_performance: Sessions, oldest first
            knowledge_gaps: Current knowledge gaps (informational)
            learning_style: Student learning style, if known

        Returns:
            AdaptiveDifficulty with current and recommended levels
        """
        analysis = self.analyze_recent_performance(recent_performance)
        estimate_confidence = self.calculate_confidence_level(recent_performance)
        velocity = self.calculate_learning_velocity(recent_performance)

        current = DifficultyLevel.INTERMEDIATE
        if recent_performance:
            current = DifficultyLevel(recent_performance[-1].difficulty_level)
        recommended = current
        reason = "Maintaining current level"

        if (
            analysis.average_success >= config.ESCALATE_SUCCESS
            and estimate_confidence >= config.ESCALATE_ESTIMATE_CONFIDENCE
        ):
            recommended = self.increase_difficulty(current)
            reason = "Excellent performance - ready for more challenge"
        elif (
            analysis.average_success <= config.DEESCALATE_SUCCESS
            and estimate_confidence >= config.DEESCALATE_ESTIMATE_CONFIDENCE
        ):
            recommended = self.decrease_difficulty(current)
            reason = "Struggling with current level - stepping back to build confidence"
        elif velocity < config.DECLINING_VELOCITY and analysis.trend_direction == "declining":
            recommended = self.decrease_difficulty(current)
            reason = "Performance declining - providing additional support"

        recommended, style_reason = self._adjust_for_learning_style(recommended, learning_style, analysis)

        result = AdaptiveDifficulty(
            current_level=current,
            recommended_level=recommended,
            confidence=estimate_confidence,
            adjustment_reason=style_reason or reason,
        )
        if result.recommended_level != result.current_level:
            logger.info(
                f"📊 [AdaptiveController] Difficulty {current.value} → {recommended.value} "
                f"({result.adjustment_reason})"
            )
        return result

    def analyze_recent_performance(self, performances: Sequence[SessionPerformance]) -> PerformanceAnalysis:
        if not performances:
            return PerformanceAnalysis(average_success=0.5, average_time=0.0, trend_direction="stable", consistency=0.0)

        scores = [p.mastery_score or 0.0 for p in performances]
        times = [p.average_response_time or 0.0 for p in performances]
        average_success = sum(scores) / len(scores)
        average_time = sum(times) / len(times)

        variance = sum((s - average_success) ** 2 for s in scores) / len(scores)
        consistency = 1 / (1 + math.sqrt(variance))

        return PerformanceAnalysis(
            average_success=average_success,
            average_time=average_time,
            trend_direction=self._calculate_trend(scores),
            consistency=consistency,
        )

    def _calculate_trend(self, scores: List[float]) -> str:
        """
        Compare the last 3 scores against everything earlier.

        Returns:
            "improving", "declining", or "stable"
        """
        if len(scores) < 3:
            return "stable"

        recent = scores[-3:]
        earlier = scores[:-3]
        if not earlier:
            return "stable"

        recent_avg = sum(recent) / len(recent)
        earlier_avg = sum(earlier) / len(earlier)
        if earlier_avg == 0:
            return "improving" if recent_avg > 0 else "stable"

        change = (recent_avg - earlier_avg) / earlier_avg
        if change > config.TREND_BAND:
            return "improving"
        elif change < -config.TREND_BAND:
            return "declining"
        return "stable"

    def calculate_confidence_level(self, performances: Sequence[SessionPerformance]) -> float:
        """Blend of sample size and score consistency."""
        if len(performances) < self.MIN_SAMPLES_FOR_CONFIDENCE:
            return 0.5
        analysis = self.analyze_recent_performance(performances)
        sample_size_confidence = min(len(performances) / self.PERFORMANCE_WINDOW, 1.0)
        return (sample_size_confidence + analysis.consistency) / 2

    def calculate_learning_velocity(self, performances: Sequence[SessionPerformance]) -> float:
        """Least-squares slope of mastery over session index."""
        n = len(performances)
        if n < 2:
            return 0.0

        scores = [p.mastery_score or 0.0 for p in performances]
        sum_x = sum(range(n))
        sum_y = sum(scores)
        sum_xy = sum(i * s for i, s in enumerate(scores))
        sum_xx = sum(i * i for i in range(n))

        denominator = n * sum_xx - sum_x * sum_x
        if denominator == 0:
            return 0.0
        return (n * sum_xy - sum_x * sum_y) / denominator

    def increase_difficulty(self, current: DifficultyLevel) -> DifficultyLevel:
        """Raise difficulty level; advanced stays advanced."""
        level = DifficultyLevel(current)
        idx = self.DIFFICULTY_LEVELS.index(level)
        if idx < len(self.DIFFICULTY_LEVELS) - 1:
            return self.DIFFICULTY_LEVELS[idx + 1]
        return level  # Already at max

    def decrease_difficulty(self, current: DifficultyLevel) -> DifficultyLevel:
        """Lower difficulty level; beginner stays beginner."""
        level = DifficultyLevel(current)
        idx = self.DIFFICULTY_LEVELS.index(level)
        if idx > 0:
            return self.DIFFICULTY_LEVELS[idx - 1]
        return level  # Already at min

    def _adjust_for_learning_style(
        self,
        difficulty: DifficultyLevel,
        style: Optional[LearningStyle],
        analysis: PerformanceAnalysis,
    ):
        if style == LearningStyle.ANALYTICAL and analysis.average_success >= config.ANALYTICAL_EXTRA_ESCALATION_SUCCESS:
            return (
                self.increase_difficulty(difficulty),
                "Analytical learning style - ready for increased complexity",
            )
        if style == LearningStyle.VISUAL and analysis.average_time > config.VISUAL_SLOW_RESPONSE_SECONDS:
            return difficulty, "Visual learning style - allowing time for conceptual understanding"
        return difficulty, None

    # ==================== Teaching Strategy ====================

    def generate_teaching_strategy(
        self,
        learning_style: Optional[LearningStyle],
        current_difficulty: DifficultyLevel,
        knowledge_gaps: Sequence[str] = (),
    ) -> TeachingStrategy:
        primary_approach = {
            LearningStyle.VISUAL: "visual_scaffolding",
            LearningStyle.ANALYTICAL: "logical_progression",
            LearningStyle.EXPLORATORY: "guided_discovery",
        }.get(learning_style, "balanced_approach")
        if current_difficulty == DifficultyLevel.BEGINNER:
            primary_approach = "scaffolding"

        adaptations = []
        if learning_style == LearningStyle.VISUAL:
            adaptations = ["Use visual representations", "Provide concrete examples"]

        return TeachingStrategy(
            primary_approach=primary_approach,
            questioning_style={
                LearningStyle.ANALYTICAL: "probing_questions",
                LearningStyle.EXPLORATORY: "open_ended_questions",
                LearningStyle.VISUAL: "concrete_examples",
            }.get(learning_style, "socratic_method"),
            feedback_style={
                LearningStyle.ANALYTICAL: "precise_analytical",
                LearningStyle.VISUAL: "descriptive_visual",
                LearningStyle.EXPLORATORY: "discovery_oriented",
            }.get(learning_style, "balanced_supportive"),
            pacing="deliberate" if learning_style == LearningStyle.ANALYTICAL else "moderate",
            focus_areas=[f"Address gap: {knowledge_gaps[0]}"] if knowledge_gaps else [],
            adaptations=adaptations,
        )

    # ==================== Recommendations ====================

    def generate_recommendations(
        self,
        performance_history: Sequence[SessionPerformance],
        knowledge_gaps: Sequence[str],
        current_difficulty: DifficultyLevel,
    ) -> List[str]:
        recommendations = []

        if performance_history:
            recent = list(performance_history)[-3:]
            avg_completion = sum(p.completion_rate for p in recent) / len(recent)
            if avg_completion < 0.5:
                recommendations.append("Consider reviewing fundamental concepts before proceeding")
            if any(p.struggling_turns > 3 for p in recent):
                recommendations.append("Take breaks when feeling stuck - fresh perspective helps")

        if knowledge_gaps:
            recommendations.append(f"Focus on strengthening: {knowledge_gaps[0]}")

        return recommendations[:config.MAX_RECOMMENDATIONS]

    def generate_adaptive_recommendations(
        self,
        recent_sessions: Sequence[SessionPerformance],
        profile,
    ) -> List[AdaptiveRecommendation]:
        """
        Prioritized recommendations for the next session.

        Args:
            recent_sessions: Session history, oldest first
            profile: StudentProfile (reads learning_style and knowledge_gaps)

        Returns:
            At most 5 recommendations, highest priority first
        """
        recommendations: List[AdaptiveRecommendation] = []
        window = [s for s in list(recent_sessions)[-self.PERFORMANCE_WINDOW:] if s.completed]

        if len(window) >= 3:
            analysis = self.analyze_recent_performance(window)
            if analysis.average_success < 0.5:
                recommendations.append(AdaptiveRecommendation(
                    type="difficulty",
                    priority="high",
                    message="Consider reviewing fundamental concepts before proceeding",
                    action="reduce_difficulty",
                    reasoning="Recent performance indicates need for additional support",
                ))
            if analysis.average_time > 300:
                recommendations.append(AdaptiveRecommendation(
                    type="pacing",
                    priority="medium",
                    message="Take your time - deep thinking is valuable",
                    action="encourage_reflection",
                    reasoning="Student shows thoughtful problem-solving approach",
                ))

        style_recommendation = self._style_recommendation(getattr(profile, "learning_style", None))
        if style_recommendation:
            recommendations.append(style_recommendation)

        gaps = list(getattr(profile, "knowledge_gaps", None) or [])
        if gaps:
            recommendations.append(AdaptiveRecommendation(
                type="content",
                priority="medium",
                message=f"Consider exploring: {gaps[0]}",
                action="suggest_topic",
                reasoning="Addressing identified knowledge gap",
            ))

        recommendations.sort(key=lambda r: PRIORITY_ORDER.get(r.priority, len(PRIORITY_ORDER)))
        return recommendations[:config.MAX_RECOMMENDATIONS]

    def _style_recommendation(self, style: Optional[LearningStyle]) -> Optional[AdaptiveRecommendation]:
        if style == LearningStyle.VISUAL:
            return AdaptiveRecommendation(
                type="strategy",
                priority="medium",
                message="Try visualizing the problem or drawing a diagram",
                action="suggest_visualization",
                reasoning="Visual learning style preference",
            )
        if style == LearningStyle.ANALYTICAL:
            return AdaptiveRecommendation(
                type="strategy",
                priority="medium",
                message="Break this down step by step",
                action="encourage_analysis",
                reasoning="Analytical learning style preference",
            )
        if style == LearningStyle.EXPLORATORY:
            return AdaptiveRecommendation(
                type="strategy",
                priority="medium",
                message="What patterns do you notice?",
                action="encourage_exploration",
                reasoning="Exploratory learning style preference",
            )
        return None

    # ==================== Problem Selection ====================

    def adapt_problem_selection(
        self,
        available_problems: Sequence[CandidateProblem],
        recent_sessions: Sequence[SessionPerformance],
        knowledge_gaps: Sequence[str],
        current_difficulty: DifficultyLevel,
        learning_style: Optional[LearningStyle] = None,
    ) -> List[CandidateProblem]:
        """
        Rank candidate problems for the student and keep type variety.

        Returns:
            Up to 5 problems with ``adaptive_score`` filled in
        """
        preferences = self.analyze_problem_type_preferences(list(recent_sessions)[-self.PREFERENCE_WINDOW:])
        scored = [
            replace(
                problem,
                adaptive_score=self._problem_score(
                    problem, preferences, knowledge_gaps, current_difficulty, learning_style
                ),
            )
            for problem in available_problems
        ]
        scored.sort(key=lambda p: p.adaptive_score, reverse=True)
        return self._ensure_problem_variety(scored)[:min(5, len(available_problems))]

    def analyze_problem_type_preferences(self, sessions: Sequence[SessionPerformance]) -> Dict[str, int]:
        """Count problem types the student has mastered (score >= 0.7)."""
        preferences: Dict[str, int] = {}
        for session in sessions:
            if session.problem_type and session.mastery_score >= 0.7:
                preferences[session.problem_type] = preferences.get(session.problem_type, 0) + 1
        return preferences

    def _problem_score(
        self,
        problem: CandidateProblem,
        preferences: Dict[str, int],
        knowledge_gaps: Sequence[str],
        difficulty: DifficultyLevel,
        style: Optional[LearningStyle],
    ) -> float:
        score = preferences.get(problem.type, 0) * 0.3
        if any(gap in problem.concepts for gap in knowledge_gaps):
            score += 0.4
        if problem.difficulty == difficulty:
            score += 0.3
        if self._matches_learning_style(problem, style):
            score += 0.2
        return score

    def _matches_learning_style(self, problem: CandidateProblem, style: Optional[LearningStyle]) -> bool:
        if style == LearningStyle.VISUAL:
            return problem.has_visual_elements or problem.type == ProblemType.GEOMETRY.value
        if style == LearningStyle.ANALYTICAL:
            return problem.type in (ProblemType.ALGEBRA.value, "logic")
        if style == LearningStyle.EXPLORATORY:
            return problem.type == ProblemType.WORD_PROBLEM.value or problem.open_ended
        return True

    def _ensure_problem_variety(self, problems: List[CandidateProblem]) -> List[CandidateProblem]:
        seen_types = set()
        varied: List[CandidateProblem] = []

        # First pass: one of each type after the top 3
        for problem in problems:
            if problem.type not in seen_types or len(varied) < 3:
                varied.append(problem)
                seen_types.add(problem.type)

        # Second pass: fill remaining slots
        for problem in problems:
            if len(varied) >= 5:
                break
            if not any(p is problem for p in varied):
                varied.append(problem)

        return varied
