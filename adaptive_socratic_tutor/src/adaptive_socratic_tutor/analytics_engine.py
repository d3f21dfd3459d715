"""
Analytics Engine

Computes success rate, learning velocity, knowledge gaps, strengths,
performance trends, learning patterns and recommendations from the
historical SessionPerformance set.

Everything here reads history only. ``update_student_analytics`` returns the
recomputed profile; persisting it is the caller's job.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from adaptive_socratic_tutor import config
from adaptive_socratic_tutor.dialogue_types import DifficultyLevel, LearningStyle, SessionPerformance

logger = logging.getLogger(__name__)

DIFFICULTY_VALUES = {
    DifficultyLevel.BEGINNER: 1,
    DifficultyLevel.INTERMEDIATE: 2,
    DifficultyLevel.ADVANCED: 3,
}

# (min minutes, max minutes) buckets for optimal session length
SESSION_LENGTH_RANGES = ((0, 15), (15, 30), (30, 45), (45, 60), (60, float("inf")))


def _average(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


@dataclass
class PerformanceTrend:
    date: date
    success_rate: float
    average_time: float
    problems_solved: int
    difficulty_level: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "success_rate": self.success_rate,
            "average_time": self.average_time,
            "problems_solved": self.problems_solved,
            "difficulty_level": self.difficulty_level,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PerformanceTrend":
        return cls(
            date=date.fromisoformat(data["date"]),
            success_rate=float(data["success_rate"]),
            average_time=float(data["average_time"]),
            problems_solved=int(data["problems_solved"]),
            difficulty_level=float(data["difficulty_level"]),
        )


@dataclass
class ResponsePattern:
    concept: str
    average_time: float
    success_rate: float
    improvement_trend: str


@dataclass
class LearningPattern:
    preferred_problem_types: List[str]
    optimal_session_length: float
    best_performance_time: str
    learning_style: Optional[LearningStyle]
    response_patterns: List[ResponsePattern] = field(default_factory=list)


@dataclass
class LearningAnalytics:
    """Snapshot stored on the student profile."""
    success_rate: float = 0.0
    average_session_time: float = 0.0
    learning_velocity: float = 0.0
    knowledge_gaps: List[str] = field(default_factory=list)
    strengths: List[str] = field(default_factory=list)
    performance_trends: List[PerformanceTrend] = field(default_factory=list)
    last_updated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success_rate": self.success_rate,
            "average_session_time": self.average_session_time,
            "learning_velocity": self.learning_velocity,
            "knowledge_gaps": list(self.knowledge_gaps),
            "strengths": list(self.strengths),
            "performance_trends": [t.to_dict() for t in self.performance_trends],
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LearningAnalytics":
        if not data:
            return cls()
        last_updated = data.get("last_updated")
        return cls(
            success_rate=float(data.get("success_rate", 0.0)),
            average_session_time=float(data.get("average_session_time", 0.0)),
            learning_velocity=float(data.get("learning_velocity", 0.0)),
            knowledge_gaps=list(data.get("knowledge_gaps") or []),
            strengths=list(data.get("strengths") or []),
            performance_trends=[PerformanceTrend.from_dict(t) for t in data.get("performance_trends") or []],
            last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
        )


@dataclass
class AnalyticsReport:
    student_id: str
    report_date: datetime
    time_range_start: datetime
    time_range_end: datetime
    summary: Dict[str, float]
    breakdown: Dict[str, Dict[str, int]]
    recommendations: List[str]
    achievements: List[str]


class AnalyticsEngine:
    """Read-only aggregation over a student's session history."""

    RECENT_WINDOW = 10

    def calculate_success_rate(self, sessions: Sequence[SessionPerformance]) -> float:
        completed = [s for s in sessions if s.completed]
        if not completed:
            return 0.0
        return _average([s.mastery_score or 0.0 for s in completed])

    def calculate_learning_velocity(self, sessions: Sequence[SessionPerformance]) -> float:
        """
        Mastery improvement of the last 10 sessions over the 10 before.

        With no earlier window, the improvement from the first session spread
        over the number of sessions.
        """
        ordered = sorted((s for s in sessions if s.completed), key=lambda s: s.start_time)
        if len(ordered) < 2:
            return 0.0

        recent = ordered[-self.RECENT_WINDOW:]
        previous = ordered[-2 * self.RECENT_WINDOW:-self.RECENT_WINDOW]
        recent_avg = _average([s.mastery_score for s in recent])

        if not previous:
            return (recent_avg - ordered[0].mastery_score) / len(ordered)

        previous_avg = _average([s.mastery_score for s in previous])
        return (recent_avg - previous_avg) / max(len(previous), 1)

    def _concept_scores(self, sessions: Sequence[SessionPerformance], include_struggles: bool) -> "OrderedDict[str, List[float]]":
        scores: "OrderedDict[str, List[float]]" = OrderedDict()
        for session in sessions:
            for concept in session.concepts_learned:
                scores.setdefault(concept, []).append(session.mastery_score or 0.0)
            if include_struggles:
                for concept in session.struggled_concepts:
                    scores.setdefault(concept, []).append(
                        max(0.0, (session.mastery_score or 0.0) - config.STRUGGLE_PENALTY)
                    )
        return scores

    def identify_knowledge_gaps(self, sessions: Sequence[SessionPerformance]) -> List[str]:
        scores = self._concept_scores(sessions, include_struggles=True)
        gaps = [concept for concept, values in scores.items() if _average(values) < config.KNOWLEDGE_GAP_THRESHOLD]
        return gaps[:config.MAX_GAPS]

    def identify_strengths(self, sessions: Sequence[SessionPerformance]) -> List[str]:
        scores = self._concept_scores(sessions, include_struggles=False)
        strengths = [
            concept
            for concept, values in scores.items()
            if len(values) >= 2 and _average(values) >= config.STRENGTH_THRESHOLD
        ]
        return strengths[:config.MAX_STRENGTHS]

    def average_session_time(self, sessions: Sequence[SessionPerformance]) -> float:
        return _average([s.duration_seconds for s in sessions])

    def generate_performance_trends(
        self,
        sessions: Sequence[SessionPerformance],
        days: int = config.DEFAULT_TREND_DAYS,
        now: Optional[datetime] = None,
    ) -> List[PerformanceTrend]:
        """Daily success rate, time, volume and difficulty over the last ``days`` days."""
        now = now or datetime.now()
        cutoff = now - timedelta(days=days)

        daily: Dict[date, List[SessionPerformance]] = {}
        for session in sessions:
            if session.completed and session.start_time >= cutoff:
                daily.setdefault(session.start_time.date(), []).append(session)

        return [
            PerformanceTrend(
                date=day,
                success_rate=self.calculate_success_rate(day_sessions),
                average_time=self.average_session_time(day_sessions),
                problems_solved=len(day_sessions),
                difficulty_level=_average([
                    DIFFICULTY_VALUES[DifficultyLevel(s.difficulty_level)] for s in day_sessions
                ]),
            )
            for day, day_sessions in sorted(daily.items())
        ]

    # ==================== Learning Patterns ====================

    def analyze_learning_patterns(
        self,
        sessions: Sequence[SessionPerformance],
        learning_style: Optional[LearningStyle] = None,
    ) -> LearningPattern:
        return LearningPattern(
            preferred_problem_types=self._problem_type_preference(sessions),
            optimal_session_length=self._optimal_session_length(sessions),
            best_performance_time=self._best_performance_time(sessions),
            learning_style=learning_style,
            response_patterns=self._response_patterns(sessions),
        )

    def _problem_type_preference(self, sessions: Sequence[SessionPerformance]) -> List[str]:
        counts: Dict[str, int] = {}
        for session in sessions:
            if session.problem_type:
                counts[session.problem_type] = counts.get(session.problem_type, 0) + 1
        ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        return [problem_type for problem_type, _ in ranked[:3]]

    def _optimal_session_length(self, sessions: Sequence[SessionPerformance]) -> float:
        """Midpoint (minutes) of the length bucket with the best average mastery."""
        completed = [s for s in sessions if s.completed]
        if len(completed) < 3:
            return 0.0

        buckets: Dict[tuple, List[float]] = {r: [] for r in SESSION_LENGTH_RANGES}
        for session in completed:
            minutes = session.duration_seconds / 60
            for low, high in SESSION_LENGTH_RANGES:
                if low <= minutes < high:
                    buckets[(low, high)].append(session.mastery_score)
                    break

        candidates = [(r, scores) for r, scores in buckets.items() if len(scores) >= 2]
        if not candidates:
            return 0.0
        (low, high), _ = max(candidates, key=lambda item: _average(item[1]))
        return (low + high) / 2

    def _best_performance_time(self, sessions: Sequence[SessionPerformance]) -> str:
        by_hour: Dict[int, List[float]] = {}
        for session in sessions:
            if session.completed:
                by_hour.setdefault(session.start_time.hour, []).append(session.mastery_score)

        candidates = [(hour, scores) for hour, scores in by_hour.items() if len(scores) >= 2]
        if not candidates:
            return "Unknown"

        hour, _ = max(candidates, key=lambda item: _average(item[1]))
        if hour < 12:
            return "Morning"
        if hour < 17:
            return "Afternoon"
        return "Evening"

    def _response_patterns(self, sessions: Sequence[SessionPerformance]) -> List[ResponsePattern]:
        data: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for session in sessions:
            for concept in session.concepts_learned:
                entry = data.setdefault(concept, {"times": [], "successes": 0, "total": 0})
                entry["times"].append(session.average_response_time or 0.0)
                entry["total"] += 1
                if session.mastery_score >= 0.7:
                    entry["successes"] += 1

        patterns = [
            ResponsePattern(
                concept=concept,
                average_time=_average(entry["times"]),
                success_rate=entry["successes"] / entry["total"],
                improvement_trend=self._time_trend(entry["times"]),
            )
            for concept, entry in data.items()
            if entry["total"] >= 2
        ]
        return patterns[:5]

    def _time_trend(self, values: List[float]) -> str:
        """Falling response times read as improving."""
        if len(values) < 3:
            return "stable"
        recent = values[-3:]
        earlier = values[-6:-3]
        if not earlier:
            return "stable"
        earlier_avg = _average(earlier)
        if earlier_avg == 0:
            return "stable"
        change = (_average(recent) - earlier_avg) / earlier_avg
        if change > 0.1:
            return "declining"
        if change < -0.1:
            return "improving"
        return "stable"

    def infer_learning_style(self, patterns: LearningPattern) -> LearningStyle:
        if any(p.average_time < 30 for p in patterns.response_patterns):
            return LearningStyle.ANALYTICAL
        if patterns.optimal_session_length > 45:
            return LearningStyle.EXPLORATORY
        return LearningStyle.VISUAL

    # ==================== Recommendations & Reports ====================

    def generate_recommendations(self, analytics: LearningAnalytics, patterns: LearningPattern) -> List[str]:
        recommendations = []

        if analytics.success_rate < 0.5:
            recommendations.append("Consider reviewing fundamental concepts before tackling new problems")
            recommendations.append("Try starting with easier problems to build confidence")
        elif analytics.success_rate > 0.8:
            recommendations.append("Great progress! Consider increasing problem difficulty for more challenge")

        if analytics.knowledge_gaps:
            recommendations.append(f"Focus on improving: {', '.join(analytics.knowledge_gaps[:3])}")

        if analytics.learning_velocity > 0.1:
            recommendations.append("Excellent improvement trend! Keep up the great work")
        elif analytics.learning_velocity < -0.05:
            recommendations.append("Consider taking breaks between sessions to avoid fatigue")

        if patterns.optimal_session_length > 0:
            if patterns.optimal_session_length < 15:
                recommendations.append("Short, focused sessions work well for you - consider 10-15 minute sessions")
            elif patterns.optimal_session_length > 45:
                recommendations.append("You perform well in longer sessions - consider 45-60 minute focused study blocks")

        if patterns.preferred_problem_types:
            recommendations.append(
                f"You excel at {patterns.preferred_problem_types[0]} problems - consider exploring related topics"
            )

        return recommendations[:config.MAX_RECOMMENDATIONS]

    def identify_achievements(self, analytics: LearningAnalytics, recent_sessions: Sequence[SessionPerformance]) -> List[str]:
        achievements = []
        if analytics.success_rate >= 0.9:
            achievements.append("🏆 Excellence Award - 90%+ success rate!")
        if analytics.learning_velocity > 0.15:
            achievements.append("🚀 Rapid Learner - Outstanding improvement!")
        if len(recent_sessions) >= 10:
            achievements.append("💪 Consistent Learner - 10+ recent sessions!")
        if len(analytics.strengths) >= 3:
            achievements.append("🌟 Multi-talented - Strong in multiple areas!")
        return achievements

    def generate_analytics_report(
        self,
        profile,
        sessions: Sequence[SessionPerformance],
        days: int = config.DEFAULT_TREND_DAYS,
        now: Optional[datetime] = None,
    ) -> AnalyticsReport:
        """
        Summary, breakdowns, recommendations and achievements for a time window.

        Args:
            profile: StudentProfile (reads id, learning_style, analytics)
            sessions: Full session history
            days: Size of the reporting window
            now: Reference time, defaults to now
        """
        now = now or datetime.now()
        cutoff = now - timedelta(days=days)
        recent = [s for s in sessions if s.start_time >= cutoff]

        summary = {
            "total_sessions": len(recent),
            "total_time": sum(s.duration_seconds for s in recent),
            "average_session_time": self.average_session_time(recent),
            "problems_solved": len([s for s in recent if s.completed]),
            "success_rate": self.calculate_success_rate(recent),
            "improvement_rate": self.calculate_learning_velocity(recent),
        }
        breakdown = {
            "by_problem_type": self._group(recent, lambda s: s.problem_type or "unknown"),
            "by_difficulty": self._group(recent, lambda s: DifficultyLevel(s.difficulty_level).value),
            "by_time_of_day": self._group(recent, lambda s: self._time_of_day(s.start_time.hour)),
        }

        patterns = self.analyze_learning_patterns(sessions, profile.learning_style)
        return AnalyticsReport(
            student_id=profile.id,
            report_date=now,
            time_range_start=cutoff,
            time_range_end=now,
            summary=summary,
            breakdown=breakdown,
            recommendations=self.generate_recommendations(profile.analytics, patterns),
            achievements=self.identify_achievements(profile.analytics, recent),
        )

    def _group(self, sessions: Sequence[SessionPerformance], key) -> Dict[str, int]:
        groups: Dict[str, int] = {}
        for session in sessions:
            k = key(session)
            groups[k] = groups.get(k, 0) + 1
        return groups

    def _time_of_day(self, hour: int) -> str:
        if 6 <= hour < 12:
            return "Morning"
        if 12 <= hour < 18:
            return "Afternoon"
        if 18 <= hour < 22:
            return "Evening"
        return "Night"

    # ==================== Profile Update ====================

    def update_student_analytics(
        self,
        profile,
        sessions: Sequence[SessionPerformance],
        now: Optional[datetime] = None,
    ):
        """
        Recompute a profile's analytics from the full session history.

        Deterministic for a given history and ``now``, so re-running with no
        new sessions reproduces the same snapshot.

        Args:
            profile: StudentProfile to update in place
            sessions: Every SessionPerformance of the student
            now: Reference time for the trend window and timestamps

        Returns:
            The updated profile
        """
        now = now or datetime.now()

        profile.total_sessions = len(sessions)
        profile.last_active = now
        profile.analytics = LearningAnalytics(
            success_rate=self.calculate_success_rate(sessions),
            average_session_time=self.average_session_time(sessions),
            learning_velocity=self.calculate_learning_velocity(sessions),
            knowledge_gaps=self.identify_knowledge_gaps(sessions),
            strengths=self.identify_strengths(sessions),
            performance_trends=self.generate_performance_trends(sessions, now=now),
            last_updated=now,
        )
        profile.knowledge_gaps = list(profile.analytics.knowledge_gaps)
        profile.strengths = list(profile.analytics.strengths)

        if len(sessions) >= config.MIN_SESSIONS_FOR_STYLE:
            patterns = self.analyze_learning_patterns(sessions, profile.learning_style)
            inferred = self.infer_learning_style(patterns)
            if inferred != profile.learning_style:
                logger.info(f"🎨 [AnalyticsEngine] Learning style for {profile.id}: {inferred.value}")
            profile.learning_style = inferred

        return profile
