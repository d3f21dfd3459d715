"""
Unit Tests for Analytics Engine
"""

import pytest
import sys
import os
from datetime import datetime, timedelta

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_socratic_tutor", "src"))

from adaptive_socratic_tutor.analytics_engine import (
    AnalyticsEngine,
    LearningPattern,
    ResponsePattern,
)
from adaptive_socratic_tutor.dialogue_types import DifficultyLevel, LearningStyle, SessionPerformance
from adaptive_socratic_tutor.user_profile_manager import StudentProfile

NOW = datetime(2026, 4, 1, 18, 0, 0)


def session(day, mastery, learned=(), struggled=(), minutes=20, completed=True, problem_type="algebra"):
    start = NOW - timedelta(days=day, hours=8)
    return SessionPerformance(
        session_id=f"s{day}",
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        mastery_score=mastery,
        completion_rate=mastery,
        concepts_learned=tuple(learned),
        struggled_concepts=tuple(struggled),
        average_response_time=25.0,
        difficulty_level=DifficultyLevel.INTERMEDIATE,
        problem_type=problem_type,
        completed=completed,
    )


@pytest.fixture
def history():
    return [
        session(6, 0.9, learned=["linear equations"]),
        session(5, 0.85, learned=["linear equations"]),
        session(4, 0.4, learned=["fractions"], struggled=["fractions"]),
        session(3, 0.7, learned=["area"], problem_type="geometry"),
        session(2, 0.75, learned=["area"], problem_type="geometry"),
    ]


class TestAnalyticsEngine:
    """Test suite for AnalyticsEngine."""

    @pytest.fixture
    def engine(self):
        return AnalyticsEngine()

    def test_success_rate_ignores_incomplete(self, engine):
        sessions = [session(2, 0.8), session(1, 0.6), session(0, 0.0, completed=False)]
        assert engine.calculate_success_rate(sessions) == pytest.approx(0.7)

    def test_success_rate_empty(self, engine):
        assert engine.calculate_success_rate([]) == 0.0

    def test_knowledge_gaps_include_struggles(self, engine, history):
        assert engine.identify_knowledge_gaps(history) == ["fractions"]

    def test_strengths_need_repeated_high_mastery(self, engine, history):
        assert engine.identify_strengths(history) == ["linear equations"]

    def test_learning_velocity_without_earlier_window(self, engine):
        sessions = [session(2, 0.2), session(1, 0.5), session(0, 0.8)]
        # (recent avg 0.5 - first 0.2) / 3 sessions
        assert engine.calculate_learning_velocity(sessions) == pytest.approx(0.1)

    def test_performance_trends_grouped_by_day(self, engine, history):
        trends = engine.generate_performance_trends(history, days=30, now=NOW)

        assert len(trends) == 5
        assert trends[0].date < trends[-1].date
        assert trends[0].success_rate == pytest.approx(0.9)
        assert trends[0].difficulty_level == 2

    def test_performance_trends_window(self, engine, history):
        assert len(engine.generate_performance_trends(history, days=4, now=NOW)) == 2

    @pytest.mark.parametrize("patterns,expected", [
        (LearningPattern([], 0.0, "Unknown", None, [ResponsePattern("area", 12.0, 1.0, "stable")]), LearningStyle.ANALYTICAL),
        (LearningPattern([], 52.5, "Unknown", None), LearningStyle.EXPLORATORY),
        (LearningPattern([], 22.5, "Unknown", None), LearningStyle.VISUAL),
    ])
    def test_infer_learning_style(self, engine, patterns, expected):
        assert engine.infer_learning_style(patterns) == expected

    def test_best_performance_time(self, engine, history):
        patterns = engine.analyze_learning_patterns(history)
        assert patterns.best_performance_time == "Morning"
        assert patterns.preferred_problem_types[0] == "algebra"

    def test_update_student_analytics(self, engine, history):
        profile = engine.update_student_analytics(StudentProfile(id="student"), history, now=NOW)

        assert profile.total_sessions == 5
        assert profile.knowledge_gaps == ["fractions"]
        assert profile.strengths == ["linear equations"]
        assert profile.analytics.last_updated == NOW
        assert profile.learning_style is not None

    def test_update_is_idempotent_across_storage(self, engine, history):
        profile = engine.update_student_analytics(StudentProfile(id="student"), history, now=NOW)
        restored = StudentProfile.from_dict(profile.to_dict())

        engine.update_student_analytics(restored, history, now=NOW)

        assert restored.analytics.to_dict() == profile.analytics.to_dict()
        assert restored.learning_style == profile.learning_style

    def test_analytics_report(self, engine, history):
        profile = engine.update_student_analytics(StudentProfile(id="student"), history, now=NOW)
        report = engine.generate_analytics_report(profile, history, days=30, now=NOW)

        assert report.student_id == "student"
        assert report.summary["total_sessions"] == 5
        assert report.breakdown["by_problem_type"] == {"algebra": 3, "geometry": 2}
        assert any("fractions" in r for r in report.recommendations)
        assert len(report.recommendations) <= 5

    def test_achievements(self, engine):
        profile = StudentProfile(id="student")
        profile.analytics.success_rate = 0.95
        profile.analytics.strengths = ["a", "b", "c"]

        achievements = engine.identify_achievements(profile.analytics, [])
        assert len(achievements) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
