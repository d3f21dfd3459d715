"""
Unit Tests for Profile and Session Persistence

Exercises the in-memory fallback of UserProfileManager and SessionManager.
"""

import pytest
import sys
import os
from datetime import datetime, timedelta

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_socratic_tutor", "src"))

from adaptive_socratic_tutor.dialogue_types import (
    DifficultyLevel,
    EnhancedMessage,
    LearningStyle,
    QuestionResponseRecord,
    SessionPerformance,
)
from adaptive_socratic_tutor.session_manager import SessionManager
from adaptive_socratic_tutor.user_profile_manager import (
    MAX_QUESTION_RESPONSE_HISTORY,
    StudentProfile,
    UserProfileManager,
)

START = datetime(2026, 5, 4, 9, 30, 0)


class TestUserProfileManager:
    """Test suite for UserProfileManager."""

    @pytest.fixture
    def manager(self):
        return UserProfileManager()

    @pytest.mark.asyncio
    async def test_unknown_student_gets_default(self, manager):
        profile = await manager.get_profile("student-1")

        assert profile.id == "student-1"
        assert profile.current_difficulty == DifficultyLevel.INTERMEDIATE
        assert profile.performance_history == []

    @pytest.mark.asyncio
    async def test_save_and_load(self, manager):
        profile = StudentProfile(id="student-1", learning_style=LearningStyle.VISUAL, knowledge_gaps=["fractions"])
        profile.add_performance(SessionPerformance(session_id="s1", start_time=START, mastery_score=0.8))
        profile.record_question_response(QuestionResponseRecord("evidence", 3.0, 12.5, 2, timestamp=START))

        assert await manager.save_profile(profile) is True
        loaded = await manager.get_profile("student-1")

        assert loaded.learning_style == LearningStyle.VISUAL
        assert loaded.knowledge_gaps == ["fractions"]
        assert loaded.performance_history[0].mastery_score == 0.8
        assert loaded.question_response_history[0].question_type == "evidence"

    @pytest.mark.asyncio
    async def test_loaded_profile_is_a_copy(self, manager):
        await manager.save_profile(StudentProfile(id="student-1"))

        loaded = await manager.get_profile("student-1")
        loaded.knowledge_gaps.append("geometry")

        assert (await manager.get_profile("student-1")).knowledge_gaps == []

    @pytest.mark.asyncio
    async def test_corrupt_profile_falls_back_to_default(self, manager):
        manager._in_memory_profiles["student-1"] = {"id": "student-1", "current_difficulty": "expert"}

        profile = await manager.get_profile("student-1")

        assert profile.id == "student-1"
        assert profile.current_difficulty == DifficultyLevel.INTERMEDIATE

    def test_question_history_is_bounded(self):
        profile = StudentProfile(id="student-1")
        for i in range(MAX_QUESTION_RESPONSE_HISTORY + 5):
            profile.record_question_response(QuestionResponseRecord("clarification", 1.0, float(i), 1))

        assert len(profile.question_response_history) == MAX_QUESTION_RESPONSE_HISTORY
        assert profile.question_response_history[0].response_time == 5.0

    def test_record_interaction_running_average(self):
        profile = StudentProfile(id="student-1")
        profile.record_interaction(10.0, 0.5)
        profile.record_interaction(20.0, 0.7)

        assert profile.engagement_metrics.average_response_time == pytest.approx(15.0)
        assert profile.engagement_metrics.total_interactions == 2
        assert profile.engagement_metrics.engagement_score == 0.7


class TestSessionManager:
    """Test suite for SessionManager."""

    @pytest.fixture
    def manager(self):
        return SessionManager()

    @pytest.mark.asyncio
    async def test_history_sorted_oldest_first(self, manager):
        await manager.save_performance("student-1", SessionPerformance(session_id="b", start_time=START))
        await manager.save_performance(
            "student-1", SessionPerformance(session_id="a", start_time=START - timedelta(days=1))
        )

        history = await manager.load_history("student-1")
        assert [p.session_id for p in history] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_saving_same_session_replaces(self, manager):
        await manager.save_performance("student-1", SessionPerformance(session_id="a", start_time=START))
        await manager.save_performance(
            "student-1", SessionPerformance(session_id="a", start_time=START, mastery_score=0.9)
        )

        history = await manager.load_history("student-1")
        assert len(history) == 1
        assert history[0].mastery_score == 0.9

    @pytest.mark.asyncio
    async def test_unknown_student_has_no_history(self, manager):
        assert await manager.load_history("nobody") == []

    @pytest.mark.asyncio
    async def test_messages_round_trip_without_system(self, manager):
        await manager.save_messages("session-1", [
            EnhancedMessage(role="system", content="You are a tutor"),
            EnhancedMessage(role="assistant", content="What are we solving for?"),
            EnhancedMessage(role="user", content="x"),
        ])

        messages = await manager.load_messages("session-1")
        assert [(m["role"], m["content"]) for m in messages] == [
            ("assistant", "What are we solving for?"),
            ("user", "x"),
        ]
        assert await manager.load_messages("session-2") is None

    @pytest.mark.asyncio
    async def test_session_context_round_trip(self, manager):
        context = {"problem": "Solve 2x + 5 = 13", "difficulty": "beginner", "is_assessment_mode": False}

        assert await manager.save_session_context("session-1", context) is True
        context["problem"] = "changed"

        loaded = await manager.load_session_context("session-1")
        assert loaded["problem"] == "Solve 2x + 5 = 13"
        assert await manager.load_session_context("session-2") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
