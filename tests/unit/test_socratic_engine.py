"""
Unit Tests for Socratic Engine

Drives full turns against a scripted completion client: question
rendering, leak detection, turn atomicity on upstream failure,
understanding checks, assessment mode and behavioral evidence.
"""

import asyncio
import pytest
import random
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "adaptive_socratic_tutor", "src"))

from adaptive_socratic_tutor.behavioral_assessor import TRANSFER_TEMPLATES, BehavioralAssessor
from adaptive_socratic_tutor.catalog import QUESTION_BANK
from adaptive_socratic_tutor.config import EngineSettings
from adaptive_socratic_tutor.dialogue_types import (
    DifficultyLevel,
    SessionPerformance,
    SocraticQuestionType,
)
from adaptive_socratic_tutor.errors import (
    InvalidInputError,
    InvalidProblemError,
    UpstreamUnavailableError,
)
from adaptive_socratic_tutor.question_selector import QuestionSelector
from adaptive_socratic_tutor.socratic_engine import (
    ASSESSMENT_COMPLETE,
    ASSESSMENT_OPENING,
    SocraticEngine,
)
from adaptive_socratic_tutor.student_assessor import StudentAssessor
from adaptive_socratic_tutor.user_profile_manager import StudentProfile

PROBLEM = "Solve 2x + 5 = 13"
HEDGED_TURNS = [
    "We could subtract five from both sides",
    "Maybe then we divide both sides by two",
    "I guess x could be four after that",
]
STUCK = "I don't know, I'm stuck here"
EXPLANATION = "You subtract five from both sides because the equation has to stay balanced on both sides."


class FakeCompletionClient:
    """Scripted completion service. Fails ``fail_times`` calls before answering."""

    def __init__(self, replies=None, fail_times=0, default="What do you notice about both sides?"):
        self.replies = list(replies or [])
        self.fail_times = fail_times
        self.default = default
        self.calls = []

    async def complete(self, messages, **options):
        self.calls.append((messages, options))
        await asyncio.sleep(0)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise UpstreamUnavailableError("Tutoring service unavailable")
        if self.replies:
            return self.replies.pop(0)
        return self.default


class SpyAssessor(StudentAssessor):
    """Counts assess calls."""

    def __init__(self):
        super().__init__()
        self.assessed = []

    def assess(self, utterance):
        self.assessed.append(utterance)
        return super().assess(utterance)


def make_engine(client=None, settings=None, **kwargs):
    return SocraticEngine(
        "session-1",
        client or FakeCompletionClient(),
        settings=settings,
        selector=QuestionSelector(random.Random(0)),
        **kwargs,
    )


def profile_with_mastery(*scores):
    profile = StudentProfile(id="student-1")
    for i, score in enumerate(scores):
        profile.add_performance(SessionPerformance(
            session_id=f"old-{i}", start_time=profile.created_at, mastery_score=score,
        ))
    return profile


class TestProblemStart:
    """Starting problems."""

    @pytest.mark.asyncio
    async def test_start_problem(self):
        client = FakeCompletionClient(replies=["What is the problem asking us to find?"])
        engine = make_engine(client)

        opening = await engine.start_problem(PROBLEM)

        assert opening == "What is the problem asking us to find?"
        assert engine.get_current_problem() == PROBLEM
        assert [m.role for m in engine.get_conversation_history()] == ["assistant"]
        assert engine.get_question_type_sequence() == [SocraticQuestionType.CLARIFICATION]
        assert engine.state.problems_solved == 1
        _, options = client.calls[0]
        assert options["max_tokens"] == 150

    @pytest.mark.asyncio
    async def test_invalid_problem(self):
        client = FakeCompletionClient()
        engine = make_engine(client)

        with pytest.raises(InvalidProblemError) as exc_info:
            await engine.start_problem("hello there")

        assert exc_info.value.errors
        assert client.calls == []
        assert engine.get_current_problem() is None

    @pytest.mark.asyncio
    async def test_opening_failure_leaves_session_unchanged(self):
        engine = make_engine(FakeCompletionClient(fail_times=1))

        with pytest.raises(UpstreamUnavailableError):
            await engine.start_problem(PROBLEM)

        assert engine.get_current_problem() is None
        assert engine.get_conversation_history() == ()

    @pytest.mark.asyncio
    async def test_opening_leak_is_counted(self):
        engine = make_engine(FakeCompletionClient(replies=["The answer is 4."]))

        opening = await engine.start_problem(PROBLEM)

        assert opening.endswith("?")
        assert engine.state.direct_answer_count == 1

    def test_initialize_session_sets_difficulty(self):
        engine = make_engine()

        engine.initialize_session(profile_with_mastery(0.2, 0.3))
        assert engine.get_current_difficulty() == DifficultyLevel.BEGINNER

        engine.initialize_session(profile_with_mastery(0.9, 0.8))
        assert engine.get_current_difficulty() == DifficultyLevel.ADVANCED

        engine.initialize_session(StudentProfile(id="new-student"))
        assert engine.get_current_difficulty() == DifficultyLevel.INTERMEDIATE


class TestTurns:
    """Student turn processing."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("utterance", ["", "   ", None])
    async def test_empty_input_rejected(self, utterance):
        engine = make_engine()
        await engine.start_problem(PROBLEM)

        with pytest.raises(InvalidInputError):
            await engine.respond_to_student(utterance)

    @pytest.mark.asyncio
    async def test_no_active_problem(self):
        with pytest.raises(InvalidInputError):
            await make_engine().respond_to_student("x is 4")

    @pytest.mark.asyncio
    async def test_reply_always_ends_with_question(self):
        engine = make_engine(FakeCompletionClient(replies=["Opening?", "Let's look at the left side."]))
        await engine.start_problem(PROBLEM)

        reply = await engine.respond_to_student(HEDGED_TURNS[0])

        assert reply == "Let's look at the left side. What do you think?"
        assert engine.state.interaction_count == 1
        assert [m.role for m in engine.get_conversation_history()] == ["assistant", "user", "assistant"]

    @pytest.mark.asyncio
    async def test_empty_reply_uses_bank_question(self):
        engine = make_engine(FakeCompletionClient(replies=["Opening?", "   "]))
        await engine.start_problem(PROBLEM)

        reply = await engine.respond_to_student(HEDGED_TURNS[0])
        assert reply in QUESTION_BANK[SocraticQuestionType.EVIDENCE]["high_confidence"]

    @pytest.mark.asyncio
    async def test_direct_answer_flagged(self):
        engine = make_engine(FakeCompletionClient(replies=["Opening?", "The answer is 4."]))
        await engine.start_problem(PROBLEM)

        reply = await engine.respond_to_student(HEDGED_TURNS[0])

        assert reply == "The answer is 4. What do you think?"
        assert engine.state.direct_answer_count == 1
        assert engine.get_conversation_history()[-1].direct_answer_flagged is True
        assert engine.get_compliance_metrics().direct_answer_violations == 1

    @pytest.mark.asyncio
    async def test_strict_mode_replaces_leak(self):
        engine = make_engine(
            FakeCompletionClient(replies=["Opening?", "The answer is 4."]),
            settings=EngineSettings(strict_mode=True),
        )
        await engine.start_problem(PROBLEM)

        reply = await engine.respond_to_student(HEDGED_TURNS[0])

        assert reply in QUESTION_BANK[SocraticQuestionType.EVIDENCE]["high_confidence"]
        assert engine.state.direct_answer_count == 1

    @pytest.mark.asyncio
    async def test_guidance_suggests_bank_question(self):
        client = FakeCompletionClient()
        engine = make_engine(client)
        await engine.start_problem(PROBLEM)

        await engine.respond_to_student(HEDGED_TURNS[0])

        guidance = client.calls[-1][0][-1]["content"]
        assert "Here's a good question to consider" in guidance
        assert any(q in guidance for q in QUESTION_BANK[SocraticQuestionType.EVIDENCE]["high_confidence"])

    @pytest.mark.asyncio
    async def test_upstream_failure_is_atomic_and_retry_reuses_turn(self):
        client = FakeCompletionClient()
        assessor = SpyAssessor()
        engine = make_engine(client, assessor=assessor)
        await engine.start_problem(PROBLEM)

        depth_before = engine.get_depth_tracker()
        history_before = engine.get_conversation_history()
        sequence_before = engine.get_question_type_sequence()

        client.fail_times = 1
        with pytest.raises(UpstreamUnavailableError):
            await engine.respond_to_student(EXPLANATION)

        assert engine.get_depth_tracker() == depth_before
        assert engine.get_conversation_history() == history_before
        assert engine.get_question_type_sequence() == sequence_before
        assert engine.state.interaction_count == 0

        reply = await engine.respond_to_student(EXPLANATION)

        assert reply.endswith("?")
        assert assessor.assessed == [EXPLANATION]
        assert engine.state.interaction_count == 1
        assert len(engine.get_conversation_history()) == 3

    @pytest.mark.asyncio
    async def test_understanding_check_on_interval(self):
        engine = make_engine()
        await engine.start_problem(PROBLEM)

        for utterance in HEDGED_TURNS[:2]:
            await engine.respond_to_student(utterance)
        assert engine.state.understanding_checks == 0

        await engine.respond_to_student(HEDGED_TURNS[2])

        info = engine.get_understanding_check_info()
        assert info["count"] == 1
        assert info["checks"][0]["turn"] == 3
        assert engine.get_conversation_history()[-1].is_understanding_check is True

    @pytest.mark.asyncio
    async def test_struggling_counter(self):
        engine = make_engine()
        await engine.start_problem(PROBLEM)

        await engine.respond_to_student(STUCK)
        await engine.respond_to_student(STUCK + " again")
        assert engine.state.struggling_turns == 2

        await engine.respond_to_student(HEDGED_TURNS[0])
        assert engine.state.struggling_turns == 1

    @pytest.mark.asyncio
    async def test_depth_invariants_over_turns(self):
        engine = make_engine()
        await engine.start_problem(PROBLEM)

        previous = engine.get_depth_tracker().current_depth
        for utterance in [STUCK, EXPLANATION, "I'm sure it's 4", "definitely x = 4", STUCK] * 2:
            await engine.respond_to_student(utterance)
            tracker = engine.get_depth_tracker()
            assert tracker.max_depth_reached >= tracker.current_depth
            assert abs(tracker.current_depth - previous) <= 1
            previous = tracker.current_depth

    @pytest.mark.asyncio
    async def test_concurrent_turns_are_serialized(self):
        engine = make_engine()
        await engine.start_problem(PROBLEM)

        replies = await asyncio.gather(
            engine.respond_to_student(HEDGED_TURNS[0]),
            engine.respond_to_student(HEDGED_TURNS[1]),
        )

        assert all(r.endswith("?") for r in replies)
        assert engine.state.interaction_count == 2
        assert engine.get_depth_tracker().turns == 2
        assert [m.role for m in engine.get_conversation_history()] == [
            "assistant", "user", "assistant", "user", "assistant",
        ]

    @pytest.mark.asyncio
    async def test_profile_updated_per_turn(self):
        engine = make_engine()
        profile = StudentProfile(id="student-1")
        engine.initialize_session(profile)
        await engine.start_problem(PROBLEM)

        await engine.respond_to_student(HEDGED_TURNS[0])

        assert len(profile.question_response_history) == 1
        assert profile.engagement_metrics.total_interactions == 1
        assert profile.engagement_metrics.engagement_score == pytest.approx(0.6)


class TestAssessmentMode:
    """Assessment problems answered directly."""

    @pytest.mark.asyncio
    async def test_correct_answer_without_completion_call(self):
        client = FakeCompletionClient()
        engine = make_engine(client)

        assert await engine.start_assessment_problem("What is 6 * 7?", "42") == ASSESSMENT_OPENING
        assert engine.is_in_assessment_mode() is True

        reply = await engine.respond_to_student("42")

        assert reply.startswith("✅ Correct!")
        assert client.calls == []
        assert engine.is_in_assessment_mode() is False
        assert await engine.respond_to_student("what next?") == ASSESSMENT_COMPLETE

    @pytest.mark.asyncio
    async def test_wrong_answer_reveals_expected(self):
        engine = make_engine()
        await engine.start_assessment_problem("What is 6 * 7?", "42")

        reply = await engine.respond_to_student("40")
        assert reply.startswith("❌ Not quite. The correct answer is: 42")

    @pytest.mark.parametrize("expected,answer,correct", [
        ("x = 4", "4", True),
        ("x = 4", "x equals 4", True),
        ("x = 4", "5", False),
        (None, "4", False),
    ])
    def test_check_answer(self, expected, answer, correct):
        engine = make_engine()
        engine.state.expected_answer = expected
        assert engine.check_answer(answer) is correct

    def test_suggest_prerequisites(self):
        assert "some prerequisite concepts" in SocraticEngine.suggest_prerequisites(["a", "b"])
        assert SocraticEngine.suggest_prerequisites().endswith("step by step?")


class TestBehavioralEvidence:
    """Teach-back, transfer and reasoning evidence."""

    @pytest.mark.asyncio
    async def test_teach_back_raises_depth_on_next_turn(self):
        grader = FakeCompletionClient(replies=["3"])
        engine = make_engine(behavioral_assessor=BehavioralAssessor(grader))
        await engine.start_problem(PROBLEM)

        assert await engine.record_teach_back(EXPLANATION) == 3
        assert engine.get_depth_tracker().current_depth == 1

        await engine.respond_to_student(HEDGED_TURNS[0])

        assert engine.get_depth_tracker().current_depth == 2
        assert engine.compute_learning_gains()["teach_back_scores"] == [3]

    @pytest.mark.asyncio
    async def test_transfer_challenge(self):
        grader = FakeCompletionClient(replies=["yes"])
        engine = make_engine(behavioral_assessor=BehavioralAssessor(grader))
        await engine.start_problem(PROBLEM)

        with pytest.raises(InvalidInputError):
            await engine.record_transfer_response("subtract then divide")

        challenge = engine.generate_transfer_challenge()
        assert challenge == TRANSFER_TEMPLATES["algebra"][DifficultyLevel.INTERMEDIATE]

        assert await engine.record_transfer_response("distribute, combine, isolate x") is True
        await engine.respond_to_student(HEDGED_TURNS[0])

        assert engine.compute_learning_gains()["transfer_success_rate"] == 1.0

    @pytest.mark.asyncio
    async def test_grader_outage_does_not_interrupt(self):
        grader = FakeCompletionClient(fail_times=5)
        engine = make_engine(behavioral_assessor=BehavioralAssessor(grader))
        await engine.start_problem(PROBLEM)

        assert await engine.record_reasoning(EXPLANATION) == 0


class TestSessionOutputs:
    """Analytics, restore and session finalization."""

    @pytest.mark.asyncio
    async def test_generate_analytics(self):
        engine = make_engine()
        await engine.start_problem(PROBLEM)
        await engine.respond_to_student(HEDGED_TURNS[0])

        analytics = engine.generate_analytics()

        assert sum(analytics["question_type_distribution"].values()) == 2
        assert analytics["total_interactions"] == 3
        assert analytics["confidence_progression"] == [pytest.approx(0.6)]
        assert analytics["compliance"]["compliance_score"] == 100.0
        assert 0.0 <= analytics["engagement_score"] <= 1.0

    @pytest.mark.asyncio
    async def test_end_session(self):
        engine = make_engine()
        await engine.start_problem(PROBLEM)
        await engine.respond_to_student(HEDGED_TURNS[0])
        await engine.respond_to_student(HEDGED_TURNS[1])

        performance = await engine.end_session()

        assert performance.completed is True
        assert performance.session_id == "session-1"
        assert performance.total_interactions == 2
        assert performance.problems_solved == 1
        assert performance.problem_type == "algebra"
        assert performance.mastery_score == pytest.approx(0.4)
        assert performance.max_depth_reached >= 1

    @pytest.mark.asyncio
    async def test_restore_conversation(self):
        engine = make_engine()
        await engine.start_problem(PROBLEM)

        engine.restore_conversation([
            {"role": "user", "content": STUCK},
            {"role": "assistant", "content": "What do we know so far?"},
            {"role": "system", "content": "ignored"},
        ])

        history = engine.get_conversation_history()
        assert len(history) == 3
        assert history[1].student_confidence == pytest.approx(0.2)
        assert engine.state.interaction_count == 1

    @pytest.mark.asyncio
    async def test_restored_session_takes_a_turn(self):
        original = make_engine()
        await original.start_problem(PROBLEM)
        await original.respond_to_student(HEDGED_TURNS[0])
        stored = [
            {"role": m.role, "content": m.content}
            for m in original.get_conversation_history()
            if m.role != "system"
        ]

        engine = make_engine()
        engine.restore_conversation(stored, original.session_context())
        reply = await engine.respond_to_student("subtract 5 from both sides")

        assert reply.endswith("?")
        assert engine.state.problem == PROBLEM
        assert engine.get_current_difficulty() == original.get_current_difficulty()
        assert engine.state.conversation[0].role == "system"
        assert engine.state.interaction_count == 2

    @pytest.mark.asyncio
    async def test_restore_without_context_has_no_problem(self):
        engine = make_engine()
        engine.restore_conversation([
            {"role": "assistant", "content": "What do we know so far?"},
            {"role": "user", "content": STUCK},
        ])

        with pytest.raises(InvalidInputError):
            await engine.respond_to_student("subtract 5 from both sides")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
