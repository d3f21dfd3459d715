"""
Socratic Engine - per-session dialogue orchestrator

Sequences one turn as:
1. Assess the student utterance
2. Preview the dialogue state transition
3. Select the next question type
4. Render the tutor utterance through the completion service
5. Check the utterance for a leaked answer
6. Commit the transition and record both messages

Step 4 is the only await. Nothing in the session changes until it returns;
if it fails, the computed turn is kept as pending and reused when the same
utterance is retried.
"""

import asyncio
import logging
import re
from collections import Counter
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from adaptive_socratic_tutor import config
from adaptive_socratic_tutor.behavioral_assessor import BehavioralAssessor, TransferChallenge
from adaptive_socratic_tutor.catalog import OPENING_FALLBACK, PromptCatalog
from adaptive_socratic_tutor.completion_client import CompletionClient
from adaptive_socratic_tutor.config import EngineSettings
from adaptive_socratic_tutor.depth_tracker import DialogueStateTracker, compute_behavioral_depth_level
from adaptive_socratic_tutor.dialogue_types import (
    BehavioralAssessment,
    DifficultyLevel,
    EnhancedMessage,
    QuestionResponseRecord,
    SessionPerformance,
    SocraticAssessment,
    SocraticQuestionType,
    TransferAttempt,
)
from adaptive_socratic_tutor.errors import InvalidInputError, InvalidProblemError
from adaptive_socratic_tutor.problem_classifier import ClassificationResult, ProblemClassifier
from adaptive_socratic_tutor.problem_parser import ProblemParser
from adaptive_socratic_tutor.prompts import (
    build_assessment_prompt,
    build_opening_instruction,
    build_system_prompt,
    build_turn_guidance,
    determine_student_level,
)
from adaptive_socratic_tutor.question_selector import QuestionSelector
from adaptive_socratic_tutor.session_state import ConversationDepthTracker, SessionState
from adaptive_socratic_tutor.student_assessor import StudentAssessor, parse_predicted_confidence
from adaptive_socratic_tutor.user_profile_manager import StudentProfile
from adaptive_socratic_tutor.violation_detector import ComplianceMetrics, ViolationDetector

logger = logging.getLogger(__name__)

QUESTION_SUFFIX = " What do you think?"
ASSESSMENT_OPENING = "What's your answer to this problem? Take your time and show your work if needed."
ASSESSMENT_COMPLETE = (
    "This assessment is complete! You can try another one, or review related topics."
)
BREAKTHROUGH_CONFIDENCE_DELTA = 0.3


@dataclass(frozen=True)
class PendingTurn:
    """A turn computed up to the completion call, not yet applied."""
    utterance: str
    assessment: SocraticAssessment
    concepts: Tuple[str, ...]
    snapshot: ConversationDepthTracker
    question_type: SocraticQuestionType
    is_understanding_check: bool
    predicted_confidence: Optional[float]
    confidence_delta: Optional[float]
    response_time: float
    behavioral_level: Optional[int]
    contextual_question: str


def normalize_answer(text: str) -> str:
    text = re.sub(r"[^\w\s.-]", "", (text or "").lower().strip())
    return re.sub(r"\s+", " ", text)


def extract_numbers(text: str) -> List[str]:
    return re.findall(r"\d+\.?\d*", text or "")


class SocraticEngine:
    """
    Adaptive Socratic dialogue for one session.

    Collaborators are injected; the composition root (SocraticTutor) wires
    one engine per session id. Turns on one engine are serialized with an
    asyncio.Lock.
    """

    def __init__(
        self,
        session_id: str,
        completion_client: CompletionClient,
        settings: Optional[EngineSettings] = None,
        assessor: Optional[StudentAssessor] = None,
        selector: Optional[QuestionSelector] = None,
        tracker: Optional[DialogueStateTracker] = None,
        detector: Optional[ViolationDetector] = None,
        catalog: Optional[PromptCatalog] = None,
        parser: Optional[ProblemParser] = None,
        classifier: Optional[ProblemClassifier] = None,
        behavioral_assessor: Optional[BehavioralAssessor] = None,
    ):
        self.completion_client = completion_client
        self.settings = settings or EngineSettings()
        self.catalog = catalog or PromptCatalog()
        self.assessor = assessor or StudentAssessor(catalog=self.catalog)
        self.selector = selector or QuestionSelector()
        self.tracker = tracker or DialogueStateTracker()
        self.detector = detector or ViolationDetector()
        self.parser = parser or ProblemParser()
        self.classifier = classifier or ProblemClassifier()
        self.behavioral_assessor = behavioral_assessor or BehavioralAssessor(completion_client)

        self.state = SessionState(session_id=session_id)
        self.student_profile: Optional[StudentProfile] = None
        self.classification: Optional[ClassificationResult] = None

        self._lock = asyncio.Lock()
        self._pending: Optional[PendingTurn] = None
        self._behavioral = BehavioralAssessment()
        self._has_behavioral_evidence = False
        # Evidence recorded since the last turn, attached to the next student message
        self._unreported_evidence: Dict[str, Any] = {}
        self._transfer_challenge: Optional[TransferChallenge] = None

    @property
    def session_id(self) -> str:
        return self.state.session_id

    # ========================================================================
    # Session setup
    # ========================================================================

    def initialize_session(self, student_profile: Optional[StudentProfile] = None) -> None:
        """
        Attach a student profile and derive the starting difficulty from it.

        Average past mastery < 0.4 starts at beginner, > 0.7 at advanced.
        """
        self.student_profile = student_profile
        if student_profile is None:
            return

        self.state.student_id = student_profile.id
        history = student_profile.performance_history
        average = sum(p.mastery_score for p in history) / len(history) if history else 0.5
        if average < 0.4:
            self.state.difficulty = DifficultyLevel.BEGINNER
        elif average > 0.7:
            self.state.difficulty = DifficultyLevel.ADVANCED
        else:
            self.state.difficulty = DifficultyLevel.INTERMEDIATE
        logger.info(
            f"📚 [SocraticEngine] Session {self.session_id[:20]} starts at {self.state.difficulty.value} "
            f"(avg mastery {average:.2f})"
        )

    async def start_problem(self, problem_text: str) -> str:
        """
        Start Socratic tutoring on a new problem.

        Args:
            problem_text: Raw problem statement

        Returns:
            The tutor's opening question

        Raises:
            InvalidProblemError: Problem text failed parsing
            UpstreamUnavailableError: Completion service unavailable (session unchanged)
        """
        async with self._lock:
            parsed = self.parser.parse_problem(problem_text)
            if not parsed.is_valid:
                raise InvalidProblemError(
                    parsed.errors[0] if parsed.errors else "Invalid problem", errors=parsed.errors
                )

            classification = self.classifier.classify(parsed)
            concepts = self.assessor.extract_concepts(parsed.content)
            mastery = [p.mastery_score for p in self.student_profile.performance_history] if self.student_profile else []
            system_prompt = build_system_prompt(parsed.content, determine_student_level(mastery), concepts)
            question_type = self.selector.select_initial(parsed.content)

            text = await self.completion_client.complete(
                [
                    {"role": "system", "content": system_prompt},
                    {"role": "system", "content": build_opening_instruction(question_type)},
                ],
                temperature=config.OPENING_TEMPERATURE,
                max_tokens=config.OPENING_MAX_TOKENS,
            )
            text, flagged = self._check_violation(
                text.strip() or OPENING_FALLBACK, self.catalog.fallback_question(question_type)
            )
            text = self._ensure_question(text)

            # Completion succeeded: install the new problem
            self.tracker.reset()
            self.tracker.record_question_type(question_type)
            self._pending = None
            self._reset_behavioral()
            self.classification = classification

            state = self.state
            state.problem = parsed.content
            state.problem_type = parsed.problem_type.value
            state.problems_solved += 1
            state.is_assessment_mode = False
            state.expected_answer = None
            state.student_has_answered = False
            state.conversation = [
                EnhancedMessage(role="system", content=system_prompt),
                EnhancedMessage(
                    role="assistant",
                    content=text,
                    question_type=question_type,
                    depth_level=1,
                    targeted_concepts=tuple(concepts),
                    dialogue_level=self.tracker.state.dialogue_level,
                    cycle_stage=self.tracker.state.cycle_stage,
                    direct_answer_flagged=flagged,
                ),
            ]
            state.question_type_sequence.append(question_type)
            state.last_tutor_message_at = datetime.now()
            state.last_updated = datetime.now()

            logger.info(
                f"✅ [SocraticEngine] Started {parsed.problem_type.value} problem "
                f"({classification.difficulty.value}, confidence {classification.confidence:.2f})"
            )
            return text

    async def start_assessment_problem(self, problem_text: str, expected_answer: Optional[str] = None) -> str:
        """
        Start a problem in assessment mode, where a direct answer is expected.

        Raises:
            InvalidProblemError: Problem text failed parsing
        """
        async with self._lock:
            parsed = self.parser.parse_problem(problem_text)
            if not parsed.is_valid:
                raise InvalidProblemError(
                    parsed.errors[0] if parsed.errors else "Invalid problem", errors=parsed.errors
                )

            self.tracker.reset()
            self._pending = None
            self._reset_behavioral()

            state = self.state
            state.problem = parsed.content
            state.problem_type = parsed.problem_type.value
            state.is_assessment_mode = True
            state.expected_answer = expected_answer
            state.student_has_answered = False
            state.conversation = [
                EnhancedMessage(role="system", content=build_assessment_prompt(parsed.content)),
                EnhancedMessage(role="assistant", content=ASSESSMENT_OPENING),
            ]
            state.last_tutor_message_at = datetime.now()
            logger.info(f"📝 [SocraticEngine] Assessment problem started for session {self.session_id[:20]}")
            return ASSESSMENT_OPENING

    def is_in_assessment_mode(self) -> bool:
        return self.state.is_assessment_mode

    def check_answer(self, student_answer: str) -> bool:
        """
        Flexible match against the expected answer.

        Either normalized string contains the other, or both share a number.
        """
        if not self.state.expected_answer:
            return False
        student = normalize_answer(student_answer)
        expected = normalize_answer(self.state.expected_answer)
        if not student:
            return False
        if expected in student or student in expected:
            return True
        expected_numbers = set(extract_numbers(expected))
        return any(n in expected_numbers for n in extract_numbers(student))

    @staticmethod
    def suggest_prerequisites(prerequisites: Optional[List[str]] = None) -> str:
        if not prerequisites:
            return "Would you like me to help guide you through this problem step by step?"
        prereq_text = "a prerequisite concept" if len(prerequisites) == 1 else "some prerequisite concepts"
        return (
            f"This assessment builds on {prereq_text}. Would you like to:\n"
            "1. Review those concepts first?\n"
            "2. Get some guidance on this problem?\n"
            "3. Try again on your own?"
        )

    # ========================================================================
    # Turn processing
    # ========================================================================

    async def respond_to_student(self, student_input: str) -> str:
        """
        Process one student turn and return the tutor's next question.

        Args:
            student_input: Raw student utterance

        Returns:
            Tutor utterance (always ends with a question in tutoring mode)

        Raises:
            InvalidInputError: Empty utterance or no active problem
            UpstreamUnavailableError: Completion service unavailable; the
                session is unchanged and the same utterance can be retried
        """
        if student_input is None or not str(student_input).strip():
            raise InvalidInputError("Please enter a response.")
        student_input = str(student_input)

        async with self._lock:
            state = self.state
            if state.problem is None:
                raise InvalidInputError("No active problem. Start a problem first.")

            if state.is_assessment_mode and not state.student_has_answered:
                return self._answer_assessment(student_input)
            if state.student_has_answered and not state.is_assessment_mode:
                return ASSESSMENT_COMPLETE

            pending = self._pending
            if pending is None or pending.utterance != student_input:
                pending = self._prepare_turn(student_input)
                self._pending = pending
            else:
                logger.info(f"🔁 [SocraticEngine] Retrying pending turn for session {self.session_id[:20]}")

            guidance = build_turn_guidance(
                pending.assessment,
                pending.question_type,
                student_input,
                current_depth=pending.snapshot.current_depth,
                struggling_turns=self._next_struggling_turns(pending.assessment),
                is_understanding_check=pending.is_understanding_check,
                should_deepen_inquiry=pending.snapshot.should_deepen_inquiry,
                metacognitive_prompt=self._metacognitive_prompt_for(pending),
                suggested_question=pending.contextual_question,
            )
            messages = [{"role": m.role, "content": m.content} for m in state.conversation]
            messages.append({"role": "user", "content": student_input})
            messages.append({"role": "system", "content": guidance})

            text = await self.completion_client.complete(
                messages,
                temperature=config.TURN_TEMPERATURE,
                max_tokens=config.TURN_MAX_TOKENS,
                presence_penalty=0.7,
                frequency_penalty=0.4,
            )

            text = text.strip() or pending.contextual_question
            text, flagged = self._check_violation(text, pending.contextual_question)
            text = self._ensure_question(text)

            self._apply_turn(pending, text, flagged)
            self._pending = None
            return text

    def _prepare_turn(self, student_input: str) -> PendingTurn:
        """Assess, preview and select without touching session state."""
        state = self.state
        now = datetime.now()
        response_time = (
            (now - state.last_tutor_message_at).total_seconds() if state.last_tutor_message_at else 0.0
        )

        assessment = self.assessor.assess(student_input)
        concepts = tuple(self.assessor.extract_concepts(student_input))
        predicted = parse_predicted_confidence(student_input)

        previous_confidence = next(
            (
                m.student_confidence
                for m in reversed(state.conversation)
                if m.role == "user" and m.student_confidence is not None
            ),
            None,
        )
        delta = (
            assessment.confidence_level - previous_confidence if previous_confidence is not None else None
        )

        last_tutor = next((m for m in reversed(state.conversation) if m.role == "assistant"), None)
        check_succeeded = bool(
            last_tutor and last_tutor.is_understanding_check and assessment.readiness_for_advancement
        )
        behavioral_level = (
            compute_behavioral_depth_level(self._behavioral) if self._has_behavioral_evidence else None
        )

        snapshot = self.tracker.preview(
            assessment,
            concepts,
            understanding_check_succeeded=check_succeeded,
            behavioral_level=behavioral_level,
        )

        turn_number = state.interaction_count + 1
        is_check = self.should_perform_understanding_check(assessment, turn_number, snapshot)
        if is_check:
            question_type = self.selector.select_understanding_check(assessment)
        elif state.struggling_turns > 2:
            # Hold the question type steady while the student works through it
            question_type = self.selector.select_contextual(assessment, self.tracker.state.question_type)
        else:
            question_type = self.selector.select_next(assessment)
        contextual_question = self.catalog.select_contextual_question(
            assessment, question_type, student_input, rng=self.selector.rng
        )

        return PendingTurn(
            utterance=student_input,
            assessment=assessment,
            concepts=concepts,
            snapshot=self.tracker.with_question_type(snapshot, question_type),
            question_type=question_type,
            is_understanding_check=is_check,
            predicted_confidence=predicted,
            confidence_delta=delta,
            response_time=response_time,
            behavioral_level=behavioral_level,
            contextual_question=contextual_question,
        )

    def should_perform_understanding_check(
        self,
        assessment: SocraticAssessment,
        turn_number: int,
        snapshot: Optional[ConversationDepthTracker] = None,
    ) -> bool:
        """
        Decide whether this turn checks for real understanding.

        Triggers: the configured interval elapsed; two low-confidence turns in
        a row; misconceptions; or the student is ready to deepen the inquiry.
        """
        state = self.state
        since_last = turn_number - state.last_understanding_check_turn

        if since_last >= self.settings.understanding_check_interval:
            return True
        if (
            assessment.confidence_level < config.CHECK_TRIGGER_CONFIDENCE
            and state.consecutive_low_confidence >= 1
            and since_last >= 2
        ):
            return True
        if assessment.misconceptions and since_last >= 2:
            return True
        deepen = snapshot.should_deepen_inquiry if snapshot else self.tracker.state.should_deepen_inquiry
        return deepen and since_last >= 3

    def _next_struggling_turns(self, assessment: SocraticAssessment) -> int:
        struggling = (
            assessment.confidence_level < config.STRUGGLING_CONFIDENCE or bool(assessment.misconceptions)
        )
        if struggling:
            return self.state.struggling_turns + 1
        return max(0, self.state.struggling_turns - 1)

    def _metacognitive_prompt_for(self, pending: PendingTurn) -> Optional[str]:
        if pending.question_type != SocraticQuestionType.META_QUESTIONING:
            return None
        category = "error_analysis" if pending.assessment.misconceptions else "process_reflection"
        return self.catalog.get_metacognitive_prompt(category, rng=self.selector.rng)

    def _apply_turn(self, pending: PendingTurn, text: str, flagged: bool) -> None:
        """Commit a rendered turn. Nothing here can fail half-way."""
        state = self.state
        assessment = pending.assessment
        now = datetime.now()
        previous_depth = self.tracker.state.current_depth

        self.tracker.commit(pending.snapshot)
        snapshot = self.tracker.state

        struggling = (
            assessment.confidence_level < config.STRUGGLING_CONFIDENCE or bool(assessment.misconceptions)
        )
        state.struggling_turns = self._next_struggling_turns(assessment)
        if struggling:
            for concept in pending.concepts:
                if concept not in state.struggled_concepts:
                    state.struggled_concepts.append(concept)

        if assessment.confidence_level < config.CHECK_TRIGGER_CONFIDENCE:
            state.consecutive_low_confidence += 1
        else:
            state.consecutive_low_confidence = 0

        state.interaction_count += 1
        if pending.is_understanding_check:
            state.understanding_checks += 1
            state.last_understanding_check_turn = state.interaction_count

        evidence = self._unreported_evidence
        self._unreported_evidence = {}
        breakthrough = bool(
            pending.confidence_delta is not None
            and pending.confidence_delta >= BREAKTHROUGH_CONFIDENCE_DELTA
            and snapshot.current_depth > previous_depth
        )

        state.conversation.append(EnhancedMessage(
            role="user",
            content=pending.utterance,
            timestamp=now,
            student_confidence=assessment.confidence_level,
            targeted_concepts=pending.concepts,
            depth_level=snapshot.current_depth,
            confidence_delta=pending.confidence_delta,
            predicted_confidence=pending.predicted_confidence,
            reasoning_score=evidence.get("reasoning_score"),
            teach_back_score=evidence.get("teach_back_score"),
            transfer_attempt=evidence.get("transfer_attempt"),
            breakthrough_moment=breakthrough,
        ))
        state.conversation.append(EnhancedMessage(
            role="assistant",
            content=text,
            timestamp=now,
            question_type=pending.question_type,
            depth_level=snapshot.current_depth,
            targeted_concepts=snapshot.conceptual_connections[-2:],
            student_confidence=assessment.confidence_level,
            is_understanding_check=pending.is_understanding_check,
            dialogue_level=snapshot.dialogue_level,
            cycle_stage=snapshot.cycle_stage,
            direct_answer_flagged=flagged,
        ))
        state.question_type_sequence.append(pending.question_type)
        state.response_times.append(pending.response_time)
        state.last_tutor_message_at = now
        state.last_updated = now

        if breakthrough:
            logger.info(f"💡 [SocraticEngine] Breakthrough moment in session {self.session_id[:20]}")
        self._update_student_profile(pending)

    def _update_student_profile(self, pending: PendingTurn) -> None:
        profile = self.student_profile
        if profile is None:
            return
        assessment = pending.assessment
        profile.record_question_response(QuestionResponseRecord(
            question_type=pending.question_type.value,
            effectiveness=float(assessment.conceptual_understanding),
            response_time=pending.response_time,
            comprehension_level=assessment.depth_of_thinking,
        ))
        metrics = profile.engagement_metrics
        if metrics.total_interactions == 0:
            engagement = assessment.confidence_level
        else:
            engagement = (metrics.engagement_score + assessment.confidence_level) / 2
        profile.record_interaction(pending.response_time, engagement)

    def _answer_assessment(self, student_input: str) -> str:
        state = self.state
        assessment = self.assessor.assess(student_input)
        correct = self.check_answer(student_input)

        if correct:
            response = (
                "✅ Correct! Great job!\n\n"
                "You've successfully completed this assessment. Your progress has been recorded."
            )
            state.problems_solved += 1
        elif state.expected_answer:
            response = (
                f"❌ Not quite. The correct answer is: {state.expected_answer}\n\n"
                "Would you like to review this topic or try a related assessment?"
            )
        else:
            response = "❌ That's not quite right. Would you like to review this topic or try again?"

        now = datetime.now()
        state.conversation.append(EnhancedMessage(
            role="user", content=student_input, timestamp=now, student_confidence=assessment.confidence_level
        ))
        state.conversation.append(EnhancedMessage(role="assistant", content=response, timestamp=now))
        state.interaction_count += 1
        state.student_has_answered = True
        state.is_assessment_mode = False
        logger.info(f"📝 [SocraticEngine] Assessment answered (correct={correct})")
        return response

    @staticmethod
    def _ensure_question(text: str) -> str:
        if not text.rstrip().endswith("?"):
            return text.rstrip() + QUESTION_SUFFIX
        return text

    def _check_violation(self, text: str, replacement: str) -> Tuple[str, bool]:
        """
        Count and flag a leaked answer.

        Strict mode replaces the utterance with ``replacement``; otherwise
        it is delivered as generated.
        """
        if not self.detector.contains_direct_answer(text):
            return text, False

        self.state.direct_answer_count += 1
        logger.warning(
            f"⚠️ [SocraticEngine] Direct answer detected in session {self.session_id[:20]}: {text[:80]}"
        )
        if self.settings.strict_mode:
            return replacement, True
        return text, True

    # ========================================================================
    # Behavioral evidence
    # ========================================================================

    def _reset_behavioral(self) -> None:
        self._behavioral = BehavioralAssessment()
        self._has_behavioral_evidence = False
        self._unreported_evidence = {}
        self._transfer_challenge = None

    def _primary_concept(self, concept: Optional[str]) -> str:
        if concept:
            return concept
        connections = self.tracker.state.conceptual_connections
        if connections:
            return connections[-1]
        return self.state.problem_type or "algebra"

    async def record_teach_back(self, explanation: str, concept: Optional[str] = None) -> int:
        """Score a teach-back and keep it as depth evidence for the next turn."""
        score = await self.behavioral_assessor.assess_teach_back(explanation, self._primary_concept(concept))
        async with self._lock:
            self._behavioral = replace(self._behavioral, teach_back_score=score)
            self._has_behavioral_evidence = True
            self._unreported_evidence["teach_back_score"] = score
        return score

    async def record_reasoning(self, explanation: str, concept: Optional[str] = None) -> int:
        score = await self.behavioral_assessor.score_reasoning_chain(explanation, self._primary_concept(concept))
        async with self._lock:
            self._behavioral = replace(self._behavioral, reasoning_score=score)
            self._has_behavioral_evidence = True
            self._unreported_evidence["reasoning_score"] = score
        return score

    async def record_student_question(self, question: str, concept: Optional[str] = None) -> int:
        """Grade a student-authored question; quality 4+ counts as cross-domain evidence."""
        quality = await self.behavioral_assessor.assess_student_question_quality(
            question, self._primary_concept(concept)
        )
        async with self._lock:
            self._behavioral = replace(
                self._behavioral,
                depth_level_evidence=max(self._behavioral.depth_level_evidence, quality),
            )
            self._has_behavioral_evidence = True
        return quality

    def generate_transfer_challenge(self, concept: Optional[str] = None) -> TransferChallenge:
        challenge = self.behavioral_assessor.generate_transfer_challenge(
            self._primary_concept(concept), self.state.difficulty
        )
        self._transfer_challenge = challenge
        return challenge

    async def record_transfer_response(self, response: str) -> bool:
        """
        Grade a response to the last transfer challenge.

        Raises:
            InvalidInputError: No transfer challenge was issued
        """
        challenge = self._transfer_challenge
        if challenge is None:
            raise InvalidInputError("No transfer challenge has been issued.")
        success = await self.behavioral_assessor.assess_transfer_response(response, challenge.expected_approach)
        async with self._lock:
            self._behavioral = replace(
                self._behavioral, transfer_success=self._behavioral.transfer_success or success
            )
            self._has_behavioral_evidence = True
            self._unreported_evidence["transfer_attempt"] = TransferAttempt(
                problem_id=challenge.prompt, success=success
            )
        return success

    # ========================================================================
    # Read-side API
    # ========================================================================

    def get_conversation_history(self) -> Tuple[EnhancedMessage, ...]:
        return tuple(m for m in self.state.conversation if m.role != "system")

    def get_current_problem(self) -> Optional[str]:
        return self.state.problem

    def get_depth_tracker(self) -> ConversationDepthTracker:
        return self.tracker.snapshot()

    def get_question_type_sequence(self) -> List[SocraticQuestionType]:
        return list(self.state.question_type_sequence)

    def get_current_difficulty(self) -> DifficultyLevel:
        return self.state.difficulty

    def update_difficulty(self, difficulty: DifficultyLevel) -> None:
        self.state.difficulty = DifficultyLevel(difficulty)

    def get_metacognitive_prompt(self, category: str) -> str:
        return self.catalog.get_metacognitive_prompt(category, rng=self.selector.rng)

    def contains_direct_answer(self, text: str) -> bool:
        return self.detector.contains_direct_answer(text)

    def session_context(self) -> Dict[str, Any]:
        """Problem and mode fields persisted next to the message log."""
        state = self.state
        return {
            "problem": state.problem,
            "problem_type": state.problem_type,
            "difficulty": state.difficulty.value,
            "student_id": state.student_id,
            "problems_solved": state.problems_solved,
            "is_assessment_mode": state.is_assessment_mode,
            "expected_answer": state.expected_answer,
            "student_has_answered": state.student_has_answered,
        }

    def restore_conversation(
        self,
        interactions: List[Dict[str, Any]],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Append stored role/content interactions to the conversation.

        Student messages are re-assessed so confidence-based triggers keep
        working after a restore. With a stored ``context`` the problem, the
        system prompt and the difficulty come back too, so the session can
        take further turns.
        """
        if context and context.get("problem"):
            self._restore_context(context)

        restored = 0
        for item in interactions:
            role = item.get("role")
            if role not in ("user", "assistant"):
                continue
            timestamp = item.get("timestamp")
            if isinstance(timestamp, str):
                timestamp = datetime.fromisoformat(timestamp)
            content = item.get("content") or ""
            confidence = self.assessor.assess(content).confidence_level if role == "user" else None
            self.state.conversation.append(EnhancedMessage(
                role=role,
                content=content,
                timestamp=timestamp or datetime.now(),
                student_confidence=confidence,
            ))
            if role == "user":
                self.state.interaction_count += 1
            restored += 1
        if restored:
            self.state.last_tutor_message_at = datetime.now()
        logger.info(f"✅ [SocraticEngine] Restored {restored} messages from history")

    def _restore_context(self, context: Dict[str, Any]) -> None:
        state = self.state
        problem = context["problem"]
        state.problem = problem
        state.problem_type = context.get("problem_type")
        try:
            state.difficulty = DifficultyLevel(context.get("difficulty") or state.difficulty)
        except ValueError:
            logger.warning(f"⚠️ [SocraticEngine] Unknown stored difficulty {context.get('difficulty')!r}, keeping default")
        state.student_id = state.student_id or context.get("student_id")
        state.problems_solved = int(context.get("problems_solved") or 0)
        state.is_assessment_mode = bool(context.get("is_assessment_mode"))
        state.expected_answer = context.get("expected_answer")
        state.student_has_answered = bool(context.get("student_has_answered"))

        if state.is_assessment_mode or state.student_has_answered:
            system_prompt = build_assessment_prompt(problem)
        else:
            mastery = (
                [p.mastery_score for p in self.student_profile.performance_history] if self.student_profile else []
            )
            concepts = self.assessor.extract_concepts(problem)
            system_prompt = build_system_prompt(problem, determine_student_level(mastery), concepts)
            parsed = self.parser.parse_problem(problem)
            if parsed.is_valid:
                self.classification = self.classifier.classify(parsed)

        state.conversation = [EnhancedMessage(role="system", content=system_prompt)] + [
            m for m in state.conversation if m.role != "system"
        ]
        logger.info(f"📚 [SocraticEngine] Restored problem for session {self.session_id[:20]}")

    def get_understanding_check_info(self) -> Dict[str, Any]:
        conversation = self.state.conversation
        checks = []
        confidences_after = []
        user_turns = 0
        for idx, message in enumerate(conversation):
            if message.role == "user":
                user_turns += 1
            if not message.is_understanding_check:
                continue
            checks.append({
                "turn": user_turns,
                "question_type": (message.question_type or SocraticQuestionType.CLARIFICATION).value,
                "confidence": message.student_confidence or 0.0,
            })
            next_student = next((m for m in conversation[idx + 1:] if m.role == "user"), None)
            if next_student and next_student.student_confidence:
                confidences_after.append(next_student.student_confidence)

        return {
            "count": self.state.understanding_checks,
            "checks": checks,
            "average_confidence_after_check": (
                sum(confidences_after) / len(confidences_after) if confidences_after else 0.0
            ),
        }

    def get_compliance_metrics(self) -> ComplianceMetrics:
        return self.detector.compliance_metrics(self.state.conversation)

    def compute_learning_gains(self) -> Dict[str, Any]:
        conversation = self.state.conversation
        depth_trajectory = [m.depth_level for m in conversation if m.role == "assistant" and m.depth_level is not None]
        teach_back_scores = [m.teach_back_score for m in conversation if m.teach_back_score is not None]
        transfers = [m.transfer_attempt for m in conversation if m.transfer_attempt is not None]
        reasoning_scores = [m.reasoning_score for m in conversation if m.reasoning_score is not None]
        calibration_errors = [
            abs(m.predicted_confidence - m.student_confidence)
            for m in conversation
            if m.predicted_confidence is not None and m.student_confidence is not None
        ]
        return {
            "depth_trajectory": depth_trajectory,
            "teach_back_scores": teach_back_scores,
            "transfer_success_rate": (
                sum(1 for t in transfers if t.success) / len(transfers) if transfers else 0.0
            ),
            "reasoning_score_avg": sum(reasoning_scores) / len(reasoning_scores) if reasoning_scores else 0.0,
            "calibration_error_avg": (
                sum(calibration_errors) / len(calibration_errors) if calibration_errors else 0.0
            ),
            "breakthroughs": sum(1 for m in conversation if m.breakthrough_moment),
        }

    def _average_response_time(self) -> float:
        times = self.state.response_times
        return sum(times) / len(times) if times else 0.0

    def _engagement_score(self) -> float:
        average = self._average_response_time()
        pacing = 0.4 if 5 <= average <= 60 else 0.2
        return min((self.tracker.state.max_depth_reached / config.MAX_DEPTH) * 0.6 + pacing, 1.0)

    def _completion_rate(self) -> float:
        meaningful = sum(1 for m in self.state.conversation if m.role == "user" and len(m.content) > 10)
        return min(1.0, meaningful / 5)

    def generate_analytics(self) -> Dict[str, Any]:
        """Session-level analytics for the current conversation."""
        tracker = self.tracker.state
        distribution = Counter(q.value for q in self.state.question_type_sequence)
        return {
            "question_types_used": list(distribution.keys()),
            "question_type_distribution": dict(distribution),
            "max_depth": tracker.max_depth_reached,
            "current_depth": tracker.current_depth,
            "dialogue_level": tracker.dialogue_level.value,
            "cycle_stage": tracker.cycle_stage.value,
            "concepts_explored": list(tracker.conceptual_connections),
            "confidence_progression": [
                m.student_confidence
                for m in self.state.conversation
                if m.role == "user" and m.student_confidence is not None
            ],
            "engagement_score": self._engagement_score(),
            "total_interactions": len(self.get_conversation_history()),
            "understanding_checks": self.state.understanding_checks,
            "struggling_turns": self.state.struggling_turns,
            "direct_answer_count": self.state.direct_answer_count,
            "compliance": self.get_compliance_metrics().to_dict(),
            "learning_gains": self.compute_learning_gains(),
        }

    def get_session_performance(self, completed: bool = False) -> SessionPerformance:
        """Best-effort summary of the session from whatever state exists."""
        state = self.state
        tracker = self.tracker.state
        completion = self._completion_rate()
        return SessionPerformance(
            session_id=state.session_id,
            start_time=state.created_at,
            end_time=datetime.now(),
            total_interactions=sum(1 for m in state.conversation if m.role == "user"),
            problems_solved=state.problems_solved,
            average_response_time=self._average_response_time(),
            struggling_turns=state.struggling_turns,
            difficulty_level=state.difficulty,
            engagement_score=self._engagement_score(),
            completion_rate=completion,
            mastery_score=completion,
            concepts_explored=tracker.conceptual_connections,
            concepts_learned=tuple(dict.fromkeys(tracker.conceptual_connections)),
            struggled_concepts=tuple(state.struggled_concepts),
            hints_used=state.struggling_turns,
            direct_answer_count=state.direct_answer_count,
            max_depth_reached=tracker.max_depth_reached,
            problem_type=state.problem_type,
            completed=completed,
        )

    async def end_session(self) -> SessionPerformance:
        """Finalize the session. Any pending (un-rendered) turn is dropped."""
        async with self._lock:
            self._pending = None
            performance = self.get_session_performance(completed=True)
            logger.info(
                f"🏁 [SocraticEngine] Session {self.session_id[:20]} ended: "
                f"{performance.total_interactions} turns, max depth {performance.max_depth_reached}, "
                f"{performance.direct_answer_count} violations"
            )
            return performance
