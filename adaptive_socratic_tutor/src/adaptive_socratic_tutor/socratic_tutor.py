"""
Socratic Tutor - composition root

Wires one SocraticEngine per session id with the shared, stateless
collaborators (completion client, adaptive controller, analytics engine)
and the persistence managers. Cross-session work (profile analytics,
difficulty adaptation) happens here, at session end.
"""

import logging
import random
from typing import Dict, List, Optional

from adaptive_socratic_tutor.adaptive_controller import AdaptiveController, AdaptiveRecommendation
from adaptive_socratic_tutor.analytics_engine import AnalyticsEngine, AnalyticsReport
from adaptive_socratic_tutor.catalog import PromptCatalog
from adaptive_socratic_tutor.completion_client import CompletionClient, build_completion_client
from adaptive_socratic_tutor.config import EngineSettings
from adaptive_socratic_tutor.dialogue_types import SessionPerformance
from adaptive_socratic_tutor.errors import InvalidInputError
from adaptive_socratic_tutor.image_input import ImageProblemResolution, ImageProcessor, resolve_image_problem
from adaptive_socratic_tutor.question_selector import QuestionSelector
from adaptive_socratic_tutor.session_manager import SessionManager
from adaptive_socratic_tutor.socratic_engine import SocraticEngine
from adaptive_socratic_tutor.user_profile_manager import StudentProfile, UserProfileManager

logger = logging.getLogger(__name__)


class SocraticTutor:
    """
    Multi-session front door to the dialogue engine.

    Sessions share nothing mutable; each engine owns its own state and lock.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        completion_client: Optional[CompletionClient] = None,
        supabase_client=None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or EngineSettings.from_env()
        self.completion_client = completion_client or build_completion_client(self.settings)
        self.catalog = PromptCatalog()
        self.rng = rng

        self.user_profile_manager = UserProfileManager(supabase_client=supabase_client)
        self.session_manager = SessionManager(supabase_client=supabase_client)
        self.adaptive_controller = AdaptiveController()
        self.analytics_engine = AnalyticsEngine()

        # Active sessions, keyed by session id
        self.sessions: Dict[str, SocraticEngine] = {}
        logger.info(f"✅ [SocraticTutor] Initialized (model={self.settings.model})")

    def _create_engine(self, session_id: str) -> SocraticEngine:
        return SocraticEngine(
            session_id,
            self.completion_client,
            settings=self.settings,
            catalog=self.catalog,
            selector=QuestionSelector(self.rng),
        )

    async def get_or_create_session(self, session_id: str, student_id: Optional[str] = None) -> SocraticEngine:
        """
        Get an active session or create a new one.

        New sessions load the student's profile (if a student id is given) and
        restore any stored message log and problem context for the session id.
        """
        engine = self.sessions.get(session_id)
        if engine is not None:
            return engine

        engine = self._create_engine(session_id)
        if student_id:
            profile = await self.user_profile_manager.get_profile(student_id)
            engine.initialize_session(profile)

        stored = await self.session_manager.load_messages(session_id)
        if stored:
            context = await self.session_manager.load_session_context(session_id)
            engine.restore_conversation(stored, context)

        self.sessions[session_id] = engine
        logger.info(f"📚 [SocraticTutor] Session {session_id[:20]} ready (student={student_id or 'anonymous'})")
        return engine

    def get_session(self, session_id: str) -> SocraticEngine:
        """
        Raises:
            InvalidInputError: Unknown session id
        """
        engine = self.sessions.get(session_id)
        if engine is None:
            raise InvalidInputError(f"Unknown session: {session_id}")
        return engine

    async def save_session(self, engine: SocraticEngine) -> bool:
        """Persist the session's message log and context (in-memory fallback if Supabase is unavailable)."""
        saved = await self.session_manager.save_messages(engine.session_id, engine.state.conversation)
        saved = await self.session_manager.save_session_context(engine.session_id, engine.session_context()) and saved
        if not saved:
            logger.warning(f"⚠️ [SocraticTutor] Message log for {engine.session_id[:20]} kept in memory only")
        return saved

    async def start_problem(self, session_id: str, problem_text: str, student_id: Optional[str] = None) -> str:
        engine = await self.get_or_create_session(session_id, student_id)
        opening = await engine.start_problem(problem_text)
        await self.save_session(engine)
        return opening

    async def start_assessment_problem(
        self,
        session_id: str,
        problem_text: str,
        expected_answer: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> str:
        engine = await self.get_or_create_session(session_id, student_id)
        opening = await engine.start_assessment_problem(problem_text, expected_answer)
        await self.save_session(engine)
        return opening

    async def start_image_problem(
        self,
        session_id: str,
        processor: ImageProcessor,
        image_path: str,
        student_id: Optional[str] = None,
    ) -> ImageProblemResolution:
        """
        Read a problem from an image and start tutoring on it when the text is usable.

        Returns:
            The resolution; when ``needs_user_input`` is set the session was not started
        """
        resolution = resolve_image_problem(processor, image_path)
        if resolution.needs_user_input:
            return resolution
        await self.start_problem(session_id, resolution.extracted_text, student_id)
        return resolution

    async def respond(self, session_id: str, student_input: str) -> str:
        """
        Process a student turn for an active session.

        Raises:
            InvalidInputError: Unknown session, empty input or no active problem
            UpstreamUnavailableError: Completion unavailable; safe to retry
        """
        engine = self.get_session(session_id)
        reply = await engine.respond_to_student(student_input)
        await self.save_session(engine)
        return reply

    async def end_session(self, session_id: str) -> SessionPerformance:
        """
        Finalize a session and fold it into the student's profile.

        Load profile → add performance → recompute analytics and difficulty →
        save profile (last writer wins).
        """
        engine = self.get_session(session_id)
        performance = await engine.end_session()
        await self.save_session(engine)

        student_id = engine.state.student_id
        if student_id:
            await self.session_manager.save_performance(student_id, performance)
            history = await self.session_manager.load_history(student_id)

            profile = await self.user_profile_manager.get_profile(student_id)
            if engine.student_profile is not None:
                # Per-turn records were kept on the session's copy
                profile.question_response_history = list(engine.student_profile.question_response_history)
                profile.engagement_metrics = engine.student_profile.engagement_metrics
            profile.add_performance(performance)
            self.analytics_engine.update_student_analytics(profile, history)

            difficulty = self.adaptive_controller.calculate_adaptive_difficulty(
                history[-AdaptiveController.PERFORMANCE_WINDOW:],
                profile.knowledge_gaps,
                profile.learning_style,
            )
            profile.current_difficulty = difficulty.recommended_level
            await self.user_profile_manager.save_profile(profile)
            logger.info(
                f"💾 [SocraticTutor] Profile {student_id[:20]} updated: "
                f"{len(history)} sessions, next difficulty {difficulty.recommended_level.value}"
            )

        self.sessions.pop(session_id, None)
        return performance

    async def get_profile(self, student_id: str) -> StudentProfile:
        return await self.user_profile_manager.get_profile(student_id)

    async def get_recommendations(self, student_id: str) -> List[AdaptiveRecommendation]:
        profile = await self.user_profile_manager.get_profile(student_id)
        history = await self.session_manager.load_history(student_id)
        return self.adaptive_controller.generate_adaptive_recommendations(history, profile)

    async def get_analytics_report(self, student_id: str, days: int = 30) -> AnalyticsReport:
        profile = await self.user_profile_manager.get_profile(student_id)
        history = await self.session_manager.load_history(student_id)
        return self.analytics_engine.generate_analytics_report(profile, history, days=days)
