"""
User Profile Manager

Manages the long-lived student profile: learning style, knowledge gaps,
strengths, recent performance and question-response history.
Backed by Supabase when a client is given, in-memory otherwise.
A missing or unreadable profile is replaced by a default one.
"""

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from adaptive_socratic_tutor.analytics_engine import LearningAnalytics
from adaptive_socratic_tutor.dialogue_types import (
    DifficultyLevel,
    LearningStyle,
    QuestionResponseRecord,
    SessionPerformance,
)

logger = logging.getLogger(__name__)

MAX_QUESTION_RESPONSE_HISTORY = 20
MAX_PERFORMANCE_HISTORY = 20


@dataclass
class EngagementMetrics:
    average_response_time: float = 0.0
    total_interactions: int = 0
    engagement_score: float = 0.0


@dataclass
class StudentProfile:
    """Student-level learning profile that persists across sessions."""
    id: str
    name: Optional[str] = None
    learning_style: Optional[LearningStyle] = None
    preferred_questioning_style: str = "exploratory"  # direct, exploratory, analogical
    cognitive_load_preference: str = "medium"
    motivational_triggers: List[str] = field(default_factory=list)
    knowledge_gaps: List[str] = field(default_factory=list)
    strengths: List[str] = field(default_factory=list)
    current_difficulty: DifficultyLevel = DifficultyLevel.INTERMEDIATE
    performance_history: List[SessionPerformance] = field(default_factory=list)
    question_response_history: List[QuestionResponseRecord] = field(default_factory=list)
    engagement_metrics: EngagementMetrics = field(default_factory=EngagementMetrics)
    analytics: LearningAnalytics = field(default_factory=LearningAnalytics)
    total_sessions: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    last_active: Optional[datetime] = None

    def record_question_response(self, record: QuestionResponseRecord) -> None:
        self.question_response_history.append(record)
        if len(self.question_response_history) > MAX_QUESTION_RESPONSE_HISTORY:
            self.question_response_history = self.question_response_history[-MAX_QUESTION_RESPONSE_HISTORY:]

    def record_interaction(self, response_time: float, engagement_score: float) -> None:
        """Fold one student turn into the running engagement metrics."""
        metrics = self.engagement_metrics
        total = metrics.total_interactions + 1
        metrics.average_response_time = (
            metrics.average_response_time * metrics.total_interactions + response_time
        ) / total
        metrics.total_interactions = total
        metrics.engagement_score = engagement_score

    def add_performance(self, performance: SessionPerformance) -> None:
        self.performance_history.append(performance)
        if len(self.performance_history) > MAX_PERFORMANCE_HISTORY:
            self.performance_history = self.performance_history[-MAX_PERFORMANCE_HISTORY:]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "learning_style": self.learning_style.value if self.learning_style else None,
            "preferred_questioning_style": self.preferred_questioning_style,
            "cognitive_load_preference": self.cognitive_load_preference,
            "motivational_triggers": list(self.motivational_triggers),
            "knowledge_gaps": list(self.knowledge_gaps),
            "strengths": list(self.strengths),
            "current_difficulty": DifficultyLevel(self.current_difficulty).value,
            "performance_history": [p.to_dict() for p in self.performance_history],
            "question_response_history": [r.to_dict() for r in self.question_response_history],
            "engagement_metrics": {
                "average_response_time": self.engagement_metrics.average_response_time,
                "total_interactions": self.engagement_metrics.total_interactions,
                "engagement_score": self.engagement_metrics.engagement_score,
            },
            "analytics": self.analytics.to_dict(),
            "total_sessions": self.total_sessions,
            "created_at": self.created_at.isoformat(),
            "last_active": self.last_active.isoformat() if self.last_active else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudentProfile":
        """
        Rebuild a profile from its dict form.

        Raises:
            KeyError, ValueError, TypeError: on malformed data
        """
        metrics = data.get("engagement_metrics") or {}
        learning_style = data.get("learning_style")
        created_at = data.get("created_at")
        last_active = data.get("last_active")
        return cls(
            id=data["id"],
            name=data.get("name"),
            learning_style=LearningStyle(learning_style) if learning_style else None,
            preferred_questioning_style=data.get("preferred_questioning_style", "exploratory"),
            cognitive_load_preference=data.get("cognitive_load_preference", "medium"),
            motivational_triggers=list(data.get("motivational_triggers") or []),
            knowledge_gaps=list(data.get("knowledge_gaps") or []),
            strengths=list(data.get("strengths") or []),
            current_difficulty=DifficultyLevel(data.get("current_difficulty", "intermediate")),
            performance_history=[SessionPerformance.from_dict(p) for p in data.get("performance_history") or []],
            question_response_history=[
                QuestionResponseRecord.from_dict(r) for r in data.get("question_response_history") or []
            ],
            engagement_metrics=EngagementMetrics(
                average_response_time=float(metrics.get("average_response_time", 0.0)),
                total_interactions=int(metrics.get("total_interactions", 0)),
                engagement_score=float(metrics.get("engagement_score", 0.0)),
            ),
            analytics=LearningAnalytics.from_dict(data.get("analytics")),
            total_sessions=int(data.get("total_sessions", 0)),
            created_at=datetime.fromisoformat(created_at) if created_at else datetime.now(),
            last_active=datetime.fromisoformat(last_active) if last_active else None,
        )


def create_default_profile(student_id: str) -> StudentProfile:
    return StudentProfile(id=student_id)


class UserProfileManager:
    """
    Loads and saves StudentProfile records.

    Treats "not found" and corrupt records as "create default" so a session
    can always start.
    """

    TABLE = "student_profiles"

    def __init__(self, supabase_client=None):
        """
        Initialize UserProfileManager.

        Args:
            supabase_client: Supabase client instance (optional)
        """
        self.supabase = supabase_client
        self.use_supabase = supabase_client is not None

        # Always initialize in-memory fallback
        self._in_memory_profiles: Dict[str, Dict[str, Any]] = {}

        if not self.use_supabase:
            logger.warning("⚠️ [UserProfileManager] Supabase not available, using in-memory fallback")

    async def get_profile(self, student_id: str) -> StudentProfile:
        """
        Get a student's profile, creating a default when none is usable.

        Args:
            student_id: Student identifier

        Returns:
            StudentProfile (never None)
        """
        data = await self._load_raw(student_id)
        if data is None:
            logger.info(f"ℹ️ [UserProfileManager] No profile for {student_id[:20]}..., creating default")
            return create_default_profile(student_id)

        try:
            return StudentProfile.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(
                f"⚠️ [UserProfileManager] Corrupt profile for {student_id[:20]}... ({e}), using default"
            )
            return create_default_profile(student_id)

    async def _load_raw(self, student_id: str) -> Optional[Dict[str, Any]]:
        if not self.use_supabase:
            stored = self._in_memory_profiles.get(student_id)
            return deepcopy(stored) if stored is not None else None

        try:
            result = self.supabase.table(self.TABLE) \
                .select('*') \
                .eq('id', student_id) \
                .execute()

            if result.data:
                row = result.data[0]
                profile = row.get('profile')
                if not isinstance(profile, dict):
                    return {}
                return profile
            return None
        except Exception as e:
            logger.error(f"❌ [UserProfileManager] Error loading profile: {e}")
            return self._in_memory_profiles.get(student_id)

    async def save_profile(self, profile: StudentProfile) -> bool:
        """
        Save a profile (last writer wins).

        Returns:
            True if saved successfully
        """
        data = profile.to_dict()
        self._in_memory_profiles[profile.id] = deepcopy(data)

        if not self.use_supabase:
            return True

        try:
            self.supabase.table(self.TABLE) \
                .upsert({
                    'id': profile.id,
                    'profile': data,
                    'updated_at': datetime.now().isoformat(),
                }) \
                .execute()
            logger.info(f"✅ [UserProfileManager] Saved profile for {profile.id[:20]}...")
            return True
        except Exception as e:
            logger.error(f"❌ [UserProfileManager] Error saving profile: {e}", exc_info=True)
            return False
