"""
Dialogue Data Model

Enums and records shared by the assessor, selector, state tracker and the
cross-session controllers. Records that outlive a turn (messages, session
performance) are frozen and serialize to plain dicts for storage.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class SocraticQuestionType(str, Enum):
    CLARIFICATION = "clarification"
    ASSUMPTIONS = "assumptions"
    EVIDENCE = "evidence"
    PERSPECTIVE = "perspective"
    IMPLICATIONS = "implications"
    META_QUESTIONING = "meta_questioning"


class DialogueLevel(str, Enum):
    DIALOGUE = "dialogue"
    STRATEGIC_DISCOURSE = "strategic_discourse"
    META_DISCOURSE = "meta_discourse"


class CycleStage(str, Enum):
    WONDER_RECEIVE = "wonder_receive"
    REFLECT = "reflect"
    REFINE_CROSS_EXAMINE = "refine_cross_examine"
    RESTATE = "restate"
    REPEAT = "repeat"


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class LearningStyle(str, Enum):
    VISUAL = "visual"
    ANALYTICAL = "analytical"
    EXPLORATORY = "exploratory"
    AUDITORY = "auditory"
    KINESTHETIC = "kinesthetic"


class ProblemType(str, Enum):
    ALGEBRA = "algebra"
    GEOMETRY = "geometry"
    CALCULUS = "calculus"
    STATISTICS = "statistics"
    TRIGONOMETRY = "trigonometry"
    ARITHMETIC = "arithmetic"
    WORD_PROBLEM = "word_problem"


@dataclass(frozen=True)
class SocraticAssessment:
    """Scored reading of one student utterance. Never persisted beyond its turn."""
    confidence_level: float
    misconceptions: Tuple[str, ...] = ()
    readiness_for_advancement: bool = False
    conceptual_understanding: int = 1
    depth_of_thinking: int = 1


@dataclass(frozen=True)
class TransferAttempt:
    problem_id: str
    success: bool


@dataclass(frozen=True)
class BehavioralAssessment:
    """Evidence gathered from teach-back, transfer and reasoning probes."""
    teach_back_score: int = 0          # 0-4
    transfer_success: bool = False
    reasoning_score: int = 0           # 0-4
    calibration_error: float = 0.0
    depth_level_evidence: int = 1      # 1-5


@dataclass(frozen=True)
class EnhancedMessage:
    """One entry of the append-only conversation log."""
    role: str
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    question_type: Optional[SocraticQuestionType] = None
    depth_level: Optional[int] = None
    targeted_concepts: Tuple[str, ...] = ()
    student_confidence: Optional[float] = None
    is_understanding_check: bool = False
    dialogue_level: Optional[DialogueLevel] = None
    cycle_stage: Optional[CycleStage] = None
    # Behavioral evidence
    confidence_delta: Optional[float] = None
    reasoning_score: Optional[int] = None
    teach_back_score: Optional[int] = None
    transfer_attempt: Optional[TransferAttempt] = None
    predicted_confidence: Optional[float] = None
    breakthrough_moment: bool = False
    # Set when the tutor text leaked a direct answer
    direct_answer_flagged: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["targeted_concepts"] = list(self.targeted_concepts)
        for key in ("question_type", "dialogue_level", "cycle_stage"):
            value = getattr(self, key)
            data[key] = value.value if value is not None else None
        return data


@dataclass(frozen=True)
class SessionPerformance:
    """Finalized summary of one tutoring session. Read-only history input."""
    session_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    total_interactions: int = 0
    problems_solved: int = 0
    average_response_time: float = 0.0   # seconds
    struggling_turns: int = 0
    difficulty_level: DifficultyLevel = DifficultyLevel.INTERMEDIATE
    engagement_score: float = 0.0
    completion_rate: float = 0.0
    mastery_score: float = 0.0
    concepts_explored: Tuple[str, ...] = ()
    concepts_learned: Tuple[str, ...] = ()
    struggled_concepts: Tuple[str, ...] = ()
    hints_used: int = 0
    direct_answer_count: int = 0
    max_depth_reached: int = 1
    problem_type: Optional[str] = None
    completed: bool = True

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return max(0.0, (self.end_time - self.start_time).total_seconds())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "total_interactions": self.total_interactions,
            "problems_solved": self.problems_solved,
            "average_response_time": self.average_response_time,
            "struggling_turns": self.struggling_turns,
            "difficulty_level": DifficultyLevel(self.difficulty_level).value,
            "engagement_score": self.engagement_score,
            "completion_rate": self.completion_rate,
            "mastery_score": self.mastery_score,
            "concepts_explored": list(self.concepts_explored),
            "concepts_learned": list(self.concepts_learned),
            "struggled_concepts": list(self.struggled_concepts),
            "hints_used": self.hints_used,
            "direct_answer_count": self.direct_answer_count,
            "max_depth_reached": self.max_depth_reached,
            "problem_type": self.problem_type,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionPerformance":
        end_time = data.get("end_time")
        return cls(
            session_id=data["session_id"],
            start_time=datetime.fromisoformat(data["start_time"]),
            end_time=datetime.fromisoformat(end_time) if end_time else None,
            total_interactions=int(data.get("total_interactions", 0)),
            problems_solved=int(data.get("problems_solved", 0)),
            average_response_time=float(data.get("average_response_time", 0.0)),
            struggling_turns=int(data.get("struggling_turns", 0)),
            difficulty_level=DifficultyLevel(data.get("difficulty_level", "intermediate")),
            engagement_score=float(data.get("engagement_score", 0.0)),
            completion_rate=float(data.get("completion_rate", 0.0)),
            mastery_score=float(data.get("mastery_score", 0.0)),
            concepts_explored=tuple(data.get("concepts_explored") or ()),
            concepts_learned=tuple(data.get("concepts_learned") or ()),
            struggled_concepts=tuple(data.get("struggled_concepts") or ()),
            hints_used=int(data.get("hints_used", 0)),
            direct_answer_count=int(data.get("direct_answer_count", 0)),
            max_depth_reached=int(data.get("max_depth_reached", 1)),
            problem_type=data.get("problem_type"),
            completed=bool(data.get("completed", True)),
        )


@dataclass(frozen=True)
class AdaptiveDifficulty:
    """Ephemeral difficulty recommendation, recomputed from history on demand."""
    current_level: DifficultyLevel
    recommended_level: DifficultyLevel
    confidence: float
    adjustment_reason: str


@dataclass
class QuestionResponseRecord:
    question_type: str
    effectiveness: float
    response_time: float
    comprehension_level: int
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_type": self.question_type,
            "effectiveness": self.effectiveness,
            "response_time": self.response_time,
            "comprehension_level": self.comprehension_level,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuestionResponseRecord":
        return cls(
            question_type=data["question_type"],
            effectiveness=float(data.get("effectiveness", 0.0)),
            response_time=float(data.get("response_time", 0.0)),
            comprehension_level=int(data.get("comprehension_level", 1)),
            timestamp=datetime.fromisoformat(data["timestamp"]) if data.get("timestamp") else datetime.now(),
        )
