"""
Session State Data Model

Defines the per-session dialogue snapshot (ConversationDepthTracker) and the
mutable SessionState the engine keeps for one tutoring session.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Tuple
from datetime import datetime

from adaptive_socratic_tutor.dialogue_types import (
    CycleStage,
    DialogueLevel,
    DifficultyLevel,
    EnhancedMessage,
    SocraticQuestionType,
)


@dataclass(frozen=True)
class ConversationDepthTracker:
    """Snapshot of where the dialogue stands. Replaced wholesale on each turn."""
    current_depth: int = 1
    max_depth_reached: int = 1
    conceptual_connections: Tuple[str, ...] = ()
    dialogue_level: DialogueLevel = DialogueLevel.DIALOGUE
    cycle_stage: CycleStage = CycleStage.WONDER_RECEIVE
    question_type: SocraticQuestionType = SocraticQuestionType.CLARIFICATION
    should_deepen_inquiry: bool = False
    suggested_next_level: int = 1
    # Streaks feeding the depth transitions
    consecutive_ready_turns: int = 0
    consecutive_misconception_turns: int = 0
    meta_questioning_turns: int = 0
    turns: int = 0


@dataclass
class SessionState:
    """Mutable per-session bookkeeping owned by one SocraticEngine."""
    session_id: str
    student_id: Optional[str] = None
    problem: Optional[str] = None
    problem_type: Optional[str] = None
    difficulty: DifficultyLevel = DifficultyLevel.INTERMEDIATE
    conversation: List[EnhancedMessage] = field(default_factory=list)
    question_type_sequence: List[SocraticQuestionType] = field(default_factory=list)
    # Counters
    interaction_count: int = 0
    direct_answer_count: int = 0
    struggling_turns: int = 0
    struggled_concepts: List[str] = field(default_factory=list)
    problems_solved: int = 0
    # Understanding checks
    understanding_checks: int = 0
    last_understanding_check_turn: int = 0
    consecutive_low_confidence: int = 0
    # Timing
    response_times: List[float] = field(default_factory=list)  # seconds
    last_tutor_message_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)
    last_updated: datetime = field(default_factory=datetime.now)
    # Assessment mode
    is_assessment_mode: bool = False
    expected_answer: Optional[str] = None
    student_has_answered: bool = False
