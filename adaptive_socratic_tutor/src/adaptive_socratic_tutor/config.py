"""
Configuration settings for the Adaptive Socratic Tutor.

Contains the pedagogical thresholds used by the assessor, selector, state
tracker and adaptive controller, plus runtime settings read from the
environment. The thresholds are empirically chosen; keep them stable.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


# ============================================================================
# Assessment
# ============================================================================

BASE_CONFIDENCE = 0.5
UNCERTAIN_CONFIDENCE = 0.2
CONFIDENT_CONFIDENCE = 0.9
HEDGING_CONFIDENCE = 0.6

# Short answers read as low confidence
SHORT_ANSWER_LENGTH = 10
SHORT_ANSWER_CONFIDENCE_CAP = 0.4

# readiness = confidence > READINESS_CONFIDENCE and no misconceptions
READINESS_CONFIDENCE = 0.6

# Character thresholds gating conceptual understanding 2/3/4/5
UNDERSTANDING_LENGTH_TIERS = (50, 100, 150, 200)

# Empty utterance assessment
EMPTY_CONFIDENCE = 0.4


# ============================================================================
# Question Selection
# ============================================================================

LOW_CONFIDENCE_THRESHOLD = 0.3
HIGH_CONFIDENCE_THRESHOLD = 0.7
CLARIFICATION_PROBABILITY = 0.7

CHECK_HIGH_CONFIDENCE = 0.7
CHECK_LOW_CONFIDENCE = 0.4
CHECK_DEPTH_FOR_IMPLICATIONS = 3

# Below this the contextual selector forces clarification
RECOVERY_CONFIDENCE = 0.2

# Question bank sub-pools
AFTER_SUCCESS_CONFIDENCE = 0.8
BUILDING_RESPONSE_LENGTH = 50
REFLECTION_THINKING_DEPTH = 3


# ============================================================================
# Dialogue State
# ============================================================================

MIN_DEPTH = 1
MAX_DEPTH = 5
STRATEGIC_DISCOURSE_DEPTH = 3
META_DISCOURSE_DEPTH = 4
MAX_CONCEPTUAL_CONNECTIONS = 20


# ============================================================================
# Understanding Checks & Struggle Tracking
# ============================================================================

DEFAULT_UNDERSTANDING_CHECK_INTERVAL = 3
STRUGGLING_CONFIDENCE = 0.3
CHECK_TRIGGER_CONFIDENCE = 0.4


# ============================================================================
# Adaptive Difficulty
# ============================================================================

ESCALATE_SUCCESS = 0.85
ESCALATE_ESTIMATE_CONFIDENCE = 0.8
DEESCALATE_SUCCESS = 0.4
DEESCALATE_ESTIMATE_CONFIDENCE = 0.7
DECLINING_VELOCITY = -0.1
TREND_BAND = 0.1
ANALYTICAL_EXTRA_ESCALATION_SUCCESS = 0.7
VISUAL_SLOW_RESPONSE_SECONDS = 200
MAX_RECOMMENDATIONS = 5


# ============================================================================
# Analytics
# ============================================================================

KNOWLEDGE_GAP_THRESHOLD = 0.6
STRENGTH_THRESHOLD = 0.8
STRUGGLE_PENALTY = 0.3
MAX_GAPS = 5
MAX_STRENGTHS = 5
MIN_SESSIONS_FOR_STYLE = 5
DEFAULT_TREND_DAYS = 30


# ============================================================================
# Completion Service
# ============================================================================

DEFAULT_MODEL = "gpt-4o-mini"
OPENING_TEMPERATURE = 0.8
TURN_TEMPERATURE = 0.75
OPENING_MAX_TOKENS = 150
TURN_MAX_TOKENS = 120


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class EngineSettings:
    """Runtime settings resolved from the environment."""
    openai_api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    completion_timeout: float = 30.0
    max_retries: int = 2
    understanding_check_interval: int = DEFAULT_UNDERSTANDING_CHECK_INTERVAL
    allow_demo_fallback: bool = False
    strict_mode: bool = False

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            model=os.getenv("OPENAI_MODEL", DEFAULT_MODEL),
            completion_timeout=float(os.getenv("COMPLETION_TIMEOUT_SECONDS", "30")),
            max_retries=int(os.getenv("COMPLETION_MAX_RETRIES", "2")),
            understanding_check_interval=int(
                os.getenv("UNDERSTANDING_CHECK_INTERVAL", str(DEFAULT_UNDERSTANDING_CHECK_INTERVAL))
            ),
            allow_demo_fallback=_env_flag("ALLOW_DEMO_FALLBACK"),
            strict_mode=_env_flag("SOCRATIC_STRICT_MODE"),
        )
