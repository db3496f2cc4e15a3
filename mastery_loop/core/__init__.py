"""
Core Module - Shared domain models and errors.

All other packages (study/, learning/, adaptive/, quiz/, generation/)
import their shared types from here rather than redefining them.
"""

from mastery_loop.core.errors import (
    GenerationError,
    GenerationParseError,
    GenerationTransportError,
    InvalidSubmission,
    InvalidTransition,
    MasteryLoopError,
)
from mastery_loop.core.models import (
    AttemptAnswer,
    Difficulty,
    GradingMode,
    Question,
    QuestionKind,
    ScoredItem,
    SessionResult,
    Trend,
    WeaknessRecord,
    round_half_up,
)

__all__ = [
    # Models
    "AttemptAnswer",
    "Difficulty",
    "GradingMode",
    "Question",
    "QuestionKind",
    "ScoredItem",
    "SessionResult",
    "Trend",
    "WeaknessRecord",
    "round_half_up",
    # Errors
    "MasteryLoopError",
    "GenerationError",
    "GenerationParseError",
    "GenerationTransportError",
    "InvalidSubmission",
    "InvalidTransition",
]
