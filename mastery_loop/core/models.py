"""
Core domain models for the mastery loop.

Shared by scoring, the weakness profile, the remediation gate and the
loop controller:
- Question: immutable quiz item
- ScoredItem / SessionResult: output of one scoring pass
- WeaknessRecord: durable per-topic performance record
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping

# Submitted answers keyed by question id. Absent key = unanswered.
AttemptAnswer = Mapping[str, str]


class QuestionKind(str, Enum):
    """Question formats understood by the scoring engine."""

    MCQ = "mcq"
    SHORT_ANSWER = "short_answer"

    @classmethod
    def parse(cls, value: str | None) -> QuestionKind:
        """Map generator/question-file spellings onto a kind."""
        normalized = (value or "").strip().lower().replace("-", "_")
        if normalized in ("mcq", "multiple_choice", "true_false"):
            return cls.MCQ
        return cls.SHORT_ANSWER


class Difficulty(str, Enum):
    """Question difficulty band."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: str | None) -> Difficulty:
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.MEDIUM


class GradingMode(str, Enum):
    """How a session's items reduce to a percentage."""

    BINARY = "binary"  # correct questions / total questions
    MARKS = "marks"  # marks obtained / max marks


class Trend(str, Enum):
    """Direction of a topic's score after its latest update."""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


def round_half_up(value: float) -> int:
    """
    Round halves upward (Python's round() is banker's rounding).

    The value is first snapped to 9 decimals so float noise such as
    0.7 * 85 == 59.49999999999999 still rounds as 59.5.
    """
    return math.floor(round(value, 9) + 0.5)


@dataclass(frozen=True)
class Question:
    """A single quiz question. Immutable once a session starts."""

    id: str
    text: str
    kind: QuestionKind
    correct_answer: str
    topic: str
    difficulty: Difficulty = Difficulty.MEDIUM
    options: tuple[str, ...] = ()
    marks: int = 1
    explanation: str = ""
    chapter: str | None = None
    subject: str | None = None

    def __post_init__(self) -> None:
        if self.marks < 1:
            raise ValueError(f"Question {self.id}: marks must be positive, got {self.marks}")
        if self.kind == QuestionKind.MCQ:
            if not self.options:
                raise ValueError(f"Question {self.id}: MCQ requires options")
            if any(not str(option).strip() for option in self.options):
                raise ValueError(f"Question {self.id}: MCQ options must be non-empty")
        # Tuples keep the dataclass hashable and the options immutable
        if not isinstance(self.options, tuple):
            object.__setattr__(self, "options", tuple(self.options))

    @classmethod
    def from_dict(cls, data: dict, index: int = 0) -> Question:
        """Build a question from a question-file or generator payload."""
        options = data.get("options") or ()
        kind = QuestionKind.parse(data.get("kind") or data.get("type"))
        if kind == QuestionKind.MCQ and not options:
            kind = QuestionKind.SHORT_ANSWER
        return cls(
            id=str(data.get("id") or f"q{index + 1}"),
            text=data.get("text") or data.get("question") or "",
            kind=kind,
            correct_answer=str(data.get("correct_answer") or data.get("correctAnswer") or data.get("answer") or ""),
            topic=data.get("topic") or "General",
            difficulty=Difficulty.parse(data.get("difficulty")),
            options=tuple(str(o) for o in options),
            marks=int(data.get("marks") or 1),
            explanation=data.get("explanation") or "",
            chapter=data.get("chapter"),
            subject=data.get("subject"),
        )


@dataclass(frozen=True)
class ScoredItem:
    """Scoring outcome for one question. Never mutated after creation."""

    question_id: str
    user_answer: str
    correct_answer: str
    is_correct: bool
    topic: str
    marks_obtained: int
    max_marks: int


@dataclass(frozen=True)
class SessionResult:
    """Immutable outcome of one scoring pass."""

    items: tuple[ScoredItem, ...]
    score_percent: int
    weak_topics: tuple[str, ...]
    passed: bool
    grading: GradingMode = GradingMode.BINARY

    @property
    def correct_count(self) -> int:
        return sum(1 for item in self.items if item.is_correct)

    @property
    def marks_obtained(self) -> int:
        return sum(item.marks_obtained for item in self.items)

    @property
    def max_marks(self) -> int:
        return sum(item.max_marks for item in self.items)


@dataclass
class WeaknessRecord:
    """
    Rolling performance record for one topic.

    Owned by the weakness profile store. Invariants: total_attempts never
    decreases and score stays within [0, 100].
    """

    topic: str
    subject: str
    score: int = 0
    total_attempts: int = 0
    recent_trend: Trend = Trend.STABLE
    correct_attempts: int = 0
    last_attempted: datetime | None = field(default=None, compare=False)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "topic": self.topic,
            "subject": self.subject,
            "score": self.score,
            "total_attempts": self.total_attempts,
            "correct_attempts": self.correct_attempts,
            "recent_trend": self.recent_trend.value,
            "last_attempted": self.last_attempted.isoformat() if self.last_attempted else None,
        }
