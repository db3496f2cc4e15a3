"""
Loop states for the mastery loop controller.

LoopState is a tagged union of frozen dataclasses. Exactly one is current
per controller; isinstance() (or match) selects the variant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Union

from mastery_loop.adaptive.remediation_gate import GateStage
from mastery_loop.core.models import Question, SessionResult
from mastery_loop.generation.schemas import AssessmentReport, Flashcard


@dataclass(frozen=True)
class Idle:
    """No question set supplied yet."""

    name = "idle"


@dataclass(frozen=True)
class Quiz:
    """An attempt is open for answers."""

    questions: tuple[Question, ...]
    answers: Mapping[str, str] = field(default_factory=dict)
    attempt: int = 1

    name = "quiz"

    @property
    def unanswered(self) -> list[str]:
        return [q.id for q in self.questions if not (self.answers.get(q.id) or "").strip()]


@dataclass(frozen=True)
class Scoring:
    """Answers are frozen and being scored."""

    attempt: int = 1

    name = "scoring"


@dataclass(frozen=True)
class Remediation:
    """The failed attempt is inside the remediation gate."""

    stage: GateStage
    seconds_remaining: float
    weak_topics: tuple[str, ...]
    notes: str | None = None  # None while the generator is working
    flashcards: tuple[Flashcard, ...] | None = None
    attempt: int = 1

    name = "remediation"

    @property
    def can_advance(self) -> bool:
        return self.seconds_remaining <= 0


@dataclass(frozen=True)
class Mastered:
    """Terminal state: the attempt passed."""

    result: SessionResult
    attempts: int = 1
    report: AssessmentReport | None = None  # merged in when the detached task resolves

    name = "mastered"


LoopState = Union[Idle, Quiz, Scoring, Remediation, Mastered]
