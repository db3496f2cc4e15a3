"""
Remediation Gate.

Two-stage, time-boxed review a failing attempt must pass through before a
retry is allowed:

1. Notes - remediation notes for the weak topics (default 15s dwell)
2. Flashcards - a small set of targeted cards (default 10s dwell)
3. Complete - the controller loops back to the quiz

Advancing before a stage's dwell time has elapsed is a guarded no-op, not
an error. Gate states are immutable; every operation returns a new state.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Sequence

from loguru import logger

from mastery_loop.generation.schemas import Flashcard

DEFAULT_NOTES_DWELL_SECONDS = 15.0
DEFAULT_FLASHCARD_DWELL_SECONDS = 10.0
DEFAULT_FLASHCARD_COUNT = 4


class GateStage(str, Enum):
    """Stage of the remediation gate."""

    NOTES = "notes"
    FLASHCARDS = "flashcards"
    COMPLETE = "complete"


@dataclass(frozen=True)
class GateState:
    """Where a learner is inside the gate."""

    stage: GateStage
    seconds_remaining: float
    weak_topics: tuple[str, ...]
    cards: tuple[Flashcard, ...] | None = None  # None until the generator responds

    @property
    def dwell_elapsed(self) -> bool:
        return self.seconds_remaining <= 0

    @property
    def cards_loading(self) -> bool:
        return self.stage == GateStage.FLASHCARDS and self.cards is None


class RemediationGate:
    """
    Drives the notes -> flashcards -> complete sequence.

    The gate is pure: it never sleeps and never calls the generator. The
    loop controller owns the wall clock and the generator requests.
    """

    def __init__(
        self,
        notes_dwell_seconds: float = DEFAULT_NOTES_DWELL_SECONDS,
        flashcard_dwell_seconds: float = DEFAULT_FLASHCARD_DWELL_SECONDS,
        flashcard_count: int = DEFAULT_FLASHCARD_COUNT,
    ):
        self.notes_dwell_seconds = notes_dwell_seconds
        self.flashcard_dwell_seconds = flashcard_dwell_seconds
        self.flashcard_count = flashcard_count

    @classmethod
    def from_settings(cls) -> RemediationGate:
        from config import get_settings

        cfg = get_settings().get_loop_config()
        return cls(
            notes_dwell_seconds=cfg["notes_dwell_seconds"],
            flashcard_dwell_seconds=cfg["flashcard_dwell_seconds"],
            flashcard_count=cfg["flashcard_count"],
        )

    def dwell_for(self, stage: GateStage) -> float:
        if stage == GateStage.NOTES:
            return self.notes_dwell_seconds
        if stage == GateStage.FLASHCARDS:
            return self.flashcard_dwell_seconds
        return 0.0

    def begin(self, weak_topics: Sequence[str]) -> GateState:
        """Enter the notes stage for the topics missed in the failed attempt."""
        return GateState(
            stage=GateStage.NOTES,
            seconds_remaining=self.notes_dwell_seconds,
            weak_topics=tuple(weak_topics),
        )

    def tick(self, state: GateState, elapsed_seconds: float) -> GateState:
        """Count the dwell timer down by elapsed_seconds (floored at zero)."""
        if state.stage == GateStage.COMPLETE or elapsed_seconds <= 0:
            return state
        remaining = max(0.0, state.seconds_remaining - elapsed_seconds)
        return replace(state, seconds_remaining=remaining)

    def advance(self, state: GateState) -> GateState:
        """
        Move to the next stage if the current dwell time has elapsed.

        Returns the same state object when the timer is still running.
        """
        if state.stage == GateStage.COMPLETE:
            return state

        if not state.dwell_elapsed:
            logger.debug(
                f"Remediation advance ignored: {state.seconds_remaining:.1f}s left on {state.stage.value}"
            )
            return state

        if state.stage == GateStage.NOTES:
            return replace(
                state,
                stage=GateStage.FLASHCARDS,
                seconds_remaining=self.flashcard_dwell_seconds,
                cards=None,
            )

        return replace(state, stage=GateStage.COMPLETE, seconds_remaining=0.0)

    def with_cards(self, state: GateState, cards: Sequence[Flashcard]) -> GateState:
        """Attach generated flashcards to a flashcards-stage state."""
        if state.stage != GateStage.FLASHCARDS:
            return state
        return replace(state, cards=tuple(cards))
