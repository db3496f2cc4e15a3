"""
Adaptive mastery loop.

Components:
- RemediationGate: timed notes -> flashcards review for a failed attempt
- LoopState variants: Idle, Quiz, Scoring, Remediation, Mastered
- MasteryLoopController: repeat-until-pass state machine
"""
from mastery_loop.adaptive.controller import MasteryLoopController, Regenerator
from mastery_loop.adaptive.remediation_gate import (
    DEFAULT_FLASHCARD_COUNT,
    DEFAULT_FLASHCARD_DWELL_SECONDS,
    DEFAULT_NOTES_DWELL_SECONDS,
    GateStage,
    GateState,
    RemediationGate,
)
from mastery_loop.adaptive.states import Idle, LoopState, Mastered, Quiz, Remediation, Scoring

__all__ = [
    # Controller
    "MasteryLoopController",
    "Regenerator",
    # Gate
    "RemediationGate",
    "GateStage",
    "GateState",
    "DEFAULT_NOTES_DWELL_SECONDS",
    "DEFAULT_FLASHCARD_DWELL_SECONDS",
    "DEFAULT_FLASHCARD_COUNT",
    # States
    "LoopState",
    "Idle",
    "Quiz",
    "Scoring",
    "Remediation",
    "Mastered",
]
