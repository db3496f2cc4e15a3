"""
Exception hierarchy for the mastery loop.

Scoring and profile updates never raise for well-formed input; every
recoverable failure originates at the content-generator boundary.
"""

from __future__ import annotations


class MasteryLoopError(Exception):
    """Base class for all mastery-loop errors."""


class GenerationError(MasteryLoopError):
    """The external content generator could not supply usable content."""


class GenerationParseError(GenerationError):
    """The generator responded, but not with the expected JSON shape."""

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response


class GenerationTransportError(GenerationError):
    """The call to the generator failed outright. Retryable."""

    def __init__(self, message: str, attempts: int = 1, status_code: int | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.status_code = status_code


class InvalidSubmission(MasteryLoopError):
    """A quiz was submitted with unanswered questions."""

    def __init__(self, unanswered: list[str]):
        super().__init__(f"{len(unanswered)} question(s) unanswered: {', '.join(unanswered)}")
        self.unanswered = unanswered


class InvalidTransition(MasteryLoopError):
    """An input arrived in a loop state that does not accept it."""

    def __init__(self, action: str, state_name: str):
        super().__init__(f"Cannot {action} while in state {state_name}")
        self.action = action
        self.state_name = state_name
