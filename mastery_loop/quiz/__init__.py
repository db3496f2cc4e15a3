"""
Quiz composition for new mastery-loop attempts.

- QuizComposer: biases a quiz request toward weak topics (40% quota)
- CompositionPlan / QuestionSlot: the tagged request passed to generation
"""

from mastery_loop.quiz.composer import (
    DEFAULT_MAX_WEAK_TOPICS,
    DEFAULT_WEAK_TOPIC_RATIO,
    CompositionPlan,
    QuestionSlot,
    QuizComposer,
    QuizRequest,
)

__all__ = [
    "CompositionPlan",
    "DEFAULT_MAX_WEAK_TOPICS",
    "DEFAULT_WEAK_TOPIC_RATIO",
    "QuestionSlot",
    "QuizComposer",
    "QuizRequest",
]
