"""
Study Module.

Provides the scoring engine for quiz attempts.
"""

from mastery_loop.study.scoring import (
    PASS_THRESHOLD,
    is_answer_correct,
    score,
    score_item,
    topic_breakdown,
)

__all__ = [
    "PASS_THRESHOLD",
    "is_answer_correct",
    "score",
    "score_item",
    "topic_breakdown",
]
