"""
Scoring Engine for mastery-loop quiz attempts.

Pure functions: given a question set and submitted answers, compute
per-question correctness, the aggregate percentage and the topics behind
wrong answers. No I/O, no side effects, safe to call repeatedly.

Correctness rule:
- Case-insensitive, whitespace-trimmed text equality, OR
- For MCQ, positional equality: the first index of the submitted text in
  the option list equals the first index of the correct answer in that
  same list. Duplicate-text options therefore collapse onto their first
  occurrence; an answer that is not one of the options never matches
  positionally.
"""

from __future__ import annotations

from typing import Iterable

from mastery_loop.core.models import (
    AttemptAnswer,
    GradingMode,
    Question,
    QuestionKind,
    ScoredItem,
    SessionResult,
    round_half_up,
)

# Minimum score_percent for a session to count as passed
PASS_THRESHOLD = 60


def _normalize(text: str) -> str:
    return text.strip().casefold()


def _option_index(options: tuple[str, ...], value: str) -> int:
    try:
        return options.index(value)
    except ValueError:
        return -1


def is_answer_correct(question: Question, answer: str | None) -> bool:
    """Check one submitted answer against a question."""
    if answer is None:
        return False

    if _normalize(answer) == _normalize(question.correct_answer):
        return True

    if question.kind == QuestionKind.MCQ and question.options:
        submitted_idx = _option_index(question.options, answer)
        correct_idx = _option_index(question.options, question.correct_answer)
        return submitted_idx >= 0 and submitted_idx == correct_idx

    return False


def score_item(question: Question, answer: str | None) -> ScoredItem:
    """Score a single question. Unanswered questions are incorrect with an empty answer."""
    is_correct = is_answer_correct(question, answer)
    return ScoredItem(
        question_id=question.id,
        user_answer=answer or "",
        correct_answer=question.correct_answer,
        is_correct=is_correct,
        topic=question.topic,
        marks_obtained=question.marks if is_correct else 0,
        max_marks=question.marks,
    )


def _unique_in_order(values: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return tuple(seen)


def score(
    questions: Iterable[Question],
    answers: AttemptAnswer,
    grading: GradingMode = GradingMode.BINARY,
) -> SessionResult:
    """
    Score a quiz attempt.

    Args:
        questions: The question set of the attempt
        answers: Submitted answers keyed by question id; ids that do not
            belong to a question are ignored
        grading: BINARY (correct / total questions, used by the mastery
            loop) or MARKS (marks obtained / max marks, used for
            standalone quiz review)

    Returns:
        SessionResult. An empty question set scores 0 and fails rather
        than raising, so a caller can always leave its scoring state.
    """
    questions = tuple(questions)
    if not questions:
        return SessionResult(
            items=(),
            score_percent=0,
            weak_topics=(),
            passed=False,
            grading=grading,
        )

    items = tuple(score_item(q, answers.get(q.id)) for q in questions)

    if grading == GradingMode.MARKS:
        obtained = sum(item.marks_obtained for item in items)
        maximum = sum(item.max_marks for item in items)
        percent = round_half_up(100 * obtained / maximum)
    else:
        correct = sum(1 for item in items if item.is_correct)
        percent = round_half_up(100 * correct / len(items))

    weak_topics = _unique_in_order(item.topic for item in items if not item.is_correct)

    return SessionResult(
        items=items,
        score_percent=percent,
        weak_topics=weak_topics,
        passed=percent >= PASS_THRESHOLD,
        grading=grading,
    )


def topic_breakdown(result: SessionResult) -> dict[str, dict[str, int]]:
    """Per-topic correct/total counts for a scored session (results view)."""
    breakdown: dict[str, dict[str, int]] = {}
    for item in result.items:
        entry = breakdown.setdefault(item.topic, {"correct": 0, "total": 0})
        entry["total"] += 1
        if item.is_correct:
            entry["correct"] += 1
    return breakdown
