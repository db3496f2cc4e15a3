"""
Remediation Content Service.

Turns a failed attempt's weak topics into remediation material via the
external content generator:
- Remediation notes (markdown text, no JSON)
- Remediation flashcards (JSON, validated by FlashcardSet)
- Detailed assessment report (JSON, validated by AssessmentReport)

Parse failures never escape: each call has a deterministic fallback built
from the weak-topic list and the scored items. Transport failures are
raised to the caller, which decides whether to retry.
"""

from __future__ import annotations

from typing import Sequence

from loguru import logger
from pydantic import ValidationError

from mastery_loop.core.errors import GenerationParseError
from mastery_loop.core.models import Question, SessionResult
from mastery_loop.generation.client import ContentGenerator
from mastery_loop.generation.json_extract import extract_json_object
from mastery_loop.generation.prompts import (
    get_assessment_report_prompt,
    get_remediation_flashcards_prompt,
    get_remediation_notes_prompt,
)
from mastery_loop.generation.schemas import (
    AssessmentReport,
    FeedbackItem,
    Flashcard,
    FlashcardSet,
    GenerationRequest,
)
from mastery_loop.study.scoring import PASS_THRESHOLD

# =============================================================================
# Parsing
# =============================================================================


def parse_flashcards(text: str) -> list[Flashcard]:
    """
    Parse a flashcards payload out of raw generator text.

    Raises:
        GenerationParseError: If no valid {"flashcards": [...]} object is found
    """
    data = extract_json_object(text)
    try:
        cards = FlashcardSet.model_validate(data).flashcards
    except ValidationError as e:
        raise GenerationParseError(f"Flashcard payload failed validation: {e}", raw_response=text) from e
    if not cards:
        raise GenerationParseError("Flashcard payload contained no cards", raw_response=text)
    return cards


def parse_report(text: str) -> AssessmentReport:
    """
    Parse a detailed assessment report out of raw generator text.

    Raises:
        GenerationParseError: If no valid report object is found
    """
    data = extract_json_object(text)
    try:
        return AssessmentReport.model_validate(data)
    except ValidationError as e:
        raise GenerationParseError(f"Report payload failed validation: {e}", raw_response=text) from e


# =============================================================================
# Deterministic fallbacks
# =============================================================================


def fallback_notes(weak_topics: Sequence[str]) -> str:
    """Notes synthesized from the raw weak-topic list."""
    if not weak_topics:
        return "## Review\n\nRe-read the quiz material before retrying."
    sections = []
    for topic in weak_topics:
        sections.append(
            f"## {topic}\n\n"
            f"> You missed questions on **{topic}**. Revisit its definition, "
            f"work one example end to end, and note where your answer diverged."
        )
    return "\n\n".join(sections)


def fallback_flashcards(weak_topics: Sequence[str], count: int) -> list[Flashcard]:
    """One recall card per weak topic, cycling until count is reached."""
    topics = list(weak_topics) or ["the quiz material"]
    return [
        Flashcard(
            question=f"What is the core idea of {topics[i % len(topics)]}?",
            answer=f"Restate {topics[i % len(topics)]} in one sentence, then check it against your notes.",
        )
        for i in range(count)
    ]


def fallback_report(questions: Sequence[Question], result: SessionResult) -> AssessmentReport:
    """Report assembled locally from the scored items."""
    by_id = {q.id: q for q in questions}
    strengths: dict[str, None] = {}
    for item in result.items:
        if item.is_correct:
            strengths.setdefault(item.topic, None)

    feedback = []
    for item in result.items:
        question = by_id.get(item.question_id)
        feedback.append(
            FeedbackItem(
                question_snippet=question.text if question else item.question_id,
                explanation=(question.explanation if question else "") or "No explanation provided.",
                concept=item.topic,
                weak_point="N/A" if item.is_correct else item.topic,
                is_correct=item.is_correct,
                user_answer=item.user_answer,
                correct_answer=item.correct_answer,
            )
        )

    if result.passed:
        analysis = "Great job! Your depth of understanding is impressive."
    else:
        analysis = "You have significant gaps in the topics below. Let's fix that."

    return AssessmentReport(
        overall_analysis=analysis,
        strengths=list(strengths),
        weaknesses=list(result.weak_topics),
        detailed_feedback=feedback,
        remediation_notes=fallback_notes(result.weak_topics) if result.weak_topics else "",
    )


def graded_context(questions: Sequence[Question], result: SessionResult) -> str:
    """Render the graded attempt as context text for the report prompt."""
    by_id = {q.id: q for q in questions}
    lines = []
    for n, item in enumerate(result.items, 1):
        question = by_id.get(item.question_id)
        mark = "CORRECT" if item.is_correct else "WRONG"
        lines.append(
            f"{n}. [{mark}] ({item.topic}) {question.text if question else item.question_id}\n"
            f"   Student: {item.user_answer or '(blank)'} | Expected: {item.correct_answer}"
        )
    return "\n".join(lines)


# =============================================================================
# Service
# =============================================================================


class RemediationContentService:
    """
    Request remediation material from a content generator.

    With no generator configured every call returns its fallback, so the
    loop still runs offline.
    """

    def __init__(self, generator: ContentGenerator | None = None, flashcard_count: int = 4):
        self.generator = generator
        self.flashcard_count = flashcard_count

    async def remediation_notes(self, weak_topics: Sequence[str], context_text: str = "") -> str:
        """Markdown notes for the weak topics. Transport errors propagate."""
        if self.generator is None:
            return fallback_notes(weak_topics)

        text = await self.generator.generate(
            GenerationRequest(
                instruction_prompt=get_remediation_notes_prompt(weak_topics),
                context_text=context_text,
            )
        )
        if not text.strip():
            logger.warning("Generator returned empty remediation notes; using fallback")
            return fallback_notes(weak_topics)
        return text.strip()

    async def remediation_flashcards(
        self,
        weak_topics: Sequence[str],
        count: int | None = None,
        context_text: str = "",
    ) -> list[Flashcard]:
        """Flashcards targeted at exactly the weak topics. Transport errors propagate."""
        count = count or self.flashcard_count
        if self.generator is None:
            return fallback_flashcards(weak_topics, count)

        text = await self.generator.generate(
            GenerationRequest(
                instruction_prompt=get_remediation_flashcards_prompt(weak_topics, count),
                context_text=context_text,
            )
        )
        try:
            return parse_flashcards(text)[:count]
        except GenerationParseError as e:
            logger.warning(f"Flashcard parse failed ({e}); using fallback cards")
            return fallback_flashcards(weak_topics, count)

    async def assessment_report(
        self,
        questions: Sequence[Question],
        result: SessionResult,
    ) -> AssessmentReport:
        """Detailed report on a scored attempt. Transport errors propagate."""
        if self.generator is None:
            return fallback_report(questions, result)

        text = await self.generator.generate(
            GenerationRequest(
                instruction_prompt=get_assessment_report_prompt(result.score_percent, PASS_THRESHOLD),
                context_text=graded_context(questions, result),
            )
        )
        try:
            return parse_report(text)
        except GenerationParseError as e:
            logger.warning(f"Report parse failed ({e}); using local report")
            return fallback_report(questions, result)
