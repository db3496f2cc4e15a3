"""
Response schemas for content-generator payloads.

The generator returns free-form text; once the JSON object has been
extracted it is validated against these models. Fields the model omits
get safe defaults so partially-complete payloads still load.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GenerationRequest(BaseModel):
    """Single request/response call to the external generator."""

    model_config = ConfigDict(frozen=True)

    instruction_prompt: str = Field(..., description="What the generator should produce")
    context_text: str = Field("", description="Source material or session context")


class Flashcard(BaseModel):
    """A remediation flashcard."""

    model_config = ConfigDict(frozen=True)

    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class FlashcardSet(BaseModel):
    """Call shape (b): {"flashcards": [{"question", "answer"}]}."""

    flashcards: list[Flashcard] = Field(default_factory=list)


class FeedbackItem(BaseModel):
    """Per-question feedback inside a detailed report."""

    model_config = ConfigDict(populate_by_name=True)

    question_snippet: str = ""
    explanation: str = ""
    concept: str = "General"
    approach: str = "N/A"
    weak_point: str = "N/A"
    is_correct: bool = Field(False, alias="isCorrect")
    user_answer: str = Field("", alias="userAnswer")
    correct_answer: str = Field("", alias="correctAnswer")


class AssessmentReport(BaseModel):
    """Call shape (a): detailed assessment report."""

    overall_analysis: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    detailed_feedback: list[FeedbackItem] = Field(default_factory=list)
    remediation_notes: str = ""

    @field_validator("strengths", "weaknesses", mode="before")
    @classmethod
    def _coerce_topic_list(cls, value):
        # Models sometimes answer with a comma-separated string
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("detailed_feedback", mode="before")
    @classmethod
    def _coerce_feedback(cls, value):
        if isinstance(value, list):
            return [{"explanation": item} if isinstance(item, str) else item for item in value]
        return value
