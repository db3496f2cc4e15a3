"""
Content generation boundary.

Everything that talks to, or parses output from, the external text
generator lives here.
"""

from mastery_loop.generation.client import ChatCompletionClient, ContentGenerator
from mastery_loop.generation.json_extract import extract_json_array, extract_json_object, find_balanced
from mastery_loop.generation.remediation import (
    RemediationContentService,
    fallback_flashcards,
    fallback_notes,
    fallback_report,
    parse_flashcards,
    parse_report,
)
from mastery_loop.generation.schemas import (
    AssessmentReport,
    FeedbackItem,
    Flashcard,
    FlashcardSet,
    GenerationRequest,
)

__all__ = [
    "AssessmentReport",
    "ChatCompletionClient",
    "ContentGenerator",
    "FeedbackItem",
    "Flashcard",
    "FlashcardSet",
    "GenerationRequest",
    "RemediationContentService",
    "extract_json_array",
    "extract_json_object",
    "fallback_flashcards",
    "fallback_notes",
    "fallback_report",
    "find_balanced",
    "parse_flashcards",
    "parse_report",
]
