"""
Unit tests for RemediationContentService.

Tests:
- Flashcards parsed from chatty generator output
- Deterministic fallbacks on parse failure and without a generator
- Transport errors propagate to the caller
- Detailed report parsing and local fallback report
"""

import json

import pytest

from mastery_loop.core.errors import GenerationParseError, GenerationTransportError
from mastery_loop.generation import (
    RemediationContentService,
    fallback_flashcards,
    fallback_notes,
    parse_flashcards,
    parse_report,
)
from mastery_loop.study.scoring import score


class TestParsing:
    """Tests for payload parsing."""

    def test_parse_flashcards_from_chatty_text(self, flashcards_json):
        chatty = f"Sure! Here you go: ```json {flashcards_json}``` Hope that helps!"
        assert parse_flashcards(chatty) == parse_flashcards(flashcards_json)
        assert len(parse_flashcards(chatty)) == 4

    def test_parse_flashcards_rejects_empty_list(self):
        with pytest.raises(GenerationParseError):
            parse_flashcards('{"flashcards": []}')

    def test_parse_flashcards_rejects_blank_answer(self):
        with pytest.raises(GenerationParseError):
            parse_flashcards('{"flashcards": [{"question": "Q", "answer": ""}]}')

    def test_parse_report_with_camel_case_feedback(self):
        payload = {
            "overall_analysis": "Solid kinematics, weak energy.",
            "strengths": "Kinematics, Units",
            "weaknesses": ["Energy"],
            "detailed_feedback": [
                {"question_snippet": "KE of 2 kg at 3 m/s", "isCorrect": False, "userAnswer": "18", "correctAnswer": "9"},
                "Review unit conversions",
            ],
            "remediation_notes": "## Energy",
        }
        report = parse_report(f"Report:\n```json\n{json.dumps(payload)}\n```")

        assert report.strengths == ["Kinematics", "Units"]
        assert report.detailed_feedback[0].user_answer == "18"
        assert report.detailed_feedback[0].is_correct is False
        assert report.detailed_feedback[1].explanation == "Review unit conversions"


class TestFallbacks:
    """Tests for deterministic fallback content."""

    def test_fallback_notes_mention_every_topic(self):
        notes = fallback_notes(["Kinematics", "Energy"])
        assert "## Kinematics" in notes
        assert "## Energy" in notes

    def test_fallback_flashcards_cycle_topics(self):
        cards = fallback_flashcards(["Kinematics", "Energy"], 4)
        assert len(cards) == 4
        assert "Kinematics" in cards[0].question
        assert "Energy" in cards[1].question
        assert "Kinematics" in cards[2].question

    def test_fallbacks_are_deterministic(self):
        assert fallback_flashcards(["Energy"], 4) == fallback_flashcards(["Energy"], 4)
        assert fallback_notes(["Energy"]) == fallback_notes(["Energy"])


class TestService:
    """Tests for the generator-backed service."""

    @pytest.mark.asyncio
    async def test_no_generator_uses_fallbacks(self):
        service = RemediationContentService(None, flashcard_count=4)

        notes = await service.remediation_notes(["Energy"])
        cards = await service.remediation_flashcards(["Energy"])

        assert notes == fallback_notes(["Energy"])
        assert cards == fallback_flashcards(["Energy"], 4)

    @pytest.mark.asyncio
    async def test_flashcards_request_targets_weak_topics(self, make_generator, flashcards_json):
        generator = make_generator([flashcards_json])
        service = RemediationContentService(generator)

        cards = await service.remediation_flashcards(["Kinematics", "Energy"], count=4)

        assert len(cards) == 4
        prompt = generator.requests[0].instruction_prompt
        assert "EXACTLY 4" in prompt
        assert "Kinematics, Energy" in prompt

    @pytest.mark.asyncio
    async def test_flashcards_truncated_to_count(self, make_generator, flashcards_json):
        service = RemediationContentService(make_generator([flashcards_json]))
        cards = await service.remediation_flashcards(["Energy"], count=2)
        assert len(cards) == 2

    @pytest.mark.asyncio
    async def test_unparseable_flashcards_fall_back(self, make_generator):
        service = RemediationContentService(make_generator(["I cannot help with that."]))
        cards = await service.remediation_flashcards(["Energy"], count=4)
        assert cards == fallback_flashcards(["Energy"], 4)

    @pytest.mark.asyncio
    async def test_empty_notes_fall_back(self, make_generator):
        service = RemediationContentService(make_generator(["   "]))
        assert await service.remediation_notes(["Energy"]) == fallback_notes(["Energy"])

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, make_generator, transport_error):
        service = RemediationContentService(make_generator([transport_error]))
        with pytest.raises(GenerationTransportError):
            await service.remediation_notes(["Energy"])

    @pytest.mark.asyncio
    async def test_report_fallback_from_scored_items(self, make_generator, physics_questions, failing_answers):
        result = score(physics_questions, failing_answers)
        service = RemediationContentService(make_generator(["not json"]))

        report = await service.assessment_report(physics_questions, result)

        assert report.weaknesses == ["Kinematics", "Energy"]
        assert report.strengths == ["Kinematics"]
        assert len(report.detailed_feedback) == 5
        assert report.detailed_feedback[3].correct_answer == "9"
        assert report.detailed_feedback[3].is_correct is False

    @pytest.mark.asyncio
    async def test_report_prompt_carries_graded_context(self, make_generator, physics_questions, passing_answers):
        generator = make_generator(['{"overall_analysis": "Excellent", "strengths": ["Energy"]}'])
        service = RemediationContentService(generator)

        report = await service.assessment_report(physics_questions, score(physics_questions, passing_answers))

        assert report.overall_analysis == "Excellent"
        request = generator.requests[0]
        assert "100%" in request.instruction_prompt
        assert "[CORRECT]" in request.context_text
