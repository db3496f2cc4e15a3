"""
Unit tests for QuizComposer.

Tests:
- 40% weak-topic quota (rounded up) when opted in
- No quota without weak topics or without opt-in
- Round-robin topic assignment and slot kinds
- Prompt rendering and question-array parsing
"""

import json

import pytest

from mastery_loop.core.errors import GenerationParseError
from mastery_loop.core.models import QuestionKind
from mastery_loop.quiz import QuizComposer, QuizRequest


@pytest.fixture
def weak_profile(profile):
    """Profile with Energy (0), Optics (0, 2 attempts) weak and Waves strong."""
    profile.upsert("Energy", "Physics", False)
    profile.upsert("Optics", "Physics", False)
    profile.upsert("Optics", "Physics", False)
    profile.upsert("Waves", "Physics", True)
    return profile


class TestQuota:
    """Tests for the weak-topic quota."""

    @pytest.mark.parametrize("count,expected", [(1, 1), (5, 2), (10, 4), (7, 3), (3, 2)])
    def test_at_least_forty_percent(self, weak_profile, count, expected):
        plan = QuizComposer(weak_profile).compose(QuizRequest(subject="Physics", count=count))

        assert plan.weak_slot_count == expected
        assert plan.weak_ratio >= 0.4
        assert len(plan.slots) == count

    def test_round_robin_over_worst_topics(self, weak_profile):
        plan = QuizComposer(weak_profile).compose(QuizRequest(subject="Physics", count=10))

        tagged = [slot.topic for slot in plan.slots if slot.is_weak_slot]
        assert plan.weak_topics == ("Optics", "Energy")
        assert tagged == ["Optics", "Energy", "Optics", "Energy"]
        assert all(slot.topic is None for slot in plan.slots[4:])

    def test_no_weak_topics_no_quota(self, profile):
        profile.upsert("Waves", "Physics", True)
        plan = QuizComposer(profile).compose(QuizRequest(subject="Physics", count=10))

        assert plan.weak_slot_count == 0
        assert plan.render_slots() == ""

    def test_opt_out(self, weak_profile):
        plan = QuizComposer(weak_profile).compose(
            QuizRequest(subject="Physics", count=10, target_weak_topics=False)
        )
        assert plan.weak_slot_count == 0

    def test_subject_filter(self, weak_profile):
        plan = QuizComposer(weak_profile).compose(QuizRequest(subject="Chemistry", count=10))
        assert plan.weak_slot_count == 0

    def test_explicit_weak_topics_override_profile(self):
        plan = QuizComposer().compose(
            QuizRequest(subject="Physics", count=5, weak_topics=("Thermodynamics",))
        )
        assert [slot.topic for slot in plan.slots[:2]] == ["Thermodynamics", "Thermodynamics"]

    def test_custom_ratio(self, weak_profile):
        plan = QuizComposer(weak_profile, weak_topic_ratio=0.5).compose(QuizRequest(subject="Physics", count=5))
        assert plan.weak_slot_count == 3


class TestRequest:
    """Tests for request validation and prompt building."""

    def test_invalid_count(self):
        with pytest.raises(ValueError):
            QuizRequest(subject="Physics", count=0)

    def test_invalid_kind(self):
        with pytest.raises(ValueError):
            QuizRequest(subject="Physics", count=3, kind="essay")

    def test_mixed_kinds_alternate(self):
        plan = QuizComposer().compose(QuizRequest(subject="Physics", count=4, kind="mixed"))
        assert [slot.kind for slot in plan.slots] == [
            QuestionKind.MCQ,
            QuestionKind.SHORT_ANSWER,
            QuestionKind.MCQ,
            QuestionKind.SHORT_ANSWER,
        ]

    def test_prompt_lists_tagged_slots(self, weak_profile):
        composer = QuizComposer(weak_profile)
        request = composer.build_request(composer.compose(QuizRequest(subject="Physics", count=5)))

        prompt = request.instruction_prompt
        assert "Subject: Physics" in prompt
        assert "Number of Questions: 5" in prompt
        assert "weak in these specific topics: Optics, Energy" in prompt
        assert '- q1: mcq, topic "Optics"' in prompt
        assert "- q5: mcq, any topic" in prompt

    def test_reference_content_is_truncated(self):
        composer = QuizComposer()
        plan = composer.compose(QuizRequest(subject="Physics", count=1, reference_content="x" * 5000))
        assert len(composer.build_request(plan).context_text) == 3000


class TestGenerateQuestions:
    """Tests for parsing generated quizzes."""

    @pytest.mark.asyncio
    async def test_parses_question_array(self, make_generator, weak_profile):
        payload = [
            {"id": "q1", "type": "mcq", "question": "Focal length unit?", "options": ["m", "s"],
             "correctAnswer": "m", "topic": "Optics", "difficulty": "easy"},
            {"id": "q2", "type": "short_answer", "question": "Define work", "correctAnswer": "F.d",
             "topic": "Energy"},
        ]
        generator = make_generator([f"Here is your quiz:\n```json\n{json.dumps(payload)}\n```"])
        composer = QuizComposer(weak_profile)
        plan = composer.compose(QuizRequest(subject="Physics", count=2))

        questions = await composer.generate_questions(generator, plan)

        assert [q.id for q in questions] == ["q1", "q2"]
        assert questions[0].kind == QuestionKind.MCQ
        assert questions[0].subject == "Physics"
        assert questions[1].kind == QuestionKind.SHORT_ANSWER

    @pytest.mark.asyncio
    async def test_skips_invalid_items_and_fixes_duplicate_ids(self, make_generator):
        payload = [
            {"id": "q1", "question": "A?", "correctAnswer": "a", "topic": "T"},
            "not an object",
            {"id": "q1", "question": "B?", "correctAnswer": "b", "topic": "T"},
            {"id": "q4", "question": "C?", "correctAnswer": "c", "topic": "T", "marks": -1},
        ]
        composer = QuizComposer()
        plan = composer.compose(QuizRequest(subject="Physics", count=4))

        questions = await composer.generate_questions(make_generator([json.dumps(payload)]), plan)

        assert [q.id for q in questions] == ["q1", "q3"]

    @pytest.mark.asyncio
    async def test_reassigned_id_never_collides(self, make_generator):
        payload = [
            {"id": "q2", "question": "A?", "correctAnswer": "a", "topic": "T"},
            {"id": "q2", "question": "B?", "correctAnswer": "b", "topic": "T"},
            {"id": "q2_2", "question": "C?", "correctAnswer": "c", "topic": "T"},
        ]
        composer = QuizComposer()
        plan = composer.compose(QuizRequest(subject="Physics", count=3))

        questions = await composer.generate_questions(make_generator([json.dumps(payload)]), plan)

        ids = [q.id for q in questions]
        assert len(set(ids)) == len(ids) == 3
        assert ids[:2] == ["q2", "q2_2"]

    @pytest.mark.asyncio
    async def test_no_array_raises(self, make_generator):
        composer = QuizComposer()
        plan = composer.compose(QuizRequest(subject="Physics", count=1))
        with pytest.raises(GenerationParseError):
            await composer.generate_questions(make_generator(["Sorry, no quiz today."]), plan)
