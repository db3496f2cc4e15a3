"""
Quiz Composer.

Decides how many questions of which kind a new attempt asks for, and
which topics they are biased toward. When the learner opts in and the
weakness profile reports weak topics, at least 40% of the requested
slots (rounded up) are tagged against those topics before the request
is handed to the content generator. Question text itself is generated
externally.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from loguru import logger

from mastery_loop.core.models import Question, QuestionKind
from mastery_loop.generation.client import ContentGenerator
from mastery_loop.generation.json_extract import extract_json_array
from mastery_loop.generation.prompts import QUESTION_KIND_DESCRIPTIONS, get_quiz_prompt
from mastery_loop.generation.schemas import GenerationRequest
from mastery_loop.learning.backends import topic_key
from mastery_loop.learning.weakness_profile import WeaknessProfileStore

DEFAULT_WEAK_TOPIC_RATIO = 0.4
DEFAULT_MAX_WEAK_TOPICS = 5
MAX_REFERENCE_CHARS = 3000


@dataclass(frozen=True)
class QuizRequest:
    """What the learner asked for."""

    subject: str
    count: int
    kind: str = "mcq"  # mcq / short_answer / mixed
    difficulty: str = "medium"  # easy / medium / hard / adaptive
    chapters: tuple[str, ...] = ()
    target_weak_topics: bool = True
    weak_topics: tuple[str, ...] | None = None  # explicit override of the profile
    reference_content: str = ""

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ValueError(f"count must be positive, got {self.count}")
        if self.kind not in QUESTION_KIND_DESCRIPTIONS:
            raise ValueError(f"Unknown question kind {self.kind!r}")


@dataclass(frozen=True)
class QuestionSlot:
    """One requested question position."""

    position: int  # 1-based
    kind: QuestionKind
    topic: str | None = None  # set for weak-topic slots

    @property
    def is_weak_slot(self) -> bool:
        return self.topic is not None


@dataclass(frozen=True)
class CompositionPlan:
    """The request handed downstream to question generation."""

    request: QuizRequest
    slots: tuple[QuestionSlot, ...]
    weak_topics: tuple[str, ...] = field(default_factory=tuple)

    @property
    def weak_slot_count(self) -> int:
        return sum(1 for slot in self.slots if slot.is_weak_slot)

    @property
    def weak_ratio(self) -> float:
        return self.weak_slot_count / len(self.slots) if self.slots else 0.0

    def render_slots(self) -> str:
        """Slot assignments as prompt text (empty when no slot is tagged)."""
        if not self.weak_slot_count:
            return ""
        lines = [
            "IMPORTANT: The student is weak in these specific topics: "
            f"{', '.join(self.weak_topics)}.",
            f"At least {self.weak_slot_count} of {len(self.slots)} questions must target them, as assigned below.",
            "Make weak-topic questions slightly easier first, then gradually harder.",
            "Question slots:",
        ]
        for slot in self.slots:
            target = f'topic "{slot.topic}"' if slot.topic else "any topic"
            lines.append(f"- q{slot.position}: {slot.kind.value}, {target}")
        return "\n".join(lines)


class QuizComposer:
    """Builds topic-weighted quiz requests from a weakness profile."""

    def __init__(
        self,
        profile: WeaknessProfileStore | None = None,
        weak_topic_ratio: float = DEFAULT_WEAK_TOPIC_RATIO,
        max_weak_topics: int = DEFAULT_MAX_WEAK_TOPICS,
        weak_score_threshold: int | None = None,
    ):
        if not 0.0 <= weak_topic_ratio <= 1.0:
            raise ValueError(f"weak_topic_ratio must be in [0, 1], got {weak_topic_ratio}")
        self.profile = profile
        self.weak_topic_ratio = weak_topic_ratio
        self.max_weak_topics = max_weak_topics
        self.weak_score_threshold = weak_score_threshold

    @classmethod
    def from_settings(cls, profile: WeaknessProfileStore | None = None) -> QuizComposer:
        from config import get_settings

        cfg = get_settings().get_composer_config()
        return cls(
            profile,
            weak_topic_ratio=cfg["weak_topic_ratio"],
            max_weak_topics=cfg["max_weak_topics"],
            weak_score_threshold=cfg["weak_score_threshold"],
        )

    def _weak_topics_for(self, request: QuizRequest) -> tuple[str, ...]:
        if not request.target_weak_topics:
            return ()
        if request.weak_topics is not None:
            return tuple(request.weak_topics[: self.max_weak_topics])
        if self.profile is None:
            return ()
        return tuple(
            self.profile.weak_topics(
                self.max_weak_topics,
                score_below=self.weak_score_threshold,
                subject=request.subject or None,
            )
        )

    @staticmethod
    def _slot_kind(request: QuizRequest, position: int) -> QuestionKind:
        if request.kind == "mixed":
            return QuestionKind.MCQ if position % 2 else QuestionKind.SHORT_ANSWER
        return QuestionKind.parse(request.kind)

    def compose(self, request: QuizRequest) -> CompositionPlan:
        """
        Plan the slots of a new attempt.

        Weak-topic slots come first, assigned round-robin over the weak
        topics (worst first); their number is ceil(ratio * count).
        """
        weak_topics = self._weak_topics_for(request)
        weak_slots = math.ceil(round(self.weak_topic_ratio * request.count, 9)) if weak_topics else 0
        weak_slots = min(weak_slots, request.count)

        slots = tuple(
            QuestionSlot(
                position=i + 1,
                kind=self._slot_kind(request, i + 1),
                topic=weak_topics[i % len(weak_topics)] if i < weak_slots else None,
            )
            for i in range(request.count)
        )
        plan = CompositionPlan(request=request, slots=slots, weak_topics=weak_topics)
        logger.info(
            f"Composed {request.count}-question {request.kind} quiz on {request.subject!r}: "
            f"{plan.weak_slot_count} weak-topic slot(s) over {len(weak_topics)} topic(s)"
        )
        return plan

    def build_request(self, plan: CompositionPlan) -> GenerationRequest:
        """Turn a plan into the generator call."""
        req = plan.request
        return GenerationRequest(
            instruction_prompt=get_quiz_prompt(
                subject=req.subject,
                count=req.count,
                difficulty=req.difficulty,
                kind=req.kind,
                slot_plan=plan.render_slots(),
                chapters=req.chapters,
            ),
            context_text=req.reference_content[:MAX_REFERENCE_CHARS],
        )

    async def generate_questions(self, generator: ContentGenerator, plan: CompositionPlan) -> list[Question]:
        """
        Ask the generator for the planned quiz and parse the question array.

        Items that fail Question validation are skipped with a warning.

        Raises:
            GenerationParseError: No JSON array in the response
            GenerationTransportError: The generator call failed
        """
        text = await generator.generate(self.build_request(plan))
        payload = extract_json_array(text)

        questions: list[Question] = []
        seen_ids: set[str] = set()
        for index, item in enumerate(payload):
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object quiz item at index {index}")
                continue
            item = {"subject": plan.request.subject, **item}
            try:
                question = Question.from_dict(item, index)
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping invalid quiz item at index {index}: {e}")
                continue
            if question.id in seen_ids:
                question = Question.from_dict({**item, "id": self._unused_id(index, seen_ids)}, index)
            seen_ids.add(question.id)
            questions.append(question)

        self._check_quota(plan, questions)
        return questions

    @staticmethod
    def _unused_id(index: int, seen_ids: set[str]) -> str:
        candidate = f"q{index + 1}"
        suffix = 1
        while candidate in seen_ids:
            suffix += 1
            candidate = f"q{index + 1}_{suffix}"
        return candidate

    def _check_quota(self, plan: CompositionPlan, questions: list[Question]) -> None:
        if not plan.weak_slot_count:
            return
        weak_keys = {topic_key(t) for t in plan.weak_topics}
        hits = sum(1 for q in questions if topic_key(q.topic) in weak_keys)
        if hits < plan.weak_slot_count:
            logger.warning(
                f"Generated quiz covers weak topics in {hits} question(s); "
                f"{plan.weak_slot_count} were requested"
            )
