"""
Mastery Loop Controller.

Async state machine driving one quiz from presentation to mastery:

    Idle -> Quiz -> Scoring -> Mastered
                       |
                       +-> Remediation(Notes) -> Remediation(Flashcards) -> Quiz ...

Only three inputs move the machine once it has started: submit_answer,
submit_quiz and advance_remediation. Generator calls (notes, flashcards,
detailed report) run as detached asyncio tasks; the machine never waits
for them. Each result is merged only if the controller is still in the
remediation epoch that requested it, otherwise it is dropped.

A transport failure leaves the state untouched and is exposed through
pending_error until retry_generation() succeeds. The weakness profile is
written only on the Scoring -> Mastered transition, so abandoning a loop
never mutates it.
"""

from __future__ import annotations

import asyncio
import functools
import time
from dataclasses import replace
from types import MappingProxyType
from typing import Awaitable, Callable, Coroutine, Sequence

from loguru import logger

from mastery_loop.adaptive.remediation_gate import GateStage, GateState, RemediationGate
from mastery_loop.adaptive.states import Idle, LoopState, Mastered, Quiz, Remediation, Scoring
from mastery_loop.core.errors import GenerationTransportError, InvalidSubmission, InvalidTransition
from mastery_loop.core.models import GradingMode, Question, SessionResult
from mastery_loop.generation.remediation import RemediationContentService, fallback_report, graded_context
from mastery_loop.generation.schemas import AssessmentReport, Flashcard
from mastery_loop.learning.weakness_profile import TopicSample, WeaknessProfileStore
from mastery_loop.study.scoring import score

# Async callable returning a fresh question set for the next attempt
Regenerator = Callable[[SessionResult], Awaitable[Sequence[Question]]]


class MasteryLoopController:
    """
    Repeat-until-pass loop over one question set.

    Example:
        loop = MasteryLoopController(profile, content=RemediationContentService(client))
        loop.start(questions)
        loop.submit_answer("q1", "Velocity")
        await loop.submit_quiz()
    """

    def __init__(
        self,
        profile: WeaknessProfileStore,
        content: RemediationContentService | None = None,
        gate: RemediationGate | None = None,
        clock: Callable[[], float] = time.monotonic,
        subject: str = "",
        grading: GradingMode = GradingMode.BINARY,
        regenerate: Regenerator | None = None,
    ):
        """
        Initialize the controller.

        Args:
            profile: Weakness profile updated when the loop is mastered
            content: Source of remediation notes, flashcards and reports
            gate: Remediation gate (dwell times, flashcard count)
            clock: Monotonic clock in seconds; tests inject a fake one
            subject: Subject recorded for questions that carry none
            grading: Score reduction used for the pass decision
            regenerate: Optional hook producing a new question set on loop-back
        """
        self.profile = profile
        self.gate = gate or RemediationGate()
        self.content = content or RemediationContentService(flashcard_count=self.gate.flashcard_count)
        self.clock = clock
        self.subject = subject
        self.grading = grading
        self.regenerate = regenerate

        self._state: LoopState = Idle()
        self._questions: tuple[Question, ...] = ()
        self._answers: dict[str, str] = {}
        self._attempt = 1
        self._results: list[SessionResult] = []

        # Remediation bookkeeping
        self._gate_state: GateState | None = None
        self._deadline: float | None = None
        self._epoch = 0

        # Detached generator work
        self._tasks: set[asyncio.Task] = set()
        self._report_task: asyncio.Task | None = None
        self._pending_error: GenerationTransportError | None = None
        self._failed_request: functools.partial | None = None

    @classmethod
    def from_settings(
        cls,
        profile: WeaknessProfileStore,
        content: RemediationContentService | None = None,
        **kwargs,
    ) -> MasteryLoopController:
        """Build a controller whose gate uses the configured dwell times."""
        return cls(profile, content=content, gate=RemediationGate.from_settings(), **kwargs)

    # =========================================================================
    # Observation
    # =========================================================================

    @property
    def state(self) -> LoopState:
        """Current state. Remediation countdowns are re-read from the clock."""
        if isinstance(self._state, Remediation):
            self._state = replace(self._state, seconds_remaining=self._remaining())
        return self._state

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def results(self) -> list[SessionResult]:
        """Every scored attempt so far, oldest first."""
        return list(self._results)

    @property
    def pending_error(self) -> GenerationTransportError | None:
        return self._pending_error

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    def _remaining(self) -> float:
        if self._deadline is None:
            return 0.0
        return max(0.0, self._deadline - self.clock())

    def _transition(self, new_state: LoopState) -> None:
        logger.debug(f"Mastery loop: {self._state.name} -> {new_state.name} (attempt {self._attempt})")
        self._state = new_state

    def _require(self, action: str, *allowed: type) -> None:
        if not isinstance(self._state, allowed):
            raise InvalidTransition(action, self._state.name)

    # =========================================================================
    # Inputs
    # =========================================================================

    def start(self, questions: Sequence[Question]) -> Quiz:
        """Leave Idle with a question set."""
        self._require("start", Idle)
        questions = tuple(questions)
        if not questions:
            raise ValueError("A mastery loop needs at least one question")

        self._questions = questions
        self._answers = {}
        self._attempt = 1
        self._results = []
        self._transition(self._quiz_state())
        logger.info(f"Mastery loop started with {len(questions)} question(s)")
        return self._state

    def submit_answer(self, question_id: str, answer: str) -> Quiz:
        """Record or replace the answer to one question."""
        self._require("submit an answer", Quiz)
        if not any(q.id == question_id for q in self._questions):
            logger.warning(f"Ignoring answer for unknown question id {question_id!r}")
            return self._state

        self._answers[question_id] = answer
        self._state = self._quiz_state()
        return self._state

    async def submit_quiz(self) -> LoopState:
        """
        Score the attempt.

        Raises:
            InvalidSubmission: Some questions are unanswered (state unchanged)
            InvalidTransition: Not currently in Quiz
        """
        self._require("submit the quiz", Quiz)
        unanswered = self._state.unanswered
        if unanswered:
            raise InvalidSubmission(unanswered)

        frozen = dict(self._answers)
        self._transition(Scoring(attempt=self._attempt))

        result = score(self._questions, frozen, self.grading)
        self._results.append(result)
        logger.info(
            f"Attempt {self._attempt}: {result.score_percent}% "
            f"({'passed' if result.passed else 'failed'}), weak topics: {list(result.weak_topics)}"
        )

        if result.passed:
            self._master(result)
        else:
            self._enter_remediation(result)
        return self.state

    async def advance_remediation(self) -> LoopState:
        """
        Move through the remediation gate.

        Before the current dwell time has elapsed, while a generator call
        has failed and awaits retry, or while the loop-back to Quiz is
        already under way, this is a silent no-op.
        """
        self._require("advance remediation", Remediation)
        if self._pending_error is not None:
            logger.debug("Remediation advance held: generator call awaiting retry")
            return self.state
        if self._gate_state is None:
            logger.debug("Remediation advance ignored: loop-back in progress")
            return self.state

        current = replace(self._gate_state, seconds_remaining=self._remaining())
        advanced = self.gate.advance(current)
        if advanced is current:
            return self.state

        if advanced.stage == GateStage.FLASHCARDS:
            self._gate_state = advanced
            self._deadline = self.clock() + self.gate.flashcard_dwell_seconds
            self._epoch += 1
            self._transition(
                replace(
                    self._state,
                    stage=GateStage.FLASHCARDS,
                    seconds_remaining=self._remaining(),
                    flashcards=None,
                )
            )
            self._spawn(self._request_flashcards, advanced.weak_topics)
            return self.state

        await self._loop_back()
        return self.state

    # =========================================================================
    # Transitions
    # =========================================================================

    def _quiz_state(self) -> Quiz:
        return Quiz(
            questions=self._questions,
            answers=MappingProxyType(dict(self._answers)),
            attempt=self._attempt,
        )

    def _subject_of(self, question_id: str) -> str:
        for question in self._questions:
            if question.id == question_id:
                return question.subject or self.subject
        return self.subject

    def _master(self, result: SessionResult) -> None:
        self.profile.record_session(
            TopicSample(item.topic, self._subject_of(item.question_id), item.is_correct)
            for item in result.items
        )
        self._gate_state = None
        self._deadline = None
        self._transition(Mastered(result=result, attempts=self._attempt))
        self._report_task = self._spawn(self._request_report, result)

    def _enter_remediation(self, result: SessionResult) -> None:
        self._attempt += 1
        self._epoch += 1
        self._gate_state = self.gate.begin(result.weak_topics)
        self._deadline = self.clock() + self.gate.notes_dwell_seconds
        self._transition(
            Remediation(
                stage=GateStage.NOTES,
                seconds_remaining=self._remaining(),
                weak_topics=tuple(result.weak_topics),
                attempt=self._attempt,
            )
        )
        self._spawn(self._request_notes, result)

    async def _loop_back(self) -> None:
        self._epoch += 1
        epoch = self._epoch
        # gate_state None marks the loop-back as in progress
        self._gate_state = None
        self._deadline = None

        questions = self._questions
        if self.regenerate is not None and self._results:
            try:
                fresh = tuple(await self.regenerate(self._results[-1]))
            except Exception as e:
                logger.warning(f"Question regeneration failed ({e}); reusing the current set")
            else:
                if fresh:
                    questions = fresh
                else:
                    logger.warning("Question regeneration returned nothing; reusing the current set")

        if not self._is_current(epoch, "question regeneration") or not isinstance(self._state, Remediation):
            return
        self._questions = questions

        self._answers = {}
        self._transition(self._quiz_state())

    # =========================================================================
    # Detached generator work
    # =========================================================================

    def _spawn(self, request: Callable[..., Coroutine], *args) -> asyncio.Task:
        factory = functools.partial(request, self._epoch, *args)
        task = asyncio.create_task(self._guarded(factory))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guarded(self, factory: functools.partial):
        try:
            return await factory()
        except GenerationTransportError as e:
            epoch = factory.args[0]
            if not self._is_current(epoch, "generator failure"):
                return None
            logger.warning(f"Generator call failed, awaiting retry: {e}")
            self._pending_error = e
            self._failed_request = factory
            return None

    def _is_current(self, epoch: int, what: str) -> bool:
        if epoch != self._epoch:
            logger.debug(f"Discarding stale {what} from epoch {epoch} (now {self._epoch})")
            return False
        return True

    async def _request_notes(self, epoch: int, result: SessionResult) -> None:
        notes = await self.content.remediation_notes(
            result.weak_topics,
            context_text=graded_context(self._questions, result),
        )
        if self._is_current(epoch, "remediation notes"):
            self._state = replace(self._state, notes=notes)

    async def _request_flashcards(self, epoch: int, weak_topics: Sequence[str]) -> None:
        cards = await self.content.remediation_flashcards(weak_topics, count=self.gate.flashcard_count)
        if self._is_current(epoch, "flashcards"):
            self._merge_flashcards(cards)

    def _merge_flashcards(self, cards: Sequence[Flashcard]) -> None:
        self._gate_state = self.gate.with_cards(self._gate_state, cards)
        self._state = replace(self._state, flashcards=self._gate_state.cards)

    async def _request_report(self, epoch: int, result: SessionResult) -> AssessmentReport:
        try:
            report = await self.content.assessment_report(self._questions, result)
        except GenerationTransportError as e:
            # Mastered is terminal, so a failed report degrades to the local one
            logger.warning(f"Detailed report unavailable ({e}); using local report")
            report = fallback_report(self._questions, result)
        if isinstance(self._state, Mastered):
            self._state = replace(self._state, report=report)
        return report

    async def retry_generation(self) -> LoopState:
        """Re-issue the generator call that last failed, in the current epoch."""
        if self._failed_request is None:
            return self.state

        factory = self._failed_request
        self._failed_request = None
        self._pending_error = None
        task = asyncio.create_task(self._guarded(factory))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        await task
        return self.state

    async def settle(self) -> None:
        """Wait for every in-flight generator task (CLI and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def final_report(self) -> AssessmentReport:
        """
        Detailed report of the mastered attempt.

        Raises:
            InvalidTransition: The loop has not reached Mastered
        """
        self._require("read the final report", Mastered)
        if self._state.report is not None:
            return self._state.report
        return await self._report_task

    def abandon(self) -> None:
        """Stop driving the loop: cancel generator work and return to Idle."""
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._epoch += 1
        self._pending_error = None
        self._failed_request = None
        self._gate_state = None
        self._deadline = None
        self._report_task = None
        if not isinstance(self._state, Idle):
            logger.info(f"Mastery loop abandoned in {self._state.name} (attempt {self._attempt})")
        self._state = Idle()
