"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import asyncio
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from mastery_loop.core.errors import GenerationTransportError  # noqa: E402
from mastery_loop.core.models import Difficulty, Question, QuestionKind  # noqa: E402
from mastery_loop.generation.schemas import GenerationRequest  # noqa: E402
from mastery_loop.learning import InMemoryProfileBackend, WeaknessProfileStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# ========================================
# Test doubles
# ========================================


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGenerator:
    """
    Scripted ContentGenerator.

    Responses are consumed in order; an Exception instance is raised
    instead of returned. When a gate event is set up via hold(), calls
    block until release() so tests can interleave state changes.
    """

    def __init__(self, responses=None, default: str = ""):
        self.responses = list(responses or [])
        self.default = default
        self.requests: list[GenerationRequest] = []
        self._gate: asyncio.Event | None = None

    def hold(self) -> None:
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()

    async def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        if self._gate is not None:
            await self._gate.wait()
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def make_generator():
    """Factory for scripted generators: make_generator([response, ...])."""
    return FakeGenerator


@pytest.fixture
def transport_error():
    return GenerationTransportError("connection refused", attempts=3)


# ========================================
# Domain fixtures
# ========================================


@pytest.fixture
def profile():
    """Empty in-memory weakness profile."""
    return WeaknessProfileStore("student-1", backend=InMemoryProfileBackend())


@pytest.fixture
def physics_questions():
    """
    Five questions: three Kinematics, two Energy.

    Answering q1 and q2 correctly and the rest wrong scores 40%.
    """
    return [
        Question(
            id="q1",
            text="What is the SI unit of velocity?",
            kind=QuestionKind.MCQ,
            options=("m/s", "m/s^2", "N", "J"),
            correct_answer="m/s",
            topic="Kinematics",
            difficulty=Difficulty.EASY,
        ),
        Question(
            id="q2",
            text="Displacement per unit time is called?",
            kind=QuestionKind.SHORT_ANSWER,
            correct_answer="Velocity",
            topic="Kinematics",
        ),
        Question(
            id="q3",
            text="Acceleration of a body moving at constant velocity?",
            kind=QuestionKind.MCQ,
            options=("Zero", "Constant non-zero", "Increasing", "Undefined"),
            correct_answer="Zero",
            topic="Kinematics",
        ),
        Question(
            id="q4",
            text="Kinetic energy of a 2 kg mass moving at 3 m/s (in J)?",
            kind=QuestionKind.SHORT_ANSWER,
            correct_answer="9",
            topic="Energy",
            difficulty=Difficulty.MEDIUM,
        ),
        Question(
            id="q5",
            text="Unit of work?",
            kind=QuestionKind.MCQ,
            options=("Joule", "Watt", "Newton", "Pascal"),
            correct_answer="Joule",
            topic="Energy",
        ),
    ]


@pytest.fixture
def failing_answers():
    """2 of 5 correct (both Kinematics)."""
    return {"q1": "m/s", "q2": "velocity", "q3": "Increasing", "q4": "18", "q5": "Watt"}


@pytest.fixture
def passing_answers():
    """All 5 correct."""
    return {"q1": "m/s", "q2": "Velocity", "q3": "Zero", "q4": "9", "q5": "Joule"}


FLASHCARDS_JSON = (
    '{"flashcards": ['
    '{"question": "Define acceleration", "answer": "Rate of change of velocity."},'
    '{"question": "Kinetic energy formula?", "answer": "KE = 1/2 m v^2"},'
    '{"question": "Unit of work?", "answer": "Joule"},'
    '{"question": "Velocity vs speed?", "answer": "Velocity has direction."}'
    "]}"
)


@pytest.fixture
def flashcards_json():
    return FLASHCARDS_JSON
