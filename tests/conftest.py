"""
Pytest configuration and fixtures.

Provides common test fixtures for all test modules.
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Generator
from unittest.mock import MagicMock, patch

import pytest

from quizgrader.config import Settings
from quizgrader.grading import AnswerEvaluator, GradingOracleClient
from quizgrader.models import Assignment, Attempt, Question, QuestionType, Quiz
from quizgrader.rounding import percentage
from quizgrader.scoring import AttemptScorer
from quizgrader.storage import InMemoryRepository


# ==============================================================================
# Directory Fixtures
# ==============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ==============================================================================
# Settings Fixtures
# ==============================================================================


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings with an oracle key and no delays."""
    return Settings(
        oracle_api_key="test-api-key-for-testing",
        oracle_base_url="https://test.api.local/",
        oracle_model="test-model",
        oracle_temperature=0.0,
        oracle_max_retries=0,
        oracle_stagger_seconds=0.0,
        data_directory=temp_dir / "data",
    )


@pytest.fixture
def offline_settings(temp_dir: Path) -> Settings:
    """Settings without an oracle key: every short answer uses the fallback scorer."""
    return Settings(
        oracle_api_key=None,
        oracle_stagger_seconds=0.0,
        data_directory=temp_dir / "data",
    )


# ==============================================================================
# Sample Quiz Fixtures
# ==============================================================================


@pytest.fixture
def mc_question() -> Question:
    """A one-point multiple-choice question."""
    return Question(
        id="q1",
        quiz_id="quiz-1",
        type=QuestionType.MULTIPLE_CHOICE,
        prompt="Which gas do plants absorb from the air?",
        options=("A", "B", "C", "D"),
        correct_answer="A",
        points=1,
        order=1,
    )


@pytest.fixture
def short_answer_question() -> Question:
    """A four-point short-answer question with a reference answer."""
    return Question(
        id="q2",
        quiz_id="quiz-1",
        type=QuestionType.SHORT_ANSWER,
        prompt="Explain photosynthesis in one or two sentences.",
        correct_answer="photosynthesis is how plants turn light, water and CO2 into glucose and oxygen",
        points=4,
        order=2,
    )


@pytest.fixture
def sample_quiz(mc_question: Question, short_answer_question: Question) -> Quiz:
    """A quiz with one objective and one short-answer question."""
    return Quiz(
        id="quiz-1",
        title="Plant Biology Basics",
        max_attempts=1,
        questions=(mc_question, short_answer_question),
    )


@pytest.fixture
def objective_quiz() -> Quiz:
    """Four objective questions worth 1, 2, 3 and 4 points."""
    return Quiz(
        id="quiz-2",
        title="Arithmetic",
        questions=(
            Question(
                id="a1",
                type=QuestionType.MULTIPLE_CHOICE,
                prompt="2 + 2 = ?",
                options=("3", "4", "5"),
                correct_answer="4",
                points=1,
                order=1,
            ),
            Question(
                id="a2",
                type=QuestionType.TRUE_FALSE,
                prompt="7 is a prime number.",
                correct_answer="true",
                points=2,
                order=2,
            ),
            Question(
                id="a3",
                type=QuestionType.MULTIPLE_CHOICE,
                prompt="10 / 4 = ?",
                options=("2", "2.5", "3"),
                correct_answer="2.5",
                points=3,
                order=3,
            ),
            Question(
                id="a4",
                type=QuestionType.TRUE_FALSE,
                prompt="0 is a positive number.",
                correct_answer="false",
                points=4,
                order=4,
            ),
        ),
    )


@pytest.fixture
def sample_assignment() -> Assignment:
    """Assignment of quiz-1 to a student."""
    return Assignment(id="assign-1", quiz_id="quiz-1", student_id="student-1")


@pytest.fixture
def make_attempt() -> Callable[..., Attempt]:
    """Factory for stored attempts with sensible defaults."""
    base_time = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    def _make(
        minutes: int = 0,
        score: int = 0,
        max_score: int = 10,
        **overrides,
    ) -> Attempt:
        values = {
            "assignment_id": "assign-1",
            "student_id": "student-1",
            "quiz_id": "quiz-1",
            "score": score,
            "max_score": max_score,
            "percentage": percentage(score, max_score),
            "passed": True,
            "submitted_at": base_time + timedelta(minutes=minutes),
        }
        values.update(overrides)
        return Attempt(**values)

    return _make


# ==============================================================================
# Oracle Response Fixtures
# ==============================================================================


@pytest.fixture
def sample_oracle_response() -> str:
    """Sample oracle reply in the labeled-line format."""
    return (
        "FEEDBACK: Correct idea that plants make food from light, but it does not "
        "mention carbon dioxide, water or oxygen.\n"
        "SCORE: 3\n"
        "CONFIDENCE: 85\n"
        "KEYWORDS: sunlight, glucose, carbon dioxide, oxygen\n"
        "SUGGESTIONS: Name the inputs of the reaction; Name the products"
    )


# ==============================================================================
# Mock Fixtures
# ==============================================================================


@pytest.fixture
def mock_llm_client(sample_oracle_response: str) -> Generator[MagicMock, None, None]:
    """Mock the LLM client to avoid actual API calls."""
    with patch("quizgrader.grading.oracle.LLMClient") as mock_class:
        mock_instance = MagicMock()
        mock_instance.generate.return_value = sample_oracle_response
        mock_instance.health_check.return_value = True
        mock_class.return_value = mock_instance
        yield mock_instance


# ==============================================================================
# Component Fixtures
# ==============================================================================


@pytest.fixture
def repository() -> InMemoryRepository:
    """A fresh in-memory repository."""
    return InMemoryRepository()


@pytest.fixture
def oracle(test_settings: Settings, mock_llm_client: MagicMock) -> GradingOracleClient:
    """Oracle client backed by the mocked LLM client."""
    return GradingOracleClient(test_settings)


@pytest.fixture
def evaluator(oracle: GradingOracleClient) -> AnswerEvaluator:
    """Answer evaluator around the mocked oracle."""
    return AnswerEvaluator(oracle)


@pytest.fixture
def scorer(
    repository: InMemoryRepository,
    evaluator: AnswerEvaluator,
    test_settings: Settings,
) -> AttemptScorer:
    """Attempt scorer over the in-memory repository."""
    return AttemptScorer(repository, evaluator=evaluator, settings=test_settings)
