"""
Unit tests for the attempt repositories.

The same behavior is checked against the in-memory and the JSON file
implementations.
"""

from pathlib import Path
from typing import Callable
from unittest.mock import patch

import pytest

from quizgrader.config import Settings
from quizgrader.grading import AnswerEvaluator
from quizgrader.models import Assignment, Attempt, GradingDetail, Quiz
from quizgrader.scoring import AttemptScorer
from quizgrader.storage import (
    AttemptRepository,
    InMemoryRepository,
    JsonFileRepository,
    StorageError,
)


@pytest.fixture(params=["memory", "json"])
def store(request: pytest.FixtureRequest, temp_dir: Path) -> AttemptRepository:
    """Each repository implementation in turn."""
    if request.param == "memory":
        return InMemoryRepository()
    return JsonFileRepository(temp_dir / "store")


class TestRepositoryContract:
    """Behavior shared by every repository."""

    def test_quiz_round_trip(self, store: AttemptRepository, sample_quiz: Quiz) -> None:
        """Test a saved quiz is read back with its questions."""
        store.save_quiz(sample_quiz)

        assert store.get_quiz("quiz-1") == sample_quiz
        assert store.get_quiz("missing") is None

    def test_get_or_create_assignment(self, store: AttemptRepository) -> None:
        """Test an assignment is created once and then reused."""
        created = store.get_or_create_assignment("quiz-1", "student-1")
        again = store.get_or_create_assignment("quiz-1", "student-1")
        other = store.get_or_create_assignment("quiz-1", "student-2")

        assert again.id == created.id
        assert other.id != created.id
        assert store.get_assignment(created.id) == created

    def test_save_assignment_replaces(self, store: AttemptRepository, sample_assignment: Assignment) -> None:
        """Test saving an assignment again overwrites it."""
        store.save_assignment(sample_assignment)
        store.save_assignment(sample_assignment.mark_completed())

        stored = store.find_assignment("quiz-1", "student-1")
        assert stored.is_completed
        assert stored.completed_at is not None

    def test_one_attempt_per_assignment(
        self,
        store: AttemptRepository,
        make_attempt: Callable[..., Attempt],
    ) -> None:
        """Test a second attempt for the same assignment is refused."""
        first = make_attempt(score=5)
        store.add_attempt(first)

        with pytest.raises(StorageError, match="already has an attempt"):
            store.add_attempt(make_attempt(score=9))

        assert store.find_attempt("assign-1", "student-1") == first

    def test_find_attempt_checks_student(
        self,
        store: AttemptRepository,
        make_attempt: Callable[..., Attempt],
    ) -> None:
        """Test an attempt is not returned for another student."""
        store.add_attempt(make_attempt())

        assert store.find_attempt("assign-1", "student-2") is None
        assert store.find_attempt("assign-9", "student-1") is None

    def test_list_attempts_filters_and_orders(
        self,
        store: AttemptRepository,
        make_attempt: Callable[..., Attempt],
    ) -> None:
        """Test filters combine and results are newest first."""
        early = make_attempt(minutes=0, assignment_id="a-1", student_id="s-1", section_id="sec-a")
        late = make_attempt(minutes=30, assignment_id="a-2", student_id="s-2", section_id="sec-a")
        other = make_attempt(minutes=15, assignment_id="a-3", student_id="s-3", quiz_id="quiz-9")
        for attempt in (early, late, other):
            store.add_attempt(attempt)

        assert [a.id for a in store.list_attempts(quiz_id="quiz-1")] == [late.id, early.id]
        assert [a.id for a in store.list_attempts()] == [late.id, other.id, early.id]
        assert store.list_attempts(section_id="sec-a", student_id="s-1") == [early]
        assert store.list_attempts(section_id="sec-b") == []

    def test_feedback_round_trip(
        self,
        store: AttemptRepository,
        make_attempt: Callable[..., Attempt],
    ) -> None:
        """Test per-question feedback survives storage."""
        detail = GradingDetail(
            score=3, max_points=4, rationale="Good.", confidence=85, keywords=("light",)
        )
        attempt = make_attempt(score=3, answers={"q2": "text"}, feedback={"q2": detail})
        store.add_attempt(attempt)

        assert store.find_attempt("assign-1", "student-1").feedback["q2"] == detail


class TestJsonFileRepository:
    """File layout and failure handling."""

    def test_layout(self, temp_dir: Path, sample_quiz: Quiz, make_attempt: Callable[..., Attempt]) -> None:
        """Test one JSON document per entity."""
        store = JsonFileRepository(temp_dir / "store")
        store.save_quiz(sample_quiz)
        store.add_attempt(make_attempt())

        assert (temp_dir / "store" / "quizzes" / "quiz-1.json").is_file()
        assert (temp_dir / "store" / "attempts" / "assign-1.json").is_file()
        assert store.root == temp_dir / "store"

    def test_no_temp_files_left(self, temp_dir: Path, sample_quiz: Quiz) -> None:
        """Test atomic writes clean up after themselves."""
        store = JsonFileRepository(temp_dir)
        store.save_quiz(sample_quiz)
        store.save_quiz(sample_quiz)

        assert [p.name for p in (temp_dir / "quizzes").iterdir()] == ["quiz-1.json"]

    def test_persists_across_instances(
        self,
        temp_dir: Path,
        make_attempt: Callable[..., Attempt],
    ) -> None:
        """Test a new repository on the same directory sees earlier writes."""
        attempt = make_attempt(score=6)
        JsonFileRepository(temp_dir).add_attempt(attempt)

        reopened = JsonFileRepository(temp_dir)

        assert reopened.find_attempt("assign-1", "student-1") == attempt
        with pytest.raises(StorageError):
            reopened.add_attempt(make_attempt(score=1))

    def test_corrupt_record(self, temp_dir: Path) -> None:
        """Test an unreadable record raises a storage error."""
        store = JsonFileRepository(temp_dir)
        (temp_dir / "quizzes" / "broken.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageError, match="Corrupt record"):
            store.get_quiz("broken")

    @pytest.mark.parametrize("bad_id", ["../escape", "a/b", "", ".hidden"])
    def test_rejects_unsafe_ids(self, temp_dir: Path, bad_id: str) -> None:
        """Test identifiers that are not plain file names are refused."""
        store = JsonFileRepository(temp_dir)

        with pytest.raises(StorageError, match="not usable as a file name"):
            store.get_assignment(bad_id)

    def test_unwritable_root(self, temp_dir: Path) -> None:
        """Test a root that is a file cannot host a store."""
        blocker = temp_dir / "file"
        blocker.write_text("", encoding="utf-8")

        with pytest.raises(StorageError, match="Cannot create store"):
            JsonFileRepository(blocker)

    def test_failed_attempt_write_can_be_retried(
        self,
        temp_dir: Path,
        make_attempt: Callable[..., Attempt],
    ) -> None:
        """Test a failed write leaves nothing behind and the same attempt can be stored later."""
        store = JsonFileRepository(temp_dir)
        attempt = make_attempt(score=7)

        with patch(
            "quizgrader.storage.json_store.os.link",
            side_effect=OSError(28, "No space left on device"),
        ):
            with pytest.raises(StorageError, match="Cannot write attempt"):
                store.add_attempt(attempt)

        assert store.find_attempt("assign-1", "student-1") is None
        assert list((temp_dir / "attempts").iterdir()) == []

        store.add_attempt(attempt)

        assert store.find_attempt("assign-1", "student-1") == attempt
        assert [p.name for p in (temp_dir / "attempts").iterdir()] == ["assign-1.json"]

    def test_scorer_retry_after_failed_write(
        self,
        temp_dir: Path,
        evaluator: AnswerEvaluator,
        test_settings: Settings,
        sample_quiz: Quiz,
    ) -> None:
        """Test a submission that failed to persist is scored afresh on retry."""
        store = JsonFileRepository(temp_dir)
        scorer = AttemptScorer(store, evaluator=evaluator, settings=test_settings)
        assignment = store.get_or_create_assignment(sample_quiz.id, "student-1")

        with patch(
            "quizgrader.storage.json_store.os.link",
            side_effect=OSError(28, "No space left on device"),
        ):
            with pytest.raises(StorageError, match="No space left"):
                scorer.submit(sample_quiz, None, assignment, {"q1": "A"})

        result = scorer.submit(sample_quiz, None, assignment, {"q1": "A"})

        assert not result.duplicate
        assert result.attempt.score == 1
        assert store.find_attempt(assignment.id, "student-1") == result.attempt
