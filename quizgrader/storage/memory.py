"""In-memory repository, for tests and single-process use."""

from typing import Iterable

from quizgrader.models import Assignment, Attempt, Quiz
from quizgrader.storage.base import AttemptRepository, StorageError


class InMemoryRepository(AttemptRepository):
    """Dict-backed store. Not shared between processes."""

    def __init__(self) -> None:
        self._quizzes: dict[str, Quiz] = {}
        self._assignments: dict[str, Assignment] = {}
        # Keyed by assignment id: at most one attempt per assignment
        self._attempts: dict[str, Attempt] = {}

    def get_quiz(self, quiz_id: str) -> Quiz | None:
        return self._quizzes.get(quiz_id)

    def save_quiz(self, quiz: Quiz) -> None:
        self._quizzes[quiz.id] = quiz

    def get_assignment(self, assignment_id: str) -> Assignment | None:
        return self._assignments.get(assignment_id)

    def find_assignment(self, quiz_id: str, student_id: str) -> Assignment | None:
        for assignment in self._assignments.values():
            if assignment.quiz_id == quiz_id and assignment.student_id == student_id:
                return assignment
        return None

    def save_assignment(self, assignment: Assignment) -> None:
        self._assignments[assignment.id] = assignment

    def find_attempt(self, assignment_id: str, student_id: str) -> Attempt | None:
        attempt = self._attempts.get(assignment_id)
        if attempt is not None and attempt.student_id == student_id:
            return attempt
        return None

    def add_attempt(self, attempt: Attempt) -> None:
        if attempt.assignment_id in self._attempts:
            raise StorageError(f"Assignment {attempt.assignment_id} already has an attempt")
        self._attempts[attempt.assignment_id] = attempt

    def _all_attempts(self) -> Iterable[Attempt]:
        return list(self._attempts.values())
