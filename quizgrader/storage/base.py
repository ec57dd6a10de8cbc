"""
Base classes for attempt persistence.

Defines the repository interface the scoring engine reads and writes
through, so that any relational or document store can back it.
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable

from quizgrader.models import Assignment, Attempt, Quiz

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """
    Raised when the store cannot read or write an entity.

    Fatal to a submission: the caller should report it and retry.
    """

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


class AttemptRepository(ABC):
    """
    Abstract store for quizzes, assignments and attempts.

    Implementations must refuse a second attempt for the same assignment
    in ``add_attempt``; this is the backstop for concurrent double submits.
    """

    @abstractmethod
    def get_quiz(self, quiz_id: str) -> Quiz | None:
        """Return a quiz with its questions, or None."""
        ...

    @abstractmethod
    def save_quiz(self, quiz: Quiz) -> None:
        """Create or replace a quiz."""
        ...

    @abstractmethod
    def get_assignment(self, assignment_id: str) -> Assignment | None:
        """Return an assignment by id, or None."""
        ...

    @abstractmethod
    def find_assignment(self, quiz_id: str, student_id: str) -> Assignment | None:
        """Return the assignment binding a quiz to a student, or None."""
        ...

    @abstractmethod
    def save_assignment(self, assignment: Assignment) -> None:
        """Create or replace an assignment."""
        ...

    @abstractmethod
    def find_attempt(self, assignment_id: str, student_id: str) -> Attempt | None:
        """Return the scored attempt for an assignment and student, or None."""
        ...

    @abstractmethod
    def add_attempt(self, attempt: Attempt) -> None:
        """
        Persist a new attempt.

        Raises:
            StorageError: If the write fails or the assignment already has an attempt.
        """
        ...

    @abstractmethod
    def _all_attempts(self) -> Iterable[Attempt]:
        """Iterate over every stored attempt."""
        ...

    def list_attempts(
        self,
        quiz_id: str | None = None,
        assignment_id: str | None = None,
        student_id: str | None = None,
        section_id: str | None = None,
    ) -> list[Attempt]:
        """
        List attempts matching all given filters, newest first.

        Args:
            quiz_id: Restrict to one quiz.
            assignment_id: Restrict to one assignment.
            student_id: Restrict to one student.
            section_id: Restrict to one section.

        Returns:
            Matching attempts sorted by submission time, descending.
        """
        filters = {
            "quiz_id": quiz_id,
            "assignment_id": assignment_id,
            "student_id": student_id,
            "section_id": section_id,
        }
        active = {name: value for name, value in filters.items() if value is not None}

        matches = [
            attempt
            for attempt in self._all_attempts()
            if all(getattr(attempt, name) == value for name, value in active.items())
        ]
        return sorted(matches, key=lambda a: a.submitted_at, reverse=True)

    def get_or_create_assignment(self, quiz_id: str, student_id: str) -> Assignment:
        """
        Return the student's assignment for a quiz, creating it on first access.

        Args:
            quiz_id: The quiz.
            student_id: The student.

        Returns:
            The existing or newly created assignment.
        """
        assignment = self.find_assignment(quiz_id, student_id)
        if assignment is None:
            assignment = Assignment(quiz_id=quiz_id, student_id=student_id)
            self.save_assignment(assignment)
            logger.info(
                "Created assignment %s for student %s on quiz %s", assignment.id, student_id, quiz_id
            )
        return assignment
