"""
Attempt scorer - the submission orchestrator.

Evaluates every question of a quiz, aggregates the points, persists one
attempt per assignment and marks the assignment completed.
"""

import logging
import time
from typing import Mapping, Sequence

from quizgrader.config import Settings, get_settings
from quizgrader.grading.evaluator import AnswerEvaluator
from quizgrader.grading.oracle import GradingOracleClient
from quizgrader.models import (
    Assignment,
    Attempt,
    GradingDetail,
    Question,
    QuestionResult,
    QuestionType,
    Quiz,
    SubmissionResult,
)
from quizgrader.rounding import percentage
from quizgrader.storage.base import AttemptRepository, StorageError

logger = logging.getLogger(__name__)


class SubmissionValidationError(Exception):
    """Raised when a submission does not fit the quiz or assignment it names."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class AttemptScorer:
    """
    Scores quiz submissions.

    At most one attempt is scored per assignment: a repeated submission
    returns the stored attempt, flagged as a duplicate, without grading
    anything again.
    """

    def __init__(
        self,
        repository: AttemptRepository,
        evaluator: AnswerEvaluator | None = None,
        settings: Settings | None = None,
    ):
        """
        Initialize the scorer.

        Args:
            repository: Store for attempts and assignments.
            evaluator: Answer evaluator. Built around a GradingOracleClient
                from settings when not provided.
            settings: Configuration settings. Uses global settings if not provided.
        """
        self._settings = settings or get_settings()
        self._repository = repository
        self._evaluator = evaluator or AnswerEvaluator(GradingOracleClient(self._settings))

    def submit(
        self,
        quiz: Quiz,
        questions: Sequence[Question] | None,
        assignment: Assignment | None,
        submitted_answers: Mapping[str, str | None],
        section_id: str | None = None,
    ) -> SubmissionResult:
        """
        Score a submission and persist the attempt.

        Args:
            quiz: The quiz being submitted.
            questions: Questions to score; the quiz's own questions when None.
            assignment: The student's assignment for this quiz.
            submitted_answers: Question id -> raw answer.
            section_id: Enrollment context the attempt is scored under.

        Returns:
            SubmissionResult with the new attempt, or the existing one
            flagged as a duplicate.

        Raises:
            SubmissionValidationError: If the input is inconsistent.
            StorageError: If the attempt cannot be persisted.
        """
        question_list = tuple(quiz.questions if questions is None else questions)
        assignment = self._validate(quiz, question_list, assignment)

        existing = self._repository.find_attempt(assignment.id, assignment.student_id)
        if existing is not None:
            logger.info(
                "Duplicate submission for assignment %s, returning attempt %s",
                assignment.id,
                existing.id,
            )
            return SubmissionResult(attempt=existing, duplicate=True)

        answers = self._clean_answers(submitted_answers, question_list)

        results = self._evaluate_all(question_list, answers)

        score = sum(r.points_awarded for r in results)
        max_score = sum(r.max_points for r in results)
        score_percentage = percentage(score, max_score)

        feedback: dict[str, GradingDetail] = {
            r.question_id: r.feedback for r in results if r.feedback is not None
        }
        correct = {
            r.question_id: r.is_correct
            for r in results
            if r.is_correct is not None and r.question_id in answers
        }

        attempt = Attempt(
            assignment_id=assignment.id,
            student_id=assignment.student_id,
            quiz_id=quiz.id,
            section_id=section_id,
            answers=answers,
            score=score,
            max_score=max_score,
            percentage=score_percentage,
            passed=self._passed(quiz, score_percentage),
            feedback=feedback,
            correct=correct,
        )

        try:
            self._repository.add_attempt(attempt)
        except StorageError:
            # A concurrent submission may have won the insert
            winner = self._repository.find_attempt(assignment.id, assignment.student_id)
            if winner is None:
                raise
            logger.info("Concurrent submission for assignment %s already stored", assignment.id)
            return SubmissionResult(attempt=winner, duplicate=True)

        logger.info(
            "Scored attempt %s for assignment %s: %d/%d (%d%%)%s",
            attempt.id,
            assignment.id,
            score,
            max_score,
            score_percentage,
            ", reduced confidence" if attempt.reduced_confidence else "",
        )

        self._complete_assignment(assignment, attempt)

        return SubmissionResult(attempt=attempt, results=tuple(results))

    def _validate(
        self,
        quiz: Quiz,
        questions: tuple[Question, ...],
        assignment: Assignment | None,
    ) -> Assignment:
        if assignment is None:
            raise SubmissionValidationError("Assignment not found", field="assignment")

        if assignment.quiz_id != quiz.id:
            raise SubmissionValidationError(
                f"Assignment {assignment.id} belongs to quiz {assignment.quiz_id}, not {quiz.id}",
                field="assignment",
            )

        seen: set[str] = set()
        for question in questions:
            if question.quiz_id is not None and question.quiz_id != quiz.id:
                raise SubmissionValidationError(
                    f"Question {question.id} belongs to quiz {question.quiz_id}, not {quiz.id}",
                    field="questions",
                )
            if question.id in seen:
                raise SubmissionValidationError(
                    f"Duplicate question id: {question.id}", field="questions"
                )
            seen.add(question.id)

        return assignment

    def _clean_answers(
        self,
        submitted_answers: Mapping[str, str | None],
        questions: tuple[Question, ...],
    ) -> dict[str, str]:
        answers: dict[str, str] = {}
        for question_id, answer in submitted_answers.items():
            if answer is None:
                continue
            if not isinstance(answer, str):
                raise SubmissionValidationError(
                    f"Answer to question {question_id} must be a string", field="answers"
                )
            answers[str(question_id)] = answer

        unknown = set(answers) - {q.id for q in questions}
        if unknown:
            logger.warning("Ignoring answers to unknown questions: %s", sorted(unknown))

        return answers

    def _evaluate_all(
        self,
        questions: tuple[Question, ...],
        answers: dict[str, str],
    ) -> list[QuestionResult]:
        """Evaluate questions in presentation order, spacing out oracle calls."""
        results: list[QuestionResult] = []
        oracle_calls = 0
        # Only calls that reach the oracle are spaced out
        stagger = self._settings.oracle_stagger_seconds if self._evaluator.oracle_available else 0

        for question in sorted(questions, key=lambda q: q.order):
            answer = answers.get(question.id)

            if question.type == QuestionType.SHORT_ANSWER and answer and answer.strip():
                if oracle_calls and stagger:
                    time.sleep(stagger)
                oracle_calls += 1

            results.append(self._evaluator.evaluate(question, answer))

        return results

    @staticmethod
    def _passed(quiz: Quiz, score_percentage: int) -> bool:
        if quiz.passing_score is None:
            return True
        return score_percentage >= quiz.passing_score

    def _complete_assignment(self, assignment: Assignment, attempt: Attempt) -> None:
        """Mark the assignment completed; the attempt stays valid if this fails."""
        try:
            self._repository.save_assignment(assignment.mark_completed(attempt.submitted_at))
        except Exception:
            logger.exception(
                "Attempt %s stored but assignment %s could not be marked completed",
                attempt.id,
                assignment.id,
            )
