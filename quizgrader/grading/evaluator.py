"""
Answer evaluator.

Scores one submitted answer against one question: exact match for
objective questions, the grading oracle for short answers.
"""

import logging
import math

from quizgrader.grading.oracle import GradingOracleClient
from quizgrader.models import GradeSource, GradingDetail, Question, QuestionResult, QuestionType

logger = logging.getLogger(__name__)

ERROR_RATIONALE = (
    "Sorry, this answer could not be graded automatically. It has been given "
    "partial credit and may be reviewed by your instructor."
)
ERROR_CONFIDENCE = 40


class AnswerEvaluator:
    """Decides how to score an answer based on the question type."""

    def __init__(self, oracle: GradingOracleClient):
        self._oracle = oracle

    @property
    def oracle_available(self) -> bool:
        """Whether short answers go to a configured oracle rather than the fallback."""
        return self._oracle.available

    def evaluate(self, question: Question, submitted_answer: str | None) -> QuestionResult:
        """
        Evaluate one answer.

        Args:
            question: The question being answered.
            submitted_answer: The raw answer, None if unanswered.

        Returns:
            QuestionResult with 0 <= points_awarded <= question.points.
        """
        match question.type:
            case QuestionType.MULTIPLE_CHOICE | QuestionType.TRUE_FALSE:
                return self._evaluate_objective(question, submitted_answer)
            case QuestionType.SHORT_ANSWER:
                return self._evaluate_short_answer(question, submitted_answer)

        raise ValueError(f"Unsupported question type: {question.type}")

    def _evaluate_objective(self, question: Question, answer: str | None) -> QuestionResult:
        is_correct = (
            answer is not None
            and question.correct_answer is not None
            and answer == question.correct_answer
        )
        return QuestionResult(
            question_id=question.id,
            question_type=question.type,
            points_awarded=question.points if is_correct else 0,
            max_points=question.points,
            is_correct=is_correct,
        )

    def _evaluate_short_answer(self, question: Question, answer: str | None) -> QuestionResult:
        if answer is None or not answer.strip():
            # Unanswered: no feedback, unlike an answer graded at zero
            return QuestionResult(
                question_id=question.id,
                question_type=question.type,
                points_awarded=0,
                max_points=question.points,
            )

        try:
            grade = self._oracle.grade(
                question.prompt,
                answer,
                question.correct_answer or None,
                question.points,
            )
        except Exception:
            logger.exception("Grading crashed for question %s, awarding half credit", question.id)
            points = math.floor(question.points * 0.5)
            return QuestionResult(
                question_id=question.id,
                question_type=question.type,
                points_awarded=points,
                max_points=question.points,
                feedback=GradingDetail(
                    score=points,
                    max_points=question.points,
                    rationale=ERROR_RATIONALE,
                    confidence=ERROR_CONFIDENCE,
                    error=True,
                    source=GradeSource.ERROR,
                ),
            )

        return QuestionResult(
            question_id=question.id,
            question_type=question.type,
            points_awarded=grade.score,
            max_points=question.points,
            feedback=GradingDetail.from_grade(grade),
        )
