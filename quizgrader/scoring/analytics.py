"""
Results analytics.

Read-only aggregate statistics over scored attempts, for professor
reporting views: averages, pass rate, per-question success and the
section gradebook.
"""

from typing import Iterable, Sequence

from quizgrader.models import (
    Attempt,
    GradebookEntry,
    Question,
    QuestionStatistics,
    QuizStatistics,
)
from quizgrader.rounding import mean, percentage


class ResultsAnalytics:
    """Pure aggregation functions; nothing here mutates its input."""

    @staticmethod
    def average_percentage(attempts: Sequence[Attempt]) -> int:
        """Rounded mean of attempt percentages, 0 without attempts."""
        return mean([a.percentage for a in attempts])

    @staticmethod
    def pass_rate(attempts: Sequence[Attempt]) -> int:
        """Percentage of attempts that passed, 0 without attempts."""
        return percentage(sum(1 for a in attempts if a.passed), len(attempts))

    @staticmethod
    def unique_students(attempts: Iterable[Attempt]) -> int:
        """Number of distinct students among the attempts."""
        return len({a.student_id for a in attempts})

    @staticmethod
    def question_success_rates(
        attempts: Sequence[Attempt],
        questions: Iterable[Question],
    ) -> tuple[QuestionStatistics, ...]:
        """
        Success rate of each objective question.

        Correctness is the outcome recorded when each attempt was scored, so
        later edits to a question's correct answer do not change past results.
        Only attempts that answered the question count towards it. Short
        answers are skipped: their scores are graded, not right or wrong.
        """
        stats: list[QuestionStatistics] = []

        for question in sorted(questions, key=lambda q: q.order):
            if not question.type.is_objective:
                continue

            outcomes = [a.correct[question.id] for a in attempts if question.id in a.correct]
            correct = sum(outcomes)

            stats.append(
                QuestionStatistics(
                    question_id=question.id,
                    prompt=question.prompt,
                    question_type=question.type,
                    attempts=len(outcomes),
                    correct_answers=correct,
                    success_rate=percentage(correct, len(outcomes)),
                )
            )

        return tuple(stats)

    @classmethod
    def quiz_statistics(
        cls,
        attempts: Sequence[Attempt],
        questions: Iterable[Question] = (),
        section_id: str | None = None,
    ) -> QuizStatistics:
        """
        Bundle the statistics for one quiz.

        Args:
            attempts: Attempts on the quiz.
            questions: The quiz's questions, for per-question success rates.
            section_id: Only count attempts scored under this section.

        Returns:
            QuizStatistics for the selected attempts.
        """
        selected = [a for a in attempts if section_id is None or a.section_id == section_id]

        quiz_ids = {a.quiz_id for a in selected}
        confidences = [c for c in (a.average_confidence for a in selected) if c is not None]

        return QuizStatistics(
            quiz_id=quiz_ids.pop() if len(quiz_ids) == 1 else None,
            section_id=section_id,
            total_attempts=len(selected),
            unique_students=cls.unique_students(selected),
            average_percentage=cls.average_percentage(selected),
            pass_rate=cls.pass_rate(selected),
            average_confidence=mean(confidences) if confidences else None,
            last_attempt_at=max((a.submitted_at for a in selected), default=None),
            questions=cls.question_success_rates(selected, questions),
        )

    @staticmethod
    def gradebook(attempts: Iterable[Attempt]) -> tuple[GradebookEntry, ...]:
        """
        Latest result per student and quiz, with the number of attempts.

        Entries are sorted by student, then quiz.
        """
        latest: dict[tuple[str, str], Attempt] = {}
        counts: dict[tuple[str, str], int] = {}

        for attempt in attempts:
            key = (attempt.student_id, attempt.quiz_id)
            counts[key] = counts.get(key, 0) + 1
            if key not in latest or attempt.submitted_at > latest[key].submitted_at:
                latest[key] = attempt

        return tuple(
            GradebookEntry(
                student_id=student_id,
                quiz_id=quiz_id,
                attempt_id=attempt.id,
                score=attempt.score,
                max_score=attempt.max_score,
                percentage=attempt.percentage,
                attempt_count=counts[(student_id, quiz_id)],
                submitted_at=attempt.submitted_at,
            )
            for (student_id, quiz_id), attempt in sorted(latest.items())
        )
