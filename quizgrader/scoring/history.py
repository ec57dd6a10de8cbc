"""
Attempt history aggregation.

Summarizes the attempts of one assignment for a student's results view:
numbering, best score and remaining attempts.
"""

from typing import Sequence

from quizgrader.models import Attempt, AttemptHistory, AttemptView
from quizgrader.rounding import percentage


class AttemptHistoryAggregator:
    """Builds the attempt history of one (assignment, quiz) pair."""

    def summarize(self, attempts: Sequence[Attempt], quiz_max_attempts: int) -> AttemptHistory:
        """
        Summarize attempts.

        Args:
            attempts: Attempts of one assignment on one quiz.
            quiz_max_attempts: The quiz's configured attempt limit.

        Returns:
            AttemptHistory with attempts newest first, numbered from the oldest (1).
        """
        ordered = sorted(attempts, key=lambda a: a.submitted_at, reverse=True)
        total = len(ordered)

        views = tuple(
            AttemptView(
                attempt_number=total - index,
                id=attempt.id,
                score=attempt.score,
                max_score=attempt.max_score,
                percentage=attempt.percentage,
                passed=attempt.passed,
                submitted_at=attempt.submitted_at,
                feedback=attempt.feedback,
            )
            for index, attempt in enumerate(ordered)
        )

        if ordered:
            # Denominator is the best attempt's own max score, not the newest one's
            best = max(ordered, key=lambda a: a.score)
            best_score = best.score
            best_percentage = percentage(best.score, best.max_score)
        else:
            best_score = 0
            best_percentage = 0

        return AttemptHistory(
            attempts=views,
            best_score=best_score,
            best_percentage=best_percentage,
            total_attempts=total,
            max_attempts=quiz_max_attempts,
            attempts_remaining=max(0, quiz_max_attempts - total),
        )
