"""
Scoring Module.

Submission scoring with one attempt per assignment, plus the read-only
history and analytics views over scored attempts.
"""

from quizgrader.scoring.analytics import ResultsAnalytics
from quizgrader.scoring.history import AttemptHistoryAggregator
from quizgrader.scoring.scorer import AttemptScorer, SubmissionValidationError

__all__ = [
    "AttemptHistoryAggregator",
    "AttemptScorer",
    "ResultsAnalytics",
    "SubmissionValidationError",
]
