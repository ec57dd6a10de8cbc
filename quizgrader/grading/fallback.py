"""
Local fallback scorer.

Used when the grading oracle is unavailable or its reply cannot be parsed.
The heuristic only looks at the answer itself, so it is deterministic and
free of side effects.
"""

import re
from decimal import ROUND_HALF_UP, Decimal

from quizgrader.models import GradeSource, OracleGrade

# Answers shorter than these (after trimming) fall into the short/medium band
SHORT_ANSWER_LIMIT = 50
MEDIUM_ANSWER_LIMIT = 150

NON_ANSWER_PATTERN = re.compile(
    r"^\W*(?:"
    # Giving up on the question, whatever short remark follows
    r"(?:i\s*(?:do\s*not|don[’']?t|dont)\s*know|(?:i\s*(?:have\s*)?)?no\s*idea)\b.{0,40}"
    # Single words only when they are the whole answer
    r"|(?:idk"
    r"|(?:i[’']?m\s*)?not\s*sure"
    r"|(?:i\s*)?(?:can[’']?t|cannot)\s*(?:remember|answer)"
    r"|n/?a"
    r"|none"
    r"|pass"
    r"|skip"
    r")\W*(?:sorry)?\W*"
    r")$"
    r"|^\W*$",
    re.IGNORECASE | re.DOTALL,
)

_SUGGESTIONS = (
    "Provide more specific examples",
    "Address all parts of the question",
    "Use clear, concise language",
)

# (upper length bound, fraction of max points, confidence, rationale)
_BANDS: tuple[tuple[int | None, Decimal, int, str], ...] = (
    (
        SHORT_ANSWER_LIMIT,
        Decimal("0.3"),
        70,
        "Automatic grading was unavailable. The answer is brief and likely misses key "
        "points; it received partial credit pending review.",
    ),
    (
        MEDIUM_ANSWER_LIMIT,
        Decimal("0.6"),
        75,
        "Automatic grading was unavailable. The answer addresses the question in some "
        "detail; it received partial credit pending review.",
    ),
    (
        None,
        Decimal("0.8"),
        80,
        "Automatic grading was unavailable. The answer is detailed; it received most "
        "of the credit pending review.",
    ),
)

NON_ANSWER_RATIONALE = (
    "No substantial answer provided. Please review the material and give a response "
    "that addresses the question."
)


def is_non_answer(answer: str | None) -> bool:
    """Whether an answer is blank or says the student does not know."""
    if answer is None or not answer.strip():
        return True
    return bool(NON_ANSWER_PATTERN.match(answer.strip()))


def fallback_grade(answer: str | None, max_points: int) -> OracleGrade:
    """
    Score an answer without the oracle.

    Args:
        answer: The student's answer.
        max_points: Maximum points for the question.

    Returns:
        A grade marked with the fallback source.
    """
    if is_non_answer(answer):
        return OracleGrade(
            score=0,
            max_points=max_points,
            rationale=NON_ANSWER_RATIONALE,
            confidence=100,
            suggestions=("Please provide a complete answer to the question",),
            source=GradeSource.FALLBACK,
        )

    length = len((answer or "").strip())
    _, fraction, confidence, rationale = next(
        band for band in _BANDS if band[0] is None or length < band[0]
    )
    score = (Decimal(max_points) * fraction).quantize(Decimal("1"), rounding=ROUND_HALF_UP)

    return OracleGrade(
        score=int(score),
        max_points=max_points,
        rationale=rationale,
        confidence=confidence,
        suggestions=_SUGGESTIONS,
        source=GradeSource.FALLBACK,
    )
