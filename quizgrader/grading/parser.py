"""
Response parser for oracle grading output.

Pulls the labeled fields (feedback, score, confidence, keywords,
suggestions) out of the oracle's free-text reply and turns them into a
bounded OracleGrade. Parsing is tolerant: labels are case-insensitive,
may carry markdown emphasis, and a JSON object reply is accepted too.
"""

import json
import logging
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, NamedTuple

from quizgrader.models import GradeSource, OracleGrade

logger = logging.getLogger(__name__)

MAX_RATIONALE_LENGTH = 1000


class OracleResponseError(Exception):
    """Raised when an oracle reply contains none of the expected fields."""

    def __init__(self, message: str, raw_response: str | None = None):
        self.raw_response = raw_response
        super().__init__(message)


class ParsedResponse(NamedTuple):
    """Raw field values found in an oracle reply."""

    feedback: str | None
    score: Decimal | None
    confidence: Decimal | None
    keywords: tuple[str, ...]
    suggestions: tuple[str, ...]


# Line prefix allowed before a label: whitespace, list markers, emphasis, headings
_PREFIX = r"^[ \t>*_#-]*"
_SEP = r"[ \t*_]*[:=][ \t*_]*"
_LABELS = r"(?:feedback|rationale|reasoning|score|points|confidence|keywords|suggestions)"


class ResponseParser:
    """
    Parses and validates oracle grading replies.

    Ensures:
    1. At least one labeled field is present
    2. The score is clamped into [0, max_points]
    3. The confidence is within [0, 100], otherwise a fallback value is used
    """

    FEEDBACK_PATTERN = re.compile(
        _PREFIX + r"(?:feedback|rationale|reasoning)" + _SEP
        + r"(.+?)"  # Feedback text, may span lines
        + r"(?=" + _PREFIX + _LABELS + _SEP + r"|\Z)",
        re.IGNORECASE | re.MULTILINE | re.DOTALL,
    )

    SCORE_PATTERN = re.compile(
        _PREFIX + r"(?:score|points)" + _SEP + r"(-?\d+(?:\.\d+)?)",
        re.IGNORECASE | re.MULTILINE,
    )

    CONFIDENCE_PATTERN = re.compile(
        _PREFIX + r"confidence" + _SEP + r"(-?\d+(?:\.\d+)?)",
        re.IGNORECASE | re.MULTILINE,
    )

    KEYWORDS_PATTERN = re.compile(
        _PREFIX + r"keywords" + _SEP + r"(.*)$",
        re.IGNORECASE | re.MULTILINE,
    )

    SUGGESTIONS_PATTERN = re.compile(
        _PREFIX + r"suggestions" + _SEP + r"(.*)$",
        re.IGNORECASE | re.MULTILINE,
    )

    def parse(self, response: str) -> ParsedResponse:
        """
        Extract the labeled fields from an oracle reply.

        Args:
            response: Raw oracle reply.

        Returns:
            The fields found; missing ones are None or empty.

        Raises:
            OracleResponseError: If no feedback, score or confidence is found.
        """
        if not response or not response.strip():
            raise OracleResponseError("Empty response", raw_response=response)

        data = self._extract_json(response)
        parsed = self._from_json(data) if data is not None else self._from_lines(response)

        if parsed.feedback is None and parsed.score is None and parsed.confidence is None:
            raise OracleResponseError(
                "No feedback, score or confidence found in response", raw_response=response
            )

        return parsed

    def to_grade(
        self,
        parsed: ParsedResponse,
        max_points: int,
        fallback_confidence: int,
    ) -> OracleGrade:
        """
        Validate parsed fields and build a bounded grade.

        Never raises for out-of-range values: the score is clamped and an
        invalid confidence is replaced by ``fallback_confidence``.
        """
        if parsed.score is None:
            logger.warning("Oracle reply had no score, defaulting to 0")
            score = 0
        else:
            clamped = min(max(parsed.score, Decimal(0)), Decimal(max_points))
            if clamped != parsed.score:
                logger.warning("Oracle score %s outside 0..%d, clamping", parsed.score, max_points)
            score = int(clamped.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

        if parsed.confidence is None or not 0 <= parsed.confidence <= 100:
            logger.warning(
                "Oracle confidence %s invalid, using %d", parsed.confidence, fallback_confidence
            )
            confidence = fallback_confidence
        else:
            confidence = int(parsed.confidence.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

        rationale = (parsed.feedback or "Score assigned without written feedback.").strip()

        return OracleGrade(
            score=score,
            max_points=max_points,
            rationale=rationale[:MAX_RATIONALE_LENGTH],
            confidence=confidence,
            keywords=parsed.keywords[:10],
            suggestions=parsed.suggestions[:5],
            source=GradeSource.ORACLE,
        )

    def _from_lines(self, response: str) -> ParsedResponse:
        feedback_match = self.FEEDBACK_PATTERN.search(response)
        score_match = self.SCORE_PATTERN.search(response)
        confidence_match = self.CONFIDENCE_PATTERN.search(response)
        keywords_match = self.KEYWORDS_PATTERN.search(response)
        suggestions_match = self.SUGGESTIONS_PATTERN.search(response)

        feedback = " ".join(feedback_match.group(1).split()) if feedback_match else None

        return ParsedResponse(
            feedback=feedback or None,
            score=self._parse_decimal(score_match.group(1)) if score_match else None,
            confidence=(
                self._parse_decimal(confidence_match.group(1)) if confidence_match else None
            ),
            keywords=self._split(keywords_match.group(1), ",") if keywords_match else (),
            suggestions=(
                self._split(suggestions_match.group(1), ";") if suggestions_match else ()
            ),
        )

    def _from_json(self, data: dict[str, Any]) -> ParsedResponse:
        lowered = {str(k).lower(): v for k, v in data.items()}

        feedback = None
        for key in ("feedback", "rationale", "reasoning"):
            if lowered.get(key):
                feedback = str(lowered[key])
                break

        return ParsedResponse(
            feedback=feedback,
            score=self._parse_decimal(lowered.get("score", lowered.get("points"))),
            confidence=self._parse_decimal(lowered.get("confidence")),
            keywords=self._as_strings(lowered.get("keywords"), ","),
            suggestions=self._as_strings(lowered.get("suggestions"), ";"),
        )

    def _extract_json(self, response: str) -> dict[str, Any] | None:
        """
        Extract a JSON object from the reply, handling markdown code blocks.

        Returns:
            The decoded object, or None when the reply is not JSON.
        """
        text = response.strip()
        block = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
        if block:
            text = block.group(1).strip()

        if not text.startswith("{"):
            return None

        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _parse_decimal(value: Any) -> Decimal | None:
        if value is None or isinstance(value, bool):
            return None
        try:
            number = Decimal(str(value).strip().rstrip("%"))
        except (InvalidOperation, ValueError):
            return None
        return number if number.is_finite() else None

    @staticmethod
    def _split(text: str, separator: str) -> tuple[str, ...]:
        if separator not in text and "," in text:
            separator = ","
        return tuple(part.strip(" \t*_.") for part in text.split(separator) if part.strip(" \t*_."))

    @classmethod
    def _as_strings(cls, value: Any, separator: str) -> tuple[str, ...]:
        if isinstance(value, list):
            return tuple(str(v).strip() for v in value if str(v).strip())
        if isinstance(value, str):
            return cls._split(value, separator)
        return ()
