"""
Grading oracle client.

Grades one short answer with the LLM oracle: builds the prompt, calls the
oracle, parses and bounds the reply. Any oracle failure falls through to
the local fallback scorer, so ``grade`` always returns a grade.
"""

import logging

from quizgrader.config import Settings, get_settings
from quizgrader.grading.fallback import fallback_grade
from quizgrader.grading.llm_client import LLMClient, OracleUnavailableError
from quizgrader.grading.parser import OracleResponseError, ResponseParser
from quizgrader.grading.prompt_builder import PromptBuilder
from quizgrader.models import GradeSource, OracleGrade

logger = logging.getLogger(__name__)

EMPTY_ANSWER_RATIONALE = "No answer provided."


class GradingOracleClient:
    """
    Short-answer grader backed by an external LLM.

    Construct once and share: the underlying LLM client holds the HTTP
    connection pool and retry configuration.
    """

    def __init__(self, settings: Settings | None = None, llm_client: LLMClient | None = None):
        """
        Initialize the oracle client.

        Args:
            settings: Configuration settings. Uses global settings if not provided.
            llm_client: LLM client to use. Built from settings when omitted and
                an API key is configured; without one, every answer is scored
                by the fallback scorer.
        """
        self._settings = settings or get_settings()
        if llm_client is None and self._settings.oracle_configured:
            llm_client = LLMClient(self._settings)
        self._llm_client = llm_client
        self._response_parser = ResponseParser()

    @property
    def available(self) -> bool:
        """Whether an oracle is configured at all."""
        return self._llm_client is not None

    def grade(
        self,
        question: str,
        student_answer: str | None,
        reference_answer: str | None,
        max_points: int,
        model: str | None = None,
    ) -> OracleGrade:
        """
        Grade a short answer.

        Args:
            question: The question text.
            student_answer: The student's answer.
            reference_answer: Reference answer, if the question has one.
            max_points: Maximum points for the question (positive).
            model: Override the oracle model for this call.

        Returns:
            OracleGrade with 0 <= score <= max_points and 0 <= confidence <= 100.
        """
        if max_points < 1:
            raise ValueError(f"max_points must be positive, got {max_points}")

        if student_answer is None or not student_answer.strip():
            return OracleGrade(
                score=0,
                max_points=max_points,
                rationale=EMPTY_ANSWER_RATIONALE,
                confidence=100,
                suggestions=("Please provide a complete answer to the question",),
                source=GradeSource.EMPTY,
            )

        if self._llm_client is None:
            logger.warning("Grading oracle not configured, using fallback scorer")
            return fallback_grade(student_answer, max_points)

        system_prompt = PromptBuilder.get_system_prompt()
        user_prompt = PromptBuilder.build_grading_prompt(
            question, student_answer, reference_answer, max_points
        )

        try:
            raw_response = self._llm_client.generate(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                model=model,
            )
            parsed = self._response_parser.parse(raw_response)

        except OracleUnavailableError as e:
            logger.warning("Grading oracle unavailable (%s), using fallback scorer", e)
            return fallback_grade(student_answer, max_points)

        except OracleResponseError as e:
            logger.warning(
                "Unparseable oracle reply (%s), using fallback scorer. Raw reply: %.500r",
                e,
                e.raw_response,
            )
            return fallback_grade(student_answer, max_points)

        return self._response_parser.to_grade(
            parsed, max_points, self._settings.fallback_confidence
        )

    def health_check(self) -> bool:
        """
        Check if the grading oracle is operational.

        Returns:
            True if an oracle is configured and reachable.
        """
        if self._llm_client is None:
            return False
        return self._llm_client.health_check()
