"""
Grading Module.

Per-answer grading: exact match for objective questions, the LLM oracle
with a deterministic local fallback for short answers.
"""

from quizgrader.grading.evaluator import AnswerEvaluator
from quizgrader.grading.fallback import fallback_grade, is_non_answer
from quizgrader.grading.llm_client import LLMClient, OracleUnavailableError
from quizgrader.grading.oracle import GradingOracleClient
from quizgrader.grading.parser import OracleResponseError, ResponseParser
from quizgrader.grading.prompt_builder import PromptBuilder

__all__ = [
    "AnswerEvaluator",
    "GradingOracleClient",
    "LLMClient",
    "OracleResponseError",
    "OracleUnavailableError",
    "PromptBuilder",
    "ResponseParser",
    "fallback_grade",
    "is_non_answer",
]
