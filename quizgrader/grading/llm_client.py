"""
LLM client for the grading oracle.

Thin wrapper around the OpenAI SDK for any OpenAI-compatible endpoint:
a per-call timeout, a bounded number of retries with exponential backoff,
and every failure reported as OracleUnavailableError.
"""

import logging
import time

from openai import APIConnectionError, APIStatusError, OpenAI, RateLimitError

from quizgrader.config import Settings, get_settings

logger = logging.getLogger(__name__)

_RETRY_BASE_DELAY = 1.0  # seconds
_RETRY_MAX_DELAY = 10.0  # seconds


class OracleUnavailableError(Exception):
    """Raised when the grading oracle cannot be reached or refuses the request."""

    def __init__(self, message: str, cause: Exception | None = None, retryable: bool = False):
        self.cause = cause
        self.retryable = retryable
        super().__init__(message)


class LLMClient:
    """
    Chat-completions client used by the grading oracle.

    The SDK's own retries are disabled; ``oracle_max_retries`` from the
    settings is the only retry budget.
    """

    def __init__(self, settings: Settings | None = None):
        """
        Create the SDK client from settings.

        Raises:
            OracleUnavailableError: If no API key is configured.
        """
        self._settings = settings or get_settings()
        if not self._settings.oracle_configured:
            raise OracleUnavailableError("No API key configured for the grading oracle")

        self._max_retries = self._settings.oracle_max_retries
        self._client = OpenAI(
            api_key=self._settings.oracle_api_key,
            base_url=self._settings.oracle_base_url,
            timeout=self._settings.oracle_timeout_seconds,
            max_retries=0,
        )

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """
        Send one system + user exchange and return the reply text.

        Args:
            system_prompt: Grader role and rules.
            user_prompt: The grading task.
            model: Model name; the configured oracle model when None.
            temperature: Sampling temperature; the configured one when None.
            max_tokens: Reply length limit; the configured one when None.

        Raises:
            OracleUnavailableError: On a non-retryable error, an empty reply,
                or when the retry budget is spent.
        """
        request = {
            "model": model or self._settings.oracle_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": (
                temperature if temperature is not None else self._settings.oracle_temperature
            ),
            "max_tokens": max_tokens or self._settings.oracle_max_tokens,
        }

        attempt = 0
        while True:
            try:
                response = self._client.chat.completions.create(**request)  # type: ignore[call-overload]
            except (APIConnectionError, APIStatusError) as e:
                if not self._is_retryable(e):
                    raise OracleUnavailableError(
                        f"Grading oracle rejected the request: {_describe(e)}", cause=e
                    ) from e
                if attempt >= self._max_retries:
                    raise OracleUnavailableError(
                        f"Grading oracle unavailable after {attempt + 1} attempts: {_describe(e)}",
                        cause=e,
                        retryable=True,
                    ) from e
                self._backoff(attempt, e)
                attempt += 1
                continue

            content = response.choices[0].message.content if response.choices else None
            if not content:
                raise OracleUnavailableError("Empty response from grading oracle")
            return content

    @staticmethod
    def _is_retryable(error: Exception) -> bool:
        """Rate limits, connection failures (timeouts included) and 5xx responses."""
        if isinstance(error, (RateLimitError, APIConnectionError)):
            return True
        return isinstance(error, APIStatusError) and error.status_code >= 500

    def _backoff(self, attempt: int, error: Exception) -> None:
        delay = self._calculate_delay(attempt)
        logger.info(
            "Oracle call failed (%s), retry %d of %d in %.1fs",
            type(error).__name__,
            attempt + 1,
            self._max_retries,
            delay,
        )
        time.sleep(delay)

    @staticmethod
    def _calculate_delay(attempt: int) -> float:
        """Exponential backoff for a 0-indexed attempt, capped."""
        return min(_RETRY_BASE_DELAY * 2**attempt, _RETRY_MAX_DELAY)

    def health_check(self) -> bool:
        """Send a minimal request; True when the endpoint answers."""
        try:
            self.generate("You are a health check.", "Reply with OK.", max_tokens=5)
        except OracleUnavailableError as e:
            logger.warning("Oracle health check failed: %s", e)
            return False
        return True


def _describe(error: Exception) -> str:
    if isinstance(error, APIStatusError):
        return f"{type(error).__name__} ({error.status_code}): {error.message}"
    return f"{type(error).__name__}: {error}"
