"""Anthropic completion client used for structure extraction."""
from typing import Optional

import anthropic
from anthropic import Anthropic
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    RetryError,
)

from utils.logger import setup_logger
from utils.errors import ExtractionError
import config

logger = setup_logger(__name__)

TRANSIENT_ERRORS = (
    anthropic.RateLimitError,
    anthropic.InternalServerError,
    anthropic.OverloadedError,
    anthropic.APIConnectionError,
)

# Process-wide SDK client, created on first use and kept for the process lifetime.
_anthropic_client: Optional[Anthropic] = None


def get_anthropic_client() -> Anthropic:
    """Return the shared Anthropic client, creating it on first use."""
    global _anthropic_client
    if _anthropic_client is None:
        _anthropic_client = Anthropic(api_key=config.ANTHROPIC_API_KEY)
        logger.debug("Anthropic client created")
    return _anthropic_client


def _log_retry(retry_state) -> None:
    error = retry_state.outcome.exception()
    logger.warning(
        f"Transient LLM error ({type(error).__name__}). "
        f"Retry {retry_state.attempt_number}/{config.LLM_MAX_RETRIES}"
    )


class AnthropicCompletionClient:
    """Thin ``complete(system, user)`` wrapper over the Messages API."""

    def __init__(
        self,
        client: Optional[Anthropic] = None,
        model: str = config.ANTHROPIC_MODEL
    ):
        """Initialize completion client.

        Args:
            client: Anthropic SDK client; the shared one is used when omitted
            model: Model name to use
        """
        self._client = client
        self.model = model
        self.total_tokens_used = 0

    @property
    def client(self) -> Anthropic:
        if self._client is None:
            self._client = get_anthropic_client()
        return self._client

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = config.LLM_MAX_TOKENS,
        temperature: float = config.LLM_TEMPERATURE
    ) -> str:
        """Run one completion and return its text.

        Args:
            system_prompt: System instructions
            user_prompt: User message
            max_tokens: Output token budget
            temperature: Sampling temperature

        Returns:
            Response text

        Raises:
            ExtractionError: If the provider returns no content, or keeps
                failing with transient errors
        """
        try:
            message = self._create_message(system_prompt, user_prompt, max_tokens, temperature)
        except RetryError as e:
            raise ExtractionError(
                f"LLM call failed after {config.LLM_MAX_RETRIES} attempts: {e.last_attempt.exception()}"
            ) from e

        self.total_tokens_used += message.usage.input_tokens + message.usage.output_tokens

        text = "".join(
            block.text for block in message.content if getattr(block, "type", None) == "text"
        )
        if not text:
            raise ExtractionError("No response from LLM")

        if message.stop_reason == "max_tokens":
            logger.warning(f"LLM response truncated at {max_tokens} tokens")

        return text

    @retry(
        stop=stop_after_attempt(config.LLM_MAX_RETRIES),
        wait=wait_exponential(multiplier=config.RETRY_BACKOFF_MULTIPLIER, min=2, max=60),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        before_sleep=_log_retry,
    )
    def _create_message(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float
    ):
        return self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[
                {"role": "user", "content": user_prompt}
            ]
        )
