"""OpenAI LLM provider implementation."""

import logging
from typing import Any

import openai
from openai import OpenAI

from maker_orchestrator.core.config import OracleConfig
from maker_orchestrator.core.errors import TransportError
from maker_orchestrator.llm.provider import LLMProvider

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class OpenAIProvider(LLMProvider):
    """Chat-completions backend; one user message per call, no history."""

    name = "openai"

    def __init__(self, config: OracleConfig, client: OpenAI | None = None) -> None:
        """Initialize the OpenAI provider.

        Args:
            config: Oracle configuration.
            client: Pre-built client (mainly for tests).

        Raises:
            ValueError: If API key is not provided.
        """
        if client is None and not config.openai_api_key:
            raise ValueError("OpenAI API key is required")

        self.config = config
        # Retries are owned by the attempt executor; the SDK must not retry on its own.
        self.client = client or OpenAI(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            max_retries=0,
        )
        self.model = config.openai_model
        self.temperature = config.openai_temperature

        logger.debug("OpenAI client created", extra={"model": self.model})

    def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> str:
        """Sample one chat completion for a step prompt.

        Args:
            prompt: The input prompt.
            max_tokens: Maximum tokens to generate.
            temperature: Sampling temperature.
            timeout: Per-request timeout in seconds.
            **kwargs: Additional OpenAI-specific parameters.

        Returns:
            Generated text completion.

        Raises:
            TransportError: On connection failures, timeouts, rate limits and 5xx.
        """
        temp = temperature if temperature is not None else self.temperature

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens or self.config.max_output_tokens,
                temperature=temp,
                timeout=timeout,
                **kwargs,
            )
        except _TRANSIENT_ERRORS as e:
            raise TransportError(f"OpenAI request failed: {e}") from e

        # A refusal or tool call has no text; the validator rejects the empty string.
        return response.choices[0].message.content or ""
