"""Provider interface behind the oracle adapter."""

from abc import ABC, abstractmethod
from typing import Any


class LLMProvider(ABC):
    """A completion backend that answers one self-contained prompt per call.

    Providers never keep conversation history: two calls with the same prompt
    are independent samples. Retrying is left to the attempt executor, so a
    provider should fail fast and report transient failures as
    :class:`~maker_orchestrator.core.errors.TransportError`.
    """

    #: Short identifier used in logs.
    name: str = "provider"

    @abstractmethod
    def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> str:
        """Sample one completion for ``prompt``.

        Args:
            prompt: Complete step prompt, including the output schema.
            max_tokens: Cap on generated tokens.
            temperature: Sampling temperature; defaults to the provider's setting.
            timeout: Seconds left before the attempt deadline.
            **kwargs: Backend-specific request options.

        Returns:
            The raw completion text, unmodified.

        Raises:
            TransportError: The request failed before producing text.
        """
