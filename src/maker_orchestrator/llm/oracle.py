"""Oracle boundary: one stateless call per attempt."""

from __future__ import annotations

import logging
from typing import Protocol

from maker_orchestrator.llm.provider import LLMProvider

logger = logging.getLogger(__name__)


class Oracle(Protocol):
    """A probabilistic step solver.

    Implementations must be stateless between calls and safe to call from
    several threads at once.
    """

    def invoke(self, prompt: str, schema_hint: str, timeout: float) -> str:
        """Return raw text for ``prompt`` or raise ``TransportError``."""
        ...


class ProviderOracle:
    """Adapts an :class:`LLMProvider` to the :class:`Oracle` protocol."""

    def __init__(self, provider: LLMProvider, *, max_tokens: int | None = None) -> None:
        self.provider = provider
        self.max_tokens = max_tokens

    def invoke(self, prompt: str, schema_hint: str, timeout: float) -> str:
        if schema_hint not in prompt:
            prompt = f"{prompt}\n\nOUTPUT SCHEMA: {schema_hint}"
        return self.provider.generate(prompt, max_tokens=self.max_tokens, timeout=timeout)
