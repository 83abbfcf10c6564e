"""LLM package initialization."""

from maker_orchestrator.llm.oracle import Oracle, ProviderOracle
from maker_orchestrator.llm.provider import LLMProvider

__all__ = [
    "LLMProvider",
    "Oracle",
    "ProviderOracle",
]
