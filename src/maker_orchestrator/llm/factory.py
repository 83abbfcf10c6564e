"""Builds oracles from configuration."""

import logging

from maker_orchestrator.core.config import OracleConfig
from maker_orchestrator.llm.openai_provider import OpenAIProvider
from maker_orchestrator.llm.oracle import ProviderOracle
from maker_orchestrator.llm.provider import LLMProvider

logger = logging.getLogger(__name__)


class LLMFactory:
    """Maps ``OracleConfig.provider`` to a provider implementation."""

    @staticmethod
    def create(config: OracleConfig) -> LLMProvider:
        """Create the configured provider.

        Raises:
            ValueError: If the provider is unknown or lacks credentials.
        """
        if config.provider == "openai":
            provider = OpenAIProvider(config)
        else:
            raise ValueError(f"Unsupported LLM provider: {config.provider}")

        logger.info(
            "LLM provider ready",
            extra={"provider": provider.name, "model": config.openai_model},
        )
        return provider

    @staticmethod
    def create_oracle(config: OracleConfig) -> ProviderOracle:
        """Wrap the configured provider as a stateless step oracle."""
        return ProviderOracle(LLMFactory.create(config), max_tokens=config.max_output_tokens)
