"""Core configuration for the orchestrator."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from maker_orchestrator.core.logging import configure_logging


class OracleConfig(BaseSettings):
    """Configuration for the oracle (LLM provider)."""

    provider: Literal["openai"] = Field(
        default="openai",
        description="LLM provider used to answer step prompts",
    )

    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use",
    )
    openai_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature; non-zero keeps attempts independent",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Override for OpenAI-compatible endpoints",
    )
    max_output_tokens: int = Field(
        default=256,
        gt=0,
        description="Upper bound on tokens generated per attempt",
    )

    model_config = SettingsConfigDict(
        env_prefix="MAKER_ORACLE_",
        env_file=".env",
        extra="ignore",
    )


class VotingConfig(BaseSettings):
    """Configuration for attempt fan-out and voting."""

    initial_k: int = Field(
        default=3,
        ge=1,
        description="Number of independent attempts in the first round of a step",
    )
    quorum_ratio: float = Field(
        default=0.5,
        ge=0.5,
        lt=1.0,
        description="A winning action needs more than quorum_ratio * k votes",
    )
    attempt_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Deadline for each oracle invocation",
    )
    transport_retries: int = Field(
        default=2,
        ge=0,
        description="Retries of a single invocation after a transport failure",
    )
    transport_backoff_seconds: float = Field(
        default=0.25,
        ge=0.0,
        description="Base backoff between transport retries",
    )
    max_workers: int | None = Field(
        default=None,
        gt=0,
        description="Worker threads for attempts (None = escalation ceiling)",
    )

    model_config = SettingsConfigDict(
        env_prefix="MAKER_VOTING_",
        env_file=".env",
        extra="ignore",
    )


class EscalationConfig(BaseSettings):
    """Configuration for per-step retry and escalation budgets."""

    max_retries: int = Field(
        default=3,
        ge=0,
        description="Retry rounds allowed per step before escalating",
    )
    k_growth_factor: float = Field(
        default=2.0,
        ge=1.0,
        description="Geometric growth of k between retry rounds",
    )
    max_k: int = Field(
        default=9,
        ge=1,
        description="Largest k used during ordinary retries",
    )
    escalation_k: int = Field(
        default=15,
        ge=1,
        description="k used once a step is escalated",
    )
    escalation_rounds: int = Field(
        default=1,
        ge=0,
        description="Rounds attempted at escalation_k before aborting",
    )

    model_config = SettingsConfigDict(
        env_prefix="MAKER_ESCALATION_",
        env_file=".env",
        extra="ignore",
    )


class CheckpointConfig(BaseSettings):
    """Configuration for checkpoint and audit persistence."""

    storage_path: Path = Field(
        default=Path(".maker"),
        description="Directory holding the checkpoint and audit log",
    )
    audit_log: bool = Field(
        default=False,
        description="Mirror step outcomes to an append-only JSON Lines file",
    )
    audit_max_entries: int = Field(
        default=1000,
        gt=0,
        description="Step outcomes retained in memory",
    )

    model_config = SettingsConfigDict(
        env_prefix="MAKER_CHECKPOINT_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def checkpoint_file(self) -> Path:
        """Path of the latest checkpoint."""

        return self.storage_path / "checkpoint.json"

    @property
    def audit_file(self) -> Path:
        """Path of the append-only audit log."""

        return self.storage_path / "audit.jsonl"


class MakerConfig(BaseSettings):
    """Main configuration for the orchestrator."""

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    max_steps: int | None = Field(
        default=None,
        gt=0,
        description="Abort once this many steps were applied in one run",
    )
    max_stalled_steps: int = Field(
        default=3,
        ge=0,
        description="Consecutive applied steps allowed to leave state unchanged",
    )

    oracle: OracleConfig = Field(
        default_factory=OracleConfig,
        description="Oracle configuration",
    )
    voting: VotingConfig = Field(
        default_factory=VotingConfig,
        description="Voting configuration",
    )
    escalation: EscalationConfig = Field(
        default_factory=EscalationConfig,
        description="Escalation configuration",
    )
    checkpoint: CheckpointConfig = Field(
        default_factory=CheckpointConfig,
        description="Checkpoint configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="MAKER_",
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_k_ladder(self) -> MakerConfig:
        if self.voting.initial_k > self.escalation.max_k:
            raise ValueError("voting.initial_k must not exceed escalation.max_k")
        if self.escalation.max_k > self.escalation.escalation_k:
            raise ValueError("escalation.max_k must not exceed escalation.escalation_k")
        return self

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        configure_logging(self.log_level)

        if self.debug:
            logging.getLogger("maker_orchestrator").setLevel(logging.DEBUG)
