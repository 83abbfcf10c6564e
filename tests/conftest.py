"""Test configuration and fixtures."""

from pathlib import Path

import pytest

from maker_orchestrator.core.config import (
    CheckpointConfig,
    EscalationConfig,
    MakerConfig,
    OracleConfig,
    VotingConfig,
)
from maker_orchestrator.state.checkpoint import InMemoryCheckpointStorage
from maker_orchestrator.state.store import StateStore
from maker_orchestrator.tasks import counter


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    state_dir = tmp_path / ".maker"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def oracle_config() -> OracleConfig:
    """Provide a test oracle configuration."""
    return OracleConfig(
        provider="openai",
        openai_api_key="test-key",
        openai_model="gpt-4o-mini",
    )


@pytest.fixture
def voting_config() -> VotingConfig:
    """Provide a fast voting configuration."""
    return VotingConfig(
        initial_k=3,
        attempt_timeout_seconds=5.0,
        transport_retries=1,
        transport_backoff_seconds=0.0,
    )


@pytest.fixture
def escalation_config() -> EscalationConfig:
    """Provide a test escalation configuration."""
    return EscalationConfig(
        max_retries=3,
        k_growth_factor=2.0,
        max_k=9,
        escalation_k=15,
        escalation_rounds=1,
    )


@pytest.fixture
def checkpoint_config(temp_state_dir: Path) -> CheckpointConfig:
    """Provide a test checkpoint configuration."""
    return CheckpointConfig(
        storage_path=temp_state_dir,
        audit_log=False,
    )


@pytest.fixture
def maker_config(
    oracle_config: OracleConfig,
    voting_config: VotingConfig,
    escalation_config: EscalationConfig,
    checkpoint_config: CheckpointConfig,
) -> MakerConfig:
    """Provide a test orchestrator configuration."""
    return MakerConfig(
        log_level="DEBUG",
        debug=True,
        oracle=oracle_config,
        voting=voting_config,
        escalation=escalation_config,
        checkpoint=checkpoint_config,
    )


@pytest.fixture
def memory_storage() -> InMemoryCheckpointStorage:
    return InMemoryCheckpointStorage()


@pytest.fixture
def counter_store(memory_storage: InMemoryCheckpointStorage) -> StateStore:
    """A counter task store starting at zero."""
    return StateStore(
        counter.initial_state(),
        dispatcher=counter.build_dispatcher(),
        storage=memory_storage,
    )
