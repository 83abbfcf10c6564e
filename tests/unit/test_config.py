"""Unit tests for configuration."""

from __future__ import annotations

import json
import logging
from io import StringIO
from pathlib import Path

import pytest
from pydantic import ValidationError

from maker_orchestrator.core.config import (
    CheckpointConfig,
    EscalationConfig,
    MakerConfig,
    OracleConfig,
    VotingConfig,
)
from maker_orchestrator.core.logging import configure_logging


def test_oracle_config_defaults() -> None:
    """Test oracle config default values."""
    config = OracleConfig(openai_api_key="test-key")

    assert config.provider == "openai"
    assert config.openai_model == "gpt-4o-mini"
    assert config.openai_temperature == 0.7
    assert config.max_output_tokens == 256


def test_voting_config_defaults() -> None:
    config = VotingConfig()

    assert config.initial_k == 3
    assert config.quorum_ratio == 0.5
    assert config.max_workers is None


def test_voting_config_rejects_sub_majority_quorum() -> None:
    with pytest.raises(ValidationError):
        VotingConfig(quorum_ratio=0.4)


def test_checkpoint_config_paths(tmp_path: Path) -> None:
    config = CheckpointConfig(storage_path=tmp_path)

    assert config.checkpoint_file == tmp_path / "checkpoint.json"
    assert config.audit_file == tmp_path / "audit.jsonl"
    assert config.audit_log is False


def test_maker_config_composition() -> None:
    """Test orchestrator config with nested configs."""
    config = MakerConfig(
        log_level="DEBUG",
        debug=True,
    )

    assert config.log_level == "DEBUG"
    assert config.debug is True
    assert isinstance(config.oracle, OracleConfig)
    assert isinstance(config.voting, VotingConfig)
    assert isinstance(config.escalation, EscalationConfig)
    assert isinstance(config.checkpoint, CheckpointConfig)


def test_maker_config_rejects_inverted_k_ladder() -> None:
    with pytest.raises(ValidationError):
        MakerConfig(
            voting=VotingConfig(initial_k=5),
            escalation=EscalationConfig(max_k=9, escalation_k=7),
        )

    with pytest.raises(ValidationError):
        MakerConfig(
            voting=VotingConfig(initial_k=11),
            escalation=EscalationConfig(max_k=9, escalation_k=15),
        )


def test_settings_load_from_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MAKER_VOTING_INITIAL_K", raising=False)
    monkeypatch.delenv("MAKER_ESCALATION_MAX_RETRIES", raising=False)
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text(
        "\n".join(
            [
                "MAKER_VOTING_INITIAL_K=5",
                "MAKER_ESCALATION_MAX_RETRIES=7",
                "",
            ]
        ),
        encoding="utf-8",
    )

    assert VotingConfig().initial_k == 5
    assert EscalationConfig().max_retries == 7


def test_json_logging_carries_step_id_and_extra_fields() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    stream = StringIO()
    configure_logging("INFO", stream=stream)
    try:
        logging.getLogger("maker_orchestrator.test").info(
            "Step applied", extra={"step_id": "step-1-abc", "k": 3}
        )
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)

    record = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert record["message"] == "Step applied"
    assert record["level"] == "INFO"
    assert record["step_id"] == "step-1-abc"
    assert record["extra"] == {"k": 3}
    assert logging.getLogger("openai").level == logging.WARNING
