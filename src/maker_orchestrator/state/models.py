"""Persisted records: atomic state, checkpoints and step outcomes.

These are the only things that outlive a step. Raw attempt text never appears in
any of them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CHECKPOINT_FORMAT_VERSION = 1


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


class AtomicState(BaseModel):
    """The only memory of a task: a bounded domain value plus a step cursor."""

    model_config = ConfigDict(frozen=True)

    task_type: str
    version: int = Field(default=1, ge=1, description="State schema version")
    cursor: int = Field(default=0, ge=0, description="Number of applied steps")
    data: dict[str, Any] = Field(default_factory=dict)


class Checkpoint(BaseModel):
    """Recovery unit written after every applied step."""

    format_version: int = Field(default=CHECKPOINT_FORMAT_VERSION)
    task_type: str
    state: AtomicState
    saved_at: str = Field(default_factory=_utc_iso_now)

    @property
    def cursor(self) -> int:
        return self.state.cursor


class RoundResult(str, Enum):
    WIN = "win"
    NO_CONSENSUS = "no_consensus"
    ALL_REJECTED = "all_rejected"
    NO_RESPONSES = "no_responses"
    STATE_TRANSITION_ERROR = "state_transition_error"


class RoundRecord(BaseModel):
    """Compact summary of one voting round."""

    k: int
    result: RoundResult
    support: int = 0
    accepted: int = 0
    rejected: int = 0
    absent: int = 0


class StepStatus(str, Enum):
    APPLIED = "applied"
    ABORTED = "aborted"


class StepOutcome(BaseModel):
    """Terminal record for a step, kept in the audit trail."""

    step_id: str
    step_number: int
    status: StepStatus
    action: dict[str, Any] | None = None
    support: int = 0
    k: int = 0
    retries_used: int = 0
    escalated: bool = False
    rounds: list[RoundRecord] = Field(default_factory=list)
    recorded_at: str = Field(default_factory=_utc_iso_now)
