"""Error taxonomy for step execution.

Only :class:`FatalTaskError` and :class:`CheckpointStorageError` ever escape the
orchestration loop. Everything else is resolved by the escalation controller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from maker_orchestrator.state.models import Checkpoint, StepOutcome


class MakerError(Exception):
    """Base class for all orchestrator errors."""


class TransportError(MakerError):
    """An oracle or tool call failed at the network/IO layer."""


class NoConsensusError(MakerError):
    """No canonical action reached quorum in a voting round."""

    def __init__(self, message: str, *, all_rejected: bool = False) -> None:
        super().__init__(message)
        self.all_rejected = all_rejected


class StateTransitionError(MakerError):
    """A well-formed action was rejected by the domain."""


class CheckpointStorageError(MakerError):
    """Checkpoint storage could not be read or written."""


class CheckpointFormatError(MakerError):
    """A stored checkpoint cannot be restored by this task definition."""


class FatalTaskError(MakerError):
    """Retry and escalation budgets are exhausted; the task is frozen.

    Carries everything a caller needs to inspect or resume the task: the failing
    step, the reason, the recorded outcomes and the last durable checkpoint.
    """

    def __init__(
        self,
        message: str,
        *,
        reason: str,
        cursor: int,
        step_id: str | None = None,
        outcomes: list[StepOutcome] | None = None,
        checkpoint: Checkpoint | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.cursor = cursor
        self.step_id = step_id
        self.outcomes = list(outcomes or [])
        self.checkpoint = checkpoint

    @property
    def step_number(self) -> int:
        """1-based number of the step that could not be completed."""

        return self.cursor + 1
