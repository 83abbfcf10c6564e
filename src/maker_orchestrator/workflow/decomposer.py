from __future__ import annotations

from typing import Protocol

from maker_orchestrator.state.models import AtomicState

from .contracts import StepContract, TaskComplete


class Decomposer(Protocol):
    """Turns the current atomic state into the next atomic step.

    Decomposers are stateless: the contract is a function of ``state`` alone and
    never of earlier oracle exchanges. Any memory a domain needs must live in
    ``state.data``.
    """

    def next(self, state: AtomicState) -> StepContract | TaskComplete: ...
