"""Per-step escalation state machine.

Every step starts in INIT and moves through AWAIT_VOTES until it is APPLIED or
ABORTED. Failed rounds go to RETRY (k grows geometrically up to ``max_k``) while
the retry budget lasts, then to ESCALATE (k jumps to ``escalation_k`` and the
step is flagged for review), and finally to ABORTED. The number of rounds is
bounded by ``1 + max_retries + escalation_rounds``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from maker_orchestrator.core.config import EscalationConfig, VotingConfig
from maker_orchestrator.state.models import RoundRecord, RoundResult

logger = logging.getLogger(__name__)


class EscalationState(str, Enum):
    INIT = "init"
    AWAIT_VOTES = "await_votes"
    APPLIED = "applied"
    RETRY = "retry"
    ESCALATE = "escalate"
    ABORTED = "aborted"


ALLOWED_TRANSITIONS: dict[EscalationState, set[EscalationState]] = {
    EscalationState.INIT: {EscalationState.AWAIT_VOTES},
    EscalationState.AWAIT_VOTES: {
        EscalationState.APPLIED,
        EscalationState.RETRY,
        EscalationState.ESCALATE,
        EscalationState.ABORTED,
    },
    EscalationState.RETRY: {EscalationState.AWAIT_VOTES},
    EscalationState.ESCALATE: {EscalationState.AWAIT_VOTES, EscalationState.ABORTED},
    EscalationState.APPLIED: set(),
    EscalationState.ABORTED: set(),
}

TERMINAL_STATES = frozenset({EscalationState.APPLIED, EscalationState.ABORTED})


class IllegalTransitionError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class EscalationPolicy:
    initial_k: int = 3
    k_growth_factor: float = 2.0
    max_k: int = 9
    max_retries: int = 3
    escalation_k: int = 15
    escalation_rounds: int = 1
    quorum_ratio: float = 0.5

    def __post_init__(self) -> None:
        if not 1 <= self.initial_k <= self.max_k <= self.escalation_k:
            raise ValueError("expected 1 <= initial_k <= max_k <= escalation_k")
        if self.k_growth_factor < 1.0:
            raise ValueError("k_growth_factor must be >= 1")
        if self.max_retries < 0 or self.escalation_rounds < 0:
            raise ValueError("retry and escalation budgets must be non-negative")

    @classmethod
    def from_config(cls, voting: VotingConfig, escalation: EscalationConfig) -> EscalationPolicy:
        return cls(
            initial_k=voting.initial_k,
            k_growth_factor=escalation.k_growth_factor,
            max_k=escalation.max_k,
            max_retries=escalation.max_retries,
            escalation_k=escalation.escalation_k,
            escalation_rounds=escalation.escalation_rounds,
            quorum_ratio=voting.quorum_ratio,
        )

    @property
    def max_rounds(self) -> int:
        return 1 + self.max_retries + self.escalation_rounds

    def grow(self, k: int) -> int:
        return min(max(math.ceil(k * self.k_growth_factor), k), self.max_k)


class EscalationHook(Protocol):
    """Receives steps flagged for external or manual review."""

    def on_escalate(self, controller: EscalationController) -> None: ...


class LoggingEscalationHook:
    def on_escalate(self, controller: EscalationController) -> None:
        logger.warning(
            "Step escalated for review",
            extra={
                "step_id": controller.step_id,
                "retries_used": controller.retries_used,
                "k": controller.k,
            },
        )


@dataclass
class EscalationController:
    """Tracks one step's rounds; owns no state beyond that step."""

    step_id: str
    policy: EscalationPolicy
    hook: EscalationHook | None = None
    state: EscalationState = EscalationState.INIT
    k: int = 0
    retries_used: int = 0
    escalation_rounds_used: int = 0
    escalated: bool = False
    rounds: list[RoundRecord] = field(default_factory=list)

    def _move(self, to: EscalationState) -> None:
        allowed = ALLOWED_TRANSITIONS.get(self.state, set())
        if to not in allowed:
            raise IllegalTransitionError(f"Illegal transition: {self.state.value} -> {to.value}")
        self.state = to

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def begin(self) -> int:
        """Start the first round and return its k."""

        self._move(EscalationState.AWAIT_VOTES)
        self.k = self.policy.initial_k
        return self.k

    def record_win(self, *, support: int, accepted: int, rejected: int, absent: int) -> None:
        self.rounds.append(
            RoundRecord(
                k=self.k,
                result=RoundResult.WIN,
                support=support,
                accepted=accepted,
                rejected=rejected,
                absent=absent,
            )
        )
        self._move(EscalationState.APPLIED)

    def record_failure(
        self,
        result: RoundResult,
        *,
        support: int = 0,
        accepted: int = 0,
        rejected: int = 0,
        absent: int = 0,
    ) -> EscalationState:
        """Record a failed round and decide between RETRY, ESCALATE and ABORTED."""

        if result is RoundResult.WIN:
            raise ValueError("a winning round is not a failure")

        self.rounds.append(
            RoundRecord(
                k=self.k,
                result=result,
                support=support,
                accepted=accepted,
                rejected=rejected,
                absent=absent,
            )
        )

        if not self.escalated:
            if self.retries_used < self.policy.max_retries:
                self.retries_used += 1
                self._move(EscalationState.RETRY)
                self.k = self.policy.grow(self.k)
                logger.debug(
                    "Step retry scheduled",
                    extra={"step_id": self.step_id, "k": self.k, "result": result.value},
                )
                return self.state

            self.escalated = True
            self._move(EscalationState.ESCALATE)
            self.k = self.policy.escalation_k
            if self.hook is not None:
                self.hook.on_escalate(self)
            if self.policy.escalation_rounds == 0:
                self._move(EscalationState.ABORTED)
            return self.state

        if self.escalation_rounds_used < self.policy.escalation_rounds:
            self._move(EscalationState.ESCALATE)
            return self.state

        self._move(EscalationState.ABORTED)
        return self.state

    def next_round(self) -> int:
        """Leave RETRY/ESCALATE for another round and return its k."""

        if self.state is EscalationState.ESCALATE:
            self.escalation_rounds_used += 1
        self._move(EscalationState.AWAIT_VOTES)
        return self.k
