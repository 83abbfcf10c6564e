"""K-voting over validated attempts.

A round is won only by a canonical action that (a) reaches the quorum, which is
computed from the number of attempts *issued*, not the number accepted, and
(b) strictly beats every other action. Ties never resolve by attempt order, so
the result does not depend on the order verdicts arrive in.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from maker_orchestrator.core.errors import NoConsensusError

from .validator import ValidationVerdict


def majority_quorum(k: int, ratio: float = 0.5) -> int:
    """Smallest support count strictly greater than ``ratio * k``."""

    if k < 1:
        raise ValueError("k must be at least 1")
    if not 0.5 <= ratio < 1.0:
        raise ValueError("quorum ratio must be in [0.5, 1.0)")
    return math.floor(k * ratio) + 1


@dataclass(frozen=True, slots=True)
class VoteResult:
    won: bool
    quorum: int
    action: dict[str, Any] | None = None
    support: int = 0
    tally: dict[str, int] = field(default_factory=dict)
    accepted: int = 0
    rejected: int = 0

    @property
    def all_rejected(self) -> bool:
        return self.accepted == 0 and self.rejected > 0

    @property
    def no_responses(self) -> bool:
        """No attempt produced output at all (timeouts, transport failures)."""

        return self.accepted == 0 and self.rejected == 0

    def unwrap(self) -> dict[str, Any]:
        """Return the winning action or raise :class:`NoConsensusError`."""

        if self.won and self.action is not None:
            return self.action
        if self.all_rejected:
            raise NoConsensusError(
                f"no attempt passed validation ({self.rejected} rejected)", all_rejected=True
            )
        if self.no_responses:
            raise NoConsensusError("no attempt returned output")
        raise NoConsensusError(
            f"top support {self.support} below quorum {self.quorum} or tied "
            f"({len(self.tally)} distinct actions)"
        )


def decide(verdicts: Iterable[ValidationVerdict], quorum: int) -> VoteResult:
    """Reduce one round of verdicts to a winning action or no consensus."""

    if quorum < 1:
        raise ValueError("quorum must be at least 1")

    tally: Counter[str] = Counter()
    actions: dict[str, dict[str, Any]] = {}
    rejected = 0
    for verdict in verdicts:
        if not verdict.accepted or verdict.canonical is None or verdict.action is None:
            rejected += 1
            continue
        tally[verdict.canonical] += 1
        actions.setdefault(verdict.canonical, verdict.action)

    accepted = sum(tally.values())
    ranked = sorted(tally.values(), reverse=True)
    top = ranked[0] if ranked else 0
    runner_up = ranked[1] if len(ranked) > 1 else 0

    if top >= quorum and top > runner_up:
        (winner,) = [key for key, count in tally.items() if count == top]
        return VoteResult(
            won=True,
            quorum=quorum,
            action=actions[winner],
            support=top,
            tally=dict(tally),
            accepted=accepted,
            rejected=rejected,
        )

    return VoteResult(
        won=False,
        quorum=quorum,
        support=top,
        tally=dict(tally),
        accepted=accepted,
        rejected=rejected,
    )
