"""Unit tests for k-voting and quorum computation."""

from __future__ import annotations

import itertools
import random

import pytest

from maker_orchestrator.core.errors import NoConsensusError
from maker_orchestrator.workflow.validator import RejectReason, ValidationVerdict
from maker_orchestrator.workflow.voting import decide, majority_quorum


def _votes(*labels: str | None) -> list[ValidationVerdict]:
    """Build verdicts; None stands for a rejected attempt."""
    verdicts = []
    for index, label in enumerate(labels):
        if label is None:
            verdicts.append(ValidationVerdict.reject(index, RejectReason.UNPARSABLE))
        else:
            verdicts.append(ValidationVerdict.accept(index, {"kind": "pick", "value": label}))
    return verdicts


@pytest.mark.parametrize(
    ("k", "ratio", "expected"),
    [(1, 0.5, 1), (2, 0.5, 2), (3, 0.5, 2), (4, 0.5, 3), (5, 0.5, 3), (6, 0.5, 4), (9, 0.6, 6), (5, 0.75, 4)],
)
def test_majority_quorum(k: int, ratio: float, expected: int) -> None:
    assert majority_quorum(k, ratio) == expected


def test_majority_quorum_rejects_bad_inputs() -> None:
    with pytest.raises(ValueError):
        majority_quorum(0)
    with pytest.raises(ValueError):
        majority_quorum(5, 0.4)


def test_strict_majority_wins() -> None:
    result = decide(_votes("a", "b", "a", "a", None), quorum=majority_quorum(5))

    assert result.won
    assert result.action == {"kind": "pick", "value": "a"}
    assert result.support == 3
    assert result.accepted == 4
    assert result.rejected == 1
    assert result.unwrap() == {"kind": "pick", "value": "a"}


def test_plurality_below_quorum_is_no_consensus() -> None:
    # Rejected and absent attempts still count toward k.
    result = decide(_votes("a", "a", "b", None, None), quorum=majority_quorum(5))

    assert not result.won
    assert result.support == 2
    with pytest.raises(NoConsensusError) as excinfo:
        result.unwrap()
    assert not excinfo.value.all_rejected


def test_tie_is_no_consensus_even_when_quorum_is_met() -> None:
    result = decide(_votes("a", "a", "b", "b"), quorum=2)

    assert not result.won
    assert result.tally == {
        '{"kind":"pick","value":"a"}': 2,
        '{"kind":"pick","value":"b"}': 2,
    }


def test_all_rejected_is_reported() -> None:
    result = decide(_votes(None, None, None), quorum=2)

    assert not result.won
    assert result.all_rejected
    assert not result.no_responses
    with pytest.raises(NoConsensusError) as excinfo:
        result.unwrap()
    assert excinfo.value.all_rejected


def test_empty_round_reports_no_responses() -> None:
    result = decide([], quorum=2)

    assert not result.won
    assert result.accepted == 0
    assert result.no_responses
    assert not result.all_rejected
    with pytest.raises(NoConsensusError) as excinfo:
        result.unwrap()
    assert not excinfo.value.all_rejected


def test_quorum_must_be_positive() -> None:
    with pytest.raises(ValueError):
        decide(_votes("a"), quorum=0)


def test_decision_is_independent_of_verdict_order() -> None:
    verdicts = _votes("a", "b", "a", None, "a", "c", "b")
    expected = decide(verdicts, quorum=majority_quorum(7))

    for perm in itertools.islice(itertools.permutations(verdicts), 500):
        result = decide(perm, quorum=majority_quorum(7))
        assert (result.won, result.action, result.support) == (
            expected.won,
            expected.action,
            expected.support,
        )


def test_win_implies_majority_of_k_and_strict_lead() -> None:
    rng = random.Random(1234)
    for _ in range(2000):
        k = rng.randint(1, 9)
        labels = [rng.choice(["a", "b", "c", None]) for _ in range(rng.randint(0, k))]
        result = decide(_votes(*labels), quorum=majority_quorum(k))

        counts = sorted(
            (labels.count(x) for x in ("a", "b", "c") if labels.count(x)), reverse=True
        )
        top = counts[0] if counts else 0
        second = counts[1] if len(counts) > 1 else 0
        assert result.won == (top > k / 2 and top > second)
        if result.won:
            assert result.support == top
