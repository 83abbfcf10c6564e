"""Unit tests for step contracts and red-flag validation."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from maker_orchestrator.tasks import counter
from maker_orchestrator.workflow.contracts import (
    Attempt,
    FieldSpec,
    OutputSchema,
    StepContract,
    extract_payload,
)
from maker_orchestrator.workflow.validator import RejectReason, Validator, check

SCHEMA = OutputSchema(
    name="move",
    fields=(
        FieldSpec(name="kind", kind="string", choices=("move",)),
        FieldSpec(name="piece", kind="string", max_length=8),
        FieldSpec(name="to", kind="integer"),
        FieldSpec(name="capture", kind="boolean"),
    ),
    max_chars=120,
)


def _attempt(raw: str, index: int = 0) -> Attempt:
    return Attempt(index=index, raw=raw, duration_seconds=0.01)


def test_contract_step_id_is_derived_from_cursor_and_content() -> None:
    a = StepContract.issue(cursor=4, instruction={"current": 4}, schema=counter.STEP_SCHEMA)
    b = StepContract.issue(cursor=4, instruction={"current": 4}, schema=counter.STEP_SCHEMA)
    c = StepContract.issue(cursor=4, instruction={"current": 5}, schema=counter.STEP_SCHEMA)

    assert a.step_id == b.step_id
    assert a.step_id.startswith("step-5-")
    assert a.step_id != c.step_id
    assert a.step_number == 5


def test_contract_rejects_negative_cursor() -> None:
    with pytest.raises(ValueError):
        StepContract.issue(cursor=-1, instruction={}, schema=counter.STEP_SCHEMA)


def test_prompt_carries_only_the_contract() -> None:
    contract = StepContract.issue(
        cursor=9, instruction={"task": "Increment.", "current": 9}, schema=counter.STEP_SCHEMA
    )
    prompt = contract.render_prompt()

    assert prompt.startswith("Increment.")
    assert extract_payload(prompt) == {"task": "Increment.", "current": 9}
    assert counter.STEP_SCHEMA.describe() in prompt


def test_extract_payload_requires_input_line() -> None:
    with pytest.raises(ValueError):
        extract_payload("no payload here")


def test_schema_rejects_duplicate_or_misplaced_constraints() -> None:
    with pytest.raises(ValidationError):
        OutputSchema(
            name="dup",
            fields=(FieldSpec(name="a", kind="string"), FieldSpec(name="a", kind="integer")),
        )
    with pytest.raises(ValidationError):
        FieldSpec(name="n", kind="integer", max_length=3)


def test_accepts_exact_shape_and_canonicalizes() -> None:
    raw = '\n {"to": 12, "capture": false, "kind": "move", "piece": "knight"} \n'

    verdict = check(_attempt(raw), SCHEMA)

    assert verdict.accepted
    assert verdict.action == {"kind": "move", "piece": "knight", "to": 12, "capture": False}
    assert verdict.canonical == '{"capture":false,"kind":"move","piece":"knight","to":12}'


def test_equivalent_outputs_share_a_canonical_form() -> None:
    a = check(_attempt('{"kind":"move","piece":"rook","to":3,"capture":true}'), SCHEMA)
    b = check(_attempt('{ "capture" : true , "to" : 3 , "piece" : "rook" , "kind" : "move" }'), SCHEMA)

    assert a.canonical == b.canonical


@pytest.mark.parametrize(
    ("raw", "reason"),
    [
        ("", RejectReason.UNPARSABLE),
        ("   ", RejectReason.UNPARSABLE),
        ('{"kind": "move", "piece": "rook", "to": 3', RejectReason.UNPARSABLE),
        ('Sure! {"kind":"move","piece":"rook","to":3,"capture":true}', RejectReason.UNPARSABLE),
        ('```json\n{"kind":"move","piece":"rook","to":3,"capture":true}\n```', RejectReason.UNPARSABLE),
        ('{"kind":"move","piece":"rook","to":3,"capture":true} and more', RejectReason.UNPARSABLE),
        ('{"kind":"move","piece":"rook","to":3}', RejectReason.SCHEMA_MISMATCH),
        ('{"kind":"move","piece":"rook","to":3,"capture":true,"why":"x"}', RejectReason.SCHEMA_MISMATCH),
        ('{"kind":"move","piece":"rook","to":"3","capture":true}', RejectReason.SCHEMA_MISMATCH),
        ('{"kind":"move","piece":"rook","to":3,"capture":1}', RejectReason.SCHEMA_MISMATCH),
        ('{"kind":"jump","piece":"rook","to":3,"capture":true}', RejectReason.SCHEMA_MISMATCH),
        ('["move","rook",3,true]', RejectReason.SCHEMA_MISMATCH),
        ('{"kind":"move","piece":"bishop-of-doom","to":3,"capture":true}', RejectReason.LENGTH_EXCEEDED),
        ('{"kind":"move","piece":"rook","to":3,"capture":true}' + " " * 100, RejectReason.LENGTH_EXCEEDED),
        ('{"kind":"move","piece":"rook","to":3,"to":4,"capture":true}', RejectReason.SCHEMA_MISMATCH),
        ('{"kind":"move","piece":"rook","to":3,"capture":true,"capture":false}', RejectReason.SCHEMA_MISMATCH),
    ],
)
def test_rejects_fail_closed(raw: str, reason: RejectReason) -> None:
    verdict = check(_attempt(raw, index=2), SCHEMA)

    assert not verdict.accepted
    assert verdict.action is None
    assert verdict.canonical is None
    assert verdict.reason is reason
    assert verdict.attempt_index == 2


def test_validator_checks_every_attempt() -> None:
    good = json.dumps({"kind": "increment", "value": 1})
    attempts = [_attempt(good, 0), _attempt("oops", 1), _attempt(good, 2)]

    verdicts = Validator().check_all(attempts, counter.STEP_SCHEMA)

    assert [v.accepted for v in verdicts] == [True, False, True]
    assert [v.attempt_index for v in verdicts] == [0, 1, 2]


RATED = OutputSchema(
    name="rated",
    fields=(
        FieldSpec(name="kind", kind="string", choices=("rate",)),
        FieldSpec(name="stars", kind="integer", choices=(1, 2, 3)),
    ),
)


def test_choices_keep_the_declared_type() -> None:
    assert check(_attempt('{"kind":"rate","stars":1}'), RATED).accepted

    for raw in (
        '{"kind":"rate","stars":true}',
        '{"kind":"rate","stars":"1"}',
        '{"kind":"rate","stars":1.0}',
        '{"kind":"rate","stars":4}',
    ):
        verdict = check(_attempt(raw), RATED)
        assert not verdict.accepted, raw
        assert verdict.reason is RejectReason.SCHEMA_MISMATCH


@pytest.mark.parametrize(
    ("kind", "choices"),
    [
        ("integer", (True, False)),
        ("integer", ("1", "2")),
        ("string", (1,)),
        ("boolean", (0, 1)),
        ("number", ("0.5",)),
    ],
)
def test_choices_must_match_field_kind(kind: str, choices: tuple[object, ...]) -> None:
    with pytest.raises(ValidationError):
        FieldSpec(name="f", kind=kind, choices=choices)  # type: ignore[arg-type]
