"""Sequential counter: one increment per step until a target is reached.

The smallest possible long-horizon task. Each step's correct answer depends only
on the current value, and the domain rejects anything but ``value + 1``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from maker_orchestrator.core.errors import StateTransitionError
from maker_orchestrator.state.models import AtomicState
from maker_orchestrator.workflow.actions import ActionDispatcher, ActionParams
from maker_orchestrator.workflow.contracts import FieldSpec, OutputSchema, StepContract, TaskComplete

TASK_TYPE = "counter"

STEP_SCHEMA = OutputSchema(
    name="counter_step",
    fields=(
        FieldSpec(name="kind", kind="string", choices=("increment",)),
        FieldSpec(name="value", kind="integer"),
    ),
    max_chars=64,
)


class IncrementParams(ActionParams):
    value: int


def _increment(data: dict[str, Any], params: IncrementParams) -> dict[str, Any]:
    expected = data["value"] + 1
    if params.value != expected:
        raise StateTransitionError(f"Counter must advance to {expected}, got {params.value}")
    data["value"] = params.value
    return data


def build_dispatcher() -> ActionDispatcher:
    dispatcher = ActionDispatcher()
    dispatcher.register("increment", IncrementParams, _increment)
    return dispatcher


def initial_state(start: int = 0) -> AtomicState:
    return AtomicState(task_type=TASK_TYPE, data={"value": start})


def solve(payload: dict[str, Any]) -> dict[str, Any]:
    """The correct answer for a rendered counter step."""

    return {"kind": "increment", "value": payload["current"] + 1}


@dataclass(frozen=True, slots=True)
class CounterDecomposer:
    target: int

    def next(self, state: AtomicState) -> StepContract | TaskComplete:
        current = state.data["value"]
        if current >= self.target:
            return TaskComplete(reason=f"counter reached {self.target}")
        return StepContract.issue(
            cursor=state.cursor,
            instruction={
                "task": "Increment the counter by exactly one.",
                "current": current,
            },
            schema=STEP_SCHEMA,
        )
