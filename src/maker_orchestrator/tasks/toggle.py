"""Switch puzzle: turn every switch on, lowest-numbered first.

A switch can only be turned on, never off, so proposing a switch that is already
on (or does not exist) is a domain-invalid action.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any

from pydantic import Field

from maker_orchestrator.core.errors import StateTransitionError
from maker_orchestrator.state.models import AtomicState
from maker_orchestrator.workflow.actions import ActionDispatcher, ActionParams
from maker_orchestrator.workflow.contracts import FieldSpec, OutputSchema, StepContract, TaskComplete

TASK_TYPE = "toggle"

STEP_SCHEMA = OutputSchema(
    name="toggle_step",
    fields=(
        FieldSpec(name="kind", kind="string", choices=("flip",)),
        FieldSpec(name="index", kind="integer"),
    ),
    max_chars=48,
)

dispatcher = ActionDispatcher()


class FlipParams(ActionParams):
    index: int = Field(ge=0)


@dispatcher.action("flip")
def flip(data: dict[str, Any], params: FlipParams) -> dict[str, Any]:
    switches: list[bool] = data["switches"]
    if params.index >= len(switches):
        raise IndexError(f"No switch {params.index}")
    if switches[params.index]:
        raise StateTransitionError(f"Switch {params.index} is already on")
    switches[params.index] = True
    return data


def initial_state(size: int = 3) -> AtomicState:
    return AtomicState(task_type=TASK_TYPE, data={"switches": [False] * size})


def solve(payload: dict[str, Any]) -> dict[str, Any]:
    """The correct answer for a rendered toggle step."""

    return {"kind": "flip", "index": payload["switches"].index(False)}


def wrong_answer(payload: dict[str, Any], rng: random.Random) -> dict[str, Any]:
    """A well-formed but incorrect flip, spread over a wide index range."""

    correct = payload["switches"].index(False)
    choices = [i for i in range(10) if i != correct]
    return {"kind": "flip", "index": rng.choice(choices)}


@dataclass(frozen=True, slots=True)
class ToggleDecomposer:
    def next(self, state: AtomicState) -> StepContract | TaskComplete:
        switches = state.data["switches"]
        if all(switches):
            return TaskComplete(reason="all switches on")
        return StepContract.issue(
            cursor=state.cursor,
            instruction={
                "task": "Turn on the lowest-numbered switch that is off.",
                "switches": [int(s) for s in switches],
            },
            schema=STEP_SCHEMA,
        )
