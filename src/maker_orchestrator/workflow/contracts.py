"""Step contracts: the only input an oracle ever sees.

A contract is issued for exactly one cursor position. It carries the instruction
payload, the exact output shape expected back, and a step id derived from both.
Nothing about earlier steps or earlier attempts is ever part of a contract.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

INPUT_PREFIX = "INPUT: "

FieldKind = Literal["string", "integer", "number", "boolean"]

_CHOICE_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
}


def canonical_json(value: object) -> str:
    """Compact, key-sorted JSON used for hashing and equality."""

    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_content_hash(text: str) -> str:
    """Short stable hash used in step ids."""

    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return digest[:12]


class FieldSpec(BaseModel):
    """One field of an expected oracle output."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: FieldKind
    max_length: int | None = Field(default=None, gt=0)
    choices: tuple[bool | int | float | str, ...] | None = None

    @model_validator(mode="after")
    def _check_constraints(self) -> FieldSpec:
        if self.max_length is not None and self.kind != "string":
            raise ValueError(f"max_length only applies to string fields ({self.name})")
        if self.choices is not None and not self.choices:
            raise ValueError(f"choices must not be empty ({self.name})")
        for choice in self.choices or ():
            # bool is an int subclass; it only belongs in boolean fields.
            if isinstance(choice, bool) != (self.kind == "boolean") or not isinstance(
                choice, _CHOICE_TYPES[self.kind]
            ):
                raise ValueError(f"choice {choice!r} is not a valid {self.kind} ({self.name})")
        return self


class OutputSchema(BaseModel):
    """The exact shape an accepted output must have."""

    model_config = ConfigDict(frozen=True)

    name: str
    fields: tuple[FieldSpec, ...]
    max_chars: int = Field(default=512, gt=0)

    @model_validator(mode="after")
    def _check_unique_fields(self) -> OutputSchema:
        names = [f.name for f in self.fields]
        if not names:
            raise ValueError("an output schema needs at least one field")
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate field names in schema {self.name!r}")
        return self

    def describe(self) -> str:
        """Compact JSON hint describing the expected object."""

        hint: dict[str, object] = {}
        for spec in self.fields:
            entry: dict[str, object] = {"type": spec.kind}
            if spec.max_length is not None:
                entry["max_length"] = spec.max_length
            if spec.choices is not None:
                entry["one_of"] = list(spec.choices)
            hint[spec.name] = entry
        return canonical_json({"object": hint, "max_chars": self.max_chars})


@dataclass(frozen=True, slots=True)
class StepContract:
    """One atomic unit of work. Immutable once issued."""

    cursor: int
    instruction: dict[str, Any]
    schema: OutputSchema
    step_id: str = field(default="")

    @classmethod
    def issue(
        cls, *, cursor: int, instruction: dict[str, Any], schema: OutputSchema
    ) -> StepContract:
        if cursor < 0:
            raise ValueError("cursor must be non-negative")
        digest = compute_content_hash(
            canonical_json({"instruction": instruction, "schema": schema.model_dump(mode="json")})
        )
        return cls(
            cursor=cursor,
            instruction=instruction,
            schema=schema,
            step_id=f"step-{cursor + 1}-{digest}",
        )

    @property
    def step_number(self) -> int:
        return self.cursor + 1

    def render_prompt(self) -> str:
        """Render the self-contained prompt for one attempt."""

        task = self.instruction.get("task", "Perform the next step.")
        return "\n".join(
            [
                str(task),
                "",
                INPUT_PREFIX + canonical_json(self.instruction),
                "",
                "Reply with exactly one JSON object and nothing else.",
                "OUTPUT SCHEMA: " + self.schema.describe(),
            ]
        )


@dataclass(frozen=True, slots=True)
class TaskComplete:
    """Signals that the domain goal holds for the current state."""

    reason: str = "goal reached"


@dataclass(frozen=True, slots=True)
class Attempt:
    """Raw output of one oracle invocation for a contract."""

    index: int
    raw: str
    duration_seconds: float


def extract_payload(prompt: str) -> dict[str, Any]:
    """Recover the instruction payload from a rendered prompt."""

    for line in prompt.splitlines():
        if line.startswith(INPUT_PREFIX):
            payload = json.loads(line[len(INPUT_PREFIX) :])
            if not isinstance(payload, dict):
                raise ValueError("prompt payload is not a JSON object")
            return payload
    raise ValueError("prompt has no INPUT line")
