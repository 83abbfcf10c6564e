"""Red-flag validation of raw oracle output.

The policy is fail-closed: anything that is not exactly the expected JSON object
(oversized, truncated, wrapped in prose or fences, missing or extra fields,
wrong types) is rejected. Nothing is repaired. A syntax violation is treated as
a signal that the reasoning behind it is suspect too.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError, create_model

from .contracts import Attempt, FieldSpec, OutputSchema, canonical_json

logger = logging.getLogger(__name__)

_KIND_TYPES: dict[str, type] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
}


class RejectReason(str, Enum):
    UNPARSABLE = "unparsable"
    SCHEMA_MISMATCH = "schema_mismatch"
    LENGTH_EXCEEDED = "length_exceeded"


@dataclass(frozen=True, slots=True)
class ValidationVerdict:
    """ACCEPT (with a canonical action) or REJECT (with a reason) for one attempt."""

    attempt_index: int
    accepted: bool
    action: dict[str, Any] | None = None
    canonical: str | None = None
    reason: RejectReason | None = None
    detail: str = ""

    @classmethod
    def accept(cls, attempt_index: int, action: dict[str, Any]) -> ValidationVerdict:
        return cls(
            attempt_index=attempt_index,
            accepted=True,
            action=action,
            canonical=canonical_json(action),
        )

    @classmethod
    def reject(
        cls, attempt_index: int, reason: RejectReason, detail: str = ""
    ) -> ValidationVerdict:
        return cls(attempt_index=attempt_index, accepted=False, reason=reason, detail=detail)


class _DuplicateKeyError(ValueError):
    pass


def _unique_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    seen: set[str] = set()
    for key, _ in pairs:
        if key in seen:
            raise _DuplicateKeyError(f"duplicate key {key!r}")
        seen.add(key)
    return dict(pairs)


def _one_of(choices: tuple[Any, ...]) -> Any:
    def validate(value: Any) -> Any:
        if value not in choices:
            raise ValueError(f"expected one of {list(choices)}")
        return value

    return AfterValidator(validate)


def _field_definition(spec: FieldSpec) -> tuple[Any, Any]:
    # The strict base type always applies; choices only narrow it.
    annotation: Any = _KIND_TYPES[spec.kind]
    if spec.choices is not None:
        annotation = Annotated[annotation, _one_of(spec.choices)]
    if spec.max_length is not None:
        return annotation, Field(..., max_length=spec.max_length)
    return annotation, ...


@lru_cache(maxsize=256)
def output_model(schema: OutputSchema) -> type[BaseModel]:
    """Build (once per schema) the strict pydantic model an output must satisfy."""

    definitions = {spec.name: _field_definition(spec) for spec in schema.fields}
    return create_model(  # type: ignore[call-overload, no-any-return]
        f"{schema.name.title().replace('_', '')}Output",
        __config__=ConfigDict(extra="forbid", strict=True),
        **definitions,
    )


def _classify(error: ValidationError) -> RejectReason:
    types = {item["type"] for item in error.errors()}
    if "json_invalid" in types or "json_type" in types:
        return RejectReason.UNPARSABLE
    if "string_too_long" in types:
        return RejectReason.LENGTH_EXCEEDED
    return RejectReason.SCHEMA_MISMATCH


def check(attempt: Attempt, schema: OutputSchema) -> ValidationVerdict:
    """Classify one attempt against the expected output schema."""

    raw = attempt.raw
    if len(raw) > schema.max_chars:
        return ValidationVerdict.reject(
            attempt.index,
            RejectReason.LENGTH_EXCEEDED,
            f"{len(raw)} chars > {schema.max_chars}",
        )

    text = raw.strip()
    if not text:
        return ValidationVerdict.reject(attempt.index, RejectReason.UNPARSABLE, "empty output")

    # The JSON parser keeps the last of repeated keys; a repeat is extra content.
    try:
        json.loads(text, object_pairs_hook=_unique_keys)
    except _DuplicateKeyError as e:
        return ValidationVerdict.reject(attempt.index, RejectReason.SCHEMA_MISMATCH, str(e))
    except json.JSONDecodeError as e:
        return ValidationVerdict.reject(attempt.index, RejectReason.UNPARSABLE, str(e))

    try:
        parsed = output_model(schema).model_validate_json(text)
    except ValidationError as e:
        reason = _classify(e)
        return ValidationVerdict.reject(
            attempt.index, reason, f"{e.error_count()} error(s): {e.errors()[0]['msg']}"
        )

    return ValidationVerdict.accept(attempt.index, parsed.model_dump(mode="json"))


class Validator:
    """Stateless wrapper around :func:`check` that logs rejections."""

    def check(self, attempt: Attempt, schema: OutputSchema) -> ValidationVerdict:
        verdict = check(attempt, schema)
        if not verdict.accepted:
            logger.debug(
                "Attempt rejected",
                extra={
                    "attempt_index": attempt.index,
                    "reason": verdict.reason.value if verdict.reason else None,
                    "detail": verdict.detail,
                },
            )
        return verdict

    def check_all(
        self, attempts: tuple[Attempt, ...] | list[Attempt], schema: OutputSchema
    ) -> list[ValidationVerdict]:
        return [self.check(attempt, schema) for attempt in attempts]
