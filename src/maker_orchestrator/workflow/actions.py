from __future__ import annotations

import copy
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, get_type_hints

from pydantic import BaseModel, ConfigDict, ValidationError

from maker_orchestrator.core.errors import StateTransitionError

ACTION_KIND_FIELD = "kind"

Handler = Callable[[dict[str, Any], Any], dict[str, Any]]


class ActionParams(BaseModel):
    """Base for per-kind action parameters. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid", frozen=True)


@dataclass(frozen=True, slots=True)
class ActionVariant:
    kind: str
    params_model: type[ActionParams]
    handler: Handler


@dataclass
class ActionDispatcher:
    """Closed dispatch table of tagged action variants.

    Handlers must be pure functions of (data, params): they receive a private
    deep copy of the domain data and return the next data value.
    """

    variants: dict[str, ActionVariant] = field(default_factory=dict)

    def register(self, kind: str, params_model: type[ActionParams], handler: Handler) -> None:
        if kind in self.variants:
            raise ValueError(f"Action kind already registered: {kind}")
        self.variants[kind] = ActionVariant(kind=kind, params_model=params_model, handler=handler)

    def action(self, kind: str) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register`; the params model is read from annotations."""

        def decorator(handler: Handler) -> Handler:
            params_model = get_type_hints(handler).get("params")
            if not isinstance(params_model, type) or not issubclass(params_model, ActionParams):
                raise TypeError(f"Handler for {kind!r} must annotate params with an ActionParams")
            self.register(kind, params_model, handler)
            return handler

        return decorator

    @property
    def kinds(self) -> tuple[str, ...]:
        return tuple(sorted(self.variants))

    def dispatch(self, data: dict[str, Any], action: dict[str, Any]) -> dict[str, Any]:
        kind = action.get(ACTION_KIND_FIELD)
        variant = self.variants.get(kind) if isinstance(kind, str) else None
        if variant is None:
            raise StateTransitionError(f"Unknown action kind: {kind!r}")

        raw_params = {k: v for k, v in action.items() if k != ACTION_KIND_FIELD}
        try:
            params = variant.params_model.model_validate(raw_params)
        except ValidationError as e:
            raise StateTransitionError(f"Invalid parameters for {kind!r}: {e}") from e

        try:
            result = variant.handler(copy.deepcopy(data), params)
        except StateTransitionError:
            raise
        except (ValueError, LookupError, OSError) as e:
            raise StateTransitionError(f"Action {kind!r} failed: {e}") from e

        if not isinstance(result, dict):
            raise StateTransitionError(f"Action {kind!r} did not produce a state value")
        return result
