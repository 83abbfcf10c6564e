"""Seeded simulated oracle for offline reliability runs.

The oracle answers correctly with probability ``accuracy``; otherwise it picks one
of the configured failure modes. Most modes are red-flag failures (malformed,
oversized, wrong field, prose around the JSON) that validation must reject;
``wrong_answer`` produces a well-formed but incorrect action.
"""

from __future__ import annotations

import json
import random
import threading
from collections.abc import Callable
from typing import Any

from maker_orchestrator.workflow.contracts import extract_payload

Solver = Callable[[dict[str, Any]], dict[str, Any]]
WrongSolver = Callable[[dict[str, Any], random.Random], dict[str, Any]]

FAILURE_MODES: tuple[str, ...] = ("malformed", "oversized", "wrong_field", "prose", "wrong_answer")


class NoisyOracle:
    def __init__(
        self,
        solve: Solver,
        *,
        accuracy: float,
        failure_modes: tuple[str, ...] = FAILURE_MODES,
        wrong_answer: WrongSolver | None = None,
        seed: int | None = None,
    ) -> None:
        if not 0.0 <= accuracy <= 1.0:
            raise ValueError("accuracy must be within [0, 1]")
        unknown = set(failure_modes) - set(FAILURE_MODES)
        if unknown:
            raise ValueError(f"Unknown failure modes: {sorted(unknown)}")
        if "wrong_answer" in failure_modes and wrong_answer is None:
            failure_modes = tuple(m for m in failure_modes if m != "wrong_answer")
        if accuracy < 1.0 and not failure_modes:
            raise ValueError("at least one failure mode is required when accuracy < 1")

        self._solve = solve
        self._wrong_answer = wrong_answer
        self.accuracy = accuracy
        self.failure_modes = failure_modes
        self._rng = random.Random(seed)
        self._lock = threading.Lock()
        self.calls = 0

    def invoke(self, prompt: str, schema_hint: str, timeout: float) -> str:
        with self._lock:
            self.calls += 1
            correct = self._rng.random() < self.accuracy
            mode = None if correct else self._rng.choice(self.failure_modes)
            wrong_seed = self._rng.random()

        payload = extract_payload(prompt)
        answer = self._solve(payload)
        if mode is None:
            return json.dumps(answer)
        return self._corrupt(mode, answer, payload, schema_hint, wrong_seed)

    def _corrupt(
        self,
        mode: str,
        answer: dict[str, Any],
        payload: dict[str, Any],
        schema_hint: str,
        wrong_seed: float,
    ) -> str:
        text = json.dumps(answer)
        if mode == "malformed":
            return text[: max(len(text) // 2, 1)]
        if mode == "oversized":
            max_chars = int(json.loads(schema_hint).get("max_chars", 512))
            return text + " " * max_chars
        if mode == "wrong_field":
            renamed = {f"{key}_value": value for key, value in answer.items()}
            return json.dumps(renamed)
        if mode == "prose":
            return f"Sure! Here is the next step: {text}"
        wrong_answer = self._wrong_answer
        if mode != "wrong_answer" or wrong_answer is None:
            raise ValueError(f"Unknown failure mode: {mode}")
        return json.dumps(wrong_answer(payload, random.Random(wrong_seed)))
