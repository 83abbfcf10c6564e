"""Append-only, bounded audit trail of step outcomes."""

from __future__ import annotations

import logging
import threading
from collections import Counter, deque
from pathlib import Path

from maker_orchestrator.core.errors import CheckpointStorageError

from .models import StepOutcome, StepStatus

logger = logging.getLogger(__name__)


class AuditTrail:
    """Keeps the most recent outcomes plus running totals.

    Optionally mirrors every outcome to a JSON Lines file that is only ever
    appended to. Memory stays bounded by ``max_entries`` however long the task.
    """

    def __init__(self, *, max_entries: int = 1000, path: Path | None = None) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._entries: deque[StepOutcome] = deque(maxlen=max_entries)
        self._path = path
        self._lock = threading.Lock()
        self.totals: Counter[str] = Counter()

    def append(self, outcome: StepOutcome) -> None:
        with self._lock:
            self._entries.append(outcome)
            self.totals[f"steps_{outcome.status.value}"] += 1
            self.totals["retries"] += outcome.retries_used
            self.totals["escalations"] += int(outcome.escalated)
            for round_ in outcome.rounds:
                self.totals[round_.result.value] += 1
            if self._path is not None:
                self._write(self._path, outcome)

    @staticmethod
    def _write(path: Path, outcome: StepOutcome) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(outcome.model_dump_json() + "\n")
        except OSError as e:
            raise CheckpointStorageError(f"Failed to append audit record: {e}") from e

    def entries(self) -> list[StepOutcome]:
        with self._lock:
            return list(self._entries)

    def last(self) -> StepOutcome | None:
        with self._lock:
            return self._entries[-1] if self._entries else None

    @property
    def applied_steps(self) -> int:
        return self.totals[f"steps_{StepStatus.APPLIED.value}"]

    def __len__(self) -> int:
        return len(self._entries)


def read_audit_log(path: Path) -> list[StepOutcome]:
    """Load every record from an audit log file."""

    if not path.exists():
        return []
    records: list[StepOutcome] = []
    for line in path.read_text(encoding="utf-8").splitlines():
        if line.strip():
            records.append(StepOutcome.model_validate_json(line))
    return records
