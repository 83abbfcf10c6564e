"""Checkpoint storage backends.

A checkpoint is the sole recovery unit: a versioned (state, cursor) snapshot.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from maker_orchestrator.core.errors import CheckpointFormatError, CheckpointStorageError

from .models import CHECKPOINT_FORMAT_VERSION, Checkpoint

logger = logging.getLogger(__name__)


class CheckpointStorage(Protocol):
    def save(self, checkpoint: Checkpoint) -> None: ...

    def load(self) -> Checkpoint | None: ...


def _check_format(checkpoint: Checkpoint) -> Checkpoint:
    if checkpoint.format_version > CHECKPOINT_FORMAT_VERSION:
        raise CheckpointFormatError(
            f"Checkpoint format {checkpoint.format_version} is newer than "
            f"supported format {CHECKPOINT_FORMAT_VERSION}"
        )
    return checkpoint


class InMemoryCheckpointStorage:
    """Keeps the latest checkpoint in memory (tests and simulated runs)."""

    def __init__(self) -> None:
        self._payload: str | None = None
        self.saves = 0

    def save(self, checkpoint: Checkpoint) -> None:
        # Stored serialized so a restore never aliases live state.
        self._payload = checkpoint.model_dump_json()
        self.saves += 1

    def load(self) -> Checkpoint | None:
        if self._payload is None:
            return None
        return _check_format(Checkpoint.model_validate_json(self._payload))


class FileCheckpointStorage:
    """JSON-file backed checkpoint storage.

    Writes go to a temporary file that is then atomically renamed over the
    checkpoint, so a crash mid-write leaves the previous checkpoint intact.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def save(self, checkpoint: Checkpoint) -> None:
        tmp = self._path.with_name(self._path.name + ".tmp")
        payload = json.dumps(checkpoint.model_dump(mode="json"), indent=2, ensure_ascii=False)
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with open(tmp, "w", encoding="utf-8") as f:
                    f.write(payload + "\n")
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self._path)
            except OSError as e:
                logger.error(
                    "Failed to write checkpoint",
                    extra={"path": str(self._path), "cursor": checkpoint.cursor},
                )
                raise CheckpointStorageError(f"Failed to write checkpoint: {e}") from e

    def load(self) -> Checkpoint | None:
        with self._lock:
            if not self._path.exists():
                return None
            try:
                raw = json.loads(self._path.read_text(encoding="utf-8"))
            except OSError as e:
                raise CheckpointStorageError(f"Failed to read checkpoint: {e}") from e
            except json.JSONDecodeError as e:
                raise CheckpointFormatError(f"Checkpoint is not valid JSON: {self._path}") from e

        if not isinstance(raw, dict):
            raise CheckpointFormatError(f"Checkpoint has unexpected shape: {self._path}")
        try:
            checkpoint = Checkpoint.model_validate(raw)
        except ValidationError as e:
            raise CheckpointFormatError(f"Checkpoint does not match the expected model: {e}") from e
        return _check_format(checkpoint)
