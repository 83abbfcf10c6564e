"""State store: exclusive owner of the atomic state."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any

from maker_orchestrator.core.errors import CheckpointFormatError
from maker_orchestrator.workflow.actions import ActionDispatcher

from .checkpoint import CheckpointStorage
from .models import AtomicState, Checkpoint

logger = logging.getLogger(__name__)

Migration = Callable[[dict[str, Any]], dict[str, Any]]


class StateStore:
    """Holds the single atomic state and its step cursor.

    The store is mutated only by the orchestration loop, between steps. Attempt
    workers never see it, so no locking is needed on the hot path; the lock here
    only serializes checkpoint writes.
    """

    def __init__(
        self,
        initial: AtomicState,
        *,
        dispatcher: ActionDispatcher,
        storage: CheckpointStorage,
        migrations: Mapping[int, Migration] | None = None,
    ) -> None:
        """Initialize the state store.

        Args:
            initial: Domain state at task start (cursor 0 for a fresh task).
            dispatcher: Action table used to compute transitions.
            storage: Backend the checkpoints are written to.
            migrations: Upgraders keyed by the state version they upgrade *from*.
        """
        self._state = initial
        self._dispatcher = dispatcher
        self._storage = storage
        self._migrations = dict(migrations or {})
        self._checkpoint_lock = threading.Lock()

    @property
    def task_type(self) -> str:
        return self._state.task_type

    def current(self) -> AtomicState:
        return self._state

    def transition(self, state: AtomicState, action: dict[str, Any]) -> AtomicState:
        """Pure transition: the state that results from applying ``action`` to ``state``.

        Raises:
            StateTransitionError: If the action is domain-invalid.
        """
        data = self._dispatcher.dispatch(state.data, action)
        return state.model_copy(update={"data": data, "cursor": state.cursor + 1})

    def apply(self, action: dict[str, Any]) -> AtomicState:
        """Apply an action to the current state and advance the cursor.

        On :class:`StateTransitionError` the current state is left untouched.
        """
        self._state = self.transition(self._state, action)
        return self._state

    def checkpoint(self) -> Checkpoint:
        """Persist the current state. Blocks until the write completes."""
        checkpoint = Checkpoint(task_type=self._state.task_type, state=self._state)
        with self._checkpoint_lock:
            self._storage.save(checkpoint)
        logger.debug("Checkpoint written", extra={"cursor": checkpoint.cursor})
        return checkpoint

    def latest(self) -> Checkpoint | None:
        return self._storage.load()

    def restore(self, checkpoint: Checkpoint) -> AtomicState:
        """Replace the current state with the one stored in ``checkpoint``.

        Raises:
            CheckpointFormatError: If the checkpoint belongs to another task type or
                its state version cannot be migrated to the current one.
        """
        if checkpoint.task_type != self._state.task_type:
            raise CheckpointFormatError(
                f"Checkpoint is for task {checkpoint.task_type!r}, "
                f"expected {self._state.task_type!r}"
            )

        restored = checkpoint.state
        target = self._state.version
        if restored.version > target:
            raise CheckpointFormatError(
                f"Checkpoint state version {restored.version} is newer than {target}"
            )
        while restored.version < target:
            migrate = self._migrations.get(restored.version)
            if migrate is None:
                raise CheckpointFormatError(
                    f"No migration from state version {restored.version} to {target}"
                )
            restored = restored.model_copy(
                update={"data": migrate(dict(restored.data)), "version": restored.version + 1}
            )

        self._state = restored
        logger.info(
            "State restored from checkpoint",
            extra={"cursor": restored.cursor, "task_type": restored.task_type},
        )
        return restored
