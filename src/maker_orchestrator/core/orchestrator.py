"""Main orchestration loop.

One step at a time: the decomposer issues a contract, k attempts are fanned out,
validated and voted on, and the escalation controller decides whether to apply,
retry, escalate or abort. Only applied state is durable, and it is checkpointed
before the next contract is issued, so a restart resumes from the checkpoint
with no in-flight step to recover.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from maker_orchestrator.core.config import MakerConfig
from maker_orchestrator.core.errors import FatalTaskError, NoConsensusError, StateTransitionError
from maker_orchestrator.llm.oracle import Oracle
from maker_orchestrator.state.audit import AuditTrail
from maker_orchestrator.state.checkpoint import FileCheckpointStorage
from maker_orchestrator.state.models import AtomicState, RoundResult, StepOutcome, StepStatus
from maker_orchestrator.state.store import Migration, StateStore
from maker_orchestrator.workflow.actions import ActionDispatcher
from maker_orchestrator.workflow.contracts import StepContract, TaskComplete
from maker_orchestrator.workflow.decomposer import Decomposer
from maker_orchestrator.workflow.escalation import (
    EscalationController,
    EscalationHook,
    EscalationPolicy,
    EscalationState,
    LoggingEscalationHook,
)
from maker_orchestrator.workflow.executor import AttemptExecutor
from maker_orchestrator.workflow.validator import Validator
from maker_orchestrator.workflow.voting import decide, majority_quorum

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TaskResult:
    """Successful end of a task."""

    state: AtomicState
    steps_applied: int
    outcomes: list[StepOutcome] = field(default_factory=list)
    totals: dict[str, int] = field(default_factory=dict)
    status: str = "success"


class Orchestrator:
    """Drives a task from its current checkpoint to completion.

    The orchestrator is the only component with memory across steps, and that
    memory is limited to the state store and the bounded audit trail.
    """

    def __init__(
        self,
        *,
        decomposer: Decomposer,
        store: StateStore,
        oracle: Oracle | None = None,
        executor: AttemptExecutor | None = None,
        config: MakerConfig | None = None,
        audit: AuditTrail | None = None,
        validator: Validator | None = None,
        escalation_hook: EscalationHook | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            decomposer: Produces the next step contract from the current state.
            store: Owner of the atomic state and its checkpoints.
            oracle: Oracle used to build a default executor.
            executor: Pre-built attempt executor; takes precedence over ``oracle``.
            config: Configuration object. If None, loads from environment.
            audit: Audit trail; defaults to one sized from configuration.
            validator: Output validator.
            escalation_hook: Receives steps flagged for review.
        """
        self.config = config or MakerConfig()
        self.decomposer = decomposer
        self.store = store
        self.validator = validator or Validator()
        self.policy = EscalationPolicy.from_config(self.config.voting, self.config.escalation)
        self.escalation_hook = escalation_hook or LoggingEscalationHook()

        if executor is None:
            if oracle is None:
                raise ValueError("Either an oracle or an executor is required")
            voting = self.config.voting
            executor = AttemptExecutor(
                oracle,
                max_workers=voting.max_workers or self.config.escalation.escalation_k,
                transport_retries=voting.transport_retries,
                transport_backoff_seconds=voting.transport_backoff_seconds,
            )
            self._owns_executor = True
        else:
            self._owns_executor = False
        self.executor = executor

        if audit is None:
            checkpoint_config = self.config.checkpoint
            audit = AuditTrail(
                max_entries=checkpoint_config.audit_max_entries,
                path=checkpoint_config.audit_file if checkpoint_config.audit_log else None,
            )
        self.audit = audit

    @classmethod
    def from_config(
        cls,
        config: MakerConfig,
        *,
        decomposer: Decomposer,
        initial_state: AtomicState,
        dispatcher: ActionDispatcher,
        oracle: Oracle | None = None,
        migrations: dict[int, Migration] | None = None,
    ) -> Orchestrator:
        """Build an orchestrator with file checkpoints and, by default, an LLM oracle."""
        if oracle is None:
            from maker_orchestrator.llm.factory import LLMFactory

            oracle = LLMFactory.create_oracle(config.oracle)

        store = StateStore(
            initial_state,
            dispatcher=dispatcher,
            storage=FileCheckpointStorage(config.checkpoint.checkpoint_file),
            migrations=migrations,
        )
        return cls(decomposer=decomposer, store=store, oracle=oracle, config=config)

    def __enter__(self) -> Orchestrator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_executor:
            self.executor.close()

    def run(self, *, resume: bool = True) -> TaskResult:
        """Run until the decomposer reports completion.

        Args:
            resume: Continue from the latest checkpoint if one exists.

        Returns:
            The final state and a summary of this run.

        Raises:
            FatalTaskError: A step exhausted its retry and escalation budget, the step
                limit was hit, or the task stopped making progress.
            CheckpointStorageError: A checkpoint could not be written.
        """
        self._prepare(resume)
        start_cursor = self.store.current().cursor
        logger.info(
            "Starting task",
            extra={"task_type": self.store.task_type, "cursor": start_cursor},
        )

        steps_applied = 0
        stalled = 0
        max_steps = self.config.max_steps
        while True:
            state = self.store.current()
            contract = self.decomposer.next(state)
            if isinstance(contract, TaskComplete):
                logger.info(
                    "Task complete",
                    extra={
                        "cursor": state.cursor,
                        "steps_applied": steps_applied,
                        "reason": contract.reason,
                    },
                )
                return TaskResult(
                    state=state,
                    steps_applied=steps_applied,
                    outcomes=self.audit.entries(),
                    totals=dict(self.audit.totals),
                )

            if contract.cursor != state.cursor:
                raise ValueError(
                    f"Contract issued for cursor {contract.cursor}, state is at {state.cursor}"
                )
            if max_steps is not None and steps_applied >= max_steps:
                raise self._fatal("step_limit", contract)

            new_state = self._resolve_step(contract)
            steps_applied += 1

            stalled = stalled + 1 if new_state.data == state.data else 0
            if stalled > self.config.max_stalled_steps:
                raise self._fatal("no_progress", contract)

    def _prepare(self, resume: bool) -> None:
        if resume:
            latest = self.store.latest()
            if latest is not None:
                self.store.restore(latest)
                return
        self.store.checkpoint()

    def _resolve_step(self, contract: StepContract) -> AtomicState:
        voting = self.config.voting
        controller = EscalationController(
            step_id=contract.step_id, policy=self.policy, hook=self.escalation_hook
        )
        k = controller.begin()
        started = time.monotonic()

        while True:
            attempts = self.executor.run(contract, k, voting.attempt_timeout_seconds)
            verdicts = self.validator.check_all(attempts, contract.schema)
            vote = decide(verdicts, majority_quorum(k, voting.quorum_ratio))
            counts: dict[str, Any] = {
                "support": vote.support,
                "accepted": vote.accepted,
                "rejected": vote.rejected,
                "absent": k - len(attempts),
            }

            try:
                action = vote.unwrap()
                new_state = self.store.apply(action)
            except NoConsensusError as e:
                if vote.no_responses:
                    result = RoundResult.NO_RESPONSES
                elif e.all_rejected:
                    result = RoundResult.ALL_REJECTED
                else:
                    result = RoundResult.NO_CONSENSUS
                detail = str(e)
            except StateTransitionError as e:
                result = RoundResult.STATE_TRANSITION_ERROR
                detail = str(e)
            else:
                controller.record_win(**counts)
                self.store.checkpoint()
                self.audit.append(self._outcome(contract, controller, StepStatus.APPLIED, action))
                logger.debug(
                    "Step applied",
                    extra={
                        "step_id": contract.step_id,
                        "k": k,
                        "support": vote.support,
                        "rounds": len(controller.rounds),
                        "elapsed_seconds": round(time.monotonic() - started, 4),
                    },
                )
                return new_state

            controller.record_failure(result, **counts)
            logger.warning(
                "Step round failed",
                extra={
                    "step_id": contract.step_id,
                    "result": result.value,
                    "detail": detail,
                    "k": k,
                    "next_state": controller.state.value,
                    **counts,
                },
            )
            if controller.state is EscalationState.ABORTED:
                self.audit.append(self._outcome(contract, controller, StepStatus.ABORTED, None))
                raise self._fatal("escalation_exhausted", contract)
            k = controller.next_round()

    @staticmethod
    def _outcome(
        contract: StepContract,
        controller: EscalationController,
        status: StepStatus,
        action: dict[str, Any] | None,
    ) -> StepOutcome:
        last = controller.rounds[-1]
        return StepOutcome(
            step_id=contract.step_id,
            step_number=contract.step_number,
            status=status,
            action=action,
            support=last.support if status is StepStatus.APPLIED else 0,
            k=last.k,
            retries_used=controller.retries_used,
            escalated=controller.escalated,
            rounds=list(controller.rounds),
        )

    def _fatal(self, reason: str, contract: StepContract) -> FatalTaskError:
        checkpoint = self.store.latest()
        logger.error(
            "Task aborted",
            extra={
                "reason": reason,
                "step_id": contract.step_id,
                "checkpoint_cursor": checkpoint.cursor if checkpoint else None,
            },
        )
        return FatalTaskError(
            f"Task aborted at step {contract.step_number} ({reason})",
            reason=reason,
            cursor=contract.cursor,
            step_id=contract.step_id,
            outcomes=self.audit.entries(),
            checkpoint=checkpoint,
        )
